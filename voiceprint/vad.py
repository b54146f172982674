"""Energy-based voice activity detection with hysteresis and hangover.

The detector itself only holds configuration. All mutable state lives in a
VADSession owned by the caller, one per recording stream, and is passed to
every ``contains_speech`` call so independent streams never share counters.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

INT16_SCALE = 1.0 / 32768.0


@dataclass(frozen=True)
class VADConfig:
    """Voice activity detector parameters.

    Attributes:
        energy_threshold: RMS above which a frame counts as energetic
        min_speech_frames: Consecutive energetic frames to enter Speaking
        min_silence_frames: Consecutive quiet frames to leave Speaking
        hangover_seconds: Stream time speech is still reported after the last energetic frame
        sample_rate: Used to advance the stream clock when no timestamp is given
    """
    energy_threshold: float = 0.015
    min_speech_frames: int = 3
    min_silence_frames: int = 10
    hangover_seconds: float = 0.5
    sample_rate: int = 16000

    def __post_init__(self):
        if self.energy_threshold < 0:
            raise ValueError(
                f"energy_threshold must be non-negative, got {self.energy_threshold}"
            )
        if self.min_speech_frames < 1:
            raise ValueError(
                f"min_speech_frames must be positive, got {self.min_speech_frames}"
            )
        if self.min_silence_frames < 1:
            raise ValueError(
                f"min_silence_frames must be positive, got {self.min_silence_frames}"
            )
        if self.hangover_seconds < 0:
            raise ValueError(
                f"hangover_seconds must be non-negative, got {self.hangover_seconds}"
            )
        if self.sample_rate <= 0:
            raise ValueError(
                f"sample_rate must be positive, got {self.sample_rate}"
            )


@dataclass
class VADStatistics:
    """Frame counts for one stream.

    Attributes:
        total_frames: Frames analyzed
        speech_frames: Frames reported as speech
        silence_frames: Frames reported as silence
    """
    total_frames: int = 0
    speech_frames: int = 0
    silence_frames: int = 0

    @property
    def speech_percentage(self) -> float:
        if self.total_frames == 0:
            return 0.0
        return self.speech_frames / self.total_frames * 100.0

    @property
    def saved_percentage(self) -> float:
        """Share of frames that did not need to be forwarded."""
        return 100.0 - self.speech_percentage

    def __str__(self) -> str:
        return (
            f"VAD stats: {self.total_frames} frames, "
            f"{self.speech_percentage:.1f}% speech, {self.saved_percentage:.1f}% saved"
        )


@dataclass
class VADSession:
    """Mutable detector state for a single recording stream.

    Attributes:
        consecutive_speech_frames: Current run of energetic frames
        consecutive_silence_frames: Current run of quiet frames
        is_speaking: State machine state (Speaking when True)
        last_speech_time: Stream time of the last energetic frame
        stream_time: Stream clock, in seconds
        statistics: Frame counts for this stream
    """
    consecutive_speech_frames: int = 0
    consecutive_silence_frames: int = 0
    is_speaking: bool = False
    last_speech_time: Optional[float] = None
    stream_time: float = 0.0
    statistics: VADStatistics = field(default_factory=VADStatistics)

    def reset(self):
        """Return to the initial state. Call at the start of every recording."""
        self.consecutive_speech_frames = 0
        self.consecutive_silence_frames = 0
        self.is_speaking = False
        self.last_speech_time = None
        self.stream_time = 0.0
        self.statistics = VADStatistics()

    @property
    def debug_info(self) -> str:
        return (
            f"VAD: speaking={self.is_speaking}, "
            f"speechFrames={self.consecutive_speech_frames}, "
            f"silenceFrames={self.consecutive_silence_frames}"
        )


def frame_rms(frame: np.ndarray) -> float:
    """RMS of a frame; int16 PCM is scaled to [-1, 1] first."""
    frame = np.asarray(frame)
    if frame.size == 0:
        return 0.0
    if frame.dtype == np.int16:
        samples = frame.astype(np.float64) * INT16_SCALE
    else:
        samples = frame.astype(np.float64)
    return float(np.sqrt(np.mean(np.square(samples))))


class VoiceActivityDetector:
    """Classifies frames as speech or silence for a caller-owned session.

    Example:
        >>> vad = VoiceActivityDetector()
        >>> session = vad.new_session()
        >>> for frame in frames:
        ...     if vad.contains_speech(session, frame):
        ...         send(frame)

    Attributes:
        config: Detector parameters
    """

    def __init__(self, config: Optional[VADConfig] = None):
        self.config = config or VADConfig()

    def new_session(self) -> VADSession:
        return VADSession()

    def current_level(self, frame: np.ndarray) -> float:
        """RMS level of ``frame`` for metering; does not touch any session."""
        return frame_rms(frame)

    def contains_speech(
        self,
        session: VADSession,
        frame: np.ndarray,
        timestamp: Optional[float] = None,
        use_hangover: bool = True,
    ) -> bool:
        """Analyze one frame and report whether speech is present.

        Args:
            session: State of the stream the frame belongs to
            frame: Float samples in [-1, 1] or int16 PCM
            timestamp: Stream time of the frame in seconds; when omitted the
                session clock advances by the frame duration
            use_hangover: Keep reporting speech for ``hangover_seconds``
                after the last energetic frame

        Returns:
            True if the frame should be treated as speech
        """
        if timestamp is None:
            session.stream_time += len(frame) / float(self.config.sample_rate)
        else:
            session.stream_time = float(timestamp)
        return self.update(session, frame_rms(frame), use_hangover=use_hangover)

    def update(
        self,
        session: VADSession,
        rms: float,
        use_hangover: bool = True,
    ) -> bool:
        """Advance the state machine with a precomputed frame RMS at ``session.stream_time``."""
        config = self.config
        now = session.stream_time

        if rms > config.energy_threshold:
            session.consecutive_speech_frames += 1
            session.consecutive_silence_frames = 0
            session.last_speech_time = now
            if session.consecutive_speech_frames >= config.min_speech_frames:
                if not session.is_speaking:
                    logger.debug(f"Speech started at {now:.2f}s")
                session.is_speaking = True
        else:
            session.consecutive_silence_frames += 1
            session.consecutive_speech_frames = 0
            if session.is_speaking and session.consecutive_silence_frames >= config.min_silence_frames:
                logger.debug(f"Speech ended at {now:.2f}s")
                session.is_speaking = False

        result = session.is_speaking
        if use_hangover and session.last_speech_time is not None:
            if now - session.last_speech_time < config.hangover_seconds:
                result = True

        session.statistics.total_frames += 1
        if result:
            session.statistics.speech_frames += 1
        else:
            session.statistics.silence_frames += 1
        return result
