"""Main API class for voiceprint.

This module provides the VoiceAnalyzer class, which is the primary
interface for using voiceprint. It validates parameters, wires the
spectral frontend and the speaker matching engine together, and guards
against overlapping runs on the same instance.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .aggregation import (
    DEFAULT_MINIMUM_CONFIDENCE,
    average_profiles,
    identify_by_features,
    is_valid_training_profile,
)
from .data_models import (
    DiarizationResult,
    DiarizationSegment,
    ExtractionInfo,
    KnownSpeaker,
    SpeakerMatch,
    VoiceProfile,
)
from .embeddings import embedding_library
from .feature_extractor import VoiceFeatureExtractor
from .profiler import PerformanceProfiler
from .spectral_tables import FrontendConfig, build_spectral_tables
from .speaker_matching import MatcherConfig, SpeakerMatcher

logger = logging.getLogger(__name__)


class AlreadyProcessingError(RuntimeError):
    """Raised when a VoiceAnalyzer is asked to start a run while busy."""


class VoiceAnalyzer:
    """Main interface for voiceprint functionality.

    VoiceAnalyzer extracts voice profiles from mono samples and resolves
    diarization output into per-speaker profiles matched against known
    speakers.

    Example:
        >>> analyzer = VoiceAnalyzer(batch_size=128)
        >>> profile, info = analyzer.extract_profile(samples, sample_rate=16000)
        >>> result, mapping = analyzer.analyze_diarization(segments, known_speakers=library)

    Attributes:
        sample_rate: Sample rate every input must have
        batch_size: Frames processed per vectorized batch
        extractor: Spectral frontend
        matcher: Speaker matching engine
        profiler: Timing of the most recent extraction
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        batch_size: int = 64,
        frame_size: int = 512,
        hop_size: int = 256,
        match_threshold: float = 0.4,
        tolerance: float = 1.0,
    ):
        """Initialize the analyzer.

        Args:
            sample_rate: Expected input sample rate in Hz
            batch_size: Frames per vectorized batch
            frame_size: Samples per analysis frame (power of two)
            hop_size: Samples between frame starts
            match_threshold: Cosine distance a known-speaker match must be under
            tolerance: Largest gap (s) bridged when resolving a timestamp

        Raises:
            TypeError: If parameters have invalid types
            ValueError: If parameters are invalid
        """
        if not isinstance(batch_size, int) or isinstance(batch_size, bool):
            raise TypeError(
                f"batch_size must be int, got {type(batch_size).__name__}"
            )
        if batch_size < 1:
            raise ValueError(
                f"batch_size must be positive integer, got {batch_size}"
            )

        if not isinstance(match_threshold, (int, float)):
            raise TypeError(
                f"match_threshold must be numeric, got {type(match_threshold).__name__}"
            )
        if not isinstance(tolerance, (int, float)):
            raise TypeError(
                f"tolerance must be numeric, got {type(tolerance).__name__}"
            )

        # FrontendConfig and MatcherConfig validate the remaining values
        frontend_config = FrontendConfig(
            sample_rate=sample_rate,
            frame_size=frame_size,
            hop_size=hop_size,
        )
        matcher_config = MatcherConfig(
            tolerance=float(tolerance),
            match_threshold=float(match_threshold),
        )

        self.sample_rate = sample_rate
        self.batch_size = batch_size
        self.match_threshold = float(match_threshold)
        self.tolerance = float(tolerance)

        self.extractor = VoiceFeatureExtractor(
            tables=build_spectral_tables(frontend_config),
            batch_size=batch_size,
        )
        self.matcher = SpeakerMatcher(matcher_config)
        self.profiler = PerformanceProfiler()

        self._lock = threading.Lock()

        logger.info(
            f"VoiceAnalyzer initialized: sample_rate={sample_rate}, "
            f"frame_size={frame_size}, hop_size={hop_size}, batch_size={batch_size}"
        )

    @property
    def is_processing(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def _processing(self):
        if not self._lock.acquire(blocking=False):
            raise AlreadyProcessingError("Already processing audio")
        try:
            yield
        finally:
            self._lock.release()

    def _as_samples(self, samples, name: str = "samples") -> np.ndarray:
        if not isinstance(samples, np.ndarray):
            raise TypeError(
                f"{name} must be np.ndarray, got {type(samples).__name__}"
            )
        if samples.ndim != 1:
            raise ValueError(
                f"{name} must be 1-dimensional, got shape {samples.shape}"
            )
        return samples

    def _check_sample_rate(self, sample_rate: Optional[int]):
        if sample_rate is not None and sample_rate != self.sample_rate:
            raise ValueError(
                f"sample_rate must be {self.sample_rate} Hz, got {sample_rate}. "
                f"Resample the audio before analysis"
            )

    def extract_profile(
        self,
        samples: np.ndarray,
        sample_rate: Optional[int] = None,
    ) -> Tuple[VoiceProfile, ExtractionInfo]:
        """Extract a voice profile from one audio unit.

        Args:
            samples: Mono float samples in [-1, 1]
            sample_rate: Sample rate of ``samples`` (default: the analyzer's)

        Returns:
            profile: VoiceProfile (the empty sentinel for audio shorter than a frame)
            info: Extraction metadata

        Raises:
            TypeError: If samples is not a numpy array
            ValueError: If samples are not 1-D or the sample rate differs
            AlreadyProcessingError: If another run is in progress
        """
        samples = self._as_samples(samples)
        self._check_sample_rate(sample_rate)

        with self._processing():
            duration = len(samples) / float(self.sample_rate)
            num_frames = self.extractor.splitter.num_frames(len(samples))
            with self.profiler.measure(duration, num_frames, self.batch_size):
                profile, info = self.extractor.extract_with_info(samples)

        logger.info(str(self.profiler.last_stats))
        return profile, info

    def extract_profiles_batch(
        self,
        audio_list: List[np.ndarray],
        sample_rate: Optional[int] = None,
    ) -> List[Tuple[VoiceProfile, ExtractionInfo]]:
        """Extract profiles from several audio units under one run.

        Inputs are processed one after another, each in frame batches of
        ``batch_size``, so memory stays bounded by the largest input and
        results match ``extract_profile`` called on each input in turn.

        Args:
            audio_list: Mono float sample arrays
            sample_rate: Sample rate shared by all arrays (default: the analyzer's)

        Returns:
            List of (profile, info) tuples in the same order as ``audio_list``

        Raises:
            TypeError: If audio_list is not a list or contains non-arrays
            ValueError: If audio_list is empty, an array is not 1-D or the sample rate differs
            AlreadyProcessingError: If another run is in progress
        """
        if not isinstance(audio_list, list):
            raise TypeError(
                f"audio_list must be list, got {type(audio_list).__name__}"
            )
        if not audio_list:
            raise ValueError("audio_list cannot be empty")
        arrays = [self._as_samples(a, f"audio_list[{i}]") for i, a in enumerate(audio_list)]
        self._check_sample_rate(sample_rate)

        with self._processing():
            start_time = time.perf_counter()
            # Short and silent inputs are logged per input by the extractor
            results = [self.extractor.extract_with_info(audio) for audio in arrays]
            total_time = time.perf_counter() - start_time

        total_frames = sum(info.num_frames for _, info in results)
        logger.info(
            f"Extracted {len(results)} profiles from {total_frames} frames "
            f"in {total_time:.3f}s"
        )
        return results

    def build_enrollment_profile(
        self,
        audio_list: List[np.ndarray],
        sample_rate: Optional[int] = None,
    ) -> Optional[VoiceProfile]:
        """Build one speaker profile from several recordings of that speaker.

        Recordings whose profile lacks pitch or energy are rejected. The
        remaining profiles are averaged without weighting.

        Returns:
            The averaged profile, or None when no recording was usable
        """
        profiles = []
        for index, (profile, _) in enumerate(self.extract_profiles_batch(audio_list, sample_rate)):
            if not is_valid_training_profile(profile):
                logger.warning(
                    f"Rejecting enrollment sample {index}: invalid features "
                    f"(pitch={profile.pitch_mean:.1f}, energy={profile.energy_mean:.4f})"
                )
                continue
            profiles.append(profile)
        return average_profiles(profiles)

    def identify(
        self,
        samples: np.ndarray,
        known_speakers: Iterable[KnownSpeaker],
        sample_rate: Optional[int] = None,
        minimum_confidence: float = DEFAULT_MINIMUM_CONFIDENCE,
    ) -> List[SpeakerMatch]:
        """Rank known speakers by feature similarity to ``samples``."""
        profile, _ = self.extract_profile(samples, sample_rate)
        return identify_by_features(profile, known_speakers, minimum_confidence)

    def analyze_diarization(
        self,
        segments: Sequence[DiarizationSegment],
        speaker_database: Optional[Mapping[str, Sequence[float]]] = None,
        known_speakers: Optional[Iterable[KnownSpeaker]] = None,
        threshold: Optional[float] = None,
    ) -> Tuple[DiarizationResult, Dict[str, str]]:
        """Aggregate a recording's diarization output and match its speakers.

        Args:
            segments: Diarization segments of one recording
            speaker_database: Optional tag -> pre-averaged embedding from the engine
            known_speakers: Known speakers to match against
            threshold: Match threshold (default: the analyzer's ``match_threshold``)

        Returns:
            result: DiarizationResult with per-speaker embedding profiles
            mapping: Recording tag -> known speaker ID for matched tags

        Raises:
            AlreadyProcessingError: If another run is in progress
        """
        with self._processing():
            result = self.matcher.analyze(segments, speaker_database=speaker_database)
            mapping = {}
            if known_speakers is not None:
                library = embedding_library(
                    known_speakers,
                    dim=self.matcher.config.embedding_dim,
                )
                mapping = self.matcher.match_all_speakers(
                    result.speaker_profiles,
                    library,
                    threshold=threshold,
                )
        return result, mapping

    def assign_speakers(
        self,
        result: DiarizationResult,
        timestamps: Iterable[Tuple[object, float]],
    ) -> Dict[object, str]:
        """Attach a speaker tag to each ``(segment_id, timestamp)`` pair."""
        return self.matcher.assign_speakers(result, timestamps)
