"""Core data models for voiceprint.

This module defines the data structures used throughout the voiceprint
pipeline for representing analysis frames, per-frame spectral features,
aggregated voice profiles, diarization output and known speakers.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

NUM_MFCCS = 13
EMBEDDING_DIM = 256


def _frozen_array(values, length: Optional[int] = None) -> np.ndarray:
    array = np.array(values, dtype=np.float64).reshape(-1)
    if length is not None and array.shape[0] != length:
        raise ValueError(
            f"expected {length} values, got {array.shape[0]}"
        )
    array.setflags(write=False)
    return array


@dataclass
class Frame:
    """A fixed-length window of samples taken from a longer buffer.

    Attributes:
        samples: Raw (unwindowed) samples of the frame
        start_sample: Index of the first sample in the source buffer
        start_time: Start time in seconds relative to the source buffer
        frame_index: Index in the sequence of frames (0-based)
    """
    samples: np.ndarray
    start_sample: int
    start_time: float
    frame_index: int


@dataclass
class SpectralFeatures:
    """Features computed for a single frame.

    Attributes:
        mfcc: Mel-frequency cepstral coefficients
        energy: RMS of the windowed frame
        pitch_hz: Estimated fundamental frequency, 0 when not accepted
        spectral_centroid_hz: Magnitude-weighted mean frequency
        zero_crossing_rate: Fraction of sign changes in the raw frame
    """
    mfcc: np.ndarray
    energy: float
    pitch_hz: float
    spectral_centroid_hz: float
    zero_crossing_rate: float


@dataclass(frozen=True, eq=False)
class VoiceProfile:
    """Statistical summary of the frames of one audio unit.

    A profile with every field at zero is the empty sentinel returned for
    audio too short to analyze. It must never be used as a match target.

    Attributes:
        mfcc_mean: Column-wise mean of the frame MFCCs
        mfcc_variance: Column-wise sample variance of the frame MFCCs
        pitch_mean: Mean pitch over frames with an accepted pitch (Hz)
        pitch_variance: Sample variance of the accepted pitches
        energy_mean: Mean frame RMS energy
        energy_variance: Sample variance of frame RMS energy
        spectral_centroid: Mean spectral centroid (Hz)
        zero_crossing_rate: Mean zero-crossing rate
    """
    mfcc_mean: np.ndarray
    mfcc_variance: np.ndarray
    pitch_mean: float = 0.0
    pitch_variance: float = 0.0
    energy_mean: float = 0.0
    energy_variance: float = 0.0
    spectral_centroid: float = 0.0
    zero_crossing_rate: float = 0.0

    def __post_init__(self):
        mean = _frozen_array(self.mfcc_mean)
        variance = _frozen_array(self.mfcc_variance, length=mean.shape[0])
        object.__setattr__(self, "mfcc_mean", mean)
        object.__setattr__(self, "mfcc_variance", variance)
        for name in (
            "pitch_mean",
            "pitch_variance",
            "energy_mean",
            "energy_variance",
            "spectral_centroid",
            "zero_crossing_rate",
        ):
            object.__setattr__(self, name, float(getattr(self, name)))

    @classmethod
    def empty(cls, num_mfccs: int = NUM_MFCCS) -> "VoiceProfile":
        """Return the all-zero sentinel for insufficient audio."""
        return cls(
            mfcc_mean=np.zeros(num_mfccs),
            mfcc_variance=np.zeros(num_mfccs),
        )

    @property
    def is_empty(self) -> bool:
        return not (
            np.any(self.mfcc_mean)
            or np.any(self.mfcc_variance)
            or any(self.scalars())
        )

    def scalars(self) -> List[float]:
        return [
            self.pitch_mean,
            self.pitch_variance,
            self.energy_mean,
            self.energy_variance,
            self.spectral_centroid,
            self.zero_crossing_rate,
        ]

    def to_vector(self) -> np.ndarray:
        """Flatten to ``[mfcc_mean, mfcc_variance, scalars]`` (32 floats for 13 MFCCs)."""
        return np.concatenate([self.mfcc_mean, self.mfcc_variance, self.scalars()])

    @classmethod
    def from_vector(cls, vector: np.ndarray, num_mfccs: int = NUM_MFCCS) -> "VoiceProfile":
        vector = np.asarray(vector, dtype=np.float64).reshape(-1)
        expected = 2 * num_mfccs + 6
        if vector.shape[0] != expected:
            raise ValueError(
                f"profile vector must have {expected} values, got {vector.shape[0]}"
            )
        scalars = vector[2 * num_mfccs:]
        return cls(
            mfcc_mean=vector[:num_mfccs],
            mfcc_variance=vector[num_mfccs:2 * num_mfccs],
            pitch_mean=scalars[0],
            pitch_variance=scalars[1],
            energy_mean=scalars[2],
            energy_variance=scalars[3],
            spectral_centroid=scalars[4],
            zero_crossing_rate=scalars[5],
        )


@dataclass
class DiarizationSegment:
    """One speaker-tagged time range produced by the diarization engine.

    Attributes:
        speaker_tag: Recording-local speaker label (not globally stable)
        start_time: Start time in seconds
        end_time: End time in seconds
        quality_score: Engine-reported quality of the segment
        embedding: Raw speaker embedding for the segment
    """
    speaker_tag: str
    start_time: float
    end_time: float
    quality_score: float = 0.0
    embedding: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True, eq=False)
class SpeakerEmbeddingProfile:
    """Per-recording embedding of one diarization speaker.

    Immutable: the embedding is copied into a read-only array.

    Attributes:
        speaker_tag: Recording-local speaker label
        embedding: L2-normalized embedding
        total_duration: Summed duration of the speaker's segments in seconds
    """
    speaker_tag: str
    embedding: np.ndarray
    total_duration: float

    def __post_init__(self):
        object.__setattr__(self, "embedding", _frozen_array(self.embedding))
        object.__setattr__(self, "total_duration", float(self.total_duration))


@dataclass
class DiarizationResult:
    """Diarization output for one recording.

    Attributes:
        segments: Segments in the order the engine produced them
        speaker_profiles: Aggregated embedding per speaker tag
        speaker_count: Number of distinct speaker tags
        processing_time: Wall-clock time spent aggregating, in seconds
    """
    segments: List[DiarizationSegment]
    speaker_profiles: Dict[str, SpeakerEmbeddingProfile]
    speaker_count: int
    processing_time: float = 0.0


@dataclass
class KnownSpeaker:
    """A persisted speaker identity, read-only to this library.

    Attributes:
        speaker_id: Stable identifier owned by the storage layer
        name: Display name
        embedding: Stored speaker embedding, if any
        voice_profile: Stored feature profile, if any
    """
    speaker_id: str
    name: str = ""
    embedding: Optional[np.ndarray] = None
    voice_profile: Optional[VoiceProfile] = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) == EMBEDDING_DIM


@dataclass
class SpeakerMatch:
    """A candidate identification of a speaker.

    Attributes:
        speaker_id: Identifier of the matched known speaker
        speaker_name: Display name of the matched known speaker
        confidence: Similarity in [0, 1], higher is better
        distance: Cosine distance for embedding matches, None otherwise
    """
    speaker_id: str
    speaker_name: str
    confidence: float
    distance: Optional[float] = None


@dataclass
class ExtractionInfo:
    """Metadata about a feature extraction run.

    Attributes:
        duration: Audio duration in seconds
        num_frames: Number of frames analyzed
        voiced_frames: Number of frames with an accepted pitch
        batch_size: Frames processed per vectorized batch
        processing_time: Wall-clock time for extraction in seconds
    """
    duration: float
    num_frames: int
    voiced_frames: int
    batch_size: int
    processing_time: float
