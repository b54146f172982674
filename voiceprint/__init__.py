"""voiceprint: Acoustic voice fingerprints and speaker matching.

This module provides MFCC-based voice profiles, an energy-based voice
activity detector, and speaker matching over diarization embeddings.

Example:
    >>> from voiceprint import VoiceAnalyzer
    >>> analyzer = VoiceAnalyzer()
    >>> profile, info = analyzer.extract_profile(samples, sample_rate=16000)
    >>> result, mapping = analyzer.analyze_diarization(segments, known_speakers=library)
    >>> for tag, known_id in mapping.items():
    ...     print(f"{tag} -> {known_id}")
"""

from .aggregation import (
    average_profiles,
    identify_by_features,
    similarity,
    update_profile,
)
from .data_models import (
    DiarizationResult,
    DiarizationSegment,
    ExtractionInfo,
    Frame,
    KnownSpeaker,
    SpeakerEmbeddingProfile,
    SpeakerMatch,
    SpectralFeatures,
    VoiceProfile,
)
from .embeddings import (
    cosine_distance,
    find_match,
    identify_by_embedding,
    l2_normalize,
    match_all_speakers,
    update_embedding,
)
from .feature_extractor import VoiceFeatureExtractor
from .frame_processor import FrameBatchProcessor, FrameFeatureBatch
from .framing import FrameSplitter
from .profiler import PerformanceProfiler, PerformanceStats
from .spectral_tables import FrontendConfig, SpectralTables, build_spectral_tables
from .speaker_matching import MatcherConfig, SpeakerMatcher, SpeakerTimeline, aggregate_segments
from .vad import VADConfig, VADSession, VADStatistics, VoiceActivityDetector
from .voice_analyzer import AlreadyProcessingError, VoiceAnalyzer

__version__ = "0.1.0"

__all__ = [
    "AlreadyProcessingError",
    "DiarizationResult",
    "DiarizationSegment",
    "ExtractionInfo",
    "Frame",
    "FrameBatchProcessor",
    "FrameFeatureBatch",
    "FrameSplitter",
    "FrontendConfig",
    "KnownSpeaker",
    "MatcherConfig",
    "PerformanceProfiler",
    "PerformanceStats",
    "SpeakerEmbeddingProfile",
    "SpeakerMatch",
    "SpeakerMatcher",
    "SpeakerTimeline",
    "SpectralFeatures",
    "SpectralTables",
    "VADConfig",
    "VADSession",
    "VADStatistics",
    "VoiceActivityDetector",
    "VoiceAnalyzer",
    "VoiceFeatureExtractor",
    "VoiceProfile",
    "aggregate_segments",
    "average_profiles",
    "build_spectral_tables",
    "cosine_distance",
    "find_match",
    "identify_by_embedding",
    "identify_by_features",
    "l2_normalize",
    "match_all_speakers",
    "similarity",
    "update_embedding",
    "update_profile",
]
