"""Speaker matching over diarization output.

This module turns one recording's diarization segments into per-speaker
embedding profiles, resolves which speaker is active at a given timestamp
(bridging small gaps between segments), and maps recording-local speaker
tags onto a library of known speakers.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .data_models import (
    EMBEDDING_DIM,
    DiarizationResult,
    DiarizationSegment,
    SpeakerEmbeddingProfile,
)
from .embeddings import (
    DEFAULT_MATCH_THRESHOLD,
    find_match,
    is_valid_embedding,
    l2_normalize,
    match_all_speakers,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatcherConfig:
    """Speaker matching parameters.

    Attributes:
        tolerance: Largest gap (s) bridged by ``speaker_at``
        carry_forward_tolerance: Gap (s) bridged before carry-forward kicks in
        match_threshold: Cosine distance a known-speaker match must be under
        embedding_dim: Expected embedding dimensionality
    """
    tolerance: float = 1.0
    carry_forward_tolerance: float = 0.5
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    embedding_dim: int = EMBEDDING_DIM

    def __post_init__(self):
        if self.tolerance < 0:
            raise ValueError(
                f"tolerance must be non-negative, got {self.tolerance}"
            )
        if self.carry_forward_tolerance < 0:
            raise ValueError(
                f"carry_forward_tolerance must be non-negative, got {self.carry_forward_tolerance}"
            )
        if not 0.0 < self.match_threshold <= 2.0:
            raise ValueError(
                f"match_threshold must be in (0.0, 2.0], got {self.match_threshold}"
            )
        if self.embedding_dim < 1:
            raise ValueError(
                f"embedding_dim must be positive, got {self.embedding_dim}"
            )


def aggregate_segments(
    segments: Sequence[DiarizationSegment],
    speaker_database: Optional[Mapping[str, Sequence[float]]] = None,
    embedding_dim: int = EMBEDDING_DIM,
) -> Dict[str, SpeakerEmbeddingProfile]:
    """Build one embedding profile per speaker tag.

    Each tag's embedding is the duration-weighted mean of its segment
    embeddings, L2-normalized. Segments with a non-positive duration or an
    embedding of the wrong size do not contribute to the mean. When
    ``speaker_database`` holds a pre-averaged embedding for a tag, that
    embedding (normalized) is used instead; the duration is always summed
    locally. A tag with no usable embedding keeps its first segment's raw
    embedding.

    Args:
        segments: Diarization segments of one recording
        speaker_database: Optional tag -> pre-averaged embedding
        embedding_dim: Expected embedding size (default: 256)

    Returns:
        Speaker tag -> SpeakerEmbeddingProfile
    """
    durations: Dict[str, float] = {}
    first_embeddings: Dict[str, np.ndarray] = {}
    sums: Dict[str, np.ndarray] = {}
    weights: Dict[str, float] = {}

    for segment in segments:
        tag = segment.speaker_tag
        duration = max(0.0, float(segment.end_time - segment.start_time))

        if tag in durations:
            durations[tag] += duration
        else:
            durations[tag] = duration
            first_embeddings[tag] = np.asarray(segment.embedding, dtype=np.float64)

        if duration <= 0:
            logger.debug(
                f"Skipping segment of {tag} with non-positive duration "
                f"[{segment.start_time:.2f}, {segment.end_time:.2f}]"
            )
            continue
        if not is_valid_embedding(segment.embedding, embedding_dim):
            logger.debug(
                f"Skipping segment of {tag} with embedding size "
                f"{np.asarray(segment.embedding).size}"
            )
            continue

        embedding = np.asarray(segment.embedding, dtype=np.float64)
        if tag not in sums:
            sums[tag] = np.zeros(embedding_dim)
            weights[tag] = 0.0
        sums[tag] += embedding * duration
        weights[tag] += duration

    database = speaker_database or {}
    profiles: Dict[str, SpeakerEmbeddingProfile] = {}
    for tag, total_duration in durations.items():
        if tag in database and is_valid_embedding(database[tag], embedding_dim):
            embedding = l2_normalize(database[tag])
        elif weights.get(tag, 0.0) > 0:
            embedding = l2_normalize(sums[tag] / weights[tag])
        else:
            logger.warning(f"No usable embedding for speaker {tag}")
            embedding = first_embeddings[tag]

        profiles[tag] = SpeakerEmbeddingProfile(
            speaker_tag=tag,
            embedding=embedding,
            total_duration=total_duration,
        )

    return profiles


class SpeakerTimeline:
    """Answers "who is speaking at time t" for one recording.

    Attributes:
        segments: Diarization segments in engine order
        tolerance: Default gap bridged by ``speaker_at``
        carry_forward_tolerance: Gap bridged before carrying forward
    """

    def __init__(
        self,
        segments: Sequence[DiarizationSegment],
        tolerance: float = 1.0,
        carry_forward_tolerance: float = 0.5,
    ):
        self.segments = list(segments)
        self.tolerance = tolerance
        self.carry_forward_tolerance = carry_forward_tolerance
        self._by_end = sorted(self.segments, key=lambda s: s.end_time)

    def speaker_at(self, time: float, tolerance: Optional[float] = None) -> Optional[str]:
        """Speaker tag active at ``time``.

        A segment containing ``time`` wins. Otherwise the segment whose
        start or end boundary is nearest to ``time`` is used if that
        distance is within ``tolerance``.

        Args:
            time: Timestamp in seconds
            tolerance: Largest gap bridged (default: ``self.tolerance``)

        Returns:
            Speaker tag, or None when nothing is close enough
        """
        if tolerance is None:
            tolerance = self.tolerance

        for segment in self.segments:
            if segment.start_time <= time <= segment.end_time:
                return segment.speaker_tag

        nearest = None
        nearest_distance = float("inf")
        for segment in self.segments:
            distance = min(abs(time - segment.start_time), abs(time - segment.end_time))
            if distance < nearest_distance and distance <= tolerance:
                nearest = segment
                nearest_distance = distance

        return nearest.speaker_tag if nearest is not None else None

    def speaker_at_with_carry_forward(self, time: float) -> Optional[str]:
        """Speaker tag at ``time``, attributing gaps to the last speaker.

        Falls back, in order, to: a tolerant lookup with
        ``carry_forward_tolerance``; the segment with the latest end time
        at or before ``time``; the first segment. Returns None only for a
        recording without segments.
        """
        speaker = self.speaker_at(time, tolerance=self.carry_forward_tolerance)
        if speaker is not None:
            return speaker

        for segment in reversed(self._by_end):
            if segment.end_time <= time:
                return segment.speaker_tag

        if self.segments:
            return self.segments[0].speaker_tag
        return None

    def assign_speakers(
        self,
        timestamps: Iterable[Tuple[Hashable, float]],
    ) -> Dict[Hashable, str]:
        """Resolve a speaker for each ``(segment_id, timestamp)`` pair.

        IDs that cannot be resolved (only possible without any diarization
        segments) are omitted.
        """
        assignments = {}
        for segment_id, timestamp in timestamps:
            speaker = self.speaker_at_with_carry_forward(timestamp)
            if speaker is not None:
                assignments[segment_id] = speaker
        return assignments


class SpeakerMatcher:
    """Builds per-recording speaker profiles and matches them to known speakers.

    Example:
        >>> matcher = SpeakerMatcher()
        >>> result = matcher.analyze(segments)
        >>> mapping = matcher.match_all_speakers(result.speaker_profiles, known)

    Attributes:
        config: Matching parameters
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

    def analyze(
        self,
        segments: Sequence[DiarizationSegment],
        speaker_database: Optional[Mapping[str, Sequence[float]]] = None,
    ) -> DiarizationResult:
        """Aggregate one recording's segments into a DiarizationResult."""
        start_time = time.perf_counter()
        segments = list(segments)
        profiles = aggregate_segments(
            segments,
            speaker_database=speaker_database,
            embedding_dim=self.config.embedding_dim,
        )
        result = DiarizationResult(
            segments=segments,
            speaker_profiles=profiles,
            speaker_count=len(profiles),
            processing_time=time.perf_counter() - start_time,
        )
        logger.info(
            f"Found {result.speaker_count} speakers, {len(segments)} segments"
        )
        return result

    def timeline(self, result: DiarizationResult) -> SpeakerTimeline:
        return SpeakerTimeline(
            result.segments,
            tolerance=self.config.tolerance,
            carry_forward_tolerance=self.config.carry_forward_tolerance,
        )

    def speaker_at(
        self,
        result: DiarizationResult,
        time: float,
        tolerance: Optional[float] = None,
    ) -> Optional[str]:
        return self.timeline(result).speaker_at(time, tolerance=tolerance)

    def speaker_at_with_carry_forward(
        self,
        result: DiarizationResult,
        time: float,
    ) -> Optional[str]:
        return self.timeline(result).speaker_at_with_carry_forward(time)

    def assign_speakers(
        self,
        result: DiarizationResult,
        timestamps: Iterable[Tuple[Hashable, float]],
    ) -> Dict[Hashable, str]:
        return self.timeline(result).assign_speakers(timestamps)

    def find_match(
        self,
        embedding: Sequence[float],
        known_profiles: Mapping[str, Sequence[float]],
        threshold: Optional[float] = None,
    ) -> Optional[Tuple[str, float]]:
        if threshold is None:
            threshold = self.config.match_threshold
        return find_match(
            embedding,
            known_profiles,
            threshold=threshold,
            dim=self.config.embedding_dim,
        )

    def match_all_speakers(
        self,
        speaker_profiles: Mapping[str, SpeakerEmbeddingProfile],
        known_profiles: Mapping[str, Sequence[float]],
        threshold: Optional[float] = None,
    ) -> Dict[str, str]:
        if threshold is None:
            threshold = self.config.match_threshold
        return match_all_speakers(
            speaker_profiles,
            known_profiles,
            threshold=threshold,
            dim=self.config.embedding_dim,
        )
