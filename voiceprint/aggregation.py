"""Reduction of frame features into voice profiles, and profile comparison.

This module provides the statistics used to summarize per-frame features
(column means, sample variances), the unweighted and incremental ways of
combining profiles, and the MFCC/auxiliary similarity used to rank
candidate speakers.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .data_models import KnownSpeaker, SpeakerMatch, VoiceProfile
from .frame_processor import FrameFeatureBatch

logger = logging.getLogger(__name__)

MFCC_WEIGHT = 0.7
AUXILIARY_WEIGHT = 0.3
PITCH_WEIGHT = 0.3
ENERGY_WEIGHT = 0.2
CENTROID_WEIGHT = 0.2
DEFAULT_MINIMUM_CONFIDENCE = 0.40


def mean(values: Sequence[float]) -> float:
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return 0.0
    return float(values.mean())


def variance(values: Sequence[float]) -> float:
    """Sample variance (denominator n - 1), 0 for fewer than two values."""
    values = np.asarray(values, dtype=np.float64)
    if values.size <= 1:
        return 0.0
    return float(values.var(ddof=1))


def average_columns(matrix: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape[0] == 0:
        return np.zeros(matrix.shape[1] if matrix.ndim == 2 else 0)
    return matrix.mean(axis=0)


def variance_columns(matrix: np.ndarray) -> np.ndarray:
    """Column-wise sample variance, zeros when there is a single row."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape[0] <= 1:
        return np.zeros(matrix.shape[1] if matrix.ndim == 2 else 0)
    return matrix.var(axis=0, ddof=1)


def build_profile(
    features: FrameFeatureBatch,
    min_pitch_hz: float = 50.0,
    max_pitch_hz: float = 500.0,
) -> VoiceProfile:
    """Summarize per-frame features into a VoiceProfile.

    Every frame contributes to the MFCC, energy, centroid and ZCR
    statistics. Only frames whose pitch lies in
    ``[min_pitch_hz, max_pitch_hz]`` contribute to the pitch statistics.

    Args:
        features: Per-frame features for one audio unit
        min_pitch_hz: Lowest accepted pitch (default: 50)
        max_pitch_hz: Highest accepted pitch (default: 500)

    Returns:
        VoiceProfile; the empty sentinel when there are no frames
    """
    num_mfccs = features.mfcc.shape[1]
    if len(features) == 0:
        return VoiceProfile.empty(num_mfccs)

    pitches = features.pitch_hz
    accepted = pitches[(pitches >= min_pitch_hz) & (pitches <= max_pitch_hz)]

    return VoiceProfile(
        mfcc_mean=average_columns(features.mfcc),
        mfcc_variance=variance_columns(features.mfcc),
        pitch_mean=mean(accepted),
        pitch_variance=variance(accepted),
        energy_mean=mean(features.energy),
        energy_variance=variance(features.energy),
        spectral_centroid=mean(features.spectral_centroid_hz),
        zero_crossing_rate=mean(features.zero_crossing_rate),
    )


def average_profiles(profiles: Iterable[VoiceProfile]) -> Optional[VoiceProfile]:
    """Combine profiles from several recordings of one speaker.

    This is a plain arithmetic mean of every field; it does not weight
    profiles by how much audio each one represents.

    Args:
        profiles: Profiles to combine

    Returns:
        The field-wise mean, or None when ``profiles`` is empty

    Raises:
        ValueError: If profiles have different MFCC counts
    """
    profiles = list(profiles)
    if not profiles:
        return None

    sizes = {p.mfcc_mean.shape[0] for p in profiles}
    if len(sizes) != 1:
        raise ValueError(
            f"profiles must share one MFCC count, got {sorted(sizes)}"
        )

    stacked = np.stack([p.to_vector() for p in profiles])
    return VoiceProfile.from_vector(stacked.mean(axis=0), num_mfccs=sizes.pop())


def update_profile(
    existing: VoiceProfile,
    new: VoiceProfile,
    sample_count: int,
) -> VoiceProfile:
    """Fold one new sample into a profile built from ``sample_count`` samples.

    The existing profile keeps a weight of ``sample_count`` and the new
    sample a weight of 1.

    Raises:
        ValueError: If sample_count is negative or MFCC counts differ
    """
    if sample_count < 0:
        raise ValueError(
            f"sample_count must be non-negative, got {sample_count}"
        )
    if existing.mfcc_mean.shape != new.mfcc_mean.shape:
        raise ValueError(
            f"profiles must share one MFCC count, got "
            f"{existing.mfcc_mean.shape[0]} and {new.mfcc_mean.shape[0]}"
        )

    total = sample_count + 1.0
    merged = (existing.to_vector() * sample_count + new.to_vector()) / total
    return VoiceProfile.from_vector(merged, num_mfccs=existing.mfcc_mean.shape[0])


def is_valid_training_profile(profile: VoiceProfile) -> bool:
    """A profile is usable for enrollment only if it carries pitch and energy."""
    return profile.pitch_mean > 0 and profile.energy_mean > 0


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape or a.size == 0:
        return 0.0

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator <= 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def _relative_difference(a: float, b: float) -> float:
    return abs(a - b) / max(a, b, 1.0)


def similarity(a: VoiceProfile, b: VoiceProfile) -> float:
    """Similarity of two profiles, roughly in [0, 1], higher is more similar.

    Combines the cosine similarity of the mean MFCC vectors (weight 0.7)
    with an inverse relative-difference score over pitch, energy and
    spectral centroid means (weight 0.3). Intended for ranking only.
    """
    mfcc_sim = cosine_similarity(a.mfcc_mean, b.mfcc_mean)

    pitch_diff = _relative_difference(a.pitch_mean, b.pitch_mean)
    energy_diff = _relative_difference(a.energy_mean, b.energy_mean)
    centroid_diff = _relative_difference(a.spectral_centroid, b.spectral_centroid)

    weight_sum = PITCH_WEIGHT + ENERGY_WEIGHT + CENTROID_WEIGHT
    auxiliary = 1.0 - (
        pitch_diff * PITCH_WEIGHT
        + energy_diff * ENERGY_WEIGHT
        + centroid_diff * CENTROID_WEIGHT
    ) / weight_sum

    result = MFCC_WEIGHT * mfcc_sim + AUXILIARY_WEIGHT * auxiliary
    logger.debug(
        f"Similarity: mfcc={mfcc_sim:.3f} pitch_diff={pitch_diff:.3f} "
        f"energy_diff={energy_diff:.3f} centroid_diff={centroid_diff:.3f} "
        f"-> {result:.3f}"
    )
    return result


def identify_by_features(
    profile: VoiceProfile,
    known_speakers: Iterable[KnownSpeaker],
    minimum_confidence: float = DEFAULT_MINIMUM_CONFIDENCE,
) -> List[SpeakerMatch]:
    """Rank known speakers by feature similarity to ``profile``.

    Known speakers without a profile, or whose profile is the empty
    sentinel, are never returned. An empty query matches nothing.

    Args:
        profile: Profile of the unknown voice
        known_speakers: Candidate speakers
        minimum_confidence: Lowest similarity kept (default: 0.40)

    Returns:
        Matches with ``confidence >= minimum_confidence``, best first
    """
    if profile.is_empty:
        logger.warning("Cannot identify speaker from an empty voice profile")
        return []

    matches = []
    best = 0.0
    for speaker in known_speakers:
        target = speaker.voice_profile
        if target is None or target.is_empty:
            continue

        score = similarity(profile, target)
        best = max(best, score)
        logger.debug(
            f"Speaker '{speaker.name or speaker.speaker_id}': similarity {score:.3f} "
            f"(threshold {minimum_confidence:.2f})"
        )
        if score >= minimum_confidence:
            matches.append(
                SpeakerMatch(
                    speaker_id=speaker.speaker_id,
                    speaker_name=speaker.name,
                    confidence=score,
                )
            )

    if not matches:
        logger.info(f"No feature match found; best similarity was {best:.3f}")

    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches
