"""Speaker embedding math and known-speaker matching.

Embeddings are compared by cosine distance, ``1 - cos(a, b)``, which is 0
for identical directions, 1 for orthogonal vectors and 2 for opposite
ones. Invalid inputs (wrong dimensionality, zero norm) yield an infinite
distance so they can never win a match.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .data_models import EMBEDDING_DIM, KnownSpeaker, SpeakerEmbeddingProfile, SpeakerMatch

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.4
DEFAULT_IDENTIFY_THRESHOLD = 0.5


def l2_normalize(embedding: Sequence[float]) -> np.ndarray:
    """Scale to unit length; zero vectors are returned unchanged."""
    embedding = np.asarray(embedding, dtype=np.float64)
    norm = np.linalg.norm(embedding)
    if norm <= 0:
        return embedding.copy()
    return embedding / norm


def is_valid_embedding(embedding, dim: int = EMBEDDING_DIM) -> bool:
    if embedding is None:
        return False
    embedding = np.asarray(embedding)
    return embedding.ndim == 1 and embedding.shape[0] == dim


def cosine_distance(
    a: Sequence[float],
    b: Sequence[float],
    dim: int = EMBEDDING_DIM,
) -> float:
    """Cosine distance between two embeddings of exactly ``dim`` values.

    Returns:
        Distance in [0, 2], or ``inf`` if either vector has the wrong
        dimensionality or a zero norm
    """
    if not (is_valid_embedding(a, dim) and is_valid_embedding(b, dim)):
        return float("inf")

    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a <= 0 or norm_b <= 0:
        return float("inf")

    return float(1.0 - np.dot(a / norm_a, b / norm_b))


def find_match(
    embedding: Sequence[float],
    known_profiles: Mapping[str, Sequence[float]],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    dim: int = EMBEDDING_DIM,
) -> Optional[Tuple[str, float]]:
    """Find the closest known embedding.

    Candidates are visited in sorted ID order and only a strictly smaller
    distance replaces the current best, so ties go to the smallest ID
    regardless of how ``known_profiles`` is ordered.

    Args:
        embedding: Query embedding
        known_profiles: Known speaker ID -> stored embedding
        threshold: Distance that the best match must be strictly below

    Returns:
        ``(speaker_id, distance)`` of the best match, or None
    """
    best_id = None
    best_distance = float("inf")

    for speaker_id in sorted(known_profiles):
        distance = cosine_distance(embedding, known_profiles[speaker_id], dim=dim)
        logger.debug(f"Distance to '{speaker_id}': {distance:.3f}")
        if distance < best_distance:
            best_id = speaker_id
            best_distance = distance

    if best_id is None or not best_distance < threshold:
        return None
    return best_id, best_distance


def match_all_speakers(
    speaker_profiles: Mapping[str, SpeakerEmbeddingProfile],
    known_profiles: Mapping[str, Sequence[float]],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    dim: int = EMBEDDING_DIM,
) -> Dict[str, str]:
    """Map recording-local speaker tags to known speaker IDs.

    Tags without a known speaker under ``threshold`` are left out of the
    result. Several tags may map to the same known speaker.

    Returns:
        Recording tag -> known speaker ID
    """
    mapping = {}
    for tag in sorted(speaker_profiles):
        match = find_match(
            speaker_profiles[tag].embedding,
            known_profiles,
            threshold=threshold,
            dim=dim,
        )
        if match is not None:
            known_id, distance = match
            mapping[tag] = known_id
            logger.info(f"Matched {tag} -> {known_id} (distance: {distance:.3f})")
    return mapping


def embedding_library(
    known_speakers: Iterable[KnownSpeaker],
    dim: int = EMBEDDING_DIM,
) -> Dict[str, np.ndarray]:
    """Known speaker ID -> embedding, for speakers with a valid embedding."""
    return {
        speaker.speaker_id: np.asarray(speaker.embedding, dtype=np.float64)
        for speaker in known_speakers
        if is_valid_embedding(speaker.embedding, dim)
    }


def identify_by_embedding(
    embedding: Sequence[float],
    known_speakers: Iterable[KnownSpeaker],
    threshold: float = DEFAULT_IDENTIFY_THRESHOLD,
    dim: int = EMBEDDING_DIM,
) -> Optional[SpeakerMatch]:
    """Identify the known speaker closest to ``embedding``.

    Returns:
        SpeakerMatch with ``confidence = 1 - distance``, or None when the
        query is invalid or nothing is under ``threshold``
    """
    if not is_valid_embedding(embedding, dim):
        logger.warning(
            f"Invalid input embedding size: {np.asarray(embedding).size}, expected {dim}"
        )
        return None

    speakers = {s.speaker_id: s for s in known_speakers}
    library = embedding_library(speakers.values(), dim=dim)
    match = find_match(l2_normalize(embedding), library, threshold=threshold, dim=dim)
    if match is None:
        logger.info("No embedding match found within threshold")
        return None

    speaker_id, distance = match
    speaker = speakers[speaker_id]
    return SpeakerMatch(
        speaker_id=speaker_id,
        speaker_name=speaker.name,
        confidence=1.0 - distance,
        distance=distance,
    )


def update_embedding(
    existing: Optional[Sequence[float]],
    new: Sequence[float],
    sample_count: int,
    dim: int = EMBEDDING_DIM,
) -> Optional[np.ndarray]:
    """Fold a new embedding into an enrolled one and re-normalize.

    The existing embedding keeps a weight of ``sample_count`` and the new
    one a weight of 1. Without a valid existing embedding the new one is
    simply normalized.

    Returns:
        The merged, L2-normalized embedding, or ``existing`` unchanged when
        ``new`` has the wrong size
    """
    if not is_valid_embedding(new, dim):
        logger.warning(
            f"Invalid embedding size: {np.asarray(new).size}, expected {dim}"
        )
        return None if existing is None else np.asarray(existing, dtype=np.float64)

    new = np.asarray(new, dtype=np.float64)
    if not is_valid_embedding(existing, dim):
        return l2_normalize(new)

    existing = np.asarray(existing, dtype=np.float64)
    weight = float(max(sample_count, 0))
    merged = (existing * weight + new) / (weight + 1.0)
    return l2_normalize(merged)
