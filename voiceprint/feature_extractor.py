"""Voice feature extraction from raw samples.

The VoiceFeatureExtractor frames a mono sample buffer, computes per-frame
spectral features in batches and reduces them to a single VoiceProfile.
"""

import logging
import time
from typing import Optional, Tuple

import numpy as np

from .aggregation import build_profile
from .data_models import ExtractionInfo, VoiceProfile
from .frame_processor import FrameBatchProcessor, FrameFeatureBatch
from .framing import FrameSplitter
from .spectral_tables import SpectralTables, build_spectral_tables

logger = logging.getLogger(__name__)

SILENCE_AMPLITUDE = 0.001


class VoiceFeatureExtractor:
    """Extracts VoiceProfiles from mono float samples.

    Example:
        >>> extractor = VoiceFeatureExtractor()
        >>> profile = extractor.extract_features(samples)
        >>> print(f"{profile.pitch_mean:.1f} Hz")

    Attributes:
        tables: Precomputed spectral tables (carries the frontend config)
        splitter: Frame splitter matching the frontend config
        processor: Batched per-frame feature processor
    """

    def __init__(
        self,
        tables: Optional[SpectralTables] = None,
        batch_size: int = 64,
    ):
        """Initialize the extractor.

        Args:
            tables: Spectral tables (default: built from ``FrontendConfig()``)
            batch_size: Frames per vectorized batch (default: 64)

        Raises:
            TypeError: If batch_size is not an integer
            ValueError: If batch_size is not positive
        """
        self.tables = tables or build_spectral_tables()
        config = self.tables.config
        self.splitter = FrameSplitter(
            frame_size=config.frame_size,
            hop_size=config.hop_size,
            sample_rate=config.sample_rate,
        )
        self.processor = FrameBatchProcessor(self.tables, batch_size=batch_size)

    @property
    def config(self):
        return self.tables.config

    @property
    def batch_size(self) -> int:
        return self.processor.batch_size

    def _validate(self, samples: np.ndarray, sample_rate: Optional[int]) -> np.ndarray:
        if not isinstance(samples, np.ndarray):
            samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 1:
            raise ValueError(
                f"samples must be 1-dimensional, got shape {samples.shape}"
            )
        if sample_rate is not None and sample_rate != self.config.sample_rate:
            raise ValueError(
                f"sample_rate must be {self.config.sample_rate} Hz, got {sample_rate}. "
                f"Resample the audio before extraction"
            )
        return samples

    def frame_features(
        self,
        samples: np.ndarray,
        sample_rate: Optional[int] = None,
    ) -> FrameFeatureBatch:
        """Compute per-frame features for every complete frame of ``samples``.

        Args:
            samples: Mono samples normalized to [-1, 1]
            sample_rate: Sample rate of ``samples``; must match the config

        Returns:
            FrameFeatureBatch in frame order (empty for short audio)
        """
        samples = self._validate(samples, sample_rate)
        frames = self.splitter.frame_matrix(samples)
        return self.processor.process_frames(frames)

    def extract_features(
        self,
        samples: np.ndarray,
        sample_rate: Optional[int] = None,
    ) -> VoiceProfile:
        """Extract a VoiceProfile from ``samples``.

        Audio shorter than one frame is not an error: the empty sentinel
        profile is returned instead.

        Args:
            samples: Mono samples normalized to [-1, 1]
            sample_rate: Sample rate of ``samples``; must match the config

        Returns:
            VoiceProfile summarizing all frames

        Raises:
            ValueError: If samples are not 1-D or the sample rate differs
        """
        profile, _ = self.extract_with_info(samples, sample_rate)
        return profile

    def extract_with_info(
        self,
        samples: np.ndarray,
        sample_rate: Optional[int] = None,
    ) -> Tuple[VoiceProfile, ExtractionInfo]:
        """Extract a VoiceProfile along with run metadata.

        Returns:
            profile: VoiceProfile summarizing all frames
            info: Extraction metadata
        """
        start_time = time.perf_counter()
        samples = self._validate(samples, sample_rate)
        config = self.config
        duration = len(samples) / float(config.sample_rate)

        if len(samples) < config.frame_size:
            logger.warning(
                f"Not enough samples for feature extraction: "
                f"{len(samples)} < {config.frame_size}"
            )
            info = ExtractionInfo(
                duration=duration,
                num_frames=0,
                voiced_frames=0,
                batch_size=self.batch_size,
                processing_time=time.perf_counter() - start_time,
            )
            return VoiceProfile.empty(config.num_mfccs), info

        max_amplitude = float(max(np.max(samples), -np.min(samples)))
        if max_amplitude < SILENCE_AMPLITUDE:
            logger.warning(
                f"Audio appears to be silence (max amplitude {max_amplitude:.4f})"
            )

        features = self.frame_features(samples)
        profile = build_profile(
            features,
            min_pitch_hz=config.min_pitch_hz,
            max_pitch_hz=config.max_pitch_hz,
        )

        pitches = features.pitch_hz
        voiced = int(np.count_nonzero(
            (pitches >= config.min_pitch_hz) & (pitches <= config.max_pitch_hz)
        ))
        info = ExtractionInfo(
            duration=duration,
            num_frames=len(features),
            voiced_frames=voiced,
            batch_size=self.batch_size,
            processing_time=time.perf_counter() - start_time,
        )

        logger.debug(
            f"Extracted {info.num_frames} frames ({voiced} voiced): "
            f"pitch={profile.pitch_mean:.1f}Hz, energy={profile.energy_mean:.4f}"
        )
        return profile, info
