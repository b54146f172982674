"""Batched per-frame feature computation.

This module computes MFCCs and the auxiliary per-frame scalars (energy,
pitch, spectral centroid, zero-crossing rate) for many frames at once
with vectorized numpy. Frames are independent of each other, so batches
can be processed in any grouping; results are always returned in frame
order.
"""

from dataclasses import dataclass
from typing import List

import numpy as np

from .data_models import SpectralFeatures
from .spectral_tables import SpectralTables

LOG_EPSILON = 1e-10


@dataclass
class FrameFeatureBatch:
    """Per-frame features for a run of frames, one row per frame.

    Attributes:
        mfcc: MFCCs with shape ``[num_frames, num_mfccs]``
        energy: RMS of each windowed frame
        pitch_hz: Raw autocorrelation pitch estimate (0 when none found)
        spectral_centroid_hz: Spectral centroid of each frame
        zero_crossing_rate: Zero-crossing rate of each raw frame
    """
    mfcc: np.ndarray
    energy: np.ndarray
    pitch_hz: np.ndarray
    spectral_centroid_hz: np.ndarray
    zero_crossing_rate: np.ndarray

    def __len__(self) -> int:
        return self.energy.shape[0]

    @classmethod
    def empty(cls, num_mfccs: int) -> "FrameFeatureBatch":
        return cls(
            mfcc=np.zeros((0, num_mfccs)),
            energy=np.zeros(0),
            pitch_hz=np.zeros(0),
            spectral_centroid_hz=np.zeros(0),
            zero_crossing_rate=np.zeros(0),
        )

    @classmethod
    def concatenate(cls, batches: List["FrameFeatureBatch"], num_mfccs: int) -> "FrameFeatureBatch":
        if not batches:
            return cls.empty(num_mfccs)
        return cls(
            mfcc=np.concatenate([b.mfcc for b in batches], axis=0),
            energy=np.concatenate([b.energy for b in batches]),
            pitch_hz=np.concatenate([b.pitch_hz for b in batches]),
            spectral_centroid_hz=np.concatenate([b.spectral_centroid_hz for b in batches]),
            zero_crossing_rate=np.concatenate([b.zero_crossing_rate for b in batches]),
        )

    def to_features(self) -> List[SpectralFeatures]:
        """Split into one SpectralFeatures object per frame."""
        return [
            SpectralFeatures(
                mfcc=self.mfcc[i].copy(),
                energy=float(self.energy[i]),
                pitch_hz=float(self.pitch_hz[i]),
                spectral_centroid_hz=float(self.spectral_centroid_hz[i]),
                zero_crossing_rate=float(self.zero_crossing_rate[i]),
            )
            for i in range(len(self))
        ]


class FrameBatchProcessor:
    """Computes spectral features for stacked frames in fixed-size batches.

    Attributes:
        tables: Precomputed window, filter bank and DCT basis
        batch_size: Maximum number of frames computed per vectorized call
    """

    def __init__(
        self,
        tables: SpectralTables,
        batch_size: int = 64,
    ):
        """Initialize frame batch processor.

        Args:
            tables: Spectral tables built by ``build_spectral_tables``
            batch_size: Maximum frames per batch (default: 64)

        Raises:
            ValueError: If batch_size is not a positive integer
            TypeError: If batch_size is not an integer
        """
        if not isinstance(batch_size, int) or isinstance(batch_size, bool):
            raise TypeError(
                f"batch_size must be int, got {type(batch_size).__name__}"
            )
        if batch_size < 1:
            raise ValueError(
                f"batch_size must be positive integer, got {batch_size}"
            )

        self.tables = tables
        self.batch_size = batch_size

        config = tables.config
        self._min_lag = int(config.sample_rate / config.max_pitch_hz)
        self._max_lag = int(config.sample_rate / config.min_pitch_hz)

    def process_frames(self, frames: np.ndarray) -> FrameFeatureBatch:
        """Compute features for every row of ``frames``.

        ``frames`` may be a strided view over the audio (see
        ``FrameSplitter.frame_matrix``); only one batch at a time is copied
        to float64, so working memory is bounded by ``batch_size``.

        Args:
            frames: Raw frames with shape ``[num_frames, frame_size]``

        Returns:
            FrameFeatureBatch with rows in input order

        Raises:
            ValueError: If frames do not match the configured frame size
        """
        config = self.tables.config
        frames = np.asarray(frames)
        if frames.ndim != 2 or frames.shape[1] != config.frame_size:
            raise ValueError(
                f"frames must have shape [n, {config.frame_size}], got {frames.shape}"
            )

        results = []
        for batch_start in range(0, frames.shape[0], self.batch_size):
            batch = np.array(
                frames[batch_start:batch_start + self.batch_size], dtype=np.float64
            )
            results.append(self._process_batch(batch))

        return FrameFeatureBatch.concatenate(results, config.num_mfccs)

    def _process_batch(self, frames: np.ndarray) -> FrameFeatureBatch:
        windowed = frames * self.tables.window[None, :]
        magnitudes = np.abs(np.fft.rfft(windowed, axis=1))

        return FrameFeatureBatch(
            mfcc=self._mfccs(magnitudes),
            energy=np.sqrt(np.mean(np.square(windowed), axis=1)),
            pitch_hz=self._pitch(windowed),
            spectral_centroid_hz=self._spectral_centroid(magnitudes),
            zero_crossing_rate=self._zero_crossing_rate(frames),
        )

    def _mfccs(self, magnitudes: np.ndarray) -> np.ndarray:
        bank = self.tables.mel_filter_bank
        mel_energies = magnitudes[:, :bank.shape[1]] @ bank.T
        log_mel = np.maximum(
            np.log(mel_energies + LOG_EPSILON),
            self.tables.config.log_floor,
        )
        return log_mel @ self.tables.dct_matrix.T

    def _pitch(self, windowed: np.ndarray) -> np.ndarray:
        """Autocorrelation pitch: the lag with the largest positive correlation."""
        num_frames, frame_size = windowed.shape
        pitches = np.zeros(num_frames)
        if self._max_lag >= frame_size:
            return pitches

        upper = min(self._max_lag, frame_size - 1)
        if upper <= self._min_lag:
            return pitches

        # Linear (not circular) autocorrelation via a zero-padded FFT
        spectrum = np.fft.rfft(windowed, n=2 * frame_size, axis=1)
        autocorr = np.fft.irfft(np.abs(spectrum) ** 2, n=2 * frame_size, axis=1)
        region = autocorr[:, self._min_lag:upper]

        best = np.argmax(region, axis=1)
        peaks = region[np.arange(num_frames), best]
        voiced = peaks > 0
        lags = best + self._min_lag
        pitches[voiced] = self.tables.config.sample_rate / lags[voiced]
        return pitches

    def _spectral_centroid(self, magnitudes: np.ndarray) -> np.ndarray:
        totals = magnitudes.sum(axis=1)
        weighted = magnitudes @ self.tables.bin_frequencies
        centroids = np.zeros(magnitudes.shape[0])
        nonzero = totals > 0
        centroids[nonzero] = weighted[nonzero] / totals[nonzero]
        return centroids

    @staticmethod
    def _zero_crossing_rate(frames: np.ndarray) -> np.ndarray:
        signs = frames >= 0
        crossings = np.count_nonzero(signs[:, 1:] != signs[:, :-1], axis=1)
        return crossings / float(frames.shape[1] - 1)
