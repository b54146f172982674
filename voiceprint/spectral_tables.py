"""Frontend configuration and precomputed spectral tables.

The mel filter bank, DCT basis and analysis window depend only on the
frontend configuration. They are built once by :func:`build_spectral_tables`
and handed to the frontend explicitly, so alternative parameter sets can be
used side by side.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class FrontendConfig:
    """Parameters of the spectral frontend.

    Attributes:
        sample_rate: Expected sample rate of the input in Hz
        frame_size: Samples per analysis frame (power of two)
        hop_size: Samples between consecutive frame starts
        num_mel_bands: Number of triangular mel filters
        num_mfccs: Number of cepstral coefficients kept
        min_pitch_hz: Lowest pitch accepted into pitch statistics
        max_pitch_hz: Highest pitch accepted into pitch statistics
        log_floor: Lower bound applied to log mel energies
    """
    sample_rate: int = 16000
    frame_size: int = 512
    hop_size: int = 256
    num_mel_bands: int = 26
    num_mfccs: int = 13
    min_pitch_hz: float = 50.0
    max_pitch_hz: float = 500.0
    log_floor: float = -10.0

    def __post_init__(self):
        for name in ("sample_rate", "frame_size", "hop_size", "num_mel_bands", "num_mfccs"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(
                    f"{name} must be int, got {type(value).__name__}"
                )
            if value <= 0:
                raise ValueError(
                    f"{name} must be positive, got {value}"
                )
        if self.frame_size < 2 or self.frame_size & (self.frame_size - 1):
            raise ValueError(
                f"frame_size must be a power of two >= 2, got {self.frame_size}"
            )
        if self.hop_size > self.frame_size:
            raise ValueError(
                f"hop_size ({self.hop_size}) must not exceed frame_size ({self.frame_size})"
            )
        if self.num_mfccs > self.num_mel_bands:
            raise ValueError(
                f"num_mfccs ({self.num_mfccs}) must not exceed "
                f"num_mel_bands ({self.num_mel_bands})"
            )
        if not 0 < self.min_pitch_hz < self.max_pitch_hz:
            raise ValueError(
                f"pitch range must satisfy 0 < min_pitch_hz < max_pitch_hz, "
                f"got [{self.min_pitch_hz}, {self.max_pitch_hz}]"
            )

    @property
    def num_fft_bins(self) -> int:
        """Bins of the real FFT, DC through Nyquist."""
        return self.frame_size // 2 + 1

    @property
    def nyquist_hz(self) -> float:
        return self.sample_rate / 2.0


@dataclass(frozen=True, eq=False)
class SpectralTables:
    """Read-only lookup tables derived from a :class:`FrontendConfig`.

    Attributes:
        config: Configuration the tables were built from
        window: Hamming window of length ``frame_size``
        mel_filter_bank: Triangular filters, shape ``[num_mel_bands, frame_size // 2]``
        dct_matrix: DCT-II basis, shape ``[num_mfccs, num_mel_bands]``
        bin_frequencies: Center frequency of each rfft bin in Hz
    """
    config: FrontendConfig
    window: np.ndarray
    mel_filter_bank: np.ndarray
    dct_matrix: np.ndarray
    bin_frequencies: np.ndarray


def hz_to_mel(hz):
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    return 700.0 * (np.power(10.0, np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


def hamming_window(length: int) -> np.ndarray:
    """Periodic Hamming window ``0.54 - 0.46 cos(2 pi n / N)``."""
    n = np.arange(length, dtype=np.float64)
    return 0.54 - 0.46 * np.cos(2.0 * np.pi * n / length)


def mel_filter_bank(config: FrontendConfig) -> np.ndarray:
    """Build the triangular mel filter bank.

    Filter edges are spaced linearly on the mel scale between 0 Hz and
    Nyquist and truncated to integer FFT bins. Each filter has unit peak
    at its center bin; filters are not normalized by bandwidth.
    """
    num_bins = config.frame_size // 2
    bands = config.num_mel_bands

    low_mel = hz_to_mel(0.0)
    high_mel = hz_to_mel(config.nyquist_hz)
    mel_points = low_mel + np.arange(bands + 2) * (high_mel - low_mel) / (bands + 1)
    hz_points = mel_to_hz(mel_points)
    bin_points = (hz_points * config.frame_size / config.sample_rate).astype(int)

    bank = np.zeros((bands, num_bins), dtype=np.float64)
    for i in range(bands):
        left, center, right = bin_points[i], bin_points[i + 1], bin_points[i + 2]
        for j in range(left, min(center, num_bins)):
            bank[i, j] = (j - left) / (center - left)
        for j in range(center, min(right, num_bins)):
            bank[i, j] = (right - j) / (right - center)
    return bank


def dct_matrix(num_mfccs: int, num_mel_bands: int) -> np.ndarray:
    i = np.arange(num_mfccs, dtype=np.float64)[:, None]
    j = np.arange(num_mel_bands, dtype=np.float64)[None, :]
    return np.cos(np.pi * i * (j + 0.5) / num_mel_bands)


def build_spectral_tables(config: FrontendConfig = None) -> SpectralTables:
    """Precompute the frontend lookup tables for ``config``.

    Args:
        config: Frontend configuration (default: ``FrontendConfig()``)

    Returns:
        SpectralTables with read-only arrays
    """
    config = config or FrontendConfig()

    window = hamming_window(config.frame_size)
    bank = mel_filter_bank(config)
    dct = dct_matrix(config.num_mfccs, config.num_mel_bands)
    freqs = np.arange(config.num_fft_bins, dtype=np.float64) * config.sample_rate / config.frame_size

    for array in (window, bank, dct, freqs):
        array.setflags(write=False)

    return SpectralTables(
        config=config,
        window=window,
        mel_filter_bank=bank,
        dct_matrix=dct,
        bin_frequencies=freqs,
    )
