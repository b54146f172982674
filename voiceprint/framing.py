"""Frame splitting for spectral analysis.

This module provides functionality to split a sample buffer into
fixed-length, overlapping analysis frames. Frames that would run past
the end of the buffer are dropped rather than zero-padded.
"""

from typing import List

import numpy as np

from .data_models import Frame


class FrameSplitter:
    """Splits audio into overlapping fixed-length frames.

    Attributes:
        frame_size: Samples per frame
        hop_size: Samples between consecutive frame starts
        sample_rate: Audio sample rate in Hz
    """

    def __init__(
        self,
        frame_size: int = 512,
        hop_size: int = 256,
        sample_rate: int = 16000,
    ):
        """Initialize frame splitter.

        Args:
            frame_size: Samples per frame (default: 512)
            hop_size: Samples between frame starts (default: 256)
            sample_rate: Audio sample rate in Hz (default: 16000)

        Raises:
            ValueError: If values are non-positive or hop_size > frame_size
        """
        if frame_size <= 0:
            raise ValueError(
                f"frame_size must be positive, got {frame_size}"
            )
        if hop_size <= 0:
            raise ValueError(
                f"hop_size must be positive, got {hop_size}"
            )
        if hop_size > frame_size:
            raise ValueError(
                f"hop_size ({hop_size}) must not exceed frame_size ({frame_size})"
            )
        if sample_rate <= 0:
            raise ValueError(
                f"sample_rate must be positive, got {sample_rate}"
            )

        self.frame_size = frame_size
        self.hop_size = hop_size
        self.sample_rate = sample_rate

    def num_frames(self, num_samples: int) -> int:
        """Number of complete frames that fit in ``num_samples``."""
        if num_samples < self.frame_size:
            return 0
        return 1 + (num_samples - self.frame_size) // self.hop_size

    def frame_matrix(self, audio: np.ndarray) -> np.ndarray:
        """All complete frames as a ``[num_frames, frame_size]`` array.

        The result is a read-only strided view into ``audio``; no samples
        are copied, so memory does not grow with the number of frames.

        Args:
            audio: Audio samples as numpy array (1D)

        Returns:
            Frames in order; shape ``(0, frame_size)`` when the audio is
            shorter than one frame

        Raises:
            ValueError: If audio is not 1-dimensional
        """
        audio = np.asarray(audio)
        if audio.ndim != 1:
            raise ValueError(
                f"audio must be 1-dimensional, got shape {audio.shape}"
            )

        count = self.num_frames(len(audio))
        if count == 0:
            return np.zeros((0, self.frame_size), dtype=np.float64)

        windows = np.lib.stride_tricks.sliding_window_view(audio, self.frame_size)
        return windows[::self.hop_size][:count]

    def split(self, audio: np.ndarray) -> List[Frame]:
        """Split audio into Frame objects with timing metadata.

        Args:
            audio: Audio samples as numpy array (1D)

        Returns:
            List of Frame objects, empty when audio is shorter than one frame
        """
        matrix = self.frame_matrix(audio)
        frames = []
        for index, samples in enumerate(matrix):
            start_sample = index * self.hop_size
            frames.append(
                Frame(
                    samples=np.array(samples, dtype=np.float64),
                    start_sample=start_sample,
                    start_time=start_sample / self.sample_rate,
                    frame_index=index,
                )
            )
        return frames
