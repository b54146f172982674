"""Performance profiling utilities.

This module provides tools for measuring how fast the voiceprint
pipeline processes audio relative to real time.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional


@dataclass
class PerformanceStats:
    """Performance statistics for feature extraction.

    Attributes:
        audio_duration: Total audio duration in seconds
        processing_time: Wall-clock processing time in seconds
        rtf: Real-time factor (processing_time / audio_duration)
        throughput: Audio seconds processed per wall-clock second
        num_frames: Number of frames analyzed
        batch_size: Frames per vectorized batch
    """
    audio_duration: float
    processing_time: float
    rtf: float
    throughput: float
    num_frames: int
    batch_size: int

    def __str__(self) -> str:
        return (
            f"Performance: {self.audio_duration:.1f}s audio in {self.processing_time:.3f}s "
            f"(RTF: {self.rtf:.4f}, throughput: {self.throughput:.1f}x, "
            f"frames: {self.num_frames}, batch_size: {self.batch_size})"
        )


class PerformanceProfiler:
    """Tracks timing, throughput and real-time factor of extraction runs.

    Attributes:
        last_stats: Statistics of the most recent measured run, if any
    """

    def __init__(self):
        self.last_stats: Optional[PerformanceStats] = None

    @staticmethod
    def calculate_stats(
        audio_duration: float,
        processing_time: float,
        num_frames: int,
        batch_size: int,
    ) -> PerformanceStats:
        """Calculate performance statistics.

        Args:
            audio_duration: Total audio duration in seconds
            processing_time: Wall-clock processing time in seconds
            num_frames: Number of frames analyzed
            batch_size: Frames per vectorized batch

        Returns:
            PerformanceStats object with calculated metrics
        """
        rtf = processing_time / audio_duration if audio_duration > 0 else 0.0
        throughput = audio_duration / processing_time if processing_time > 0 else 0.0

        return PerformanceStats(
            audio_duration=audio_duration,
            processing_time=processing_time,
            rtf=rtf,
            throughput=throughput,
            num_frames=num_frames,
            batch_size=batch_size,
        )

    @contextmanager
    def measure(
        self,
        audio_duration: float,
        num_frames: int,
        batch_size: int,
    ):
        """Context manager timing the enclosed block.

        The resulting statistics are stored in ``last_stats`` when the
        block exits, even if it raised.

        Example:
            >>> profiler = PerformanceProfiler()
            >>> with profiler.measure(10.0, 624, 64):
            ...     extractor.extract_features(samples)
            >>> print(profiler.last_stats)
        """
        start_time = time.perf_counter()
        try:
            yield self
        finally:
            self.last_stats = self.calculate_stats(
                audio_duration=audio_duration,
                processing_time=time.perf_counter() - start_time,
                num_frames=num_frames,
                batch_size=batch_size,
            )
