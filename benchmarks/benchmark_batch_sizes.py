"""Benchmark different batch sizes.

This script compares feature extraction speed across frame batch sizes
to find a good vectorization granularity for the spectral frontend.
"""

import argparse
import sys
import time
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from voiceprint import VoiceAnalyzer


def generate_test_audio(duration: float, sample_rate: int = 16000) -> np.ndarray:
    """Generate a synthetic voiced signal with harmonics and noise.

    Args:
        duration: Audio duration in seconds
        sample_rate: Sample rate in Hz

    Returns:
        Audio samples as numpy array
    """
    rng = np.random.default_rng(0)
    t = np.arange(int(duration * sample_rate)) / sample_rate
    audio = sum(0.3 / k * np.sin(2 * np.pi * 140.0 * k * t) for k in range(1, 6))
    audio = audio + 0.01 * rng.standard_normal(t.shape[0])
    return audio.astype(np.float32)


def benchmark_batch_size(batch_size: int, audio: np.ndarray, num_runs: int = 3):
    """Benchmark extraction with a specific batch size.

    Args:
        batch_size: Frames per vectorized batch
        audio: Audio to analyze
        num_runs: Number of runs for averaging

    Returns:
        Dictionary of results
    """
    print(f"\nTesting batch_size={batch_size}...")

    analyzer = VoiceAnalyzer(batch_size=batch_size)

    # Warm-up run
    analyzer.extract_profile(audio)

    run_times = []
    for _ in range(num_runs):
        start_time = time.perf_counter()
        _, info = analyzer.extract_profile(audio)
        run_times.append(time.perf_counter() - start_time)

    avg_time = np.mean(run_times)
    std_time = np.std(run_times)
    audio_duration = info.duration

    result = {
        "batch_size": batch_size,
        "avg_time": avg_time,
        "std_time": std_time,
        "rtf": avg_time / audio_duration,
        "throughput": audio_duration / avg_time,
        "num_frames": info.num_frames,
    }

    print(f"  Avg time: {avg_time:.3f}s ± {std_time:.3f}s")
    print(f"  RTF: {result['rtf']:.4f}")
    print(f"  Throughput: {result['throughput']:.1f}x realtime")
    return result


def print_summary(results, audio_duration):
    """Print a comparison table of all batch sizes."""
    print(f"\n{'='*70}")
    print(f"Batch Size Comparison ({audio_duration}s audio)")
    print(f"{'='*70}\n")

    print(f"{'Batch Size':<12} {'Time (s)':<12} {'RTF':<12} {'Throughput':<15}")
    print("-" * 70)

    baseline_time = results[0]["avg_time"]
    for result in results:
        speedup = baseline_time / result["avg_time"]
        print(
            f"{result['batch_size']:<12} "
            f"{result['avg_time']:<12.3f} "
            f"{result['rtf']:<12.4f} "
            f"{result['throughput']:<8.1f}x ({speedup:.2f}x)"
        )

    print()
    best_result = min(results, key=lambda r: r["avg_time"])
    print(f"Optimal batch size: {best_result['batch_size']} "
          f"(RTF: {best_result['rtf']:.4f}, throughput: {best_result['throughput']:.1f}x)")


def main():
    parser = argparse.ArgumentParser(description="Benchmark frame batch sizes")
    parser.add_argument(
        "--batch-sizes",
        type=int,
        nargs="+",
        default=[1, 8, 32, 64, 128, 512],
        help="Batch sizes to test (default: 1 8 32 64 128 512)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=60.0,
        help="Audio duration in seconds (default: 60.0)",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=3,
        help="Number of runs per batch size (default: 3)",
    )

    args = parser.parse_args()

    print("voiceprint Batch Size Benchmark")
    print(f"Audio duration: {args.duration}s")
    print(f"Batch sizes: {args.batch_sizes}")
    print(f"Runs per batch size: {args.runs}")

    audio = generate_test_audio(args.duration)
    results = [
        benchmark_batch_size(batch_size, audio, num_runs=args.runs)
        for batch_size in args.batch_sizes
    ]

    print_summary(results, args.duration)


if __name__ == "__main__":
    main()
