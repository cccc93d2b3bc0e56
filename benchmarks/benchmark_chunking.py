"""Benchmark chunk window generation.

This script compares the fixed schedule against VAD segmentation (with and
without the vocal band-pass filter) on synthetic speech-like audio, and
reports how many chunks each produces and how fast windows are generated.
"""

import argparse
import sys
import time
from pathlib import Path

import numpy as np

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lingosub import AudioChunker, SegmentationMethod, VADSettings


def generate_test_audio(
    duration: float,
    sample_rate: int = 16000,
    seed: int = 0,
) -> np.ndarray:
    """Generate audio alternating bursts of noise with short pauses.

    Args:
        duration: Audio duration in seconds
        sample_rate: Sample rate in Hz
        seed: Random seed

    Returns:
        Audio samples as numpy array
    """
    rng = np.random.default_rng(seed)
    num_samples = int(duration * sample_rate)
    audio = np.zeros(num_samples, dtype=np.float32)

    position = 0
    while position < num_samples:
        speech = int(rng.uniform(2.0, 12.0) * sample_rate)
        pause = int(rng.uniform(0.1, 1.2) * sample_rate)
        end = min(position + speech, num_samples)
        audio[position:end] = rng.normal(0, 0.2, end - position)
        position = end + pause

    return audio


def benchmark_method(
    label: str,
    chunker: AudioChunker,
    audio: np.ndarray,
    num_runs: int = 3,
):
    """Time full iteration over the chunk windows of audio.

    Returns:
        Dictionary of results
    """
    print(f"\nTesting {label}...")

    times = []
    windows = []
    for run in range(num_runs):
        start_time = time.time()
        windows = list(chunker.windows(audio))
        elapsed = time.time() - start_time
        times.append(elapsed)
        print(f"  Run {run + 1}/{num_runs}: {elapsed:.3f}s, {len(windows)} chunk(s)")

    durations = [w.num_samples / chunker.sample_rate for w in windows]
    audio_duration = len(audio) / chunker.sample_rate
    avg_time = sum(times) / len(times)

    return {
        "label": label,
        "avg_time": avg_time,
        "num_chunks": len(windows),
        "min_chunk": min(durations),
        "max_chunk": max(durations),
        "throughput": audio_duration / avg_time if avg_time > 0 else float("inf"),
    }


def print_summary(results, audio_duration: float):
    """Print a comparison table of the results."""
    print(f"\n{'='*70}")
    print(f"Segmentation Comparison ({audio_duration}s audio)")
    print(f"{'='*70}\n")

    print(f"{'Method':<18} {'Time (s)':<10} {'Chunks':<8} {'Min (s)':<9} {'Max (s)':<9} {'Throughput':<12}")
    print("-" * 70)

    for result in results:
        print(
            f"{result['label']:<18} "
            f"{result['avg_time']:<10.3f} "
            f"{result['num_chunks']:<8} "
            f"{result['min_chunk']:<9.2f} "
            f"{result['max_chunk']:<9.2f} "
            f"{result['throughput']:<8.0f}x"
        )

    print()


def main():
    parser = argparse.ArgumentParser(description="Benchmark chunk window generation")
    parser.add_argument(
        "--duration",
        type=float,
        default=3600.0,
        help="Audio duration in seconds (default: 3600.0)",
    )
    parser.add_argument(
        "--batch-size",
        type=float,
        default=120.0,
        help="VAD analysis batch in seconds (default: 120.0)",
    )
    parser.add_argument(
        "--min-silence",
        type=float,
        default=0.4,
        help="Minimum silence for a VAD split in seconds (default: 0.4)",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=3,
        help="Number of runs per method (default: 3)",
    )

    args = parser.parse_args()

    print("lingosub Segmentation Benchmark")
    print(f"Audio duration: {args.duration}s")
    print(f"VAD batch size: {args.batch_size}s")
    print(f"Minimum silence: {args.min_silence}s")
    print(f"Runs per method: {args.runs}")

    audio = generate_test_audio(args.duration)

    configurations = [
        ("fixed", AudioChunker(SegmentationMethod.FIXED)),
        ("vad", AudioChunker(
            SegmentationMethod.VAD,
            VADSettings(batch_size=args.batch_size, min_silence=args.min_silence),
        )),
        ("vad (no filter)", AudioChunker(
            SegmentationMethod.VAD,
            VADSettings(
                batch_size=args.batch_size,
                min_silence=args.min_silence,
                filtering_enabled=False,
            ),
        )),
    ]

    results = [
        benchmark_method(label, chunker, audio, num_runs=args.runs)
        for label, chunker in configurations
    ]

    print_summary(results, args.duration)


if __name__ == "__main__":
    main()
