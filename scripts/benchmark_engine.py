"""Measure per-block processing cost and memory of the detection pipeline.

Usage: python scripts/benchmark_engine.py [--blocks 5000] [--chunk-size 2048]
"""

import argparse
import os
import time

import numpy as np
import psutil

from shot_haptics import DetectionPipeline


def get_process_memory():
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024  # MB


def benchmark(blocks: int, chunk_size: int, sample_rate: int = 44100):
    print("Starting Benchmark...")

    baseline_mem = get_process_memory()
    print(f"Baseline Memory: {baseline_mem:.2f} MB")

    pipeline = DetectionPipeline(sample_rate=sample_rate, stats_interval_ms=0)

    # Ambient noise with a loud transient every 10th block
    rng = np.random.default_rng(0)
    audio = []
    for i in range(blocks):
        level = 8000 if i % 10 == 0 else 30
        audio.append((rng.standard_normal(chunk_size) * level).astype(np.int16))

    timings = np.empty(blocks)
    for i, block in enumerate(audio):
        start = time.perf_counter()
        pipeline.push_block(block)
        timings[i] = time.perf_counter() - start

    block_ms = chunk_size / sample_rate * 1000.0
    mean_ms = timings.mean() * 1000.0
    p99_ms = np.percentile(timings, 99) * 1000.0

    print(f"Blocks: {blocks} x {chunk_size} samples ({block_ms:.1f}ms of audio each)")
    print(f"Per block: mean {mean_ms:.3f}ms, p99 {p99_ms:.3f}ms, max {timings.max() * 1000:.3f}ms")
    print(f"Real-time factor: {block_ms / mean_ms:.0f}x")
    print(f"Memory: {get_process_memory():.2f} MB (+{get_process_memory() - baseline_mem:.2f} MB)")
    print(pipeline.diagnostics().summary())


def main():
    parser = argparse.ArgumentParser(description="Benchmark the detection pipeline.")
    parser.add_argument("--blocks", type=int, default=5000)
    parser.add_argument("--chunk-size", type=int, default=2048)
    args = parser.parse_args()
    benchmark(args.blocks, args.chunk_size)


if __name__ == "__main__":
    main()
