#!/usr/bin/env python3
"""
Example: Basic Usage of the Warp-Core Benchmark Harness

This example runs the fused INT4 GEMV + RMSNorm kernel through the
warm-up-then-measure protocol and prints the resulting metrics.

Requirements:
    - CUDA-capable GPU
    - PyTorch >= 2.0
    - triton >= 2.1
"""

import threading

import torch

from warpcore_bench import (
    BenchmarkCancelledError,
    BenchmarkConfig,
    WarpCoreError,
    run_benchmark,
    setup_logging,
)


def check_cuda():
    """Check if CUDA is available."""
    if not torch.cuda.is_available():
        print("CUDA is not available. This example requires a CUDA-capable GPU.")
        return False
    print(f"Using GPU: {torch.cuda.get_device_name(0)}")
    return True


def demo_default_run():
    """Run the benchmark with the default configuration."""
    print("\n" + "=" * 60)
    print("Demo: Default Run (dim=4096, 100 iterations)")
    print("=" * 60)

    metrics = run_benchmark()

    print(metrics)
    print(f"Average latency: {metrics.average_latency_ms:.3f} ms")
    print(f"Throughput: {metrics.throughput_tflops:.4f} TFLOPS")


def demo_custom_config():
    """Run the benchmark with a custom configuration."""
    print("\n" + "=" * 60)
    print("Demo: Custom Configuration")
    print("=" * 60)

    config = BenchmarkConfig(dim=8192, iterations=50, epsilon=1e-6, scale=0.5)
    print(f"Config: {config.to_dict()}")

    metrics = run_benchmark(config)
    print(metrics)


def demo_cancellation():
    """Cancel a long run from another thread."""
    print("\n" + "=" * 60)
    print("Demo: Cancellation")
    print("=" * 60)

    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        run_benchmark(BenchmarkConfig(iterations=1_000_000), cancel_event=cancel)
        print("Run finished before cancellation")
    except BenchmarkCancelledError as e:
        print(f"Cancelled after {e.completed_iterations} iterations")
    finally:
        timer.cancel()


def main():
    setup_logging("INFO")
    if not check_cuda():
        return

    try:
        demo_default_run()
        demo_custom_config()
        demo_cancellation()
    except WarpCoreError as e:
        print(f"Benchmark failed: {type(e).__name__}: {e}")


if __name__ == "__main__":
    main()
