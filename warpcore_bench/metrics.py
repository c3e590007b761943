"""Throughput metrics derived from raw timings."""

import math
from typing import Optional

from warpcore_bench.exceptions import MeasurementResolutionError
from warpcore_bench.models import ProblemSize, RunMetrics


def ops_per_pass(dim: int) -> int:
    """Operation count of one GEMV pass: 2 * dim^2.

    This is the standard GEMV convention. It leaves out the INT4 unpacking
    and the normalization arithmetic, so it undercounts the fused kernel's
    work slightly.
    """
    return ProblemSize(dim).ops_per_pass


def compute_metrics(
    elapsed_ms: float,
    iterations: int,
    dim: int,
    gpu_elapsed_ms: Optional[float] = None,
) -> RunMetrics:
    """Compute per-pass latency and achieved throughput.

    Args:
        elapsed_ms: Wall-clock time covering all measured passes
        iterations: Number of measured passes
        dim: Problem dimension
        gpu_elapsed_ms: Optional GPU-timestamp time covering the measured passes

    Returns:
        RunMetrics with computed values

    Raises:
        MeasurementResolutionError: If iterations or elapsed time is not strictly positive
    """
    if iterations <= 0:
        raise MeasurementResolutionError(
            f"iterations must be positive, got {iterations}",
            elapsed_ms=elapsed_ms,
            iterations=iterations,
        )
    if not math.isfinite(elapsed_ms) or elapsed_ms <= 0:
        raise MeasurementResolutionError(
            f"Elapsed time {elapsed_ms} ms is below clock resolution; increase iterations",
            elapsed_ms=elapsed_ms,
            iterations=iterations,
        )

    problem = ProblemSize(dim)
    average_latency_ms = elapsed_ms / iterations
    if average_latency_ms <= 0:
        raise MeasurementResolutionError(
            f"Average latency underflowed for {elapsed_ms} ms over {iterations} iterations",
            elapsed_ms=elapsed_ms,
            iterations=iterations,
        )

    throughput_tflops = (problem.ops_per_pass / (average_latency_ms / 1000)) / 1e12
    bandwidth_gbps = problem.bytes_per_pass / (average_latency_ms * 1e6)

    gpu_latency_ms = None
    if gpu_elapsed_ms is not None:
        gpu_latency_ms = gpu_elapsed_ms / iterations

    return RunMetrics(
        average_latency_ms=average_latency_ms,
        throughput_tflops=throughput_tflops,
        bandwidth_gbps=bandwidth_gbps,
        gpu_latency_ms=gpu_latency_ms,
    )
