"""
Warp-Core Benchmark Harness

Measures latency and achieved TFLOPS of a fused INT4 GEMV + RMSNorm GPU kernel
through a warm-up-then-measure protocol.

This library provides:
- Capability negotiation (GPU timestamp queries when the adapter offers them)
- Deterministic buffer sizing and parameter upload for a single dimension
- Binding-layout validation against the kernel pipeline
- An execution driver that excludes warm-up cost and drains the queue at
  both timing boundaries
- Throughput metrics using the 2 * dim^2 GEMV operation count
- A PyTorch CUDA backend and a Triton kernel pipeline (``warpcore_bench.backends``
  and ``warpcore_bench.kernels``, imported on demand)

Example usage:
    >>> from warpcore_bench import BenchmarkConfig, run_benchmark
    >>>
    >>> metrics = run_benchmark(BenchmarkConfig(dim=4096, iterations=100))
    >>> print(f"{metrics.average_latency_ms:.2f} ms, {metrics.throughput_tflops:.2f} TFLOPS")
"""

__version__ = "0.1.0"

from warpcore_bench.allocator import ResourceAllocator, pack_params
from warpcore_bench.binding import EXPECTED_SLOTS, build_bindings
from warpcore_bench.config import DEFAULT_CONFIG, BenchmarkConfig
from warpcore_bench.driver import DriverState, ExecutionDriver
from warpcore_bench.exceptions import (
    AllocationError,
    BenchmarkCancelledError,
    DeviceLostError,
    LayoutMismatchError,
    MeasurementResolutionError,
    NoAdapterError,
    WarpCoreError,
)
from warpcore_bench.log import setup_logging
from warpcore_bench.metrics import compute_metrics, ops_per_pass
from warpcore_bench.models import (
    TIMESTAMP_QUERY,
    BindingLayout,
    BindingSet,
    BufferSet,
    BufferUsage,
    DeviceCapabilities,
    DeviceLimits,
    ProblemSize,
    RunMetrics,
    RunTimings,
    SlotDeclaration,
)
from warpcore_bench.negotiator import CapabilityNegotiator, negotiate
from warpcore_bench.runner import run_benchmark, run_sweep

__all__ = [
    # Entry points
    "run_benchmark",
    "run_sweep",
    # Components
    "CapabilityNegotiator",
    "negotiate",
    "ResourceAllocator",
    "pack_params",
    "build_bindings",
    "EXPECTED_SLOTS",
    "ExecutionDriver",
    "DriverState",
    "compute_metrics",
    "ops_per_pass",
    # Configuration
    "BenchmarkConfig",
    "DEFAULT_CONFIG",
    "setup_logging",
    # Data models
    "TIMESTAMP_QUERY",
    "ProblemSize",
    "DeviceCapabilities",
    "DeviceLimits",
    "BufferUsage",
    "BufferSet",
    "SlotDeclaration",
    "BindingLayout",
    "BindingSet",
    "RunTimings",
    "RunMetrics",
    # Exceptions
    "WarpCoreError",
    "NoAdapterError",
    "AllocationError",
    "LayoutMismatchError",
    "DeviceLostError",
    "MeasurementResolutionError",
    "BenchmarkCancelledError",
]
