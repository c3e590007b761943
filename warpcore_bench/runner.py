"""Caller-facing entry point: negotiate, allocate, bind, run, measure."""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional

from warpcore_bench.allocator import ResourceAllocator
from warpcore_bench.binding import build_bindings
from warpcore_bench.config import DEFAULT_CONFIG, BenchmarkConfig
from warpcore_bench.driver import ExecutionDriver
from warpcore_bench.metrics import compute_metrics
from warpcore_bench.models import RunMetrics
from warpcore_bench.negotiator import CapabilityNegotiator
from warpcore_bench.protocols import DeviceHandle, GPUAdapter, KernelPipeline

logger = logging.getLogger(__name__)


def run_benchmark(
    config: Optional[BenchmarkConfig] = None,
    *,
    request_adapter: Optional[Callable[[], Optional[GPUAdapter]]] = None,
    pipeline_factory: Optional[Callable[[DeviceHandle], KernelPipeline]] = None,
    cancel_event: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.perf_counter,
) -> RunMetrics:
    """Run one complete benchmark and return its metrics.

    The sequence is negotiate -> allocate -> bind -> warm up -> measure ->
    compute. Either every step succeeds and metrics are returned, or the
    first failure propagates and no metrics are produced. Buffers are always
    released before returning.

    Args:
        config: Benchmark configuration (default: dim=4096, iterations=100)
        request_adapter: Adapter provider (default: the PyTorch CUDA backend)
        pipeline_factory: Builds the kernel pipeline for a device
            (default: the Triton INT4 GEMV + RMSNorm kernel)
        cancel_event: Optional event checked between iterations
        clock: Host clock returning seconds

    Returns:
        RunMetrics with average latency and achieved throughput

    Raises:
        NoAdapterError: If no GPU adapter is available
        AllocationError: If the buffers do not fit the device
        LayoutMismatchError: If the kernel's binding layout is not slots 0..3
        DeviceLostError: If the device is lost mid-run
        MeasurementResolutionError: If the elapsed time cannot be divided
        BenchmarkCancelledError: If cancel_event is set during the run

    Example:
        >>> from warpcore_bench import BenchmarkConfig, run_benchmark
        >>> metrics = run_benchmark(BenchmarkConfig(dim=4096, iterations=100))
        >>> print(metrics)
    """
    config = config or DEFAULT_CONFIG
    if request_adapter is None:
        from warpcore_bench.backends.torch_cuda import request_adapter as cuda_adapter

        request_adapter = cuda_adapter
    if pipeline_factory is None:
        from warpcore_bench.kernels.int4_gemv_rmsnorm import create_pipeline

        pipeline_factory = create_pipeline

    problem = config.problem_size

    device, capabilities = CapabilityNegotiator(request_adapter).negotiate()
    pipeline = pipeline_factory(device)

    allocator = ResourceAllocator(device)
    buffers = allocator.allocate(problem)
    try:
        allocator.upload_params(buffers.params, problem.dim, config.epsilon, config.scale)
        bindings = build_bindings(device, pipeline.get_binding_layout(), buffers)
        driver = ExecutionDriver(
            device,
            pipeline,
            bindings,
            workgroups=problem.dim,
            capabilities=capabilities,
            clock=clock,
        )
        timings = driver.run(config.iterations, cancel_event=cancel_event)
    finally:
        buffers.release()

    metrics = compute_metrics(
        timings.elapsed_ms,
        timings.iterations,
        problem.dim,
        gpu_elapsed_ms=timings.gpu_elapsed_ms,
    )
    logger.info(
        "Warp-Core results (dim=%d, iterations=%d): %.2f ms, %.2f TFLOPS",
        problem.dim,
        timings.iterations,
        metrics.average_latency_ms,
        metrics.throughput_tflops,
    )
    return metrics


def run_sweep(
    dims: Iterable[int],
    config: Optional[BenchmarkConfig] = None,
    **kwargs: Any,
) -> Dict[int, RunMetrics]:
    """Run one benchmark per dimension, each from a fresh negotiation.

    Args:
        dims: Iterable of problem dimensions
        config: Base configuration; its dim is replaced per run
        **kwargs: Forwarded to run_benchmark

    Returns:
        Dict mapping dim -> RunMetrics
    """
    base = config or DEFAULT_CONFIG
    results: Dict[int, RunMetrics] = {}
    for dim in dims:
        run_config = BenchmarkConfig.from_dict({**base.to_dict(), "dim": dim})
        results[dim] = run_benchmark(run_config, **kwargs)
    return results
