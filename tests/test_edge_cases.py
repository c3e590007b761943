"""Unit tests for edge cases, error types and data models.

This module contains unit tests for edge cases, error conditions,
and boundary values that are not covered by property-based tests.
"""

import pytest

from warpcore_bench.exceptions import (
    AllocationError,
    BenchmarkCancelledError,
    DeviceLostError,
    LayoutMismatchError,
    MeasurementResolutionError,
    NoAdapterError,
    WarpCoreError,
)
from warpcore_bench.models import (
    BufferUsage,
    DeviceCapabilities,
    ProblemSize,
    RunMetrics,
    RunTimings,
)


class TestExceptionAttributes:
    """Tests for exception attributes."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            NoAdapterError,
            AllocationError,
            LayoutMismatchError,
            DeviceLostError,
            MeasurementResolutionError,
            BenchmarkCancelledError,
        ],
    )
    def test_share_base_class(self, exc_type):
        assert issubclass(exc_type, WarpCoreError)

    def test_allocation_error_attributes(self):
        """Test AllocationError has correct attributes."""
        error = AllocationError(
            "too big",
            buffer_name="weight",
            requested_bytes=8388608,
            limit_bytes=1048576,
        )

        assert error.buffer_name == "weight"
        assert error.requested_bytes == 8388608
        assert error.limit_bytes == 1048576
        assert "too big" in str(error)

    def test_layout_mismatch_error_attributes(self):
        error = LayoutMismatchError("skew", expected_slots=(0, 1, 2, 3), actual_slots=(0, 1, 2))

        assert error.expected_slots == (0, 1, 2, 3)
        assert error.actual_slots == (0, 1, 2)

    def test_optional_attributes_default_to_none(self):
        assert NoAdapterError("none").backend is None
        assert DeviceLostError("lost").state is None
        assert DeviceLostError("lost").iteration is None
        assert MeasurementResolutionError("coarse").elapsed_ms is None
        assert BenchmarkCancelledError("stop").completed_iterations == 0


class TestDataModels:
    """Tests for data model classes."""

    def test_run_metrics_str(self):
        """Test RunMetrics string representation."""
        metrics = RunMetrics(average_latency_ms=2.5, throughput_tflops=0.0134, bandwidth_gbps=3.37)

        text = str(metrics)
        assert "2.500 ms" in text
        assert "0.01 TFLOPS" in text
        assert "3.4 GB/s" in text
        assert "GPU latency" not in text

    def test_run_metrics_str_with_gpu_latency(self):
        metrics = RunMetrics(average_latency_ms=2.5, throughput_tflops=0.0134, gpu_latency_ms=2.0)
        assert "GPU latency: 2.000 ms" in str(metrics)

    def test_run_metrics_to_dict(self):
        metrics = RunMetrics(average_latency_ms=2.5, throughput_tflops=0.0134)
        assert metrics.to_dict() == {
            "average_latency_ms": 2.5,
            "throughput_tflops": 0.0134,
            "bandwidth_gbps": 0.0,
            "gpu_latency_ms": None,
        }

    def test_run_timings_default(self):
        assert RunTimings(elapsed_ms=250.0, iterations=100).gpu_elapsed_ms is None

    def test_capabilities_default_to_wall_clock_only(self):
        capabilities = DeviceCapabilities()
        assert not capabilities.supports_timestamp_query
        assert capabilities.enabled_features == frozenset()

    def test_smallest_problem(self):
        problem = ProblemSize(1)
        assert problem.weight_words == 1
        assert problem.weight_bytes == 4
        assert problem.ops_per_pass == 2

    def test_largest_problem_fits_u32(self):
        problem = ProblemSize(2**32 - 1)
        assert problem.dim == 2**32 - 1

    def test_usage_flags_match_webgpu(self):
        assert BufferUsage.COPY_SRC == 0x0004
        assert BufferUsage.COPY_DST == 0x0008
        assert BufferUsage.UNIFORM == 0x0040
        assert BufferUsage.STORAGE == 0x0080
