"""Tests for the PyTorch CUDA backend."""

import pytest
import torch

from warpcore_bench.backends import torch_cuda
from warpcore_bench.backends.torch_cuda import (
    TorchBuffer,
    TorchCommandEncoder,
    TorchComputePass,
    TorchDevice,
    request_adapter,
)
from warpcore_bench.exceptions import DeviceLostError
from warpcore_bench.models import TIMESTAMP_QUERY, BufferUsage, DeviceLimits


class TestWithoutCuda:
    def test_request_adapter_returns_none(self, monkeypatch):
        monkeypatch.setattr(torch.cuda, "is_available", lambda: False)
        assert request_adapter() is None

    def test_buffer_destroy(self):
        buffer = TorchBuffer(torch.zeros(16, dtype=torch.uint8), BufferUsage.STORAGE, "input")

        assert buffer.size == 16
        assert buffer.view(torch.float32).numel() == 4
        buffer.destroy()
        buffer.destroy()
        assert buffer.destroyed
        with pytest.raises(RuntimeError):
            buffer.tensor

    def test_write_to_destroyed_buffer_is_caller_error(self):
        # Constructing a device handle does not touch the GPU
        device = TorchDevice(0, frozenset(), DeviceLimits())
        buffer = TorchBuffer(torch.zeros(16, dtype=torch.uint8), BufferUsage.UNIFORM, "params")
        buffer.destroy()

        with pytest.raises(ValueError, match="destroyed"):
            device.queue.write_buffer(buffer, 0, b"\x00" * 4)

    def test_dispatch_requires_pipeline_and_bind_group(self):
        compute_pass = TorchComputePass()
        with pytest.raises(RuntimeError):
            compute_pass.dispatch_workgroups(4)

    def test_only_bind_group_zero(self):
        with pytest.raises(ValueError):
            TorchComputePass().set_bind_group(1, object())

    def test_finish_requires_ended_passes(self):
        encoder = TorchCommandEncoder()
        encoder.begin_compute_pass()
        with pytest.raises(RuntimeError):
            encoder.finish()

    def test_encoder_collects_dispatches(self):
        encoder = TorchCommandEncoder()
        compute_pass = encoder.begin_compute_pass()
        compute_pass.set_pipeline("pipeline")
        compute_pass.set_bind_group(0, "bind_group")
        compute_pass.dispatch_workgroups(128)
        compute_pass.end()

        command_buffer = encoder.finish()

        assert command_buffer.commands == [("pipeline", "bind_group", (128, 1, 1))]


class FailingPipeline:
    def launch(self, bind_group, grid):
        raise RuntimeError("CUDA error: an illegal memory access was encountered")


@pytest.mark.gpu
class TestCudaDevice:
    """Backend behavior on a real CUDA device."""

    def test_adapter_advertises_timestamps(self, cuda_device):
        adapter = request_adapter()
        assert TIMESTAMP_QUERY in adapter.features
        assert adapter.limits.max_buffer_size == torch.cuda.get_device_properties(adapter.index).total_memory

    def test_unsupported_feature_rejected(self, cuda_device):
        with pytest.raises(ValueError):
            request_adapter().request_device(required_features=["shader-f16"])

    def test_timer_requires_feature(self, cuda_device):
        device = request_adapter().request_device()
        with pytest.raises(RuntimeError):
            device.create_timer()

    def test_write_buffer(self, cuda_device):
        device = request_adapter().request_device()
        buffer = device.create_buffer(16, BufferUsage.UNIFORM | BufferUsage.COPY_DST, "params")

        device.queue.write_buffer(buffer, 4, b"\x01\x02\x03\x04")

        assert buffer.tensor.cpu().tolist() == [0] * 4 + [1, 2, 3, 4] + [0] * 8

    @pytest.mark.parametrize("offset,data", [(2, b"\x00" * 4), (0, b"\x00" * 3), (16, b"\x00" * 4)])
    def test_write_buffer_rejects_bad_writes(self, cuda_device, offset, data):
        device = request_adapter().request_device()
        buffer = device.create_buffer(16, BufferUsage.UNIFORM, "params")
        with pytest.raises(ValueError):
            device.queue.write_buffer(buffer, offset, data)

    def test_launch_failure_is_device_lost(self, cuda_device):
        device = request_adapter().request_device()
        encoder = device.create_command_encoder()
        compute_pass = encoder.begin_compute_pass()
        compute_pass.set_pipeline(FailingPipeline())
        compute_pass.set_bind_group(0, device.create_bind_group(None, []))
        compute_pass.dispatch_workgroups(1)
        compute_pass.end()

        with pytest.raises(DeviceLostError):
            device.queue.submit([encoder.finish()])

    def test_timer_measures_submitted_work(self, cuda_device):
        device = request_adapter().request_device(required_features=[TIMESTAMP_QUERY])
        timer = device.create_timer()
        timer.mark_start()
        torch.randn(1024, 1024, device=cuda_device).matmul(torch.randn(1024, 1024, device=cuda_device))
        timer.mark_end()
        device.queue.on_submitted_work_done()
        assert timer.elapsed_ms() >= 0.0


@pytest.mark.gpu
@pytest.mark.slow
def test_end_to_end_on_cuda(cuda_device):
    """Full benchmark against the Triton kernel."""
    from warpcore_bench import BenchmarkConfig, run_benchmark

    metrics = run_benchmark(BenchmarkConfig(dim=1024, iterations=20))

    assert metrics.average_latency_ms > 0
    assert metrics.throughput_tflops > 0
    assert metrics.gpu_latency_ms is not None


def test_module_exposes_supported_features():
    assert torch_cuda.SUPPORTED_FEATURES == frozenset({TIMESTAMP_QUERY})
