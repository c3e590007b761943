"""Interfaces of the external collaborators the harness drives.

The harness never imports a GPU API directly. It is generic over any adapter,
device and kernel pipeline satisfying these protocols; the shapes follow
WebGPU (adapter -> device -> queue, command encoder -> compute pass).
"""

from typing import Any, Iterable, Optional, Protocol, Sequence

from warpcore_bench.models import BindingLayout, BufferUsage, DeviceLimits


class GPUBuffer(Protocol):
    size: int

    def destroy(self) -> None: ...


class GPUComputePass(Protocol):
    def set_pipeline(self, pipeline: Any) -> None: ...

    def set_bind_group(self, index: int, bind_group: Any) -> None: ...

    def dispatch_workgroups(self, x: int, y: int = 1, z: int = 1) -> None: ...

    def end(self) -> None: ...


class GPUCommandEncoder(Protocol):
    def begin_compute_pass(self) -> GPUComputePass: ...

    def finish(self) -> Any: ...


class GPUTimer(Protocol):
    """GPU-side timer whose marks are ordered with queue submissions."""

    def mark_start(self) -> None: ...

    def mark_end(self) -> None: ...

    def elapsed_ms(self) -> float: ...


class GPUQueue(Protocol):
    def write_buffer(self, buffer: Any, offset: int, data: bytes) -> None: ...

    def submit(self, command_buffers: Sequence[Any]) -> None:
        """Enqueue command buffers without waiting for them.

        Raises:
            DeviceLostError: If the device was lost
        """
        ...

    def on_submitted_work_done(self) -> None:
        """Block until every submitted command buffer has retired.

        Raises:
            DeviceLostError: If the device was lost
        """
        ...


class DeviceHandle(Protocol):
    features: Iterable[str]
    limits: DeviceLimits
    queue: GPUQueue

    def create_buffer(self, size: int, usage: BufferUsage, label: Optional[str] = None) -> Any:
        """Allocate a zero-initialized buffer.

        Raises:
            AllocationError: If the backend cannot allocate the buffer
        """
        ...

    def create_bind_group(self, layout: Any, entries: Sequence[Any]) -> Any: ...

    def create_command_encoder(self) -> GPUCommandEncoder: ...

    def create_timer(self) -> GPUTimer:
        """Create a GPU timer. Only valid when timestamp queries are enabled."""
        ...


class GPUAdapter(Protocol):
    name: str
    features: Iterable[str]
    limits: DeviceLimits

    def request_device(self, required_features: Sequence[str] = ()) -> DeviceHandle:
        """Create a device; fails if an unsupported feature is required."""
        ...


class KernelPipeline(Protocol):
    """Compiled, dispatchable compute kernel."""

    def get_binding_layout(self) -> BindingLayout: ...

    def dispatch(self, compute_pass: GPUComputePass, bind_group: Any, workgroups: int) -> None:
        """Record one dispatch of the kernel into a compute pass."""
        ...
