"""CUDA backend built on PyTorch.

Implements the adapter/device/queue interfaces with WebGPU semantics on top of
one CUDA stream:

- buffers are zero-initialized ``uint8`` device tensors viewed per binding;
- ``queue.submit`` launches the recorded dispatches asynchronously on the
  current stream, so submissions execute in order;
- ``queue.on_submitted_work_done`` is ``torch.cuda.synchronize``;
- ``timestamp-query`` maps to CUDA events recorded on the same stream.
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import torch

from warpcore_bench.exceptions import AllocationError, DeviceLostError
from warpcore_bench.models import TIMESTAMP_QUERY, BufferUsage, DeviceLimits

logger = logging.getLogger(__name__)

SUPPORTED_FEATURES: FrozenSet[str] = frozenset({TIMESTAMP_QUERY})

# CUDA has no separate uniform binding limit; keep WebGPU's default
UNIFORM_BINDING_LIMIT = 65536

# WebGPU requires 4-byte aligned buffer writes
COPY_ALIGNMENT = 4


class TorchBuffer:
    """Device buffer backed by a flat ``uint8`` tensor.

    Args:
        tensor: Backing storage
        usage: Usage flags the buffer was created with
        label: Optional debug label
    """

    def __init__(self, tensor: torch.Tensor, usage: BufferUsage, label: Optional[str] = None):
        self._tensor: Optional[torch.Tensor] = tensor
        self.size = tensor.numel()
        self.usage = usage
        self.label = label

    @property
    def destroyed(self) -> bool:
        return self._tensor is None

    @property
    def tensor(self) -> torch.Tensor:
        if self._tensor is None:
            raise RuntimeError(f"Buffer {self.label!r} has been destroyed")
        return self._tensor

    def view(self, dtype: torch.dtype) -> torch.Tensor:
        """Reinterpret the buffer contents as a tensor of dtype."""
        return self.tensor.view(dtype)

    def destroy(self) -> None:
        self._tensor = None


class TorchBindGroup:
    """Bind group: binding index -> buffer."""

    def __init__(self, layout: Any, buffers: Dict[int, TorchBuffer]):
        self.layout = layout
        self.buffers = buffers

    def buffer(self, binding: int) -> TorchBuffer:
        return self.buffers[binding]


class TorchComputePass:
    """Records dispatches until end() is called."""

    def __init__(self):
        self.commands: List[Tuple[Any, TorchBindGroup, Tuple[int, int, int]]] = []
        self.ended = False
        self._pipeline = None
        self._bind_group: Optional[TorchBindGroup] = None

    def set_pipeline(self, pipeline: Any) -> None:
        self._pipeline = pipeline

    def set_bind_group(self, index: int, bind_group: TorchBindGroup) -> None:
        if index != 0:
            raise ValueError(f"Only bind group 0 is supported, got {index}")
        self._bind_group = bind_group

    def dispatch_workgroups(self, x: int, y: int = 1, z: int = 1) -> None:
        if self.ended:
            raise RuntimeError("Compute pass already ended")
        if self._pipeline is None or self._bind_group is None:
            raise RuntimeError("Pipeline and bind group must be set before dispatching")
        self.commands.append((self._pipeline, self._bind_group, (x, y, z)))

    def end(self) -> None:
        self.ended = True


class TorchCommandBuffer:
    """Finished, submittable list of dispatches."""

    def __init__(self, commands: List[Tuple[Any, TorchBindGroup, Tuple[int, int, int]]]):
        self.commands = commands


class TorchCommandEncoder:
    def __init__(self):
        self._passes: List[TorchComputePass] = []

    def begin_compute_pass(self) -> TorchComputePass:
        compute_pass = TorchComputePass()
        self._passes.append(compute_pass)
        return compute_pass

    def finish(self) -> TorchCommandBuffer:
        if not all(p.ended for p in self._passes):
            raise RuntimeError("All compute passes must be ended before finish()")
        commands = [command for p in self._passes for command in p.commands]
        return TorchCommandBuffer(commands)


class TorchTimer:
    """GPU timer using CUDA events on the submission stream."""

    def __init__(self, device: torch.device):
        self._start = torch.cuda.Event(enable_timing=True)
        self._end = torch.cuda.Event(enable_timing=True)
        self._device = device

    def mark_start(self) -> None:
        self._start.record(torch.cuda.current_stream(self._device))

    def mark_end(self) -> None:
        self._end.record(torch.cuda.current_stream(self._device))

    def elapsed_ms(self) -> float:
        """Elapsed GPU time between the marks. Both marks must have retired."""
        return self._start.elapsed_time(self._end)


class TorchQueue:
    """In-order submission queue on the device's current CUDA stream."""

    def __init__(self, device: "TorchDevice"):
        self._device = device

    def write_buffer(self, buffer: TorchBuffer, offset: int, data: bytes) -> None:
        """Copy host bytes into a buffer at offset.

        Raises:
            ValueError: If the buffer was destroyed, or offset or size is
                misaligned or out of bounds
            DeviceLostError: If the device copy fails
        """
        if buffer.destroyed:
            raise ValueError(f"Cannot write to destroyed buffer {buffer.label!r}")
        size = len(data)
        if offset % COPY_ALIGNMENT or size % COPY_ALIGNMENT:
            raise ValueError(
                f"Buffer writes must be {COPY_ALIGNMENT}-byte aligned (offset={offset}, size={size})"
            )
        if offset < 0 or offset + size > buffer.size:
            raise ValueError(
                f"Write of {size} bytes at offset {offset} overruns buffer of {buffer.size} bytes"
            )
        host = torch.frombuffer(bytearray(data), dtype=torch.uint8)
        try:
            buffer.tensor[offset : offset + size].copy_(host)
        except RuntimeError as exc:
            raise DeviceLostError(f"Buffer write failed: {exc}") from exc

    def submit(self, command_buffers: Sequence[TorchCommandBuffer]) -> None:
        try:
            with torch.cuda.device(self._device.torch_device):
                for command_buffer in command_buffers:
                    for pipeline, bind_group, grid in command_buffer.commands:
                        pipeline.launch(bind_group, grid)
        except RuntimeError as exc:
            raise DeviceLostError(f"Kernel launch failed: {exc}") from exc

    def on_submitted_work_done(self) -> None:
        try:
            torch.cuda.synchronize(self._device.torch_device)
        except RuntimeError as exc:
            raise DeviceLostError(f"Device synchronization failed: {exc}") from exc


class TorchDevice:
    """CUDA device with an explicit handle; no process-wide state is used.

    Args:
        index: CUDA device index
        features: Features enabled on this device
        limits: Buffer limits
    """

    def __init__(self, index: int, features: FrozenSet[str], limits: DeviceLimits):
        self.index = index
        self.torch_device = torch.device("cuda", index)
        self.features = features
        self.limits = limits
        self.queue = TorchQueue(self)

    def create_buffer(
        self,
        size: int,
        usage: BufferUsage,
        label: Optional[str] = None,
    ) -> TorchBuffer:
        try:
            tensor = torch.zeros(size, dtype=torch.uint8, device=self.torch_device)
        except torch.cuda.OutOfMemoryError as exc:
            raise AllocationError(
                f"Out of device memory allocating {label or 'buffer'} ({size} bytes)",
                buffer_name=label,
                requested_bytes=size,
                limit_bytes=self.limits.max_buffer_size,
            ) from exc
        return TorchBuffer(tensor, usage, label)

    def create_bind_group(self, layout: Any, entries: Sequence[Any]) -> TorchBindGroup:
        return TorchBindGroup(layout, {entry.binding: entry.buffer for entry in entries})

    def create_command_encoder(self) -> TorchCommandEncoder:
        return TorchCommandEncoder()

    def create_timer(self) -> TorchTimer:
        if TIMESTAMP_QUERY not in self.features:
            raise RuntimeError(f"Feature {TIMESTAMP_QUERY!r} is not enabled on this device")
        return TorchTimer(self.torch_device)


class TorchAdapter:
    """CUDA adapter for one physical GPU.

    Args:
        index: CUDA device index
    """

    def __init__(self, index: int):
        props = torch.cuda.get_device_properties(index)
        self.index = index
        self.name = props.name
        self.features = SUPPORTED_FEATURES
        self.limits = DeviceLimits(
            max_buffer_size=props.total_memory,
            max_storage_buffer_binding_size=props.total_memory,
            max_uniform_buffer_binding_size=UNIFORM_BINDING_LIMIT,
        )

    def request_device(self, required_features: Sequence[str] = ()) -> TorchDevice:
        """Create a device with the required features enabled.

        Raises:
            ValueError: If a required feature is not supported by the adapter
        """
        unsupported = set(required_features) - set(self.features)
        if unsupported:
            raise ValueError(f"Adapter {self.name} does not support features {sorted(unsupported)}")
        logger.debug("Requesting device cuda:%d with features %s", self.index, list(required_features))
        return TorchDevice(self.index, frozenset(required_features), self.limits)


def request_adapter(device_index: Optional[int] = None) -> Optional[TorchAdapter]:
    """Return an adapter for a CUDA device, or None when CUDA is unavailable.

    Args:
        device_index: CUDA device index (default: current device)

    Returns:
        TorchAdapter or None
    """
    if not torch.cuda.is_available():
        return None
    index = torch.cuda.current_device() if device_index is None else device_index
    return TorchAdapter(index)
