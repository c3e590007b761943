"""Buffer sizing, allocation and parameter upload."""

import logging
import struct
from typing import Any, List, Tuple

from warpcore_bench.exceptions import AllocationError
from warpcore_bench.models import PARAMS_BYTES, BufferSet, BufferUsage, ProblemSize
from warpcore_bench.protocols import DeviceHandle

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-5
DEFAULT_SCALE = 1.0

# (field, byte offset, little-endian struct format)
PARAM_FIELDS = (
    ("dim", 0, "<I"),
    ("epsilon", 4, "<f"),
    ("scale", 8, "<f"),
)

# (buffer name, usage, binding kind checked against device limits)
BUFFER_SPECS = (
    ("input", BufferUsage.STORAGE | BufferUsage.COPY_DST, "storage"),
    ("weight", BufferUsage.STORAGE | BufferUsage.COPY_DST, "storage"),
    ("output", BufferUsage.STORAGE | BufferUsage.COPY_SRC, "storage"),
    ("params", BufferUsage.UNIFORM | BufferUsage.COPY_DST, "uniform"),
)


def buffer_sizes(problem: ProblemSize) -> Tuple[int, int, int, int]:
    """Return (input, weight, output, params) sizes in bytes."""
    return (
        problem.input_bytes,
        problem.weight_bytes,
        problem.output_bytes,
        problem.params_bytes,
    )


def pack_params(dim: int, epsilon: float = DEFAULT_EPSILON, scale: float = DEFAULT_SCALE) -> bytes:
    """Build the 16-byte parameter block image.

    Layout: u32 dim at offset 0, f32 epsilon at 4, f32 scale at 8,
    reserved zero word at 12.
    """
    block = bytearray(PARAMS_BYTES)
    for (_, offset, fmt), value in zip(PARAM_FIELDS, (dim, epsilon, scale)):
        struct.pack_into(fmt, block, offset, value)
    return bytes(block)


class ResourceAllocator:
    """Allocates the four buffers the kernel binds.

    Args:
        device: Device the buffers are created on
    """

    def __init__(self, device: DeviceHandle):
        self.device = device

    def _limit_for(self, kind: str) -> Tuple[int, str]:
        limits = self.device.limits
        if kind == "uniform":
            binding_limit = limits.max_uniform_buffer_binding_size
            binding_name = "max_uniform_buffer_binding_size"
        else:
            binding_limit = limits.max_storage_buffer_binding_size
            binding_name = "max_storage_buffer_binding_size"
        if limits.max_buffer_size < binding_limit:
            return limits.max_buffer_size, "max_buffer_size"
        return binding_limit, binding_name

    def _check_limits(self, name: str, kind: str, size: int) -> None:
        limit, limit_name = self._limit_for(kind)
        if size > limit:
            raise AllocationError(
                f"{name} buffer needs {size} bytes, exceeding device {limit_name} of {limit}",
                buffer_name=name,
                requested_bytes=size,
                limit_bytes=limit,
            )

    def allocate(self, problem: ProblemSize) -> BufferSet:
        """Allocate input, weight, output and params buffers for a problem size.

        All limits are checked before the first buffer is created.

        Args:
            problem: Problem size

        Returns:
            BufferSet owning the new buffers

        Raises:
            AllocationError: If any buffer exceeds the device limits or cannot be allocated
        """
        sizes = buffer_sizes(problem)
        for (name, _, kind), size in zip(BUFFER_SPECS, sizes):
            self._check_limits(name, kind, size)

        created: List[Any] = []
        try:
            for (name, usage, _), size in zip(BUFFER_SPECS, sizes):
                created.append(self.device.create_buffer(size=size, usage=usage, label=name))
        except AllocationError:
            for buffer in created:
                buffer.destroy()
            raise

        logger.debug(
            "Allocated buffers for dim=%d: input=%d weight=%d output=%d params=%d bytes",
            problem.dim,
            *sizes,
        )
        return BufferSet(*created)

    def upload_params(
        self,
        params: Any,
        dim: int,
        epsilon: float = DEFAULT_EPSILON,
        scale: float = DEFAULT_SCALE,
    ) -> None:
        """Write dim, epsilon and scale into the parameter buffer.

        Each field is written at its fixed offset, so the result does not
        depend on the order of the writes.

        Args:
            params: Parameter buffer from allocate()
            dim: Problem dimension (u32 at offset 0)
            epsilon: Normalization epsilon (f32 at offset 4)
            scale: Output scale (f32 at offset 8)
        """
        values = {"dim": dim, "epsilon": epsilon, "scale": scale}
        for field_name, offset, fmt in PARAM_FIELDS:
            self.device.queue.write_buffer(params, offset, struct.pack(fmt, values[field_name]))

