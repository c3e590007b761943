"""Data models and type definitions for the benchmark harness."""

import enum
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple

# WebGPU feature name for GPU-side timestamp capture
TIMESTAMP_QUERY = "timestamp-query"

# Parameter block: u32 dim, f32 epsilon, f32 scale, u32 reserved
PARAMS_BYTES = 16

# Every 8 quantized 4-bit elements share one 32-bit word
INT4_PER_WORD = 8
BYTES_PER_WORD = 4

U32_MAX = 2**32 - 1


class BufferUsage(enum.IntFlag):
    """Buffer usage intents, bit-compatible with WebGPU's GPUBufferUsage."""

    MAP_READ = 0x0001
    MAP_WRITE = 0x0002
    COPY_SRC = 0x0004
    COPY_DST = 0x0008
    INDEX = 0x0010
    VERTEX = 0x0020
    UNIFORM = 0x0040
    STORAGE = 0x0080
    INDIRECT = 0x0100
    QUERY_RESOLVE = 0x0200


@dataclass(frozen=True)
class ProblemSize:
    """Problem dimension driving every buffer size and the operation count.

    Attributes:
        dim: Length of the input/output vectors; the weight matrix is dim x dim
    """

    dim: int

    def __post_init__(self):
        if isinstance(self.dim, bool) or not isinstance(self.dim, int):
            raise ValueError(f"dim must be an integer, got {self.dim!r}")
        if self.dim <= 0:
            raise ValueError(f"dim must be positive, got {self.dim}")
        if self.dim > U32_MAX:
            raise ValueError(f"dim must fit in an unsigned 32-bit field, got {self.dim}")

    @property
    def input_bytes(self) -> int:
        """Dense input vector, one 32-bit element per dimension."""
        return self.dim * BYTES_PER_WORD

    @property
    def output_bytes(self) -> int:
        """Dense output vector, one 32-bit element per dimension."""
        return self.dim * BYTES_PER_WORD

    @property
    def weight_words(self) -> int:
        """32-bit words holding the packed dim x dim INT4 matrix."""
        return -(-(self.dim * self.dim) // INT4_PER_WORD)

    @property
    def weight_bytes(self) -> int:
        return self.weight_words * BYTES_PER_WORD

    @property
    def params_bytes(self) -> int:
        return PARAMS_BYTES

    @property
    def ops_per_pass(self) -> int:
        """Floating-point operations per pass: one multiply and one add per weight."""
        return 2 * self.dim**2

    @property
    def bytes_per_pass(self) -> int:
        """Bytes touched per pass across all four buffers."""
        return self.input_bytes + self.weight_bytes + self.output_bytes + self.params_bytes


@dataclass(frozen=True)
class DeviceCapabilities:
    """Optional features negotiated with the adapter.

    Attributes:
        supports_timestamp_query: Whether GPU-side timestamps are enabled on the device
        enabled_features: Every feature requested when the device was created
    """

    supports_timestamp_query: bool = False
    enabled_features: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class DeviceLimits:
    """Buffer size limits reported by a device.

    Defaults are the WebGPU specification's guaranteed minimums.

    Attributes:
        max_buffer_size: Largest buffer that can be created
        max_storage_buffer_binding_size: Largest buffer bindable as storage
        max_uniform_buffer_binding_size: Largest buffer bindable as uniform
    """

    max_buffer_size: int = 268435456
    max_storage_buffer_binding_size: int = 134217728
    max_uniform_buffer_binding_size: int = 65536


@dataclass
class BufferSet:
    """The four GPU buffers owned by one benchmark run.

    Buffers are allocated once, never resized, and released exactly once
    when the run ends.

    Attributes:
        input: Dense input vector (dim float32 elements)
        weight: Packed INT4 weight matrix (ceil(dim*dim/8) 32-bit words)
        output: Dense output vector (dim float32 elements)
        params: 16-byte scalar parameter block
    """

    input: Any
    weight: Any
    output: Any
    params: Any
    released: bool = field(default=False, init=False)

    def __iter__(self) -> Iterator[Any]:
        """Iterate buffers in binding order."""
        return iter((self.input, self.weight, self.output, self.params))

    def release(self) -> None:
        """Destroy all four buffers. Safe to call more than once.

        Every buffer is destroyed even if an earlier destroy() raises; the
        first such error is re-raised once all four have been attempted.
        """
        if self.released:
            return
        errors = []
        for buffer in self:
            try:
                buffer.destroy()
            except Exception as exc:
                errors.append(exc)
        self.released = True
        if errors:
            raise errors[0]


@dataclass(frozen=True)
class SlotDeclaration:
    """One binding slot declared by a kernel pipeline.

    Attributes:
        binding: Binding index within bind group 0
        kind: Buffer binding type ("storage", "read-only-storage" or "uniform")
    """

    binding: int
    kind: str = "storage"


@dataclass(frozen=True)
class BindingLayout:
    """Binding layout declared by a kernel pipeline.

    Attributes:
        slots: Declared slots
        handle: Backend layout object passed through to the device
    """

    slots: Tuple[SlotDeclaration, ...]
    handle: Any = None

    @property
    def bindings(self) -> Tuple[int, ...]:
        return tuple(slot.binding for slot in self.slots)


@dataclass(frozen=True)
class BindingEntry:
    """Association of one binding slot with one buffer."""

    binding: int
    name: str
    buffer: Any


@dataclass(frozen=True)
class BindingSet:
    """Immutable slot -> buffer association built against a pipeline layout.

    Attributes:
        entries: Entries ordered by binding index
        handle: Backend bind group used when dispatching
    """

    entries: Tuple[BindingEntry, ...]
    handle: Any = None

    def buffer_for(self, binding: int) -> Any:
        for entry in self.entries:
            if entry.binding == binding:
                return entry.buffer
        raise KeyError(binding)


@dataclass(frozen=True)
class RunTimings:
    """Raw timings produced by the execution driver.

    Attributes:
        elapsed_ms: Host wall-clock time covering the measured submissions and their drain
        iterations: Number of measured passes
        gpu_elapsed_ms: GPU-side elapsed time, when timestamp queries are enabled
    """

    elapsed_ms: float
    iterations: int
    gpu_elapsed_ms: Optional[float] = None


@dataclass(frozen=True)
class RunMetrics:
    """Performance metrics for one benchmark run.

    Attributes:
        average_latency_ms: Wall-clock time per pass in milliseconds
        throughput_tflops: Achieved throughput in TFLOPS (2 * dim^2 operations per pass)
        bandwidth_gbps: Effective memory bandwidth in GB/s
        gpu_latency_ms: GPU-timestamp time per pass, if timestamp queries were available
    """

    average_latency_ms: float
    throughput_tflops: float
    bandwidth_gbps: float = 0.0
    gpu_latency_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        text = (
            f"Latency: {self.average_latency_ms:.3f} ms, "
            f"Throughput: {self.throughput_tflops:.2f} TFLOPS, "
            f"Bandwidth: {self.bandwidth_gbps:.1f} GB/s"
        )
        if self.gpu_latency_ms is not None:
            text += f", GPU latency: {self.gpu_latency_ms:.3f} ms"
        return text
