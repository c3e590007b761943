"""Custom exceptions for the Warp-Core benchmark harness."""

from typing import Optional, Tuple


class WarpCoreError(Exception):
    """Base exception for benchmark harness errors.

    All custom exceptions in this library inherit from this class,
    allowing callers to catch every harness failure with a single except clause.
    None of them is recoverable within a run: recovery means restarting the
    full negotiate -> allocate -> bind -> run sequence.
    """

    pass


class NoAdapterError(WarpCoreError):
    """Raised when no GPU adapter is available.

    Attributes:
        backend: Name of the backend that was asked for an adapter
    """

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message)
        self.backend = backend


class AllocationError(WarpCoreError):
    """Raised when a buffer cannot be allocated.

    This error is raised when a requested buffer exceeds the device limits
    or the backend fails to allocate it. Sizes are never truncated to fit.

    Attributes:
        buffer_name: Name of the buffer that failed ("input", "weight", ...)
        requested_bytes: Requested buffer size in bytes
        limit_bytes: Device limit that was exceeded, if known
    """

    def __init__(
        self,
        message: str,
        buffer_name: Optional[str] = None,
        requested_bytes: Optional[int] = None,
        limit_bytes: Optional[int] = None,
    ):
        super().__init__(message)
        self.buffer_name = buffer_name
        self.requested_bytes = requested_bytes
        self.limit_bytes = limit_bytes


class LayoutMismatchError(WarpCoreError):
    """Raised when a kernel's binding layout disagrees with the harness.

    Indicates version skew between the harness and the kernel: the harness
    binds exactly four slots (0=input, 1=weight, 2=output, 3=params).

    Attributes:
        expected_slots: Binding indices the harness binds
        actual_slots: Binding indices the kernel declared
    """

    def __init__(
        self,
        message: str,
        expected_slots: Optional[Tuple[int, ...]] = None,
        actual_slots: Optional[Tuple[int, ...]] = None,
    ):
        super().__init__(message)
        self.expected_slots = expected_slots
        self.actual_slots = actual_slots


class DeviceLostError(WarpCoreError):
    """Raised when the GPU device is lost during a run.

    A lost device invalidates all GPU-side state, so the caller can only
    retry from negotiation.

    Attributes:
        state: Driver state in which the loss was observed
        iteration: Measured iteration being submitted, if any
    """

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        iteration: Optional[int] = None,
    ):
        super().__init__(message)
        self.state = state
        self.iteration = iteration


class MeasurementResolutionError(WarpCoreError):
    """Raised when timings cannot be turned into metrics.

    Zero iterations or a zero elapsed time (clock too coarse) would divide
    to infinity. Increase the iteration count and retry.

    Attributes:
        elapsed_ms: Measured elapsed time in milliseconds
        iterations: Number of measured iterations
    """

    def __init__(
        self,
        message: str,
        elapsed_ms: Optional[float] = None,
        iterations: Optional[int] = None,
    ):
        super().__init__(message)
        self.elapsed_ms = elapsed_ms
        self.iterations = iterations


class BenchmarkCancelledError(WarpCoreError):
    """Raised when a run is cancelled at a state boundary.

    The queue has been drained before this is raised.

    Attributes:
        completed_iterations: Measured iterations submitted before cancellation
    """

    def __init__(self, message: str, completed_iterations: int = 0):
        super().__init__(message)
        self.completed_iterations = completed_iterations
