"""Warm-up-then-measure execution driver.

The driver owns the timing boundaries of a run:

1. One warm-up dispatch is submitted and fully drained, absorbing pipeline
   compilation and first-touch costs.
2. The start timestamp is taken only after that drain.
3. ``iterations`` dispatches are submitted back-to-back, each in a fresh
   command buffer, without waiting on any of them.
4. The queue is drained once, then the end timestamp is taken.

Waiting after each submission would measure host/GPU round trips instead of
sustained kernel throughput, so the measured loop never synchronizes.
"""

import enum
import logging
import threading
import time
from typing import Callable, Optional

from warpcore_bench.exceptions import (
    BenchmarkCancelledError,
    DeviceLostError,
    MeasurementResolutionError,
)
from warpcore_bench.models import BindingSet, DeviceCapabilities, RunTimings
from warpcore_bench.protocols import DeviceHandle, KernelPipeline

logger = logging.getLogger(__name__)


class DriverState(enum.Enum):
    """Execution driver states."""

    IDLE = "idle"
    WARMING_UP = "warming_up"
    MEASURING = "measuring"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ExecutionDriver:
    """Runs the warm-up pass and the measured passes of one benchmark.

    Args:
        device: Device whose queue receives the submissions
        pipeline: Kernel pipeline to dispatch
        bindings: Binding set bound for every dispatch
        workgroups: Workgroups per dispatch (one per row, i.e. dim)
        capabilities: Negotiated capabilities; enables GPU timestamps when supported
        clock: Host clock returning seconds
    """

    def __init__(
        self,
        device: DeviceHandle,
        pipeline: KernelPipeline,
        bindings: BindingSet,
        workgroups: int,
        capabilities: Optional[DeviceCapabilities] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if workgroups < 1:
            raise ValueError(f"workgroups must be positive, got {workgroups}")
        self.device = device
        self.pipeline = pipeline
        self.bindings = bindings
        self.workgroups = workgroups
        self.capabilities = capabilities or DeviceCapabilities()
        self.clock = clock
        self.state = DriverState.IDLE
        self.completed_iterations = 0
        self._in_flight = False

    def _transition(self, state: DriverState) -> None:
        logger.debug("Driver %s -> %s", self.state.value, state.value)
        self.state = state

    def _submit_pass(self) -> None:
        encoder = self.device.create_command_encoder()
        compute_pass = encoder.begin_compute_pass()
        self.pipeline.dispatch(compute_pass, self.bindings.handle, self.workgroups)
        compute_pass.end()
        self.device.queue.submit([encoder.finish()])
        self._in_flight = True

    def _drain(self) -> None:
        self.device.queue.on_submitted_work_done()
        self._in_flight = False

    def _abort(self) -> None:
        """Drain outstanding submissions after an unexpected error and mark the run failed."""
        if self._in_flight:
            try:
                self._drain()
            except DeviceLostError as exc:
                logger.warning("Device lost while draining after a failed run: %s", exc)
        self._transition(DriverState.FAILED)

    def _cancel(self) -> None:
        # In-flight work may still read the buffers the caller is about to release
        self._transition(DriverState.DRAINING)
        self._drain()
        self._transition(DriverState.CANCELLED)
        raise BenchmarkCancelledError(
            f"Benchmark cancelled after {self.completed_iterations} measured iterations",
            completed_iterations=self.completed_iterations,
        )

    def run(self, iterations: int, cancel_event: Optional[threading.Event] = None) -> RunTimings:
        """Run the warm-up pass and ``iterations`` measured passes.

        Args:
            iterations: Number of measured passes
            cancel_event: Optional event; when set, the run stops at the next
                iteration boundary after draining the queue

        Returns:
            RunTimings covering exactly the measured passes

        Raises:
            MeasurementResolutionError: If iterations is not positive
            DeviceLostError: If the device is lost during submission or drain
            BenchmarkCancelledError: If cancel_event is set during the run
            RuntimeError: If the driver has already run

        Any other error raised by the pipeline or backend propagates unchanged,
        after outstanding submissions have been drained.
        """
        if self.state is not DriverState.IDLE:
            raise RuntimeError(f"ExecutionDriver already used (state: {self.state.value})")
        if iterations < 1:
            raise MeasurementResolutionError(
                f"iterations must be positive, got {iterations}",
                iterations=iterations,
            )

        try:
            return self._run(iterations, cancel_event)
        except DeviceLostError as exc:
            if exc.state is None:
                exc.state = self.state.value
            if exc.iteration is None and self.state is DriverState.MEASURING:
                exc.iteration = self.completed_iterations
            self._transition(DriverState.FAILED)
            raise
        except BenchmarkCancelledError:
            raise
        except BaseException:
            self._abort()
            raise

    def _run(self, iterations: int, cancel_event: Optional[threading.Event]) -> RunTimings:
        def cancel_requested() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        if cancel_requested():
            self._cancel()

        self._transition(DriverState.WARMING_UP)
        self._submit_pass()
        self._drain()

        timer = None
        if self.capabilities.supports_timestamp_query:
            timer = self.device.create_timer()

        self._transition(DriverState.MEASURING)
        start = self.clock()
        if timer is not None:
            timer.mark_start()

        for i in range(iterations):
            if cancel_requested():
                self._cancel()
            self._submit_pass()
            self.completed_iterations = i + 1

        if timer is not None:
            timer.mark_end()

        self._transition(DriverState.DRAINING)
        self._drain()
        end = self.clock()
        self._transition(DriverState.DONE)

        elapsed_ms = (end - start) * 1000.0
        gpu_elapsed_ms = timer.elapsed_ms() if timer is not None else None
        logger.debug(
            "Measured %d iterations in %.3f ms (gpu: %s)",
            iterations,
            elapsed_ms,
            f"{gpu_elapsed_ms:.3f} ms" if gpu_elapsed_ms is not None else "n/a",
        )
        return RunTimings(
            elapsed_ms=elapsed_ms,
            iterations=iterations,
            gpu_elapsed_ms=gpu_elapsed_ms,
        )
