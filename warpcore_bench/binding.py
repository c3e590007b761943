"""Binding set construction against a kernel pipeline's declared layout."""

from collections import Counter
from typing import Tuple

from warpcore_bench.exceptions import LayoutMismatchError
from warpcore_bench.models import BindingEntry, BindingLayout, BindingSet, BufferSet
from warpcore_bench.protocols import DeviceHandle

# The GPU API only checks arity and size, not meaning, so this order is the contract
EXPECTED_SLOTS: Tuple[Tuple[int, str], ...] = (
    (0, "input"),
    (1, "weight"),
    (2, "output"),
    (3, "params"),
)


def validate_layout(layout: BindingLayout) -> None:
    """Check that a layout declares exactly the four expected slots.

    Args:
        layout: Layout declared by the kernel pipeline

    Raises:
        LayoutMismatchError: If the declared binding indices are not exactly 0..3
    """
    expected = tuple(binding for binding, _ in EXPECTED_SLOTS)
    actual = layout.bindings
    duplicates = [binding for binding, count in Counter(actual).items() if count > 1]
    if duplicates or sorted(actual) != list(expected):
        raise LayoutMismatchError(
            f"Kernel declares binding slots {actual}, harness binds {expected}",
            expected_slots=expected,
            actual_slots=actual,
        )


def build_bindings(device: DeviceHandle, layout: BindingLayout, buffers: BufferSet) -> BindingSet:
    """Build the binding set associating each buffer with its slot.

    Args:
        device: Device that creates the backend bind group
        layout: Layout declared by the kernel pipeline
        buffers: Buffers to bind

    Returns:
        BindingSet with entries ordered 0=input, 1=weight, 2=output, 3=params

    Raises:
        LayoutMismatchError: If the layout does not declare exactly four slots 0..3
    """
    validate_layout(layout)

    entries = tuple(
        BindingEntry(binding=binding, name=name, buffer=getattr(buffers, name))
        for binding, name in EXPECTED_SLOTS
    )
    handle = device.create_bind_group(layout.handle, entries)
    return BindingSet(entries=entries, handle=handle)
