"""Unit tests for the binding builder."""

import pytest

from fakes import FakePipeline
from warpcore_bench.allocator import ResourceAllocator
from warpcore_bench.binding import EXPECTED_SLOTS, build_bindings, validate_layout
from warpcore_bench.exceptions import LayoutMismatchError
from warpcore_bench.models import ProblemSize


@pytest.fixture
def buffers(fake_device):
    return ResourceAllocator(fake_device).allocate(ProblemSize(16))


class TestBuildBindings:
    def test_slots_map_to_buffers_in_order(self, fake_device, buffers):
        layout = FakePipeline().get_binding_layout()

        bindings = build_bindings(fake_device, layout, buffers)

        assert [(e.binding, e.name) for e in bindings.entries] == list(EXPECTED_SLOTS)
        assert bindings.buffer_for(0) is buffers.input
        assert bindings.buffer_for(1) is buffers.weight
        assert bindings.buffer_for(2) is buffers.output
        assert bindings.buffer_for(3) is buffers.params

    def test_layout_handle_reaches_device(self, fake_device, buffers):
        layout = FakePipeline().get_binding_layout()

        bindings = build_bindings(fake_device, layout, buffers)

        kind, layout_handle, entries = bindings.handle
        assert kind == "bind_group"
        assert layout_handle == "fake-layout"
        assert [binding for binding, _ in entries] == [0, 1, 2, 3]

    def test_deterministic(self, fake_device, buffers):
        layout = FakePipeline().get_binding_layout()

        first = build_bindings(fake_device, layout, buffers)
        second = build_bindings(fake_device, layout, buffers)

        assert first.entries == second.entries
        assert first.handle == second.handle

    def test_declaration_order_does_not_matter(self, fake_device, buffers):
        layout = FakePipeline(slots=(3, 1, 0, 2)).get_binding_layout()

        bindings = build_bindings(fake_device, layout, buffers)

        assert bindings.buffer_for(2) is buffers.output

    def test_unknown_binding_raises_key_error(self, fake_device, buffers):
        bindings = build_bindings(fake_device, FakePipeline().get_binding_layout(), buffers)
        with pytest.raises(KeyError):
            bindings.buffer_for(4)


class TestLayoutMismatch:
    def test_three_slots(self, fake_device, buffers):
        layout = FakePipeline(slots=(0, 1, 2)).get_binding_layout()

        with pytest.raises(LayoutMismatchError) as exc_info:
            build_bindings(fake_device, layout, buffers)

        assert exc_info.value.expected_slots == (0, 1, 2, 3)
        assert exc_info.value.actual_slots == (0, 1, 2)

    @pytest.mark.parametrize(
        "slots",
        [
            (0, 1, 2, 3, 4),
            (0, 1, 2, 4),
            (0, 1, 1, 3),
            (1, 2, 3, 4),
            (),
        ],
    )
    def test_wrong_slot_sets(self, slots):
        with pytest.raises(LayoutMismatchError):
            validate_layout(FakePipeline(slots=slots).get_binding_layout())

    def test_no_bind_group_created_on_mismatch(self, fake_device, buffers, monkeypatch):
        calls = []
        monkeypatch.setattr(fake_device, "create_bind_group", lambda *a: calls.append(a))

        with pytest.raises(LayoutMismatchError):
            build_bindings(fake_device, FakePipeline(slots=(0, 1, 2)).get_binding_layout(), buffers)

        assert calls == []
