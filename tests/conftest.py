"""Pytest configuration and fixtures for the benchmark harness tests."""

import pytest
import torch
from hypothesis import Verbosity, settings

from fakes import FakeAdapter
from warpcore_bench.models import TIMESTAMP_QUERY

# Configure hypothesis for property-based testing
settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("dev", max_examples=20, deadline=None)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose, deadline=None)
settings.load_profile("dev")


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--gpu",
        action="store_true",
        default=False,
        help="Run GPU tests (requires CUDA)",
    )
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests based on markers and options."""
    if not config.getoption("--gpu"):
        skip_gpu = pytest.mark.skip(reason="need --gpu option to run")
        for item in items:
            if "gpu" in item.keywords:
                item.add_marker(skip_gpu)

    if not config.getoption("--slow"):
        skip_slow = pytest.mark.skip(reason="need --slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def cuda_device():
    """Return CUDA device, skip if not available."""
    if not torch.cuda.is_available():
        pytest.skip("CUDA not available")
    return torch.device("cuda")


@pytest.fixture
def event_log():
    """Shared, ordered log of fake GPU and clock events."""
    return []


@pytest.fixture
def timestamp_adapter(event_log):
    """Fake adapter advertising timestamp-query."""
    return FakeAdapter(features=[TIMESTAMP_QUERY], log=event_log)


@pytest.fixture
def plain_adapter(event_log):
    """Fake adapter without optional features."""
    return FakeAdapter(log=event_log)


@pytest.fixture
def fake_device(plain_adapter):
    """Fake device without timestamp queries."""
    return plain_adapter.request_device()

