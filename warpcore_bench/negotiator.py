"""Capability negotiation with the GPU adapter."""

import logging
from typing import Callable, Optional, Tuple

from warpcore_bench.exceptions import NoAdapterError
from warpcore_bench.models import TIMESTAMP_QUERY, DeviceCapabilities
from warpcore_bench.protocols import DeviceHandle, GPUAdapter

logger = logging.getLogger(__name__)


class CapabilityNegotiator:
    """Obtains a device with the best timing support the adapter offers.

    Requesting a feature the adapter does not advertise fails the device
    request, so the feature query always gates the request.

    Args:
        request_adapter: Callable returning an adapter, or None if no GPU is available
        backend: Backend name used in error messages
    """

    def __init__(
        self,
        request_adapter: Callable[[], Optional[GPUAdapter]],
        backend: Optional[str] = None,
    ):
        self.request_adapter = request_adapter
        self.backend = backend

    def negotiate(self) -> Tuple[DeviceHandle, DeviceCapabilities]:
        """Request an adapter and a device.

        Returns:
            Tuple of (device, capabilities)

        Raises:
            NoAdapterError: If no adapter is available
        """
        adapter = self.request_adapter()
        if adapter is None:
            raise NoAdapterError("No GPU adapter available", backend=self.backend)

        supports_timestamps = TIMESTAMP_QUERY in set(adapter.features)
        required = [TIMESTAMP_QUERY] if supports_timestamps else []

        device = adapter.request_device(required_features=required)
        capabilities = DeviceCapabilities(
            supports_timestamp_query=supports_timestamps,
            enabled_features=frozenset(required),
        )

        logger.info(
            "Using adapter %s (timing: %s)",
            getattr(adapter, "name", "<unnamed>"),
            "gpu timestamps + wall clock" if supports_timestamps else "wall clock only",
        )
        return device, capabilities


def negotiate(
    request_adapter: Callable[[], Optional[GPUAdapter]],
) -> Tuple[DeviceHandle, DeviceCapabilities]:
    """Negotiate a device with the adapter returned by request_adapter.

    Args:
        request_adapter: Callable returning an adapter, or None

    Returns:
        Tuple of (device, capabilities)
    """
    return CapabilityNegotiator(request_adapter).negotiate()
