"""GPU backends implementing the harness device interfaces."""

from warpcore_bench.backends.torch_cuda import (
    TorchAdapter,
    TorchBuffer,
    TorchDevice,
    request_adapter,
)

__all__ = [
    "TorchAdapter",
    "TorchBuffer",
    "TorchDevice",
    "request_adapter",
]
