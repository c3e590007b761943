"""Triton kernel pipelines."""

from warpcore_bench.kernels.int4_gemv_rmsnorm import (
    BINDING_LAYOUT,
    Int4GemvRMSNormPipeline,
    create_pipeline,
    int4_gemv_rmsnorm_kernel,
    int4_gemv_rmsnorm_reference,
    pack_int4,
    unpack_int4,
)

__all__ = [
    "BINDING_LAYOUT",
    "Int4GemvRMSNormPipeline",
    "create_pipeline",
    "int4_gemv_rmsnorm_kernel",
    "int4_gemv_rmsnorm_reference",
    "pack_int4",
    "unpack_int4",
]
