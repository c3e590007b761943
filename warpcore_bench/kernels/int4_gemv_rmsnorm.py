"""Fused INT4 GEMV + RMSNorm Triton kernel.

Computes, for every row r of a dim x dim 4-bit weight matrix W:

    out[r] = scale * sum_k(W[r, k] * x[k] * rsqrt(mean(x^2) + eps))

Weights are packed eight per 32-bit word, row-major, lowest nibble first,
stored with a +8 offset (nibble n encodes n - 8). The scalar parameter block
(u32 dim, f32 eps, f32 scale) is read from the bound params buffer.

Bindings (group 0):
- 0: input vector, float32[dim]
- 1: packed weights, int32[ceil(dim*dim/8)]
- 2: output vector, float32[dim]
- 3: params, 16 bytes
"""

from typing import Any, Tuple

import torch
import triton
import triton.language as tl

from warpcore_bench.models import (
    INT4_PER_WORD,
    PARAMS_BYTES,
    BindingLayout,
    SlotDeclaration,
)

BINDING_LAYOUT = BindingLayout(
    slots=(
        SlotDeclaration(0, "read-only-storage"),
        SlotDeclaration(1, "read-only-storage"),
        SlotDeclaration(2, "storage"),
        SlotDeclaration(3, "uniform"),
    ),
    handle="int4_gemv_rmsnorm.group0",
)


@triton.jit
def int4_gemv_rmsnorm_kernel(
    x_ptr,
    w_ptr,
    out_ptr,
    params_i32_ptr,
    params_f32_ptr,
    n_cols,
    BLOCK_K: tl.constexpr,
):
    """Fused INT4 GEMV + RMSNorm kernel.

    Each program instance produces one output row. The RMS of x is
    recomputed per row so rows need no cross-program communication.
    """
    row = tl.program_id(0)

    # Parameter block: dim @0, eps @4, scale @8
    dim = tl.load(params_i32_ptr)
    eps = tl.load(params_f32_ptr + 1)
    scale = tl.load(params_f32_ptr + 2)

    # Step 1: sum of squares of x
    sum_sq = tl.zeros([BLOCK_K], dtype=tl.float32)
    for k0 in range(0, n_cols, BLOCK_K):
        cols = k0 + tl.arange(0, BLOCK_K)
        mask = cols < dim
        x = tl.load(x_ptr + cols, mask=mask, other=0.0)
        sum_sq += x * x

    rrms = tl.rsqrt(tl.sum(sum_sq, axis=0) / dim.to(tl.float32) + eps)

    # Step 2: dot product of the normalized input with the unpacked row
    acc = tl.zeros([BLOCK_K], dtype=tl.float32)
    row_start = row.to(tl.int64) * n_cols
    for k0 in range(0, n_cols, BLOCK_K):
        cols = k0 + tl.arange(0, BLOCK_K)
        mask = cols < dim
        x = tl.load(x_ptr + cols, mask=mask, other=0.0)

        idx = row_start + cols
        word = tl.load(w_ptr + idx // 8, mask=mask, other=0)
        nibble = (word >> ((idx % 8) * 4)) & 0xF
        w = nibble.to(tl.float32) - 8.0

        acc += x * rrms * w

    tl.store(out_ptr + row, tl.sum(acc, axis=0) * scale)


def _check_bind_group(bind_group: Any) -> int:
    """Validate bound buffer sizes and return the column count."""
    input_bytes = bind_group.buffer(0).size
    if input_bytes % 4:
        raise ValueError(f"Input buffer size {input_bytes} is not a multiple of 4")
    n_cols = input_bytes // 4

    needed_weight = -(-(n_cols * n_cols) // INT4_PER_WORD) * 4
    if bind_group.buffer(1).size < needed_weight:
        raise ValueError(
            f"Weight buffer holds {bind_group.buffer(1).size} bytes, need {needed_weight}"
        )
    if bind_group.buffer(2).size != input_bytes:
        raise ValueError(
            f"Output buffer size {bind_group.buffer(2).size} does not match input size {input_bytes}"
        )
    if bind_group.buffer(3).size < PARAMS_BYTES:
        raise ValueError(f"Params buffer must hold at least {PARAMS_BYTES} bytes")
    return n_cols


class Int4GemvRMSNormPipeline:
    """Dispatchable pipeline for the fused INT4 GEMV + RMSNorm kernel.

    Triton compiles the kernel on its first launch, which is why the
    harness always runs a drained warm-up pass before timing.

    Args:
        device: Device the pipeline dispatches on
        block_k: Columns processed per inner-loop step (power of two)
    """

    def __init__(self, device: Any, block_k: int = 256):
        if block_k <= 0 or block_k & (block_k - 1):
            raise ValueError(f"block_k must be a positive power of two, got {block_k}")
        self.device = device
        self.block_k = block_k

    def get_binding_layout(self) -> BindingLayout:
        return BINDING_LAYOUT

    def dispatch(self, compute_pass: Any, bind_group: Any, workgroups: int) -> None:
        _check_bind_group(bind_group)
        compute_pass.set_pipeline(self)
        compute_pass.set_bind_group(0, bind_group)
        compute_pass.dispatch_workgroups(workgroups)

    def launch(self, bind_group: Any, grid: Tuple[int, int, int]) -> None:
        """Launch the kernel asynchronously on the current stream."""
        x = bind_group.buffer(0).view(torch.float32)
        w = bind_group.buffer(1).view(torch.int32)
        out = bind_group.buffer(2).view(torch.float32)
        params = bind_group.buffer(3)

        int4_gemv_rmsnorm_kernel[grid](
            x,
            w,
            out,
            params.view(torch.int32),
            params.view(torch.float32),
            x.numel(),
            BLOCK_K=self.block_k,
        )


def create_pipeline(device: Any, block_k: int = 256) -> Int4GemvRMSNormPipeline:
    """Create the fused INT4 GEMV + RMSNorm pipeline for a device.

    Args:
        device: Device the pipeline dispatches on
        block_k: Columns processed per inner-loop step

    Returns:
        Int4GemvRMSNormPipeline
    """
    return Int4GemvRMSNormPipeline(device, block_k=block_k)


def pack_int4(values: torch.Tensor) -> torch.Tensor:
    """Pack signed 4-bit values into int32 words, eight per word.

    Args:
        values: Integer tensor with values in [-8, 7]; flattened row-major

    Returns:
        int32 tensor of ceil(numel / 8) words
    """
    flat = values.flatten().to(torch.int64)
    if flat.numel() and (flat.min() < -8 or flat.max() > 7):
        raise ValueError("INT4 values must lie in [-8, 7]")

    pad = (-flat.numel()) % INT4_PER_WORD
    nibbles = torch.nn.functional.pad(flat + 8, (0, pad)).view(-1, INT4_PER_WORD)
    shifts = torch.arange(INT4_PER_WORD, device=values.device, dtype=torch.int64) * 4
    words = (nibbles << shifts).sum(dim=1)
    # Reinterpret as two's-complement int32
    words = torch.where(words >= 2**31, words - 2**32, words)
    return words.to(torch.int32)


def unpack_int4(words: torch.Tensor, numel: int) -> torch.Tensor:
    """Unpack int32 words produced by pack_int4 into signed 4-bit values."""
    shifts = torch.arange(INT4_PER_WORD, device=words.device, dtype=torch.int64) * 4
    nibbles = (words.to(torch.int64).unsqueeze(-1) >> shifts) & 0xF
    return nibbles.flatten()[:numel] - 8


def int4_gemv_rmsnorm_reference(
    x: torch.Tensor,
    packed_weight: torch.Tensor,
    eps: float = 1e-5,
    scale: float = 1.0,
) -> torch.Tensor:
    """Reference implementation of the fused kernel for testing.

    Args:
        x: Input vector [dim]
        packed_weight: Packed INT4 weights from pack_int4
        eps: Normalization epsilon
        scale: Output scale

    Returns:
        Output vector [dim] in float32
    """
    dim = x.numel()
    weight = unpack_int4(packed_weight, dim * dim).view(dim, dim).float()
    x = x.float()
    x_norm = x * torch.rsqrt(torch.mean(x * x) + eps)
    return (weight @ x_norm) * scale
