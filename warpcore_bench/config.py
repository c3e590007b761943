"""Benchmark configuration."""

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

from warpcore_bench.models import ProblemSize


@dataclass(frozen=True)
class BenchmarkConfig:
    """Configuration for one benchmark run.

    Attributes:
        dim: Problem dimension (vector length, weight matrix is dim x dim)
        iterations: Number of measured passes after the warm-up pass
        epsilon: Normalization constant uploaded to the parameter block
        scale: Output scale uploaded to the parameter block
    """

    dim: int = 4096
    iterations: int = 100
    epsilon: float = 1e-5
    scale: float = 1.0

    def __post_init__(self):
        # Raises ValueError for a bad dim
        ProblemSize(self.dim)
        if isinstance(self.iterations, bool) or not isinstance(self.iterations, int):
            raise ValueError(f"iterations must be an integer, got {self.iterations!r}")
        if self.iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {self.iterations}")
        if not math.isfinite(self.epsilon) or self.epsilon <= 0:
            raise ValueError(f"epsilon must be a positive finite number, got {self.epsilon}")
        if not math.isfinite(self.scale):
            raise ValueError(f"scale must be finite, got {self.scale}")

    @property
    def problem_size(self) -> ProblemSize:
        return ProblemSize(self.dim)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkConfig":
        """Create a configuration from a plain dictionary.

        Args:
            data: Mapping of field names to values; missing fields use defaults

        Returns:
            BenchmarkConfig instance

        Raises:
            ValueError: If a key is unknown or a value is invalid
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)


DEFAULT_CONFIG = BenchmarkConfig()
