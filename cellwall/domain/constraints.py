"""Domain-level validation rules for cell allocation."""

from __future__ import annotations

from dataclasses import dataclass


MAX_EPSILON = 1e-3


@dataclass(frozen=True)
class AllocationConfig:
    cell_price: int
    epsilon: float


def validate_allocation_config(config: AllocationConfig) -> None:
    """Reject configs whose epsilon could swallow a real pledge share.

    Integer pledges make every share a multiple of ``1 / cell_price``, so
    epsilon must stay below half of that step to only absorb float noise.
    """
    if config.cell_price <= 0:
        raise ValueError("cell_price must be > 0")
    upper = min(MAX_EPSILON, 0.5 / config.cell_price)
    if not 0.0 < config.epsilon < upper:
        raise ValueError(f"epsilon must be in (0, {upper:g}) for cell_price {config.cell_price}")
