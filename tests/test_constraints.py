"""Tests for allocation config validation."""

from __future__ import annotations

import pytest

from cellwall.domain.constraints import MAX_EPSILON, AllocationConfig, validate_allocation_config


def valid_config(**overrides) -> AllocationConfig:
    """Return a valid baseline AllocationConfig, optionally overriding fields."""
    defaults = {
        "cell_price": 50,
        "epsilon": 1e-6,
    }
    defaults.update(overrides)
    return AllocationConfig(**defaults)


def test_valid_config_passes() -> None:
    validate_allocation_config(valid_config())


def test_cell_price_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(cell_price=0))


def test_cell_price_negative_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(cell_price=-50))


def test_epsilon_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(epsilon=0.0))


def test_epsilon_half_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(epsilon=0.5))


def test_cell_price_one_passes() -> None:
    """Smallest positive price is valid."""
    validate_allocation_config(valid_config(cell_price=1))


def test_epsilon_large_enough_to_round_pledges_raises() -> None:
    with pytest.raises(ValueError, match="epsilon"):
        validate_allocation_config(valid_config(epsilon=0.1))


def test_epsilon_at_upper_bound_raises() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(epsilon=MAX_EPSILON))


def test_epsilon_bound_holds_for_cheap_cells() -> None:
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(cell_price=1, epsilon=0.01))


def test_epsilon_bound_tightens_with_cell_price() -> None:
    """A price of 5000 makes 1e-4 units a real share."""
    with pytest.raises(ValueError):
        validate_allocation_config(valid_config(cell_price=5000, epsilon=5e-4))
    validate_allocation_config(valid_config(cell_price=5000, epsilon=1e-6))
