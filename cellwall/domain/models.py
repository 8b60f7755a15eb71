"""Domain models for pledges and cell ownership."""

from __future__ import annotations

import math
from dataclasses import dataclass


DEFAULT_CELL_PRICE = 50


@dataclass(frozen=True)
class Patron:
    """One pledge row from the supporters export."""

    patron_id: int
    pledge_amount: int
    cell_price: int = DEFAULT_CELL_PRICE
    first_name: str = ""
    last_name: str = ""
    anonymous: bool = False

    @property
    def cell_units(self) -> float:
        return self.pledge_amount / self.cell_price

    @property
    def display_name(self) -> str:
        if self.anonymous:
            return "Anonymous"
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@dataclass(frozen=True)
class CollectionSnapshot:
    count: int
    total_pledged: int
    total_cell_units: float


@dataclass(frozen=True)
class Cell:
    """A single adopted cell and the patron shares that paid for it."""

    cell_id: int
    contributions: tuple[tuple[int, float], ...]

    @property
    def adopter_ids(self) -> tuple[int, ...]:
        return tuple(patron_id for patron_id, _ in self.contributions)

    @property
    def funded_units(self) -> float:
        return math.fsum(units for _, units in self.contributions)

    @property
    def is_joint(self) -> bool:
        return len(self.contributions) > 1


@dataclass(frozen=True)
class CellAllocationResult:
    cells: tuple[Cell, ...]
    remaining_credit: float
    pending_patrons: tuple[Patron, ...]

    @property
    def pending_patron_ids(self) -> tuple[int, ...]:
        return tuple(patron.patron_id for patron in self.pending_patrons)

    @property
    def joint_cell_count(self) -> int:
        return sum(1 for cell in self.cells if cell.is_joint)
