"""Cell allocation engine: whole-cell extraction and fractional pooling."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

from cellwall.domain.collection import PatronCollection
from cellwall.domain.constraints import AllocationConfig, validate_allocation_config
from cellwall.domain.models import Cell, CellAllocationResult, Patron
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)


class NumericDriftError(Exception):
    """Raised when allocated cells plus remaining credit stop matching pledged units."""


class _AllocationRun:
    """Mutable state for one engine invocation."""

    def __init__(self, cell_price: int, epsilon: float) -> None:
        self.cell_price = cell_price
        self.epsilon = epsilon
        self.cells: list[Cell] = []
        self.credit_pool = 0.0
        # patron_id -> residual fraction, in first-pending order
        self.pending: dict[int, float] = {}
        self.patron_by_id: dict[int, Patron] = {}

    def _next_cell_id(self) -> int:
        return len(self.cells) + 1

    def add_patron(self, patron: Patron) -> None:
        if patron.cell_price != self.cell_price:
            raise ValueError(
                f"patron {patron.patron_id} is priced at {patron.cell_price}, "
                f"expected {self.cell_price}"
            )
        units = patron.cell_units
        if units < 0.0:
            raise ValueError(f"patron {patron.patron_id} has negative cell units")

        whole = math.floor(units + self.epsilon)
        for _ in range(whole):
            self.cells.append(
                Cell(cell_id=self._next_cell_id(), contributions=((patron.patron_id, 1.0),))
            )

        fraction = units - whole
        if fraction <= self.epsilon:
            return

        self.patron_by_id[patron.patron_id] = patron
        self.pending[patron.patron_id] = fraction
        self.credit_pool += fraction
        while self.credit_pool >= 1.0 - self.epsilon and self.pending:
            self._group_pending()

    def _group_pending(self) -> None:
        """Fill one cell from the largest pending shares, carrying any overflow."""
        ranked = sorted(self.pending.items(), key=lambda item: (-item[1], item[0]))
        group: list[tuple[int, float]] = []
        group_total = 0.0
        for patron_id, share in ranked:
            group.append((patron_id, share))
            group_total = math.fsum(amount for _, amount in group)
            if group_total >= 1.0 - self.epsilon:
                break
        else:
            raise NumericDriftError(
                f"credit pool {self.credit_pool:.9f} exceeds pending shares {group_total:.9f}"
            )

        overflow = group_total - 1.0
        settled = group
        if overflow > self.epsilon:
            carrier_id, carrier_share = group[-1]
            group[-1] = (carrier_id, carrier_share - overflow)
            self.pending[carrier_id] = overflow
            settled = group[:-1]
        for patron_id, _ in settled:
            del self.pending[patron_id]

        self.cells.append(Cell(cell_id=self._next_cell_id(), contributions=tuple(group)))
        self.credit_pool = max(self.credit_pool - 1.0, 0.0)

    def finish(self) -> CellAllocationResult:
        pending_patrons = tuple(
            _residual_patron(self.patron_by_id[patron_id], residual)
            for patron_id, residual in self.pending.items()
        )
        remaining_credit = self.credit_pool if self.credit_pool > self.epsilon else 0.0
        return CellAllocationResult(
            cells=tuple(self.cells),
            remaining_credit=remaining_credit,
            pending_patrons=pending_patrons,
        )


def _residual_patron(patron: Patron, residual: float) -> Patron:
    return replace(patron, pledge_amount=int(round(residual * patron.cell_price)))


def allocate_cells(
    collection: PatronCollection,
    config: AllocationConfig,
) -> CellAllocationResult:
    """Partition a collection into whole cells, joint cells and pending credit.

    Patrons are processed in collection order. Each patron first receives
    ``floor(cell_units)`` cells of their own. The fractional remainder joins
    a credit pool; whenever the pool reaches one unit the largest pending
    shares (ties by lower patron id) are grouped into a joint cell. The
    patron whose share pushed the group past one keeps the excess pending.
    """
    validate_allocation_config(config)
    run = _AllocationRun(cell_price=config.cell_price, epsilon=config.epsilon)
    for patron in collection:
        run.add_patron(patron)
    return run.finish()


def verify_conservation(
    collection: PatronCollection,
    result: CellAllocationResult,
    epsilon: float,
) -> None:
    pledged_units = math.fsum(patron.cell_units for patron in collection)
    allocated_units = len(result.cells) + result.remaining_credit
    if abs(pledged_units - allocated_units) > epsilon:
        raise NumericDriftError(
            f"pledged units {pledged_units:.9f} != cells {len(result.cells)} "
            f"+ remaining credit {result.remaining_credit:.9f}"
        )


def carry_over_patrons(result: CellAllocationResult) -> list[Patron]:
    """Pending patrons of a previous run, ready to prepend to the next batch."""
    return [patron for patron in result.pending_patrons if patron.pledge_amount > 0]


class CellAllocationService:
    """Runs the engine with configured tolerances and checks conservation."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    @property
    def config(self) -> AllocationConfig:
        return AllocationConfig(
            cell_price=self._settings.cell_price,
            epsilon=self._settings.allocation_epsilon,
        )

    def allocate(
        self,
        collection: PatronCollection,
        carry_over: Optional[list[Patron]] = None,
    ) -> CellAllocationResult:
        if carry_over:
            collection = PatronCollection.build([*carry_over, *collection])

        config = self.config
        result = allocate_cells(collection, config)
        verify_conservation(collection, result, config.epsilon)

        snapshot = collection.snapshot()
        logger.info(
            (
                "Cell allocation completed | patrons=%s | total_pledged=%s | cells=%s | "
                "joint_cells=%s | remaining_credit=%.6f | pending=%s"
            ),
            snapshot.count,
            snapshot.total_pledged,
            len(result.cells),
            result.joint_cell_count,
            result.remaining_credit,
            len(result.pending_patrons),
        )
        return result
