"""Ordered patron container with running aggregates."""

from __future__ import annotations

from typing import Iterable, Iterator

from cellwall.domain.models import CollectionSnapshot, Patron


class InvalidRecordError(Exception):
    """Raised when a patron record cannot join a collection."""


class PatronCollection:
    """Patrons in input order, plus count, pledged total and cell-unit total.

    Aggregates are computed into locals first and assigned together, so a
    rejected record leaves the collection untouched. Not thread-safe.
    """

    def __init__(self) -> None:
        self._patrons: list[Patron] = []
        self._ids: set[int] = set()
        self._total_pledged = 0
        self._total_cell_units = 0.0

    @classmethod
    def build(cls, records: Iterable[Patron]) -> PatronCollection:
        collection = cls()
        for record in records:
            collection.append(record)
        return collection

    def append(self, patron: Patron) -> None:
        if patron.pledge_amount < 0:
            raise InvalidRecordError(
                f"patron {patron.patron_id} has negative pledge amount {patron.pledge_amount}"
            )
        if patron.patron_id in self._ids:
            raise InvalidRecordError(f"duplicate patron id {patron.patron_id}")

        total_pledged = self._total_pledged + patron.pledge_amount
        total_cell_units = self._total_cell_units + patron.cell_units

        self._patrons.append(patron)
        self._ids.add(patron.patron_id)
        self._total_pledged = total_pledged
        self._total_cell_units = total_cell_units

    def snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            count=len(self._patrons),
            total_pledged=self._total_pledged,
            total_cell_units=self._total_cell_units,
        )

    @property
    def patrons(self) -> tuple[Patron, ...]:
        return tuple(self._patrons)

    def __len__(self) -> int:
        return len(self._patrons)

    def __iter__(self) -> Iterator[Patron]:
        return iter(self._patrons)
