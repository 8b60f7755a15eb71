"""Repository layer for the published allocation artifact."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from cellwall.domain.collection import PatronCollection
from cellwall.domain.models import CellAllocationResult, Patron
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)


class ExportError(Exception):
    """Raised when the allocation artifact cannot be written or read."""


class AdoptedCellPayload(BaseModel):
    id: int = Field(ge=1)
    adoptee_ids: list[int] = Field(min_length=1)


class PatronPayload(BaseModel):
    id: int
    name: str
    first_name: str = ""
    last_name: str = ""
    anonymous: bool = False
    pledge_amount: int = Field(ge=0)
    cell_units: float = Field(ge=0.0)


class PatronListPayload(BaseModel):
    patrons: list[PatronPayload]
    length: int = Field(ge=0)
    total_raised: int = Field(ge=0)
    total_cells: float = Field(ge=0.0)


class AllocationPayload(BaseModel):
    """Persisted document read by the wall viewer."""

    adopted_cells: list[AdoptedCellPayload]
    credit: float = Field(ge=0.0, lt=1.0)
    remaining_patrons: list[PatronPayload]
    patron_list: PatronListPayload
    generated_at: str


def patron_payload(patron: Patron) -> PatronPayload:
    # Anonymous supporters never have their names written out.
    return PatronPayload(
        id=patron.patron_id,
        name=patron.display_name,
        first_name="" if patron.anonymous else patron.first_name,
        last_name="" if patron.anonymous else patron.last_name,
        anonymous=patron.anonymous,
        pledge_amount=patron.pledge_amount,
        cell_units=patron.cell_units,
    )


def build_payload(
    result: CellAllocationResult,
    collection: PatronCollection,
    previous: Optional[AllocationPayload] = None,
) -> AllocationPayload:
    """Render a result, appending it after ``previous`` when one is given.

    Appended cells are renumbered after the highest previously published
    cell id, and the audit list keeps earlier patrons ahead of new ones.
    """
    cell_offset = 0
    adopted_cells: list[AdoptedCellPayload] = []
    audit_patrons: list[PatronPayload] = []
    if previous is not None:
        adopted_cells.extend(previous.adopted_cells)
        audit_patrons.extend(previous.patron_list.patrons)
        cell_offset = max((cell.id for cell in previous.adopted_cells), default=0)

    adopted_cells.extend(
        AdoptedCellPayload(id=cell.cell_id + cell_offset, adoptee_ids=list(cell.adopter_ids))
        for cell in result.cells
    )

    known_ids = {patron.id for patron in audit_patrons}
    audit_patrons.extend(
        patron_payload(patron) for patron in collection if patron.patron_id not in known_ids
    )

    return AllocationPayload(
        adopted_cells=adopted_cells,
        credit=result.remaining_credit,
        remaining_patrons=[patron_payload(patron) for patron in result.pending_patrons],
        patron_list=PatronListPayload(
            patrons=audit_patrons,
            length=len(audit_patrons),
            total_raised=sum(patron.pledge_amount for patron in audit_patrons),
            total_cells=sum(patron.cell_units for patron in audit_patrons),
        ),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


class ResultRepository:
    """Reads and atomically replaces the published JSON document."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._path = Path(self._settings.result_path)

    @property
    def result_path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def write_payload(self, payload: AllocationPayload) -> Path:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload.model_dump_json(indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise ExportError(f"cannot write allocation result to {self._path}: {exc}") from exc
        logger.info(
            "Allocation result published | path=%s | cells=%s | credit=%.6f",
            self._path,
            len(payload.adopted_cells),
            payload.credit,
        )
        return self._path

    def publish(
        self,
        result: CellAllocationResult,
        collection: PatronCollection,
        previous: Optional[AllocationPayload] = None,
    ) -> AllocationPayload:
        payload = build_payload(result, collection, previous)
        self.write_payload(payload)
        return payload

    def read_raw(self) -> bytes:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise ExportError(f"cannot read allocation result {self._path}: {exc}") from exc

    def load_payload(self) -> AllocationPayload | None:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ExportError(f"cannot read allocation result {self._path}: {exc}") from exc
        try:
            return AllocationPayload.model_validate_json(raw)
        except ValidationError as exc:
            raise ExportError(f"allocation result {self._path} is invalid: {exc}") from exc

    def load_pending_patrons(self, payload: AllocationPayload) -> list[Patron]:
        return [
            Patron(
                patron_id=item.id,
                pledge_amount=item.pledge_amount,
                cell_price=self._settings.cell_price,
                first_name=item.first_name,
                last_name=item.last_name,
                anonymous=item.anonymous,
            )
            for item in payload.remaining_patrons
        ]
