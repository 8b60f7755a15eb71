"""Turns a raw supporters export into patron records."""

from __future__ import annotations

import io
import json
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

from cellwall.domain.models import Patron
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)

VAR_DATA_MARKER = "var data"
_TRUTHY = {"1", "true", "yes", "y", "x"}


class ParseError(Exception):
    """Raised when the export text cannot be read as patron rows."""


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return ""
    return str(value).strip()


def _parse_pledge(raw: str, row_number: int) -> int:
    cleaned = raw.replace("$", "").replace(",", "").replace(" ", "")
    if not cleaned:
        raise ParseError(f"row {row_number}: pledge amount is empty")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ParseError(f"row {row_number}: pledge amount {raw!r} is not a number") from exc
    if not amount.is_finite():
        raise ParseError(f"row {row_number}: pledge amount {raw!r} is not a number")
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rows_from_var_data(text: str) -> list[list[Any]]:
    _, _, payload = text.partition("=")
    payload = payload.strip().rstrip(";").strip()
    try:
        rows = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"embedded data array is not valid JSON: {exc.msg}") from exc
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        raise ParseError("embedded data must be an array of row arrays")
    return rows


def _rows_from_delimited(text: str, settings: Settings) -> list[list[Any]]:
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=settings.export_delimiter,
            header=0 if settings.export_has_header else None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as exc:
        raise ParseError(f"delimited export is malformed: {exc}") from exc
    return frame.values.tolist()


def read_rows(text: str, settings: Optional[Settings] = None) -> list[list[Any]]:
    settings = settings or get_settings()
    stripped = text.strip()
    if not stripped:
        return []
    if stripped.startswith(VAR_DATA_MARKER):
        return _rows_from_var_data(stripped)
    return _rows_from_delimited(text, settings)


def parse_patrons(
    text: str,
    settings: Optional[Settings] = None,
    first_id: int = 1,
) -> list[Patron]:
    """Parse export text into patrons with ids assigned in row order."""
    settings = settings or get_settings()
    rows = read_rows(text, settings)
    required_width = 1 + max(
        settings.anonymous_column,
        settings.first_name_column,
        settings.last_name_column,
        settings.pledge_column,
    )

    patrons: list[Patron] = []
    skipped = 0
    for row_number, row in enumerate(rows, start=1):
        cells = [_cell_text(value) for value in row]
        if not any(cells):
            skipped += 1
            continue
        if len(cells) < required_width:
            raise ParseError(
                f"row {row_number}: expected at least {required_width} columns, got {len(cells)}"
            )
        patrons.append(
            Patron(
                patron_id=first_id + len(patrons),
                pledge_amount=_parse_pledge(cells[settings.pledge_column], row_number),
                cell_price=settings.cell_price,
                first_name=cells[settings.first_name_column],
                last_name=cells[settings.last_name_column],
                anonymous=cells[settings.anonymous_column].lower() in _TRUTHY,
            )
        )

    logger.info("Export parsed | rows=%s | patrons=%s | blank_rows=%s", len(rows), len(patrons), skipped)
    return patrons
