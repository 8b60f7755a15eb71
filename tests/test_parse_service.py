from __future__ import annotations

import csv
import io
import json
from dataclasses import replace

import pytest

from cellwall.services.parse_service import ParseError, parse_patrons, read_rows
from cellwall.utils.config import get_settings


def _settings(**overrides):
    base = replace(
        get_settings(),
        cell_price=50,
        export_has_header=True,
        export_delimiter=",",
        anonymous_column=2,
        first_name_column=5,
        last_name_column=7,
        pledge_column=30,
    )
    return replace(base, **overrides)


def _row(anonymous: str, first: str, last: str, pledge: str) -> list[str]:
    row = [""] * 31
    row[0] = "2024-05-01"
    row[2] = anonymous
    row[5] = first
    row[7] = last
    row[30] = pledge
    return row


def _var_data(rows: list[list[str]]) -> str:
    return "var data = " + json.dumps(rows) + ";"


def _csv(rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([f"col_{index}" for index in range(31)])
    writer.writerows(rows)
    return buffer.getvalue()


def test_embedded_var_data_rows_are_parsed():
    text = _var_data(
        [
            _row("No", "Ada", "Lovelace", "$1,250.00"),
            _row("Yes", "Alan", "Turing", "20"),
        ]
    )

    patrons = parse_patrons(text, settings=_settings())

    assert [patron.patron_id for patron in patrons] == [1, 2]
    assert patrons[0].pledge_amount == 1250
    assert patrons[0].cell_units == 25.0
    assert patrons[0].display_name == "Ada Lovelace"
    assert patrons[1].anonymous is True
    assert patrons[1].display_name == "Anonymous"


def test_delimited_export_is_parsed_with_header():
    text = _csv(
        [
            _row("", "Grace", "Hopper", "150"),
            _row("1", "Edsger", "Dijkstra", "30"),
        ]
    )

    patrons = parse_patrons(text, settings=_settings())

    assert [(patron.patron_id, patron.pledge_amount) for patron in patrons] == [(1, 150), (2, 30)]
    assert patrons[0].anonymous is False
    assert patrons[1].anonymous is True


def test_custom_column_layout_without_header():
    text = "yes\tMary\tSomerville\t75\nno\tEmmy\tNoether\t25\n"
    settings = _settings(
        export_has_header=False,
        export_delimiter="\t",
        anonymous_column=0,
        first_name_column=1,
        last_name_column=2,
        pledge_column=3,
    )

    patrons = parse_patrons(text, settings=settings)

    assert [patron.pledge_amount for patron in patrons] == [75, 25]
    assert patrons[0].anonymous is True
    assert patrons[1].display_name == "Emmy Noether"


def test_ids_start_at_requested_offset():
    text = _var_data([_row("", "A", "B", "10"), _row("", "C", "D", "20")])

    patrons = parse_patrons(text, settings=_settings(), first_id=41)

    assert [patron.patron_id for patron in patrons] == [41, 42]


def test_blank_rows_are_skipped_without_consuming_ids():
    text = _var_data([_row("", "A", "B", "10"), [""] * 31, _row("", "C", "D", "20")])

    patrons = parse_patrons(text, settings=_settings())

    assert [patron.patron_id for patron in patrons] == [1, 2]


def test_fractional_pledges_round_half_up():
    text = _var_data([_row("", "A", "B", "25.50"), _row("", "C", "D", "25.49")])

    patrons = parse_patrons(text, settings=_settings())

    assert [patron.pledge_amount for patron in patrons] == [26, 25]


def test_negative_pledge_is_passed_through_for_collection_to_reject():
    patrons = parse_patrons(_var_data([_row("", "A", "B", "-5")]), settings=_settings())

    assert patrons[0].pledge_amount == -5


def test_empty_text_yields_no_rows():
    assert read_rows("   \n", settings=_settings()) == []
    assert parse_patrons("", settings=_settings()) == []


def test_short_row_raises_parse_error():
    with pytest.raises(ParseError, match="row 1"):
        parse_patrons(_var_data([["only", "three", "cells"]]), settings=_settings())


def test_unparseable_pledge_raises_parse_error():
    with pytest.raises(ParseError, match="row 2"):
        parse_patrons(
            _var_data([_row("", "A", "B", "10"), _row("", "C", "D", "ten dollars")]),
            settings=_settings(),
        )


def test_empty_pledge_raises_parse_error():
    with pytest.raises(ParseError):
        parse_patrons(_var_data([_row("", "A", "B", "")]), settings=_settings())


def test_invalid_embedded_json_raises_parse_error():
    with pytest.raises(ParseError):
        parse_patrons("var data = [[1, 2,;", settings=_settings())


def test_embedded_data_must_be_rows():
    with pytest.raises(ParseError):
        parse_patrons('var data = {"rows": []};', settings=_settings())
