from __future__ import annotations

import pytest

from cellwall.domain.collection import InvalidRecordError, PatronCollection
from cellwall.domain.models import Patron


def test_build_tracks_aggregates_in_input_order():
    collection = PatronCollection.build(
        [
            Patron(patron_id=3, pledge_amount=150),
            Patron(patron_id=1, pledge_amount=20),
            Patron(patron_id=2, pledge_amount=0),
        ]
    )

    snapshot = collection.snapshot()
    assert [patron.patron_id for patron in collection] == [3, 1, 2]
    assert snapshot.count == 3
    assert snapshot.total_pledged == 170
    assert snapshot.total_cell_units == pytest.approx(3.4)


def test_append_updates_snapshot():
    collection = PatronCollection()
    assert collection.snapshot().count == 0

    collection.append(Patron(patron_id=1, pledge_amount=25))

    snapshot = collection.snapshot()
    assert snapshot.count == 1
    assert snapshot.total_pledged == 25
    assert snapshot.total_cell_units == pytest.approx(0.5)


def test_negative_pledge_rejected_without_touching_aggregates():
    collection = PatronCollection.build([Patron(patron_id=1, pledge_amount=50)])
    before = collection.snapshot()

    with pytest.raises(InvalidRecordError):
        collection.append(Patron(patron_id=2, pledge_amount=-10))

    assert collection.snapshot() == before
    assert len(collection) == 1


def test_duplicate_patron_id_rejected():
    with pytest.raises(InvalidRecordError):
        PatronCollection.build(
            [
                Patron(patron_id=7, pledge_amount=10),
                Patron(patron_id=7, pledge_amount=40),
            ]
        )


def test_patron_cell_units_follow_price_and_display_name():
    patron = Patron(patron_id=1, pledge_amount=75, cell_price=25, first_name="Ada", last_name="Byron")
    hidden = Patron(patron_id=2, pledge_amount=75, first_name="Ada", anonymous=True)

    assert patron.cell_units == 3.0
    assert patron.display_name == "Ada Byron"
    assert hidden.display_name == "Anonymous"
