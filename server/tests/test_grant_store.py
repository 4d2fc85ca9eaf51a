from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from app.models.sponsorship import SponsorshipGrant
from app.services import grant_store
from app.services.sponsorship_errors import InvalidDuration, NotFound, OverlapViolation

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _grant(slot_index: int, start_day: int, end_day: int, *, placement: str = "home_right", product_id: str = "p-1"):
    return SponsorshipGrant(
        product_id=product_id,
        placement=placement,
        slot_index=slot_index,
        starts_at=T0 + timedelta(days=start_day),
        ends_at=T0 + timedelta(days=end_day),
        source="manual",
    )


def test_insert_rejects_overlap_in_same_slot(db_session):
    grant_store.insert_grant(db_session, _grant(0, 0, 10))

    with pytest.raises(OverlapViolation) as excinfo:
        grant_store.insert_grant(db_session, _grant(0, 9, 20))
    assert excinfo.value.retryable is True
    assert len(grant_store.list_by_slot(db_session, "home_right", 0)) == 1


def test_insert_allows_adjacent_windows_and_other_slots(db_session):
    grant_store.insert_grant(db_session, _grant(0, 0, 10))
    grant_store.insert_grant(db_session, _grant(0, 10, 15))
    grant_store.insert_grant(db_session, _grant(1, 5, 12))

    assert [g.starts_at for g in grant_store.list_by_slot(db_session, "home_right", 0)] == [
        T0,
        T0 + timedelta(days=10),
    ]
    assert len(grant_store.list_by_slot(db_session, "home_right", 1)) == 1


def test_insert_rejects_empty_window(db_session):
    with pytest.raises(InvalidDuration):
        grant_store.insert_grant(db_session, _grant(0, 3, 3))


def test_active_at_uses_half_open_window(db_session):
    grant = grant_store.insert_grant(db_session, _grant(2, 0, 7))

    assert grant_store.active_at(db_session, "home_right", 2, T0).id == grant.id
    assert grant_store.active_at(db_session, "home_right", 2, T0 + timedelta(days=7) - timedelta(seconds=1)).id == grant.id
    assert grant_store.active_at(db_session, "home_right", 2, T0 + timedelta(days=7)) is None
    assert grant_store.active_at(db_session, "home_right", 2, T0 - timedelta(seconds=1)) is None


def test_slot_tail_tracks_latest_end(db_session):
    assert grant_store.slot_tail(db_session, "home_top", 1) is None
    grant_store.insert_grant(db_session, _grant(1, 0, 4, placement="home_top"))
    grant_store.insert_grant(db_session, _grant(1, 20, 25, placement="home_top"))

    assert grant_store.slot_tail(db_session, "home_top", 1) == T0 + timedelta(days=25)


def test_delete_leaves_later_grants_untouched(db_session):
    first = grant_store.insert_grant(db_session, _grant(0, 0, 10))
    second = grant_store.insert_grant(db_session, _grant(0, 10, 20))

    grant_store.delete_grant(db_session, first.id)

    remaining = grant_store.list_by_slot(db_session, "home_right", 0)
    assert [g.id for g in remaining] == [second.id]
    assert remaining[0].starts_at == T0 + timedelta(days=10)
    assert remaining[0].ends_at == T0 + timedelta(days=20)


def test_delete_missing_grant(db_session):
    with pytest.raises(NotFound):
        grant_store.delete_grant(db_session, 999)


def test_list_grants_pages_newest_first(db_session):
    for day in (0, 10, 20):
        grant_store.insert_grant(db_session, _grant(0, day, day + 5))
    grant_store.insert_grant(db_session, _grant(0, 0, 5, placement="home_top"))

    items, total = grant_store.list_grants(db_session, page=1, page_size=2, placement="home_right")
    assert total == 3
    assert [g.starts_at for g in items] == [T0 + timedelta(days=20), T0 + timedelta(days=10)]
