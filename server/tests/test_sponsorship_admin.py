from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.models.sponsorship import SponsorshipGrant, SponsorshipRequest
from app.services import slot_allocator, sponsorship_admin
from app.services.sponsorship_errors import (
    AlreadyProcessed,
    InvalidProduct,
    InvalidSlot,
    NotFound,
    ReconciliationError,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_process_creates_grant_and_links_request(db_session, make_request):
    request = make_request(duration_days=30, product_ref="prod-9")

    outcome = sponsorship_admin.process_request(
        db_session,
        request.id,
        amount_usd_cents=12000,
        note="Paid by invoice",
        now=T0,
    )

    assert outcome.request.status == "processed"
    assert outcome.request.processed_grant_id == outcome.grant.id
    assert outcome.request.note == "Paid by invoice"
    assert outcome.grant.product_id == "prod-9"
    assert outcome.grant.source == "manual"
    assert outcome.grant.amount_usd_cents == 12000
    assert (outcome.grant.starts_at, outcome.grant.ends_at) == (T0, T0 + timedelta(days=30))


def test_second_request_for_busy_slot_is_deferred(db_session, make_request):
    first = make_request(duration_days=30)
    second = make_request(duration_days=10)

    sponsorship_admin.process_request(db_session, first.id, now=T0)
    outcome = sponsorship_admin.process_request(db_session, second.id, now=T0 + timedelta(days=5))

    assert outcome.grant.starts_at == T0 + timedelta(days=30)
    assert outcome.grant.ends_at == T0 + timedelta(days=40)


def test_admin_overrides_requested_slot(db_session, make_request):
    request = make_request(placement="home_right", slot_index=None, duration_days=5)

    outcome = sponsorship_admin.process_request(
        db_session,
        request.id,
        product_id="sku-override",
        slot_index=2,
        duration_days=14,
        now=T0,
    )

    assert outcome.grant.slot_index == 2
    assert outcome.grant.product_id == "sku-override"
    assert outcome.grant.ends_at == T0 + timedelta(days=14)


def test_processing_twice_fails_without_new_grant(db_session, make_request):
    request = make_request()
    sponsorship_admin.process_request(db_session, request.id, now=T0)

    with pytest.raises(AlreadyProcessed):
        sponsorship_admin.process_request(db_session, request.id, now=T0)
    assert db_session.query(SponsorshipGrant).count() == 1


def test_reject_after_process_fails(db_session, make_request):
    request = make_request()
    sponsorship_admin.process_request(db_session, request.id, now=T0)

    with pytest.raises(AlreadyProcessed):
        sponsorship_admin.reject_request(db_session, request.id, note="too late")
    db_session.refresh(request)
    assert request.status == "processed"


def test_invalid_override_leaves_request_pending(db_session, make_request):
    request = make_request()

    with pytest.raises(InvalidSlot):
        sponsorship_admin.process_request(db_session, request.id, slot_index=5, now=T0)

    db_session.refresh(request)
    assert request.status == "pending"
    assert request.processed_grant_id is None
    assert db_session.query(SponsorshipGrant).count() == 0


def test_reject_keeps_existing_note_when_none_given(db_session, make_request):
    request = make_request(note="Spring campaign")

    rejected = sponsorship_admin.reject_request(db_session, request.id, note="   ", now=T0)

    assert rejected.status == "rejected"
    assert rejected.note == "Spring campaign"
    assert rejected.processed_grant_id is None
    assert db_session.query(SponsorshipGrant).count() == 0


def test_reject_replaces_note(db_session, make_request):
    request = make_request(note="Spring campaign")

    rejected = sponsorship_admin.reject_request(db_session, request.id, note="Product delisted", now=T0)

    assert rejected.note == "Product delisted"


def test_unknown_request(db_session):
    with pytest.raises(NotFound):
        sponsorship_admin.process_request(db_session, 404, now=T0)


def _snapshot(request):
    return (request.status, request.note, request.processed_grant_id, request.updated_at, request.slot_index)


def test_url_product_ref_requires_explicit_product_id(db_session, make_request):
    request = make_request(product_ref="https://shop.example.com/catalog/" + "spring-collection/" * 8 + "item-42")

    with pytest.raises(InvalidProduct) as excinfo:
        sponsorship_admin.process_request(db_session, request.id, now=T0)
    assert "set product_id" in excinfo.value.detail
    db_session.refresh(request)
    assert request.status == "pending"
    assert db_session.query(SponsorshipGrant).count() == 0

    outcome = sponsorship_admin.process_request(db_session, request.id, product_id="sku-42", now=T0)
    assert outcome.grant.product_id == "sku-42"


def test_processing_rejected_request_changes_nothing(db_session, make_request):
    request = make_request(note="Needs better photos")
    sponsorship_admin.reject_request(db_session, request.id, now=T0)
    db_session.refresh(request)
    before = _snapshot(request)

    with pytest.raises(AlreadyProcessed):
        sponsorship_admin.process_request(db_session, request.id, now=T0 + timedelta(days=1))

    db_session.expire_all()
    assert _snapshot(db_session.get(SponsorshipRequest, request.id)) == before
    assert db_session.query(SponsorshipGrant).count() == 0


def test_failed_commit_rolls_back_grant_and_request(db_session, make_request, monkeypatch):
    request = make_request()

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(ReconciliationError) as excinfo:
        sponsorship_admin.process_request(db_session, request.id, now=T0)
    assert excinfo.value.status_code == 500
    monkeypatch.undo()

    db_session.expire_all()
    assert db_session.query(SponsorshipGrant).count() == 0
    stored = db_session.get(SponsorshipRequest, request.id)
    assert stored.status == "pending"
    assert stored.processed_grant_id is None


def test_concurrent_rejection_wins_over_process(db_session, make_request, monkeypatch):
    request = make_request()
    other_session = sessionmaker(bind=db_session.get_bind(), expire_on_commit=False)()
    real_allocate = slot_allocator.allocate

    def allocate_after_rejection(db, **kwargs):
        # Another admin rejects the request between the status check and the transition.
        other_session.execute(
            update(SponsorshipRequest).where(SponsorshipRequest.id == request.id).values(status="rejected")
        )
        other_session.commit()
        return real_allocate(db, **kwargs)

    monkeypatch.setattr(slot_allocator, "allocate", allocate_after_rejection)
    try:
        with pytest.raises(AlreadyProcessed):
            sponsorship_admin.process_request(db_session, request.id, now=T0)
    finally:
        other_session.close()

    db_session.expire_all()
    assert db_session.query(SponsorshipGrant).count() == 0
    stored = db_session.get(SponsorshipRequest, request.id)
    assert stored.status == "rejected"
    assert stored.processed_grant_id is None
