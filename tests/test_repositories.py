from __future__ import annotations

from datetime import timedelta

import pytest

from budgettracker.db.models import STATUS_ACTIVE, STATUS_EXPIRED, Recommendation, utcnow
from budgettracker.db.repositories import RecommendationRepository, TransactionRepository
from tests.fakes import add_transaction


def _add_recommendation(session, title, priority=2, generated_at=None, expires_in_days=7, status=STATUS_ACTIVE):
    generated_at = generated_at or utcnow()
    session.add(
        Recommendation(
            user_id="alice",
            title=title,
            message="m",
            type="SpendingAlert",
            priority=priority,
            generated_at=generated_at,
            expires_at=generated_at + timedelta(days=expires_in_days),
            status=status,
        )
    )


def test_get_active_orders_by_priority_then_recency_and_limits(db) -> None:
    now = utcnow()
    with db.get_session() as session:
        _add_recommendation(session, "medium old", priority=2, generated_at=now - timedelta(hours=2))
        _add_recommendation(session, "medium new", priority=2, generated_at=now - timedelta(hours=1))
        _add_recommendation(session, "high", priority=3, generated_at=now - timedelta(hours=3))
        _add_recommendation(session, "past expiry", priority=4, generated_at=now - timedelta(days=10))
        _add_recommendation(session, "expired status", priority=4, status=STATUS_EXPIRED)
        for i in range(4):
            _add_recommendation(session, f"low {i}", priority=1, generated_at=now - timedelta(days=1, minutes=i))

    with db.get_session() as session:
        titles = [item.title for item in RecommendationRepository.get_active(session, "alice")]

    assert titles == ["high", "medium new", "medium old", "low 0", "low 1"]


def test_replace_active_maps_priority_and_truncates(db) -> None:
    with db.get_session() as session:
        _add_recommendation(session, "previous")

    with db.get_session() as session:
        created = RecommendationRepository.replace_active(
            session,
            "alice",
            [{"title": "T" * 250, "message": "M" * 1200, "type": "BudgetWarning", "priority": "Critical"}],
            expiry_days=7,
        )
        assert len(created) == 1

    with db.get_session() as session:
        active = RecommendationRepository.get_active(session, "alice")
        assert len(active) == 1
        item = active[0]
        assert len(item.title) == 200
        assert len(item.message) == 1000
        assert item.priority == 4
        assert item.priority_name == "Critical"
        assert item.expires_at - item.generated_at == timedelta(days=7)
        statuses = sorted(row.status for row in session.query(Recommendation).all())
    assert statuses == [STATUS_ACTIVE, STATUS_EXPIRED]


def test_replace_active_rolls_back_with_session(db) -> None:
    with db.get_session() as session:
        _add_recommendation(session, "keep me")

    with pytest.raises(RuntimeError):
        with db.get_session() as session:
            RecommendationRepository.replace_active(session, "alice", [{"title": "new", "message": "m"}])
            raise RuntimeError("write failed")

    with db.get_session() as session:
        assert [item.title for item in RecommendationRepository.get_active(session, "alice")] == ["keep me"]


def test_transaction_queries(db) -> None:
    earlier = utcnow() - timedelta(days=3)
    add_transaction(db, "bob", "Gym", "-30.00", imported_at=earlier)
    add_transaction(db, "alice", "Coffee", "-4.00", imported_at=earlier)
    latest = utcnow()
    add_transaction(db, "alice", "Books", "-12.00", imported_at=latest)

    with db.get_session() as session:
        assert TransactionRepository.get_user_ids(session) == ["alice", "bob"]
        assert TransactionRepository.count_for_user(session, "alice") == 2
        assert TransactionRepository.count_for_user(session, "nobody") == 0
        assert TransactionRepository.get_last_imported_at(session, "alice") == latest
        assert TransactionRepository.get_last_imported_at(session, "nobody") is None
