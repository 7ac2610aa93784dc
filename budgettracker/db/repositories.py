"""
Data access layer - common database queries
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from budgettracker.db.models import (
    DEFAULT_PRIORITY,
    DEFAULT_RECOMMENDATION_TYPE,
    PRIORITY_LEVELS,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    Recommendation,
    Transaction,
    utcnow,
)


class TransactionRepository:
    """Transaction data access"""

    @staticmethod
    def get_user_ids(session: Session) -> List[str]:
        """Distinct ids of users that own at least one transaction"""
        rows = session.query(Transaction.user_id).distinct().order_by(Transaction.user_id).all()
        return [row.user_id for row in rows]

    @staticmethod
    def count_for_user(session: Session, user_id: str) -> int:
        return session.query(func.count(Transaction.id)).filter(Transaction.user_id == user_id).scalar() or 0

    @staticmethod
    def get_last_imported_at(session: Session, user_id: str) -> Optional[datetime]:
        return (
            session.query(func.max(Transaction.imported_at))
            .filter(Transaction.user_id == user_id)
            .scalar()
        )

    @staticmethod
    def search_by_keyword(session: Session, user_id: str, query: str, limit: int = 10) -> List[Transaction]:
        """
        Case-insensitive substring match over description, category and labels

        Args:
            session: database session
            user_id: owner of the transactions
            query: free text, split into words
            limit: maximum rows returned

        Returns:
            newest matching transactions first
        """
        words = [word for word in query.split() if word]
        q = session.query(Transaction).filter(Transaction.user_id == user_id)
        if words:
            conditions = []
            for word in words:
                pattern = f"%{word.lower()}%"
                conditions.extend([
                    func.lower(Transaction.description).like(pattern),
                    func.lower(Transaction.category).like(pattern),
                    func.lower(Transaction.labels).like(pattern),
                ])
            q = q.filter(or_(*conditions))
        return q.order_by(Transaction.date.desc()).limit(limit).all()

    @staticmethod
    def get_with_embeddings(session: Session, user_id: str) -> List[Transaction]:
        return (
            session.query(Transaction)
            .filter(Transaction.user_id == user_id, Transaction.embedding.isnot(None))
            .all()
        )

    @staticmethod
    def get_category_spending(
        session: Session,
        user_id: str,
        top_n: int = 10,
        include_income: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Totals per category, largest spending first

        Args:
            session: database session
            user_id: owner of the transactions
            top_n: number of categories returned
            include_income: also count positive amounts

        Returns:
            [{"category", "total" (absolute), "transaction_count"}, ...]
        """
        total = func.sum(Transaction.amount).label("total")
        q = (
            session.query(Transaction.category, total, func.count(Transaction.id).label("count"))
            .filter(Transaction.user_id == user_id, Transaction.category.isnot(None), Transaction.category != "")
        )
        if not include_income:
            q = q.filter(Transaction.amount < 0)
        rows = q.group_by(Transaction.category).order_by(total.asc()).limit(top_n).all()
        return [
            {
                "category": row.category,
                "total": round(abs(float(row.total or 0)), 2),
                "transaction_count": row.count,
            }
            for row in rows
        ]


class RecommendationRepository:
    """Recommendation data access"""

    @staticmethod
    def get_active(
        session: Session,
        user_id: str,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> List[Recommendation]:
        """Unexpired active recommendations, highest priority then newest first"""
        now = now or utcnow()
        return (
            session.query(Recommendation)
            .filter(
                Recommendation.user_id == user_id,
                Recommendation.status == STATUS_ACTIVE,
                Recommendation.expires_at > now,
            )
            .order_by(Recommendation.priority.desc(), Recommendation.generated_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_last_generated_at(session: Session, user_id: str) -> Optional[datetime]:
        return (
            session.query(func.max(Recommendation.generated_at))
            .filter(Recommendation.user_id == user_id)
            .scalar()
        )

    @staticmethod
    def replace_active(
        session: Session,
        user_id: str,
        items: Iterable[Dict[str, Any]],
        expiry_days: int = 7,
        now: Optional[datetime] = None,
    ) -> List[Recommendation]:
        """
        Expire the user's active recommendations and insert the new set

        Both steps run on the caller's session so they commit or roll back together.

        Args:
            session: database session
            user_id: recommendation owner
            items: dicts with title, message, type and priority name
            expiry_days: lifetime of the new rows
            now: generation timestamp

        Returns:
            the inserted rows
        """
        now = now or utcnow()
        session.query(Recommendation).filter(
            Recommendation.user_id == user_id,
            Recommendation.status == STATUS_ACTIVE,
        ).update({Recommendation.status: STATUS_EXPIRED}, synchronize_session=False)

        created = []
        for item in items:
            recommendation = Recommendation(
                user_id=user_id,
                title=(item.get("title") or "")[:200],
                message=(item.get("message") or "")[:1000],
                type=item.get("type") or DEFAULT_RECOMMENDATION_TYPE,
                priority=PRIORITY_LEVELS.get(item.get("priority"), PRIORITY_LEVELS[DEFAULT_PRIORITY]),
                generated_at=now,
                expires_at=now + timedelta(days=expiry_days),
                status=STATUS_ACTIVE,
            )
            session.add(recommendation)
            created.append(recommendation)
        session.flush()
        return created

    @staticmethod
    def expire_overdue(session: Session, now: Optional[datetime] = None) -> int:
        """Mark active rows past their expiry as expired"""
        now = now or utcnow()
        return session.query(Recommendation).filter(
            Recommendation.status == STATUS_ACTIVE,
            Recommendation.expires_at <= now,
        ).update({Recommendation.status: STATUS_EXPIRED}, synchronize_session=False)

    @staticmethod
    def delete_older_than(session: Session, cutoff: datetime) -> int:
        """Delete expired rows generated before the cutoff"""
        return session.query(Recommendation).filter(
            Recommendation.status == STATUS_EXPIRED,
            Recommendation.generated_at < cutoff,
        ).delete(synchronize_session=False)
