"""
Database model definitions
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Recommendation type values, in prompt order
RECOMMENDATION_TYPES = ("SpendingAlert", "SavingsOpportunity", "BehavioralInsight", "BudgetWarning")
DEFAULT_RECOMMENDATION_TYPE = "BehavioralInsight"

# Priority name -> stored level
PRIORITY_LEVELS = {"Low": 1, "Medium": 2, "High": 3, "Critical": 4}
PRIORITY_NAMES = {level: name for name, level in PRIORITY_LEVELS.items()}
DEFAULT_PRIORITY = "Medium"

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


class Transaction(Base):
    """Imported bank transaction"""
    __tablename__ = "transactions"

    __table_args__ = (
        Index('idx_transaction_user_date', 'user_id', 'date'),
        Index('idx_transaction_user_category', 'user_id', 'category'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    date = Column(DateTime, nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)  # negative = expense
    balance = Column(Numeric(18, 2), nullable=True)
    category = Column(String(100), nullable=True)
    labels = Column(String(200), nullable=True)
    account = Column(String(100), nullable=False)
    import_session_hash = Column(String(64), nullable=True)
    imported_at = Column(DateTime, default=utcnow, nullable=False)
    embedding = Column(JSON, nullable=True)  # [float, ...] from the embedding model

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.strftime("%Y-%m-%d") if self.date else None,
            "description": self.description,
            "amount": float(self.amount) if self.amount is not None else None,
            "category": self.category,
            "account": self.account,
        }

    def __repr__(self):
        return f"<Transaction(id={self.id}, user_id='{self.user_id}', amount={self.amount})>"


class Recommendation(Base):
    """Generated financial recommendation"""
    __tablename__ = "recommendations"

    __table_args__ = (
        Index('idx_recommendation_user_status', 'user_id', 'status'),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(100), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)
    type = Column(String(50), nullable=False, default=DEFAULT_RECOMMENDATION_TYPE)
    priority = Column(Integer, nullable=False, default=PRIORITY_LEVELS[DEFAULT_PRIORITY])  # 1-4
    generated_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), default=STATUS_ACTIVE, nullable=False)  # active/expired

    @property
    def priority_name(self) -> str:
        return PRIORITY_NAMES.get(self.priority, DEFAULT_PRIORITY)

    def __repr__(self):
        return f"<Recommendation(id={self.id}, user_id='{self.user_id}', title='{self.title}')>"
