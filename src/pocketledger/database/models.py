"""SQLAlchemy models for the pocketledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

# Money columns keep a few extra places so that amounts in any currency
# precision round-trip unchanged; rates keep ten.
AMOUNT = Numeric(20, 6)
RATE = Numeric(20, 10)


def _now():
    return datetime.now(UTC)


class Currency(Base):
    """Currency precision table."""

    __tablename__ = "currencies"

    code = Column(String(3), primary_key=True)
    name = Column(String, nullable=False)
    symbol = Column(String, nullable=False)
    precision = Column(Integer, nullable=False, default=2)


class Account(Base):
    """Ledger account model. Parent/child links form a forest."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    currency_code = Column(String(3), nullable=False)
    parent_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    order_num = Column(Integer, nullable=False, default=0)
    icon = Column(String, nullable=True)
    description = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    parent = relationship("Account", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="account")


class Journal(Base):
    """Journal model, owner of a balanced set of transactions."""

    __tablename__ = "journals"

    id = Column(Integer, primary_key=True)
    journal_date = Column(DateTime, nullable=False)
    description = Column(String, nullable=True)
    currency_code = Column(String(3), nullable=False)
    status = Column(String, nullable=False, default="ACTIVE")
    total_amount = Column(AMOUNT, nullable=False, default=0)
    transaction_count = Column(Integer, nullable=False, default=0)
    display_type = Column(String, nullable=False, default="JOURNAL")
    reversal_of_journal_id = Column(Integer, ForeignKey("journals.id"), nullable=True)
    reversed_by_journal_id = Column(Integer, ForeignKey("journals.id"), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="journal")

    __table_args__ = (Index("ix_journals_journal_date", "journal_date"),)


class Transaction(Base):
    """Transaction (journal line) model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    amount = Column(AMOUNT, nullable=False)
    transaction_type = Column(String, nullable=False)
    currency_code = Column(String(3), nullable=False)
    exchange_rate = Column(RATE, nullable=False, default=1)
    running_balance = Column(AMOUNT, nullable=True)
    notes = Column(String, nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    journal = relationship("Journal", back_populates="transactions")
    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_account_date", "account_id", "transaction_date"),
        Index("ix_transactions_journal", "journal_id"),
    )


class ExchangeRate(Base):
    """Exchange rate cache. Rows are appended, never updated in place."""

    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True)
    from_currency = Column(String(3), nullable=False)
    to_currency = Column(String(3), nullable=False)
    rate = Column(RATE, nullable=False)
    effective_date = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_exchange_rates_pair", "from_currency", "to_currency", "effective_date"),
    )


class AuditLog(Base):
    """Audit trail entry."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String, nullable=False)
    changes = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
