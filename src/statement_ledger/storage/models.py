"""SQLAlchemy models for the ledger tables."""

import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class CategoryRow(Base):
    """Spending or income category."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(16), default="expense", nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    rules: Mapped[list["CategoryRuleRow"]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
    )


class CategoryRuleRow(Base):
    """Pattern rule owned by a category."""

    __tablename__ = "category_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    match_type: Mapped[str] = mapped_column(String(16), default="contains", nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped["CategoryRow"] = relationship(back_populates="rules")


class TransactionRow(Base):
    """Persisted transaction; content_hash is the uniqueness key."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    value_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    accounting_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    category_source: Mapped[str] = mapped_column(String(16), default="fallback", nullable=False)
    is_manual_override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manual_category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    content_hash: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    source_kind: Mapped[str] = mapped_column(String(32), default="", nullable=False)
    source_file: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    source_line: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class FileBalanceRow(Base):
    """Balance read from an ingested document."""

    __tablename__ = "file_balances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    extraction_pattern: Mapped[str] = mapped_column(String(64), nullable=False)
    statement_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class BalanceSettingRow(Base):
    """Singleton row holding the manual base balance override."""

    __tablename__ = "balance_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manual_balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class BalanceAuditRow(Base):
    """Audit trail of base balance changes."""

    __tablename__ = "balance_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    old_balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    new_balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
