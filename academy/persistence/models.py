from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    ForeignKey,
    Text,
    Date,
    TIMESTAMP,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# =====================================================
# Base
# =====================================================

class Base(DeclarativeBase):
    pass


# Integer ids must never be reused: a deleted payment's detached
# allocations would otherwise re-attach to the next payment.
_AUTOINCREMENT = {"sqlite_autoincrement": True}

# Money columns are BIGINT; larger values are rejected before they reach the store.
MAX_AMOUNT = 2**63 - 1


# =====================================================
# Configuration
# =====================================================

class Setting(Base):
    __tablename__ = "system_setting"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)

    academy_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    monthly_fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False, default="COP")
    contact_phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_system_setting_singleton"),
    )


class Category(Base):
    __tablename__ = "category"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    min_age: Mapped[int] = mapped_column(Integer, nullable=False)
    max_age: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("min_age <= max_age", name="ck_category_age_range"),
        _AUTOINCREMENT,
    )


# =====================================================
# Roster
# =====================================================

class Guardian(Base):
    __tablename__ = "guardian"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    # Natural dedup key
    phone: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    __table_args__ = (_AUTOINCREMENT,)


class Player(Base):
    __tablename__ = "player"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_names: Mapped[str] = mapped_column(String, nullable=False)
    last_names: Mapped[str] = mapped_column(String, nullable=False)
    birth_date: Mapped[date] = mapped_column(Date, nullable=False)
    blood_type: Mapped[Optional[str]] = mapped_column(String, nullable=True, default="O+")
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    guardian_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("guardian.id"),
        nullable=True,
    )

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("category.id"),
        nullable=True,
    )

    registered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (_AUTOINCREMENT,)


class Attendance(Base):
    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    player_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("player.id"),
        nullable=False,
    )

    day: Mapped[date] = mapped_column(Date, nullable=False)
    state: Mapped[str] = mapped_column(String(1), nullable=False)

    registered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("player_id", "day", name="uq_attendance_player_day"),
        CheckConstraint("state IN ('P','A')", name="ck_attendance_state"),
        _AUTOINCREMENT,
    )


# =====================================================
# Money
# =====================================================

class Payment(Base):
    __tablename__ = "payment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    player_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("player.id"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    paid_on: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    registered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        _AUTOINCREMENT,
    )


class Allocation(Base):
    """
    Portion of one payment applied to one month's fee.
    Append-only: rows are never updated or merged.
    """

    __tablename__ = "payment_allocation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # NULL once the payment is deleted (row kept, no longer counted)
    payment_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("payment.id", ondelete="SET NULL"),
        nullable=True,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_applied: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint("payment_id", "year", "month", name="uq_allocation_payment_month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_allocation_month"),
        CheckConstraint("amount_applied > 0", name="ck_allocation_amount_positive"),
        _AUTOINCREMENT,
    )


class Expense(Base):
    __tablename__ = "expense"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    concept: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    spent_on: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    registered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (_AUTOINCREMENT,)


# =====================================================
# Inventory
# =====================================================

class InventoryItem(Base):
    __tablename__ = "inventory_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_inventory_item_stock"),
        _AUTOINCREMENT,
    )

    @property
    def low_stock(self) -> bool:
        return self.stock <= self.min_stock


class InventoryMovement(Base):
    __tablename__ = "inventory_movement"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("inventory_item.id"),
        nullable=False,
    )

    kind: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    player_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("player.id"),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("kind IN ('in','out')", name="ck_inventory_movement_kind"),
        CheckConstraint("quantity > 0", name="ck_inventory_movement_quantity"),
        _AUTOINCREMENT,
    )
