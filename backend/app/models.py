# backend/app/models.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Numeric, UniqueConstraint, Index, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class User(Base):
    """
    A tracked inventory owner.

    The primary key is the provider's external identity (Steam64 id), so the
    same person always maps to the same row. Display fields are refreshed on
    every successful profile fetch.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(128))
    avatar_ref: Mapped[str] = mapped_column(String(256))

    # Resolvable profile name; lets cached views skip external name resolution
    vanity_name: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    ownerships: Mapped[list["Ownership"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    snapshots: Mapped[list["Snapshot"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Snapshot.taken_at",
    )


class Item(Base):
    """
    Global catalog of priceable items shared by all users.

    Catalog identity is stable across users, so rows are inserted once and
    never modified afterwards.
    """
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    icon_ref: Mapped[str] = mapped_column(String(256))

    price_points: Mapped[list["PricePoint"]] = relationship(back_populates="item")


class Ownership(Base):
    """
    Current count of one item held by one user.

    NOT versioned: reconciled to the latest fetched inventory on every sync.
    Historical valuations join these counts against per-snapshot prices.
    """
    __tablename__ = "ownerships"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    item_id: Mapped[str] = mapped_column(ForeignKey("items.id"), primary_key=True, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)

    user: Mapped["User"] = relationship(back_populates="ownerships")
    item: Mapped["Item"] = relationship()


class Snapshot(Base):
    """
    One point-in-time sync event for a user.

    The versioning axis of the history: every PricePoint and CurrencyRate is
    tagged with a snapshot and never mutated afterwards. Ordered per user by
    (taken_at, id); the autoincrement id disambiguates syncs that complete
    within the same instant.
    """
    __tablename__ = "snapshots"
    __table_args__ = (
        # "Latest snapshot for user X" and "snapshots for user X since T"
        Index('ix_snapshot_user_taken_at', 'user_id', 'taken_at'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    taken_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user: Mapped["User"] = relationship(back_populates="snapshots")
    price_points: Mapped[list["PricePoint"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    currency_rates: Mapped[list["CurrencyRate"]] = relationship(
        back_populates="snapshot",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PricePoint(Base):
    """
    Spot price of one item recorded at one snapshot, in the base currency.
    """
    __tablename__ = "price_points"
    __table_args__ = (
        UniqueConstraint('item_id', 'snapshot_id', name='uq_price_point_item_snapshot'),
        # Full-history min/max per item
        Index('ix_price_point_item_price', 'item_id', 'price'),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[str] = mapped_column(ForeignKey("items.id"), index=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("snapshots.id", ondelete="CASCADE"), index=True)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))

    item: Mapped["Item"] = relationship(back_populates="price_points")
    snapshot: Mapped["Snapshot"] = relationship(back_populates="price_points")


class CurrencyRate(Base):
    """
    Conversion rate recorded at one snapshot.

    Convention: 1 base currency = `rate` units of `code`.
    Example: base=USD, code=EUR, rate=0.92 means 1 USD = 0.92 EUR
    """
    __tablename__ = "currency_rates"
    __table_args__ = (
        UniqueConstraint('code', 'snapshot_id', name='uq_currency_rate_code_snapshot'),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(3), index=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("snapshots.id", ondelete="CASCADE"), index=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 8))

    snapshot: Mapped["Snapshot"] = relationship(back_populates="currency_rates")
