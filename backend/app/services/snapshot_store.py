# backend/app/services/snapshot_store.py
"""
Snapshot Store: the only writer of users, items, ownership and history.

Responsibilities:
- Upsert users and catalog items
- Reconcile a user's Ownership to exactly the latest fetched item set
- Append one Snapshot with its PricePoints and CurrencyRates
- Run all of the above as a single transaction per sync

Write serialization:
    Two syncs for the same user must not interleave reconciliation. Writers
    take an in-process per-user lock and, inside the transaction, lock the
    user row with SELECT ... FOR UPDATE (PostgreSQL; SQLite has a single
    writer anyway and ignores the clause).

Transaction ownership:
    ensure_user / ensure_items / reconcile_ownership / commit_snapshot only
    flush; they never commit. record_sync, record_profile and
    record_inventory own the transaction: one commit at the end, rollback
    plus PersistenceError on any database error.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select, delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import User, Item, Ownership, Snapshot, PricePoint, CurrencyRate
from app.services.exceptions import PersistenceError
from app.services.gateway.base import ProfileInfo
from app.services.inventory import NormalizedItem, PricedItem
from app.utils.date_utils import ensure_utc, utc_now
from app.utils.sql import upsert_statement

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Data-access handle for snapshot ingestion and lookups.

    The Session is passed to every call; the store itself holds no
    connection, only the per-user lock registry.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # =========================================================================
    # LOCKING
    # =========================================================================

    def user_lock(self, user_id: str) -> threading.Lock:
        """Return the process-wide write lock of a user (created on first use)."""
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def _write_transaction(self, db: Session, user_id: str) -> Iterator[None]:
        with self.user_lock(user_id):
            try:
                yield
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Write transaction for user {user_id} rolled back: {e}")
                raise PersistenceError(user_id, str(e)) from e
            except Exception:
                db.rollback()
                raise

    @staticmethod
    def _lock_user_row(db: Session, user_id: str) -> None:
        db.execute(select(User.id).where(User.id == user_id).with_for_update())

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def ensure_user(self, db: Session, profile: ProfileInfo) -> None:
        """
        Insert the user, or update display fields when it already exists.

        The vanity name is only overwritten when the profile carries one,
        and is moved away from any other user that previously held it.
        """
        now = utc_now()
        row = {
            "id": profile.external_id,
            "display_name": profile.display_name,
            "avatar_ref": profile.avatar_ref,
            "created_at": now,
            "updated_at": now,
        }
        update_columns = ["display_name", "avatar_ref", "updated_at"]

        if profile.vanity_name:
            # Vanity names can be released and claimed by another account
            db.execute(
                update(User)
                .where(User.vanity_name == profile.vanity_name, User.id != profile.external_id)
                .values(vanity_name=None)
            )
            row["vanity_name"] = profile.vanity_name
            update_columns.append("vanity_name")

        db.execute(upsert_statement(db, User, [row], ["id"], update_columns))
        db.flush()

    def ensure_items(self, db: Session, items: Sequence[NormalizedItem]) -> None:
        """Insert catalog items; existing identities are left untouched."""
        if not items:
            return

        rows = [
            {"id": item.item_id, "name": item.name, "icon_ref": item.icon_ref}
            for item in items
        ]
        db.execute(upsert_statement(db, Item, rows, ["id"]))
        db.flush()

    def reconcile_ownership(
            self,
            db: Session,
            user_id: str,
            items: Sequence[NormalizedItem],
    ) -> None:
        """
        Converge a user's Ownership to exactly the given item/count set.

        Counts of items still owned are upserted; rows for items absent from
        the new set are deleted.
        """
        item_ids = [item.item_id for item in items]

        removed = db.execute(
            delete(Ownership).where(
                Ownership.user_id == user_id,
                Ownership.item_id.not_in(item_ids),
            )
        ).rowcount

        if items:
            rows = [
                {"user_id": user_id, "item_id": item.item_id, "count": item.count}
                for item in items
            ]
            db.execute(
                upsert_statement(db, Ownership, rows, ["user_id", "item_id"], ["count"])
            )

        db.flush()
        logger.debug(
            f"Reconciled ownership for user {user_id}: "
            f"{len(items)} items kept, {removed} removed"
        )

    def commit_snapshot(
            self,
            db: Session,
            user_id: str,
            taken_at: datetime,
            prices: Sequence[PricedItem],
            rates: dict[str, Decimal],
    ) -> Snapshot:
        """
        Create a Snapshot and tag all price and rate facts to it.

        Despite the name this only flushes; the caller commits.
        """
        snapshot = Snapshot(user_id=user_id, taken_at=ensure_utc(taken_at))
        db.add(snapshot)
        db.flush()

        db.add_all(
            PricePoint(item_id=item.item_id, snapshot_id=snapshot.id, price=item.price)
            for item in prices
        )
        db.add_all(
            CurrencyRate(code=code, snapshot_id=snapshot.id, rate=rate)
            for code, rate in sorted(rates.items())
        )
        db.flush()
        return snapshot

    def record_sync(
            self,
            db: Session,
            profile: ProfileInfo,
            priced_items: Sequence[PricedItem],
            rates: dict[str, Decimal],
            taken_at: datetime | None = None,
    ) -> Snapshot:
        """
        Persist one complete sync atomically.

        Args:
            db: Database session (no pending changes expected)
            profile: Owner profile (upserted)
            priced_items: Fully priced items (one PricePoint each)
            rates: Tracked currency rates (one CurrencyRate each)
            taken_at: Snapshot timestamp (default: now)

        Returns:
            The committed Snapshot

        Raises:
            PersistenceError: Any database error; nothing was written
        """
        user_id = profile.external_id
        taken_at = taken_at or utc_now()

        with self._write_transaction(db, user_id):
            self.ensure_user(db, profile)
            self._lock_user_row(db, user_id)
            self.ensure_items(db, priced_items)
            self.reconcile_ownership(db, user_id, priced_items)
            snapshot = self.commit_snapshot(db, user_id, taken_at, priced_items, rates)

        logger.info(
            f"Committed snapshot {snapshot.id} for user {user_id}: "
            f"{len(priced_items)} prices, {len(rates)} rates"
        )
        return snapshot

    def record_profile(self, db: Session, profile: ProfileInfo) -> User:
        """Upsert a user's display fields in their own transaction."""
        with self._write_transaction(db, profile.external_id):
            self.ensure_user(db, profile)

        return db.get(User, profile.external_id)

    def record_inventory(
            self,
            db: Session,
            profile: ProfileInfo,
            items: Sequence[NormalizedItem],
    ) -> None:
        """
        Upsert items and reconcile ownership without recording a snapshot.
        """
        user_id = profile.external_id
        with self._write_transaction(db, user_id):
            self.ensure_user(db, profile)
            self._lock_user_row(db, user_id)
            self.ensure_items(db, items)
            self.reconcile_ownership(db, user_id, items)

        logger.info(f"Reconciled inventory for user {user_id}: {len(items)} items")

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def get_user(self, db: Session, user_id: str) -> User | None:
        return db.get(User, user_id)

    def get_user_by_vanity_name(self, db: Session, vanity_name: str) -> User | None:
        return db.scalar(
            select(User)
            .where(User.vanity_name == vanity_name)
            .order_by(User.updated_at.desc())
            .limit(1)
        )

    def get_latest_snapshot(self, db: Session, user_id: str) -> Snapshot | None:
        return db.scalar(
            select(Snapshot)
            .where(Snapshot.user_id == user_id)
            .order_by(Snapshot.taken_at.desc(), Snapshot.id.desc())
            .limit(1)
        )

    def list_snapshots(
            self,
            db: Session,
            user_id: str,
            since: datetime | None = None,
    ) -> list[Snapshot]:
        """Snapshots of a user, oldest first, optionally from `since` on."""
        query = select(Snapshot).where(Snapshot.user_id == user_id)
        if since is not None:
            query = query.where(Snapshot.taken_at >= ensure_utc(since))
        query = query.order_by(Snapshot.taken_at, Snapshot.id)
        return list(db.scalars(query).all())

    def get_ownership(self, db: Session, user_id: str) -> dict[str, int]:
        """Current item_id -> count map of a user."""
        rows = db.execute(
            select(Ownership.item_id, Ownership.count).where(Ownership.user_id == user_id)
        ).all()
        return {row.item_id: row.count for row in rows}
