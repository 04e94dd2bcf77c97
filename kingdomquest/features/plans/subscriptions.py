"""
kingdomquest/features/plans/subscriptions.py

Subscription lookup used to resolve a user's plan.

Only active subscriptions count; when a user has several, the newest wins.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol
import logging

from sqlalchemy import select, insert, update
from sqlalchemy.exc import SQLAlchemyError

from kingdomquest.core.database import get_db_session, user_subscriptions
from kingdomquest.core.errors import UpstreamFailureError, ValidationError
from kingdomquest.models.plan import Subscription, SubscriptionStatus

logger = logging.getLogger("kingdomquest")


class SubscriptionStore(Protocol):
    def load_active_subscription(self, user_id: str) -> Optional[Subscription]:
        ...

    def assign_subscription(
        self, user_id: str, plan_name: str, status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> Subscription:
        ...


def _coerce_status(status) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown subscription status: {status}")


class InMemorySubscriptionStore:
    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._rows: Dict[str, List[Subscription]] = {}
        self._clock = clock

    def load_active_subscription(self, user_id: str) -> Optional[Subscription]:
        active = [s for s in self._rows.get(user_id, []) if s.status == SubscriptionStatus.ACTIVE]
        return active[-1] if active else None

    def assign_subscription(
        self, user_id: str, plan_name: str, status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> Subscription:
        """Record a new subscription; an active one supersedes earlier active rows."""
        status = _coerce_status(status)
        rows = self._rows.setdefault(user_id, [])
        if status == SubscriptionStatus.ACTIVE:
            rows[:] = [
                s.model_copy(update={"status": SubscriptionStatus.INACTIVE})
                if s.status == SubscriptionStatus.ACTIVE else s
                for s in rows
            ]
        subscription = Subscription(
            user_id=user_id,
            plan_name=plan_name,
            status=status,
            created_at=self._clock(),
        )
        rows.append(subscription)
        return subscription

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        self._rows.clear()


@contextmanager
def _upstream(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        raise UpstreamFailureError(f"Subscription storage unavailable ({operation})") from exc


class SqlSubscriptionStore:
    """Database-backed subscription lookup over user_subscriptions."""

    def __init__(self, session_factory: Callable = get_db_session):
        self._session = session_factory

    def load_active_subscription(self, user_id: str) -> Optional[Subscription]:
        with _upstream("load"):
            with self._session() as session:
                row = session.execute(
                    select(user_subscriptions)
                    .where(user_subscriptions.c.user_id == user_id)
                    .where(user_subscriptions.c.status == SubscriptionStatus.ACTIVE.value)
                    .order_by(user_subscriptions.c.created_at.desc(), user_subscriptions.c.id.desc())
                ).first()
        if not row:
            return None
        return Subscription(
            user_id=row.user_id,
            plan_name=row.plan_name,
            status=SubscriptionStatus(row.status),
            created_at=row.created_at,
        )

    def assign_subscription(
        self, user_id: str, plan_name: str, status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> Subscription:
        """Insert a subscription row; an active one deactivates earlier active rows."""
        status = _coerce_status(status)
        now = datetime.now(timezone.utc)
        with _upstream("assign"):
            with self._session() as session:
                if status == SubscriptionStatus.ACTIVE:
                    session.execute(
                        update(user_subscriptions)
                        .where(user_subscriptions.c.user_id == user_id)
                        .where(user_subscriptions.c.status == SubscriptionStatus.ACTIVE.value)
                        .values(status=SubscriptionStatus.INACTIVE.value)
                    )
                session.execute(
                    insert(user_subscriptions).values(
                        user_id=user_id,
                        plan_name=plan_name,
                        status=status.value,
                        created_at=now,
                    )
                )
        return Subscription(user_id=user_id, plan_name=plan_name, status=status, created_at=now)


def get_subscription_store() -> SubscriptionStore:
    """SQL store when a database is configured and reachable, else in-memory."""
    from kingdomquest.core.database import check_connection, ensure_schema, get_database_url

    if get_database_url():
        if check_connection() and ensure_schema():
            return SqlSubscriptionStore()
        logger.warning("[plans] database unavailable, falling back to in-memory subscriptions")

    return InMemorySubscriptionStore()
