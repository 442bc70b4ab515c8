"""
User domain service.
- create_user(email, role)
- get_user(user_id)
- update_subscription(): written by the billing integration only
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from linksight.core.database import get_db_session, users as app_users
from linksight.core.errors import ConflictError, NotFoundError, ValidationError
from linksight.core.timeutils import as_utc, utc_now
from linksight.models.user import Role, User


logger = logging.getLogger(__name__)


def _parse_role(role: str) -> Role:
    try:
        return Role((role or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'")


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        email=row.email,
        role=row.role,
        subscription_status=row.subscription_status,
        subscription_plan=row.subscription_plan,
        subscription_start_date=as_utc(row.subscription_start_date) if row.subscription_start_date else None,
        next_billing_date=as_utc(row.next_billing_date) if row.next_billing_date else None,
        created_at=as_utc(row.created_at),
    )


def get_user(user_id: str) -> Optional[User]:
    with get_db_session() as session:
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        if not row:
            return None
        return _row_to_user(row)


def create_user(
    email: str,
    *,
    role: str = Role.FREE.value,
    user_id: Optional[str] = None,
    subscription_start_date: Optional[datetime] = None,
) -> User:
    """Insert a user row. Emails are stored lowercased and must be unique."""
    parsed_role = _parse_role(role)
    uid = user_id or str(uuid4())
    now = utc_now()
    try:
        with get_db_session() as session:
            session.execute(
                insert(app_users).values(
                    user_id=uid,
                    email=email.strip().lower(),
                    role=parsed_role.value,
                    subscription_plan=parsed_role.value,
                    subscription_start_date=as_utc(subscription_start_date) if subscription_start_date else None,
                    created_at=now,
                    updated_at=now,
                )
            )
    except IntegrityError:
        raise ConflictError(f"User already exists: {email}")

    return get_user(uid)


def update_subscription(
    user_id: str,
    *,
    role: Optional[str] = None,
    subscription_status: Optional[str] = None,
    subscription_start_date: Optional[datetime] = None,
    next_billing_date: Optional[datetime] = None,
) -> User:
    """
    Apply subscription state pushed by the billing integration.

    Only the fields passed are changed; the plan follows the role.

    Raises:
        NotFoundError: Unknown user
    """
    values = {"updated_at": utc_now()}
    if role is not None:
        parsed_role = _parse_role(role)
        values["role"] = parsed_role.value
        values["subscription_plan"] = parsed_role.value
    if subscription_status is not None:
        values["subscription_status"] = subscription_status
    if subscription_start_date is not None:
        values["subscription_start_date"] = as_utc(subscription_start_date)
    if next_billing_date is not None:
        values["next_billing_date"] = as_utc(next_billing_date)

    with get_db_session() as session:
        result = session.execute(
            update(app_users).where(app_users.c.user_id == user_id).values(**values)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"User not found: {user_id}")

    logger.info(
        "[users] subscription updated",
        extra={"user_id": user_id, "fields": sorted(k for k in values if k != "updated_at")},
    )
    return get_user(user_id)
