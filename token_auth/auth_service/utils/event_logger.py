"""
Event logger utility for authentication events.
"""
from datetime import datetime
from typing import Optional
from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..models import AUTH_EVENT_TYPES, AuthEvent

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    """Client address, falling back to the first X-Forwarded-For hop."""
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded.split(",")[0].strip()
    return None


def log_auth_event(
    event_type: str,
    request: Request,
    db: Session,
    user_id: Optional[int] = None,
    email: Optional[str] = None,
    metadata: dict = None
) -> None:
    """
    Record an authentication event in the database and the service log.

    Args:
        event_type: One of AUTH_EVENT_TYPES
        request: FastAPI Request object
        db: Database session
        user_id: Id of the user concerned, when known
        email: Email the request was made for, when known
        metadata: Optional dictionary of additional context

    Raises:
        ValueError: If event_type is invalid
    """
    if event_type not in AUTH_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type '{event_type}'. Must be one of: {', '.join(AUTH_EVENT_TYPES)}"
        )

    ip_address = client_ip(request)
    try:
        auth_event = AuthEvent(
            user_id=user_id,
            email=email,
            event_type=event_type,
            ip_address=ip_address,
            user_agent=request.headers.get("user-agent"),
            timestamp=datetime.utcnow(),
            event_metadata=metadata or {}
        )
        db.add(auth_event)
        db.commit()
    except SQLAlchemyError as e:
        # Recording failure should not break the auth flow
        logger.warning(
            "Failed to log auth event: user_id=%s event_type=%s error=%s",
            user_id, event_type, e
        )
        db.rollback()
        return

    logger.info(
        "AUTH %s user_id=%s email=%s ip=%s",
        event_type, user_id, email, ip_address
    )
