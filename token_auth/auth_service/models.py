from sqlalchemy import Column, Integer, String, DateTime, Enum, Index, JSON
from datetime import datetime
from .db import Base
import uuid


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


AUTH_EVENT_TYPES = (
    "login_success",
    "login_failure",
    "token_refresh",
    "password_reset_request",
    "password_reset",
    "password_change",
)


class AuthEvent(Base):
    __tablename__ = "auth_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # No foreign key: failed sign-ins are recorded for emails that match no user
    user_id = Column(Integer, nullable=True)
    email = Column(String, nullable=True)
    event_type = Column(Enum(*AUTH_EVENT_TYPES, name="auth_event_type"), nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_auth_events_user_id', 'user_id'),
        Index('ix_auth_events_timestamp', 'timestamp'),
        Index('ix_auth_events_event_type', 'event_type'),
    )
