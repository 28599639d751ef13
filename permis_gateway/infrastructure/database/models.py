"""SQLAlchemy ORM models matching db/schema.sql"""

import uuid
from sqlalchemy import Column, DateTime, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

STATUS_PENDING = "pending"
STATUS_DONE = "done"
STATUS_FAILED = "failed"


class ScheduledCancellation(Base):
    """Obligation to set cancel_at on an installment subscription, with retry tracking"""

    __tablename__ = "scheduled_cancellation"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(Text, nullable=False, unique=True)
    session_id = Column(Text, nullable=False)
    event_id = Column(Text, nullable=False)
    offer_id = Column(Text, nullable=False)
    cycles = Column(Integer, nullable=False)
    cancel_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, nullable=False, default=STATUS_PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
