import uuid
from sqlalchemy import Column, String, DateTime, Boolean, JSON, Uuid
from sqlalchemy.sql import func

from rental_escrow.db.base import Base

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient = Column(String(255), nullable=False, index=True)

    event = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
