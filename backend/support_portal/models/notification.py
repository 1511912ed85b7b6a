import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel

PENDING = "pending"
SENT_VIA_EMAIL = "sent_via_email"
PROCESSED = "processed"
FAILED = "failed"
NOTIFICATION_STATUSES = (PENDING, SENT_VIA_EMAIL, PROCESSED, FAILED)


class PendingNotification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    ticket_id: str = Field(index=True)
    email: str
    email_type: str = Field(default="customer_confirmation")

    status: str = Field(default=PENDING, index=True)  # pending/sent_via_email/processed/failed
    attempts: int = Field(default=0)
    max_attempts: int = Field(default=3)
    error_code: Optional[str] = None
    last_error: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
