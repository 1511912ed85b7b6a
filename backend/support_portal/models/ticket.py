from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from support_portal.db.types import JSONType

PRIORITIES = ("Low", "Normal", "Medium", "High", "Critical", "Urgent (equipment stopped)")
HIGH_PRIORITIES = ("High", "Critical", "Urgent (equipment stopped)")
STATUSES = ("New", "Open", "Resolved", "Closed")
OPEN_STATUSES = ("New", "Open")
ISSUE_TYPES = ("Installation", "Technical issue", "Spare parts", "Warranty", "Other")

EMAIL_PENDING = "pending"
EMAIL_SENT = "sent"
EMAIL_FAILED = "failed"


class Ticket(SQLModel, table=True):
    __tablename__ = "tickets"

    ticket_id: str = Field(primary_key=True, index=True)  # TKT-2026-0001

    company_name: str
    contact_person: str
    email: str = Field(index=True)
    phone_number: Optional[str] = None
    country: str = Field(index=True)

    product_model: Optional[str] = None
    equipment_serial_no: Optional[str] = None
    order_invoice_no: Optional[str] = None
    issue_type: Optional[str] = None

    subject: str
    description: str = ""
    priority: str = Field(default="Normal", index=True)
    status: str = Field(default="New", index=True)

    attachments: Any = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    regional_manager: Optional[str] = None

    email_status: str = Field(default=EMAIL_PENDING, index=True)  # pending/sent/failed
    email_history: Any = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    last_email_sent: Optional[datetime] = None

    # bumped by every conditional write
    version: int = Field(default=1)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
