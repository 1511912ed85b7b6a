from datetime import datetime, timezone

from sqlmodel import Field, SQLModel

TICKET_COUNTER = "tickets"


class TicketCounter(SQLModel, table=True):
    __tablename__ = "counters"

    name: str = Field(primary_key=True)
    count: int = Field(default=0)
    period: int = Field(default=0)  # calendar year the count belongs to; 0 = never used
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
