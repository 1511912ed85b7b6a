from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from support_portal.db.types import JSONType

EMAIL_SETTINGS = "email"


class EmailSettings(SQLModel, table=True):
    __tablename__ = "settings"

    name: str = Field(default=EMAIL_SETTINGS, primary_key=True)
    manager_email: Optional[str] = None
    forwarding_email: Optional[str] = None
    # [{"code": "TR", "name": "Turkey", "email": ..., "regional_manager": ..., "enabled": true}]
    countries: Any = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
