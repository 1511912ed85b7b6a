from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class CountryManager(SQLModel, table=True):
    __tablename__ = "country_managers"

    country: str = Field(primary_key=True)  # exact country name, e.g. "Turkey"
    manager_email: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
