from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Session, select

from support_portal.api.deps import require_admin_key
from support_portal.api.serializers import iso_ts
from support_portal.core.logging import log_info
from support_portal.db.session import get_session
from support_portal.models.country_manager import CountryManager
from support_portal.models.settings import EMAIL_SETTINGS, EmailSettings

router = APIRouter(prefix="/settings", tags=["settings"])


def _optional_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    if "@" not in v:
        raise ValueError("invalid email address")
    return v


class CountryRoute(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str = ""
    name: str
    email: Optional[str] = None
    regional_manager: Optional[str] = None
    enabled: bool = True

    check_emails = field_validator("email", "regional_manager")(_optional_email)


class EmailSettingsIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    manager_email: Optional[str] = None
    forwarding_email: Optional[str] = None
    countries: list[CountryRoute] = []

    check_emails = field_validator("manager_email", "forwarding_email")(_optional_email)


class CountryManagerIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    manager_email: str

    check_email = field_validator("manager_email")(_optional_email)


def _settings_out(row: Optional[EmailSettings]) -> dict:
    if not row:
        return {"managerEmail": None, "forwardingEmail": None, "countries": [], "updatedAt": None}
    return {
        "managerEmail": row.manager_email,
        "forwardingEmail": row.forwarding_email,
        "countries": [
            {
                "code": c.get("code", ""),
                "name": c.get("name"),
                "email": c.get("email"),
                "regionalManager": c.get("regional_manager"),
                "enabled": c.get("enabled", True),
            }
            for c in (row.countries or [])
        ],
        "updatedAt": iso_ts(row.updated_at),
    }


def _manager_out(m: CountryManager) -> dict:
    return {"country": m.country, "managerEmail": m.manager_email, "updatedAt": iso_ts(m.updated_at)}


@router.get("/email")
def get_email_settings(session: Session = Depends(get_session)):
    row = session.exec(select(EmailSettings).where(EmailSettings.name == EMAIL_SETTINGS)).first()
    return _settings_out(row)


@router.put("/email", dependencies=[Depends(require_admin_key)])
def put_email_settings(body: EmailSettingsIn, session: Session = Depends(get_session)):
    row = session.exec(select(EmailSettings).where(EmailSettings.name == EMAIL_SETTINGS)).first()
    if not row:
        row = EmailSettings(name=EMAIL_SETTINGS)

    row.manager_email = body.manager_email
    row.forwarding_email = body.forwarding_email
    row.countries = [c.model_dump() for c in body.countries]
    row.updated_at = datetime.now(timezone.utc)
    session.add(row)
    session.commit()
    session.refresh(row)

    log_info("email routing settings updated", countries=len(row.countries))
    return _settings_out(row)


@router.get("/country-managers")
def list_country_managers(session: Session = Depends(get_session)):
    rows = session.exec(select(CountryManager).order_by(CountryManager.country)).all()
    return {"managers": [_manager_out(m) for m in rows]}


@router.put("/country-managers/{country}", dependencies=[Depends(require_admin_key)])
def put_country_manager(country: str, body: CountryManagerIn, session: Session = Depends(get_session)):
    if not body.manager_email:
        raise HTTPException(status_code=422, detail="managerEmail is required")

    m = session.get(CountryManager, country)
    if not m:
        m = CountryManager(country=country, manager_email=body.manager_email)
    m.manager_email = body.manager_email
    m.updated_at = datetime.now(timezone.utc)
    session.add(m)
    session.commit()
    session.refresh(m)

    log_info("country manager saved", country=country, manager_email=m.manager_email)
    return _manager_out(m)


@router.delete("/country-managers/{country}", dependencies=[Depends(require_admin_key)])
def delete_country_manager(country: str, session: Session = Depends(get_session)):
    m = session.get(CountryManager, country)
    if not m:
        raise HTTPException(status_code=404, detail="Country manager not found")
    session.delete(m)
    session.commit()
    return {"deleted": True, "country": country}
