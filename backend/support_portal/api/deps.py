from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from support_portal.core.config import settings
from support_portal.db.session import get_session
from support_portal.services.email_transport import BrevoTransport, EmailTransport
from support_portal.services.routing import DatabaseRoutingSettingsProvider, RoutingSettingsProvider


def require_admin_key(x_admin_key: Optional[str] = Header(default=None)) -> None:
    if not x_admin_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def get_email_transport() -> EmailTransport:
    return BrevoTransport()


def get_settings_provider(session: Session = Depends(get_session)) -> RoutingSettingsProvider:
    return DatabaseRoutingSettingsProvider(session)
