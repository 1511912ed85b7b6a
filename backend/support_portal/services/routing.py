"""Who gets told about a ticket.

The regional manager comes from, in order: the ``country_managers`` row for
the exact country name, the enabled country entry in ``settings/email``, the
built-in table below, and finally the international manager address. Every
lookup that touches the database degrades to the static defaults on error;
routing never blocks a ticket.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from support_portal.core.config import settings
from support_portal.core.errors import RoutingLookupFailure
from support_portal.core.logging import log_info, log_warning
from support_portal.models.country_manager import CountryManager
from support_portal.models.settings import EMAIL_SETTINGS, EmailSettings

CUSTOMER_CONFIRMATION = "customer_confirmation"
ADMIN_NOTIFICATION = "admin_notification"
REGIONAL_NOTIFICATION = "regional_notification"
EMAIL_TYPES = (CUSTOMER_CONFIRMATION, ADMIN_NOTIFICATION, REGIONAL_NOTIFICATION)

STATIC_REGIONAL_MANAGERS = {
    "Turkey": "regional.tr@example.com",
    "United Kingdom": "regional.uk@example.com",
    "Germany": "regional.de@example.com",
    "United States": "regional.us@example.com",
    "France": "regional.fr@example.com",
    "Italy": "regional.it@example.com",
    "Spain": "regional.es@example.com",
    "Netherlands": "regional.nl@example.com",
    "Russia": "regional.ru@example.com",
    "China": "regional.cn@example.com",
    "Japan": "regional.jp@example.com",
    "South Korea": "regional.kr@example.com",
    "India": "regional.in@example.com",
    "Brazil": "regional.br@example.com",
    "Mexico": "regional.mx@example.com",
    "Canada": "regional.ca@example.com",
    "Australia": "regional.au@example.com",
    "United Arab Emirates": "regional.ae@example.com",
    "Saudi Arabia": "regional.sa@example.com",
    "Egypt": "regional.eg@example.com",
    "South Africa": "regional.za@example.com",
}


@dataclass
class RoutingSettings:
    manager_email: Optional[str] = None
    forwarding_email: Optional[str] = None
    countries: list[dict[str, Any]] = field(default_factory=list)

    def country_entry(self, country: str) -> Optional[dict[str, Any]]:
        if not country:
            return None
        key = country.strip().lower()
        for c in self.countries:
            if not c.get("enabled", True):
                continue
            if (c.get("name") or "").lower() == key or (c.get("code") or "").lower() == key:
                return c
        return None


@dataclass
class Recipients:
    to: str
    cc: list[str]
    regional_manager: str

    @property
    def all(self) -> list[str]:
        return [self.to, *self.cc]


class RoutingSettingsProvider(Protocol):
    def get(self) -> RoutingSettings: ...


class DatabaseRoutingSettingsProvider:
    """Reads ``settings/email`` on every call so admin edits apply immediately."""

    def __init__(self, session: Session):
        self.session = session

    def get(self) -> RoutingSettings:
        try:
            row = self.session.exec(
                select(EmailSettings)
                .where(EmailSettings.name == EMAIL_SETTINGS)
                .execution_options(populate_existing=True)
            ).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RoutingLookupFailure(f"could not read email settings: {e}") from e
        if not row:
            return RoutingSettings()
        return RoutingSettings(
            manager_email=row.manager_email,
            forwarding_email=row.forwarding_email,
            countries=list(row.countries or []),
        )


def is_email(value: Optional[str]) -> bool:
    return bool(value) and "@" in value


class _AddressSet:
    """Ordered, case-insensitive set of addresses."""

    def __init__(self):
        self._seen: set[str] = set()
        self.items: list[str] = []

    def add(self, address: Optional[str]) -> bool:
        if not is_email(address):
            return False
        address = address.strip()
        key = address.lower()
        if key in self._seen:
            return False
        self._seen.add(key)
        self.items.append(address)
        return True


def static_regional_manager(country: str) -> str:
    return STATIC_REGIONAL_MANAGERS.get(country, settings.international_manager_email)


def load_routing_settings(provider: RoutingSettingsProvider) -> RoutingSettings:
    try:
        return provider.get()
    except RoutingLookupFailure as e:
        log_warning("routing settings lookup failed, using defaults", error=str(e))
        return RoutingSettings()


def _country_manager(session: Session, country: str) -> Optional[CountryManager]:
    if not country:
        return None
    try:
        return session.get(CountryManager, country, populate_existing=True)
    except SQLAlchemyError as e:
        session.rollback()
        raise RoutingLookupFailure(f"could not read country manager for {country}: {e}") from e


def resolve_regional_manager(
    session: Session,
    country: str,
    routing: Optional[RoutingSettings] = None,
) -> str:
    try:
        row = _country_manager(session, country)
    except RoutingLookupFailure as e:
        log_warning("country manager lookup failed, using static table", country=country, error=str(e))
        row = None

    if row and is_email(row.manager_email):
        return row.manager_email.strip()

    if routing:
        entry = routing.country_entry(country)
        if entry and is_email(entry.get("regional_manager")):
            return entry["regional_manager"].strip()

    return static_regional_manager(country)


def resolve_recipients(
    session: Session,
    provider: RoutingSettingsProvider,
    submitter_email: str,
    country: str,
    email_type: str = CUSTOMER_CONFIRMATION,
    override_recipient: Optional[str] = None,
) -> Recipients:
    routing = load_routing_settings(provider)
    regional = resolve_regional_manager(session, country, routing)

    cc = _AddressSet()
    cc.add(regional)
    cc.add(routing.manager_email)
    cc.add(routing.forwarding_email)
    entry = routing.country_entry(country)
    if entry:
        cc.add(entry.get("email"))

    if override_recipient:
        to = override_recipient
    elif email_type == ADMIN_NOTIFICATION:
        to = routing.forwarding_email or settings.default_forwarding_email
    elif email_type == REGIONAL_NOTIFICATION:
        to = regional
    else:
        to = submitter_email
    to = to.strip()

    recipients = Recipients(
        to=to,
        cc=[a for a in cc.items if a.lower() != to.lower()],
        regional_manager=regional,
    )
    log_info(
        "recipients resolved",
        country=country,
        email_type=email_type,
        to=recipients.to,
        cc=",".join(recipients.cc),
    )
    return recipients
