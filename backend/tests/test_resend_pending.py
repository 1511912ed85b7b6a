from sqlmodel import select

from support_portal.core.errors import TransportRateLimit
from support_portal.models.notification import PendingNotification
from support_portal.models.settings import EmailSettings
from support_portal.services.resend import resend_pending
from support_portal.services.routing import DatabaseRoutingSettingsProvider, RoutingSettings
from support_portal.services.submission import submit_ticket


class StaticProvider:
    def get(self):
        return RoutingSettings()


def _failed_submission(session, transport, ticket_data):
    transport.fail_with = TransportRateLimit("busy", status_code=429)
    sub = submit_ticket(session, ticket_data(), transport, StaticProvider())
    transport.fail_with = None
    return sub


def test_submission_failure_queues_pending(session, transport, ticket_data):
    sub = _failed_submission(session, transport, ticket_data)

    assert sub.ticket.email_status == "failed"
    assert sub.email_warning
    assert sub.pending is not None
    assert sub.pending.status == "pending"
    assert sub.pending.email_type == "customer_confirmation"


def test_successful_submission_queues_nothing(session, transport, ticket_data):
    sub = submit_ticket(session, ticket_data(), transport, StaticProvider())

    assert sub.result.success
    assert sub.pending is None
    assert sub.email_warning is None
    assert session.exec(select(PendingNotification)).all() == []


def test_resend_pending_sends_and_marks(session, transport, ticket_data):
    sub = _failed_submission(session, transport, ticket_data)

    summary = resend_pending(session, transport, StaticProvider())

    assert summary == {"processed": 1, "sent": 1, "failed": 0, "still_pending": 0}
    n = session.get(PendingNotification, sub.pending.id, populate_existing=True)
    assert n.status == "sent_via_email"
    assert len(transport.sent) == 1


def test_resend_pending_gives_up_at_max_attempts(session, transport, ticket_data):
    sub = _failed_submission(session, transport, ticket_data)
    transport.fail_with = TransportRateLimit("still busy", status_code=429)

    first = resend_pending(session, transport, StaticProvider())
    assert first == {"processed": 1, "sent": 0, "failed": 0, "still_pending": 1}

    second = resend_pending(session, transport, StaticProvider())
    assert second == {"processed": 1, "sent": 0, "failed": 1, "still_pending": 0}

    n = session.get(PendingNotification, sub.pending.id, populate_existing=True)
    assert n.status == "failed"
    assert n.attempts == 3
    assert n.error_code == "RATE_LIMIT_ERROR"

    assert resend_pending(session, transport, StaticProvider())["processed"] == 0


def test_stored_regional_manager_uses_settings_country_entry(session, transport, ticket_data):
    session.add(
        EmailSettings(
            countries=[{"code": "FR", "name": "France", "regional_manager": "fr.boss@corp.com", "enabled": True}]
        )
    )
    session.commit()

    sub = submit_ticket(session, ticket_data(country="France"), transport, DatabaseRoutingSettingsProvider(session))

    assert sub.ticket.regional_manager == "fr.boss@corp.com"
    assert transport.sent[0].cc == ["fr.boss@corp.com"]
    assert transport.sent[0].reply_to == "fr.boss@corp.com"
