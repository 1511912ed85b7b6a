"""Domain errors for ticket intake and notification delivery.

Routes translate these into HTTP responses; services raise them and never
return error sentinels for conditions the caller has to act on.
"""

CONFIG_ERROR = "CONFIG_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
RESEND_LIMIT_REACHED = "RESEND_LIMIT_REACHED"

EMAIL_ERROR_CODES = (CONFIG_ERROR, VALIDATION_ERROR, RATE_LIMIT_ERROR, NETWORK_ERROR, UNKNOWN_ERROR)


class PortalError(Exception):
    """Base class for all support portal errors."""


class TicketValidationError(PortalError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"missing required fields: {', '.join(missing)}")


class TicketNotFound(PortalError):
    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"ticket {ticket_id} not found")


class AllocationConflict(PortalError):
    """The counter row changed between read and conditional write."""


class TicketSubmissionError(PortalError):
    """Ticket transaction could not be committed within the retry budget."""


class HistoryWriteConflict(PortalError):
    """The email history append lost every optimistic write attempt."""


class RoutingLookupFailure(PortalError):
    """Routing settings or country manager could not be read."""


class ResendCeilingExceeded(PortalError):
    code = RESEND_LIMIT_REACHED

    def __init__(self, ticket_id: str, attempts: int, ceiling: int):
        self.ticket_id = ticket_id
        self.attempts = attempts
        self.ceiling = ceiling
        super().__init__(
            f"ticket {ticket_id} already has {attempts} email attempts (limit {ceiling})"
        )


class EmailTransportError(PortalError):
    code = UNKNOWN_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TransportConfigError(EmailTransportError):
    code = CONFIG_ERROR


class TransportValidationError(EmailTransportError):
    code = VALIDATION_ERROR


class TransportRateLimit(EmailTransportError):
    code = RATE_LIMIT_ERROR


class TransportNetworkError(EmailTransportError):
    code = NETWORK_ERROR


USER_MESSAGES = {
    CONFIG_ERROR: "Email service is temporarily unavailable. Your ticket has been saved successfully.",
    RATE_LIMIT_ERROR: "Email service is currently busy. Your ticket has been saved and we will contact you soon.",
    VALIDATION_ERROR: "Email notification failed due to invalid data, but your ticket has been saved.",
    NETWORK_ERROR: "Network error prevented email delivery. Your ticket has been saved successfully.",
    UNKNOWN_ERROR: "Email notification could not be sent. Your ticket has been saved successfully.",
}


def user_message(code: str | None) -> str:
    return USER_MESSAGES.get(code or UNKNOWN_ERROR, USER_MESSAGES[UNKNOWN_ERROR])
