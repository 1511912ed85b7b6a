from prometheus_client import Counter, Histogram

tickets_created_total = Counter(
    "tickets_created_total",
    "Total tickets persisted",
    ["priority"],
)

ticket_allocation_conflicts_total = Counter(
    "ticket_allocation_conflicts_total",
    "Ticket transactions retried because the counter moved underneath them",
)

ticket_transaction_latency_seconds = Histogram(
    "ticket_transaction_latency_seconds",
    "Latency of the allocate-and-persist ticket transaction",
)

notifications_total = Counter(
    "notifications_total",
    "Notification dispatch attempts",
    ["email_type", "entry_type", "outcome"],
)

email_send_latency_seconds = Histogram(
    "email_send_latency_seconds",
    "Latency of the outbound email API call",
    ["outcome"],
)

resend_rejected_total = Counter(
    "resend_rejected_total",
    "Resend requests refused because the ticket reached its attempt ceiling",
)

api_request_latency_seconds = Histogram(
    "api_request_latency_seconds",
    "API request latency in seconds",
    ["route", "method", "status"],
)
