from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    project_name: str = "support-portal"
    database_url: str = "sqlite:///./support_portal.db"

    admin_api_key: str = "dev-admin-key"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    log_level: str = "INFO"

    # outbound email (Brevo transactional API)
    brevo_api_key: str | None = None
    brevo_api_url: str = "https://api.brevo.com/v3"
    email_sender_email: str = "noreply@example.com"
    email_sender_name: str = "Customer Support"
    email_reply_to: str = "support@example.com"
    email_timeout_seconds: float = 10.0

    # used for links embedded in notification emails
    app_base_url: str = "http://localhost:3000"

    # routing fallbacks when settings/email has no value
    default_forwarding_email: str = "support@example.com"
    international_manager_email: str = "regional.intl@example.com"

    max_email_attempts: int = 3
    ticket_tx_max_attempts: int = 5
    history_write_max_attempts: int = 5


settings = Settings()
