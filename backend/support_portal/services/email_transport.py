"""Outbound email through the Brevo v3 transactional API.

``send`` returns the provider message ID or raises an EmailTransportError
subclass whose ``code`` is what gets recorded on the ticket.
"""

from __future__ import annotations

import html as html_module
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from support_portal.core.config import settings
from support_portal.core.errors import (
    EmailTransportError,
    TransportConfigError,
    TransportNetworkError,
    TransportRateLimit,
    TransportValidationError,
)
from support_portal.core.logging import log_error, log_info
from support_portal.metrics.prometheus import email_send_latency_seconds


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    cc: list[str] = field(default_factory=list)
    text: Optional[str] = None
    reply_to: Optional[str] = None


class EmailTransport(Protocol):
    def send(self, message: EmailMessage) -> str: ...

    def check_credentials(self) -> dict[str, Any]: ...


def html_to_text(content: str) -> str:
    text = re.sub(r"<(script|style|head)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return html_module.unescape(text)


def _error_detail(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return r.text[:500]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("code") or data)
    return str(data)


def error_for_response(r: httpx.Response) -> EmailTransportError:
    detail = f"Brevo API error ({r.status_code}): {_error_detail(r)}"
    if r.status_code in (401, 403):
        return TransportConfigError(detail, status_code=r.status_code)
    if r.status_code == 429:
        return TransportRateLimit(detail, status_code=r.status_code)
    if r.status_code in (400, 422):
        return TransportValidationError(detail, status_code=r.status_code)
    if r.status_code in (502, 503, 504):
        return TransportNetworkError(detail, status_code=r.status_code)
    return EmailTransportError(detail, status_code=r.status_code)


class BrevoTransport:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender_email: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: Optional[float] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.brevo_api_key
        self.api_url = (api_url or settings.brevo_api_url).rstrip("/")
        self.sender_email = sender_email or settings.email_sender_email
        self.sender_name = sender_name or settings.email_sender_name
        self.timeout = timeout if timeout is not None else settings.email_timeout_seconds
        self._http_transport = http_transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._http_transport)

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": self.api_key or "",
        }

    def build_payload(self, message: EmailMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "htmlContent": message.html,
            "textContent": message.text or html_to_text(message.html),
            "replyTo": {
                "email": message.reply_to or settings.email_reply_to,
                "name": self.sender_name,
            },
        }
        if message.cc:
            payload["cc"] = [{"email": a} for a in message.cc]
        return payload

    def send(self, message: EmailMessage) -> str:
        if not self.api_key:
            raise TransportConfigError("BREVO_API_KEY not configured")

        payload = self.build_payload(message)
        start = time.perf_counter()
        outcome = "error"
        try:
            with self._client() as client:
                r = client.post(f"{self.api_url}/smtp/email", json=payload, headers=self._headers())
            if r.status_code >= 400:
                raise error_for_response(r)
            try:
                data = r.json()
            except ValueError:
                data = {"messageId": r.text}
            outcome = "ok"
        except httpx.TimeoutException as e:
            raise TransportNetworkError(f"timeout talking to Brevo: {e}") from e
        except httpx.TransportError as e:
            raise TransportNetworkError(f"network error talking to Brevo: {e}") from e
        finally:
            email_send_latency_seconds.labels(outcome=outcome).observe(time.perf_counter() - start)

        message_id = str(data.get("messageId") or "") if isinstance(data, dict) else ""
        log_info("email accepted by Brevo", to=message.to, cc_count=len(message.cc), message_id=message_id)
        return message_id

    def check_credentials(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "configured": self.configured,
            "keyValid": False,
            "senderEmail": self.sender_email,
            "account": None,
        }
        if not self.api_key:
            out["error"] = "BREVO_API_KEY not configured"
            return out

        try:
            with self._client() as client:
                r = client.get(f"{self.api_url}/account", headers=self._headers())
        except httpx.HTTPError as e:
            log_error("Brevo credential check failed", error=str(e))
            out["error"] = str(e)
            return out

        out["keyValid"] = r.status_code < 400
        if out["keyValid"]:
            try:
                data = r.json()
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            out["account"] = {
                "email": data.get("email"),
                "firstName": data.get("firstName"),
                "lastName": data.get("lastName"),
            }
        else:
            out["error"] = f"HTTP {r.status_code}"
        return out
