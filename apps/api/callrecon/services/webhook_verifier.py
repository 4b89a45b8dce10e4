from typing import Protocol

from pydantic import BaseModel
from twilio.request_validator import RequestValidator

from callrecon.config import settings
from callrecon.schemas.webhooks import InboundWebhook

PROVIDER_HEADERS = ("x-cloudonix-signature", "x-cloudonix-request-id")


class VerificationResult(BaseModel):
    ok: bool
    reason: str | None = None


class WebhookVerifier(Protocol):
    def verify(self, inbound: InboundWebhook) -> VerificationResult: ...


class HeaderWebhookVerifier:
    """Recognizes the provider by its headers or user agent; proves nothing."""

    def __init__(self, user_agent_marker: str = "cloudonix") -> None:
        self.user_agent_marker = user_agent_marker.lower()

    def verify(self, inbound: InboundWebhook) -> VerificationResult:
        headers = {key.lower(): value for key, value in inbound.headers.items()}
        if any(headers.get(name) for name in PROVIDER_HEADERS):
            return VerificationResult(ok=True)
        user_agent = headers.get("user-agent", "")
        if self.user_agent_marker and self.user_agent_marker in user_agent.lower():
            return VerificationResult(ok=True)
        return VerificationResult(ok=False, reason="missing_provider_headers")


class SignatureWebhookVerifier:
    """Validates the request signature header with a shared secret."""

    def __init__(self, secret: str, header: str = "X-Cloudonix-Signature") -> None:
        self.validator = RequestValidator(secret) if secret else None
        self.header = header.lower()

    def verify(self, inbound: InboundWebhook) -> VerificationResult:
        if self.validator is None:
            return VerificationResult(ok=False, reason="missing_signature_secret")
        headers = {key.lower(): value for key, value in inbound.headers.items()}
        signature = headers.get(self.header)
        if not signature:
            return VerificationResult(ok=False, reason="missing_signature")
        # JSON bodies are covered through a bodySHA256 query parameter, when
        # the sender provides one; otherwise only the URL is signed.
        params: dict | str = {}
        if inbound.is_form:
            params = {key: str(value) for key, value in inbound.payload.items()}
        elif "bodySHA256=" in inbound.url:
            params = inbound.body
        if not self.validator.validate(inbound.url, params, signature):
            return VerificationResult(ok=False, reason="invalid_signature")
        return VerificationResult(ok=True)


def build_verifier() -> WebhookVerifier:
    if settings.webhook_verifier == "signature":
        return SignatureWebhookVerifier(
            settings.webhook_signature_secret, settings.webhook_signature_header
        )
    return HeaderWebhookVerifier(settings.webhook_user_agent_marker)
