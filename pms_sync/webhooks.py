"""
Webhook signature verification and inbound payload models
"""

import hmac
import hashlib
import json
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

SIGNATURE_PREFIX = "sha256="

Payload = Union[bytes, str, Mapping[str, Any]]


class WebhookMetadata(BaseModel):
    """Optional envelope metadata sent alongside a webhook booking"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    correlation_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("correlationId", "correlation_id"),
    )
    event: Optional[str] = None


class WebhookPayload(BaseModel):
    """Inbound webhook envelope: ``{booking, metadata?}``"""

    model_config = ConfigDict(extra="allow")

    booking: Optional[Dict[str, Any]] = None
    metadata: Optional[WebhookMetadata] = None

    @property
    def correlation_id(self) -> Optional[str]:
        return self.metadata.correlation_id if self.metadata else None


def canonical_body(payload: Payload) -> bytes:
    """
    Bytes the signature is computed over.

    Raw bodies are used as received; decoded mappings are re-serialized as
    compact JSON, which is how the vendors serialize them before signing.
    """
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(payload: Payload, secret: str) -> str:
    """Hex HMAC-SHA256 of the payload"""
    return hmac.new(secret.encode("utf-8"), canonical_body(payload), hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: Payload, signature: Optional[str], secret: str) -> bool:
    """
    Check a webhook signature in constant time.

    Accepts the bare hex digest or the ``sha256=<hex>`` form.
    """
    if not signature or not secret:
        return False
    provided = signature.strip()
    if provided.lower().startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(provided.lower(), expected)
