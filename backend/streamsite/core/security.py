import hashlib
import hmac
import logging
import time
from typing import List, Optional, Tuple

from .config import settings
from .exceptions import WebhookSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "mux-signature"


def parse_signature_header(header: str) -> Tuple[int, List[str]]:
    """
    Split a `t=<unix seconds>,v1=<hex>[,v1=<hex>...]` header.

    Raises WebhookSignatureError when the timestamp or every v1 entry is missing.
    """
    timestamp: Optional[int] = None
    signatures: List[str] = []
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookSignatureError("Signature timestamp is not an integer")
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed signature header")
    return timestamp, signatures


def compute_signature(secret: str, timestamp: int, payload: bytes) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


class WebhookVerifier:
    """HMAC-SHA256 verification of platform webhook deliveries."""

    def __init__(self, secret: Optional[str] = None, tolerance_seconds: Optional[int] = None):
        self.secret = secret if secret is not None else settings.MUX_WEBHOOK_SECRET
        self.tolerance_seconds = (
            tolerance_seconds if tolerance_seconds is not None
            else settings.MUX_WEBHOOK_TOLERANCE_SECONDS
        )
        self._warned_unsigned = False

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def verify(self, payload: bytes, header: Optional[str], now: Optional[float] = None) -> None:
        """
        Raise WebhookSignatureError unless `header` signs `payload`.

        Without a configured secret every delivery is accepted.
        """
        if not self.enabled:
            if not self._warned_unsigned:
                logger.warning("MUX_WEBHOOK_SECRET not set; accepting unsigned webhooks")
                self._warned_unsigned = True
            return

        if not header:
            raise WebhookSignatureError("Missing signature header")

        timestamp, signatures = parse_signature_header(header)
        current = time.time() if now is None else now
        if self.tolerance_seconds > 0 and abs(current - timestamp) > self.tolerance_seconds:
            raise WebhookSignatureError("Signature timestamp outside tolerance")

        expected = compute_signature(self.secret, timestamp, payload).encode("ascii")
        # Header values may carry arbitrary bytes; compare as bytes
        if not any(
            hmac.compare_digest(expected, candidate.encode("utf-8", "surrogateescape"))
            for candidate in signatures
        ):
            raise WebhookSignatureError("Signature mismatch")
