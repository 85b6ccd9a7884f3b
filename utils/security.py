import hashlib
import hmac
from typing import Mapping, Optional

from core.models import SignatureHeader

SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_256_HEADER = "X-Hub-Signature-256"

# A missing header is replaced by this, so it can never verify.
MISSING_SIGNATURE = "sha1="

SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def select_signature_header(headers: Mapping[str, str]) -> Optional[str]:
    """Return the strongest signature header GitHub sent, if any."""
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in (SIGNATURE_256_HEADER, SIGNATURE_HEADER):
        value = lowered.get(name.lower())
        if value:
            return value
    return None


def parse_signature_header(signature_header: Optional[str]) -> SignatureHeader:
    """Split ``algorithm=hexdigest`` on the first ``=``."""
    header = signature_header or MISSING_SIGNATURE
    algorithm, _, digest = header.partition("=")
    return SignatureHeader(algorithm=algorithm.strip().lower(), hex_digest=digest.strip())


def verify_signature(raw_body: bytes, signature_header: Optional[str], secret: bytes) -> bool:
    """Verify that the webhook request came from GitHub.

    ``raw_body`` must be the exact bytes received. Returns False for a
    missing or malformed header, an unsupported algorithm, an empty secret
    or a digest mismatch.
    """
    parsed = parse_signature_header(signature_header)
    digestmod = SUPPORTED_ALGORITHMS.get(parsed.algorithm)
    if digestmod is None or not parsed.hex_digest or not secret:
        return False

    try:
        claimed = parsed.hex_digest.encode("ascii")
    except UnicodeEncodeError:
        return False

    expected = hmac.new(secret, msg=raw_body, digestmod=digestmod).hexdigest().encode("ascii")
    return hmac.compare_digest(expected, claimed)
