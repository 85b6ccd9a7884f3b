import logging
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from core.config import Settings
from core.errors import CredentialError

logger = logging.getLogger("github_app.credentials")


@dataclass(frozen=True)
class AppCredentials:
    """Process-wide App identity. Loaded once at startup and never mutated."""
    app_identifier: str
    private_key: RSAPrivateKey = field(repr=False)
    webhook_secret: bytes = field(repr=False)


def normalize_pem(raw: str) -> str:
    """Turn a PEM exported as a single line with literal ``\\n`` back into a real PEM."""
    return raw.replace("\\n", "\n").strip() + "\n"


def load_private_key(pem: str | bytes | None) -> RSAPrivateKey:
    if not pem:
        raise CredentialError("GitHub App private key is missing.")
    if isinstance(pem, str):
        pem = normalize_pem(pem).encode("utf-8")
    try:
        key = load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CredentialError(f"GitHub App private key could not be loaded: {e}") from e
    if not isinstance(key, RSAPrivateKey):
        raise CredentialError("GitHub App private key must be an RSA key.")
    return key


def load_credentials(settings: Settings) -> AppCredentials:
    """Build AppCredentials from settings, failing fast on anything unusable."""
    try:
        settings.validate_settings()
    except ValueError as e:
        raise CredentialError(str(e)) from e

    if settings.GITHUB_PRIVATE_KEY:
        pem = settings.GITHUB_PRIVATE_KEY
    else:
        try:
            pem = Path(settings.GITHUB_PRIVATE_KEY_PATH).read_text(encoding="utf-8")
        except OSError as e:
            raise CredentialError(f"Could not read private key file: {e.strerror}") from e

    credentials = AppCredentials(
        app_identifier=str(settings.GITHUB_APP_IDENTIFIER),
        private_key=load_private_key(pem),
        webhook_secret=settings.GITHUB_WEBHOOK_SECRET.encode("utf-8"),
    )
    logger.info(f"Loaded credentials for GitHub App {credentials.app_identifier}")
    return credentials
