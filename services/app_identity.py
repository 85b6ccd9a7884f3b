import logging
import time

import jwt

from core.credentials import AppCredentials
from core.errors import CredentialError
from core.models import SignedAssertion

logger = logging.getLogger("github_app.app_identity")

ALGORITHM = "RS256"

# GitHub rejects App JWTs that live longer than ten minutes.
MAX_ASSERTION_LIFETIME = 10 * 60


def issue_assertion(credentials: AppCredentials, now: int | None = None, lifetime: int = MAX_ASSERTION_LIFETIME) -> SignedAssertion:
    """Build and sign the JWT that authenticates the App itself.

    The token is self-contained: GitHub verifies it with the App's public
    key and needs no other state.
    """
    if not 0 < lifetime <= MAX_ASSERTION_LIFETIME:
        raise ValueError(f"Assertion lifetime must be between 1 and {MAX_ASSERTION_LIFETIME} seconds.")
    if credentials.private_key is None:
        raise CredentialError("GitHub App private key is missing.")

    issued_at = int(time.time()) if now is None else int(now)
    claims = {
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "iss": credentials.app_identifier,
    }

    try:
        token = jwt.encode(claims, credentials.private_key, algorithm=ALGORITHM)
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise CredentialError(f"Could not sign App assertion: {e}") from e

    logger.debug(f"Issued App assertion for {credentials.app_identifier}, expires at {claims['exp']}")
    return SignedAssertion(
        token=token,
        issued_at=issued_at,
        expires_at=claims["exp"],
        issuer=credentials.app_identifier,
    )
