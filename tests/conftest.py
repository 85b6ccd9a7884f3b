import hashlib
import hmac
import os

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

os.environ.setdefault("GITHUB_APP_IDENTIFIER", "12345")
os.environ.setdefault("GITHUB_PRIVATE_KEY", "test_private_key")
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "test_webhook_secret")

from core.credentials import AppCredentials  # noqa: E402

WEBHOOK_SECRET = b"test_webhook_secret"


def sign(body: bytes, secret: bytes = WEBHOOK_SECRET, algorithm: str = "sha1") -> str:
    return f"{algorithm}=" + hmac.new(secret, body, getattr(hashlib, algorithm)).hexdigest()


@pytest.fixture(scope="session")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(private_key) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def credentials(private_key) -> AppCredentials:
    return AppCredentials(app_identifier="12345", private_key=private_key, webhook_secret=WEBHOOK_SECRET)
