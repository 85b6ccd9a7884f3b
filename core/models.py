from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class RawWebhookRequest:
    """The literal request body and headers as delivered by the HTTP layer."""
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class SignatureHeader:
    algorithm: str
    hex_digest: str


class _PayloadModel(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class Installation(_PayloadModel):
    id: int


class Repository(_PayloadModel):
    full_name: str


class Issue(_PayloadModel):
    number: int


class WebhookPayload(_PayloadModel):
    action: Optional[str] = None
    installation: Optional[Installation] = None
    repository: Optional[Repository] = None
    issue: Optional[Issue] = None


@dataclass(frozen=True)
class SignedAssertion:
    token: str = field(repr=False)
    issued_at: int
    expires_at: int
    issuer: str

    @property
    def lifetime(self) -> int:
        return self.expires_at - self.issued_at


@dataclass(frozen=True)
class InstallationToken:
    token: str = field(repr=False)
    expires_at: float
    installation_id: int
    permissions: Dict[str, Any] = field(default_factory=dict, compare=False)

    def is_expired(self, now: float, margin: float = 0) -> bool:
        return now >= self.expires_at - margin
