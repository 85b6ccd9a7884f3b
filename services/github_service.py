import logging
from datetime import datetime
from typing import List

import httpx

from core.errors import AuthenticationError, TransientError
from core.models import InstallationToken, SignedAssertion

logger = logging.getLogger("github_app.github_service")

BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
ACCEPT = "application/vnd.github+json"


def _headers(bearer_token: str) -> dict:
    return {
        "Authorization": f"Bearer {bearer_token}",
        "Accept": ACCEPT,
        "X-GitHub-Api-Version": API_VERSION,
    }


def _parse_expiry(value: str) -> float:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()


class TokenExchanger:
    """Trades a signed App assertion for an installation access token."""

    def __init__(self, api_url: str = BASE_URL, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def exchange(self, assertion: SignedAssertion, installation_id: int) -> InstallationToken:
        """Make exactly one request to GitHub. Never retries."""
        url = f"{self.api_url}/app/installations/{installation_id}/access_tokens"
        logger.info(f"[GitHub API] ==> 'create_installation_access_token' for installation {installation_id}")

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(url, headers=_headers(assertion.token))
            except httpx.TimeoutException as e:
                raise TransientError(f"Token exchange for installation {installation_id} timed out after {self.timeout}s") from e
            except httpx.TransportError as e:
                raise TransientError(f"Token exchange for installation {installation_id} failed: {type(e).__name__}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"GitHub returned {response.status_code} for installation {installation_id}")
        if not response.is_success:
            raise AuthenticationError(f"GitHub rejected token exchange for installation {installation_id} ({response.status_code})")

        try:
            data = response.json()
            token = InstallationToken(
                token=data["token"],
                expires_at=_parse_expiry(data["expires_at"]),
                installation_id=installation_id,
                permissions=data.get("permissions") or {},
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AuthenticationError(f"Unexpected token exchange response for installation {installation_id}") from e

        logger.info(f"  Output: Installation token for {installation_id} expires at {data['expires_at']}.")
        return token


class InstallationClient:
    """GitHub API client authenticated as one installation of the App."""

    def __init__(self, token: InstallationToken, api_url: str = BASE_URL, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.installation_id = token.installation_id
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=_headers(token.token),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "InstallationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def add_labels_to_issue(self, repo_full_name: str, issue_number: int, labels: List[str]) -> list:
        """Add labels to an issue (or pull request)."""
        logger.info(f"[GitHub API] ==> 'add_labels_to_issue' on {repo_full_name}#{issue_number}")
        response = await self._client.post(f"/repos/{repo_full_name}/issues/{issue_number}/labels", json={"labels": labels})
        response.raise_for_status()
        logger.info(f"  Output: Labels {labels} successfully added.")
        return response.json()
