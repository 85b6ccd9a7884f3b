import logging
import threading
from typing import Dict, Optional

from core.models import InstallationToken

logger = logging.getLogger("github_app.token_cache")

# Stop handing out a token this many seconds before GitHub expires it.
DEFAULT_EXPIRY_MARGIN = 60.0


class InstallationTokenCache:
    """Optional per-installation token cache, invalidated at expiry.

    Off by default: without it every request performs the full exchange.
    """

    def __init__(self, expiry_margin: float = DEFAULT_EXPIRY_MARGIN):
        self.expiry_margin = expiry_margin
        self._tokens: Dict[int, InstallationToken] = {}
        self._lock = threading.Lock()

    def get(self, installation_id: int, now: float) -> Optional[InstallationToken]:
        with self._lock:
            token = self._tokens.get(installation_id)
            if token is None:
                return None
            if token.is_expired(now, self.expiry_margin):
                del self._tokens[installation_id]
                logger.debug(f"Cached token for installation {installation_id} expired")
                return None
            return token

    def put(self, token: InstallationToken) -> None:
        with self._lock:
            self._tokens[token.installation_id] = token

    def invalidate(self, installation_id: int) -> None:
        with self._lock:
            self._tokens.pop(installation_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
