import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from core.credentials import AppCredentials
from core.errors import CredentialError, HandlerError, MalformedPayload, SignatureMismatch, WebhookError
from core.models import InstallationToken, RawWebhookRequest, WebhookPayload
from services.app_identity import issue_assertion
from services.github_service import InstallationClient, TokenExchanger
from services.token_cache import InstallationTokenCache
from services.webhook_service import EventDispatcher
from utils.retry import retry_on_transient
from utils.security import select_signature_header, verify_signature

logger = logging.getLogger("github_app.pipeline")

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"


class PipelineState(str, Enum):
    RECEIVED = "Received"
    SIGNATURE_CHECKED = "SignatureChecked"
    PAYLOAD_PARSED = "PayloadParsed"
    APP_AUTHENTICATED = "AppAuthenticated"
    INSTALLATION_AUTHENTICATED = "InstallationAuthenticated"
    DISPATCHED = "Dispatched"
    ACKNOWLEDGED = "Acknowledged"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class PipelineResult:
    event_type: str
    action: Optional[str]
    handled: bool
    state: PipelineState = PipelineState.ACKNOWLEDGED


ClientFactory = Callable[[InstallationToken], InstallationClient]


class AuthenticationPipeline:
    """Verifies, authenticates and dispatches one webhook delivery at a time.

    Stages run strictly in order and fail closed: any error halts the run
    before dispatch and is re-raised with ``stage`` set to the state the
    run was in. Nothing is shared between runs except the immutable
    credentials and, when enabled, the token cache.
    """

    def __init__(
        self,
        credentials: AppCredentials,
        exchanger: TokenExchanger,
        dispatcher: EventDispatcher,
        token_cache: Optional[InstallationTokenCache] = None,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.credentials = credentials
        self.exchanger = exchanger
        self.dispatcher = dispatcher
        self.token_cache = token_cache
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.clock = clock
        self.client_factory = client_factory or self._default_client

    def _default_client(self, token: InstallationToken) -> InstallationClient:
        return InstallationClient(
            token,
            api_url=self.exchanger.api_url,
            timeout=self.exchanger.timeout,
            transport=self.exchanger.transport,
        )

    async def run(self, request: RawWebhookRequest) -> PipelineResult:
        event_type = request.header(EVENT_HEADER) or "unknown"
        delivery_id = request.header(DELIVERY_HEADER) or "unknown"
        stage = PipelineState.RECEIVED
        logger.info(f"--- Received webhook. Event: '{event_type}', Delivery ID: '{delivery_id}' ---")

        try:
            document = self._decode(request.body)

            stage = PipelineState.SIGNATURE_CHECKED
            if not verify_signature(request.body, select_signature_header(request.headers), self.credentials.webhook_secret):
                raise SignatureMismatch("Webhook signature does not match")
            logger.debug(f"---- received event {event_type}")
            if document.get("action") is not None:
                logger.debug(f"----    action {document.get('action')}")

            stage = PipelineState.PAYLOAD_PARSED
            payload = self._parse(document)
            installation_id = payload.installation.id

            token = self._cached_token(installation_id)
            if token is None:
                async def authenticate_installation() -> InstallationToken:
                    nonlocal stage
                    stage = PipelineState.APP_AUTHENTICATED
                    assertion = issue_assertion(self.credentials, now=int(self.clock()))
                    stage = PipelineState.INSTALLATION_AUTHENTICATED
                    return await self.exchanger.exchange(assertion, installation_id)

                token = await retry_on_transient(authenticate_installation, self.max_retries, self.retry_delay)
                if self.token_cache is not None:
                    self.token_cache.put(token)

            stage = PipelineState.DISPATCHED
            async with self.client_factory(token) as client:
                try:
                    result = await self.dispatcher.dispatch(event_type, payload, client)
                except HandlerError as e:
                    self._forget_revoked_token(installation_id, e)
                    raise

        except WebhookError as e:
            e.stage = stage.value
            if isinstance(e, (CredentialError, HandlerError)):
                logger.error(f"Delivery '{delivery_id}' rejected at {stage.value}: {e}", exc_info=True)
            else:
                logger.warning(f"Delivery '{delivery_id}' rejected at {stage.value}: {e}")
            raise

        logger.info(f"Delivery '{delivery_id}' acknowledged. Handled: {result.handled}")
        return PipelineResult(
            event_type=event_type,
            action=payload.action,
            handled=result.handled,
            state=PipelineState.ACKNOWLEDGED,
        )

    @staticmethod
    def _decode(body: bytes) -> Dict[str, Any]:
        try:
            document = json.loads(body)
        except ValueError as e:
            raise MalformedPayload(f"Invalid JSON: {e}") from e
        if not isinstance(document, dict):
            raise MalformedPayload("Webhook payload must be a JSON object")
        return document

    @staticmethod
    def _parse(document: Dict[str, Any]) -> WebhookPayload:
        try:
            payload = WebhookPayload.model_validate(document)
        except ValidationError as e:
            raise MalformedPayload(f"Unexpected payload shape: {e.error_count()} validation error(s)") from e
        if payload.installation is None:
            raise MalformedPayload("Payload has no installation id")
        return payload

    def _forget_revoked_token(self, installation_id: int, error: HandlerError) -> None:
        """Drop a cached token that GitHub answered with 401."""
        cause = error.__cause__
        if (
            self.token_cache is not None
            and isinstance(cause, httpx.HTTPStatusError)
            and cause.response.status_code == 401
        ):
            logger.warning(f"Installation {installation_id} token was rejected, removing it from the cache")
            self.token_cache.invalidate(installation_id)

    def _cached_token(self, installation_id: int) -> Optional[InstallationToken]:
        if self.token_cache is None:
            return None
        token = self.token_cache.get(installation_id, self.clock())
        if token is not None:
            logger.debug(f"Using cached token for installation {installation_id}")
        return token
