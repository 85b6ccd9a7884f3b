import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from core.errors import HandlerError
from core.models import WebhookPayload
from services.github_service import InstallationClient

logger = logging.getLogger("github_app.webhook_service")

Handler = Callable[[WebhookPayload, InstallationClient], Awaitable[None]]
EventKey = Tuple[str, str]


@dataclass(frozen=True)
class DispatchResult:
    event_type: str
    action: Optional[str]
    handled: bool


class EventDispatcher:
    """Routes verified events to handlers registered by ``(event_type, action)``.

    The key is only ever used for a dictionary lookup, so an arbitrary
    ``X-GitHub-Event`` value can reach nothing that was not registered.
    """

    def __init__(self):
        self._handlers: Dict[EventKey, Handler] = {}

    def register(self, event_type: str, action: str, handler: Handler) -> None:
        key = (event_type, action)
        if key in self._handlers:
            raise ValueError(f"A handler for '{event_type}.{action}' is already registered.")
        self._handlers[key] = handler

    def on(self, event_type: str, action: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.register(event_type, action, handler)
            return handler
        return decorator

    def handler_for(self, event_type: str, action: Optional[str]) -> Optional[Handler]:
        if action is None:
            return None
        return self._handlers.get((event_type, action))

    async def dispatch(self, event_type: str, payload: WebhookPayload, client: InstallationClient) -> DispatchResult:
        handler = self.handler_for(event_type, payload.action)
        if handler is None:
            logger.info(f"Ignoring event: {event_type}.{payload.action}")
            return DispatchResult(event_type=event_type, action=payload.action, handled=False)

        logger.info(f"Handling event: {event_type}.{payload.action}")
        try:
            await handler(payload, client)
        except HandlerError:
            raise
        except Exception as e:
            raise HandlerError(f"Handler for '{event_type}.{payload.action}' failed: {e}") from e
        return DispatchResult(event_type=event_type, action=payload.action, handled=True)


def make_issue_opened_handler(label: str) -> Handler:
    async def handle_issue_opened_event(payload: WebhookPayload, client: InstallationClient) -> None:
        """When an issue is opened, add a label."""
        if payload.repository is None or payload.issue is None:
            raise HandlerError("issues.opened payload has no repository or issue")
        repo_full_name = payload.repository.full_name
        issue_number = payload.issue.number
        logger.info(f"Labelling issue #{issue_number} in {repo_full_name} with '{label}'")
        await client.add_labels_to_issue(repo_full_name, issue_number, [label])

    return handle_issue_opened_event


def build_default_dispatcher(label: str = "needs-response") -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.register("issues", "opened", make_issue_opened_handler(label))
    return dispatcher
