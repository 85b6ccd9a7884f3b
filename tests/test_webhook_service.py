import pytest
from unittest.mock import AsyncMock, MagicMock

from core.errors import HandlerError
from core.models import WebhookPayload
from services.webhook_service import EventDispatcher, build_default_dispatcher

def _payload(action, **extra):
    return WebhookPayload.model_validate({"action": action, "installation": {"id": 1}, **extra})

@pytest.mark.asyncio
async def test_dispatch_invokes_registered_handler_once():
    dispatcher = EventDispatcher()
    handler = AsyncMock()
    dispatcher.register("issues", "opened", handler)
    payload = _payload("opened")
    client = MagicMock()

    result = await dispatcher.dispatch("issues", payload, client)

    assert result.handled is True
    handler.assert_awaited_once_with(payload, client)

@pytest.mark.asyncio
async def test_dispatch_unmatched_action_is_noop():
    dispatcher = EventDispatcher()
    handler = AsyncMock()
    dispatcher.register("issues", "opened", handler)

    result = await dispatcher.dispatch("issues", _payload("closed"), MagicMock())

    assert result.handled is False
    assert result.action == "closed"
    handler.assert_not_awaited()

@pytest.mark.asyncio
async def test_dispatch_unmatched_event_type_is_noop():
    dispatcher = EventDispatcher()
    handler = AsyncMock()
    dispatcher.register("issues", "opened", handler)

    result = await dispatcher.dispatch("pull_request", _payload("opened"), MagicMock())

    assert result.handled is False
    handler.assert_not_awaited()

@pytest.mark.asyncio
async def test_dispatch_event_without_action_is_noop():
    dispatcher = EventDispatcher()
    dispatcher.register("issues", "opened", AsyncMock())

    result = await dispatcher.dispatch("issues", _payload(None), MagicMock())

    assert result.handled is False

@pytest.mark.asyncio
async def test_dispatch_does_not_resolve_attribute_names():
    dispatcher = EventDispatcher()
    dispatcher.register("issues", "opened", AsyncMock())

    result = await dispatcher.dispatch("__class__", _payload("__init__"), MagicMock())

    assert result.handled is False

@pytest.mark.asyncio
async def test_dispatch_wraps_handler_failure():
    dispatcher = EventDispatcher()
    dispatcher.register("issues", "opened", AsyncMock(side_effect=RuntimeError("boom")))

    with pytest.raises(HandlerError) as exc_info:
        await dispatcher.dispatch("issues", _payload("opened"), MagicMock())
    assert isinstance(exc_info.value.__cause__, RuntimeError)

def test_register_duplicate_key_rejected():
    dispatcher = EventDispatcher()
    dispatcher.register("issues", "opened", AsyncMock())

    with pytest.raises(ValueError):
        dispatcher.register("issues", "opened", AsyncMock())

@pytest.mark.asyncio
async def test_on_decorator_registers_handler():
    dispatcher = EventDispatcher()
    seen = []

    @dispatcher.on("issue_comment", "created")
    async def handle_comment(payload, client):
        seen.append(payload.action)

    result = await dispatcher.dispatch("issue_comment", _payload("created"), MagicMock())

    assert result.handled is True
    assert seen == ["created"]

@pytest.mark.asyncio
async def test_default_dispatcher_labels_opened_issue():
    dispatcher = build_default_dispatcher("needs-response")
    client = MagicMock()
    client.add_labels_to_issue = AsyncMock()
    payload = _payload("opened", repository={"full_name": "octo/repo"}, issue={"number": 7})

    result = await dispatcher.dispatch("issues", payload, client)

    assert result.handled is True
    client.add_labels_to_issue.assert_awaited_once_with("octo/repo", 7, ["needs-response"])

@pytest.mark.asyncio
async def test_default_dispatcher_issue_payload_without_issue():
    dispatcher = build_default_dispatcher()
    client = MagicMock()
    client.add_labels_to_issue = AsyncMock()

    with pytest.raises(HandlerError):
        await dispatcher.dispatch("issues", _payload("opened"), client)
    client.add_labels_to_issue.assert_not_awaited()
