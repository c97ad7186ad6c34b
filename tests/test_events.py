import asyncio
import logging

from bptflistings.services.events import (
    ActionErrorMessage,
    EventHub,
    ListingRemovedMessage,
    QueueChangedMessage,
    parse_message,
)


def test_wire_format() -> None:
    wire = ActionErrorMessage(phase="delete", identity="440_1", reason="Not found").to_wire()

    assert wire["version"] == "1"
    assert wire["type"] == "action_error"
    assert wire["timestamp"].endswith("+00:00")
    assert wire["payload"] == {
        "phase": "delete",
        "identity": "440_1",
        "reason": "Not found",
        "retry_after": None,
    }


def test_parse_message_round_trip() -> None:
    wire = QueueChangedMessage(creates=[{"identity": "sell:1"}], removes=["440_1"]).to_wire()

    message = parse_message(wire)

    assert isinstance(message, QueueChangedMessage)
    assert message.removes == ["440_1"]


def test_parse_message_rejects_unknown_and_invalid() -> None:
    assert parse_message({"type": "nope", "payload": {}}) is None
    assert parse_message({"type": "listing_removed", "payload": {}}) is None


def test_failing_handler_does_not_stop_others(caplog) -> None:
    hub = EventHub()
    seen: list[str] = []

    def broken(event) -> None:
        raise RuntimeError("boom")

    hub.subscribe(broken)
    hub.subscribe(lambda event: seen.append(event.id))

    with caplog.at_level(logging.ERROR):
        hub.publish(ListingRemovedMessage(id="440_1"))

    assert seen == ["440_1"]
    assert "Event handler failed for listing_removed" in caplog.text


def test_unsubscribe() -> None:
    hub = EventHub()
    seen: list[str] = []
    unsubscribe = hub.subscribe(lambda event: seen.append(event.id))

    hub.publish(ListingRemovedMessage(id="440_1"))
    unsubscribe()
    unsubscribe()
    hub.publish(ListingRemovedMessage(id="440_2"))

    assert seen == ["440_1"]


def test_async_handlers_are_drained() -> None:
    async def run() -> list[str]:
        hub = EventHub()
        seen: list[str] = []

        async def handler(event) -> None:
            await asyncio.sleep(0)
            seen.append(event.id)

        hub.subscribe(handler)
        hub.publish(ListingRemovedMessage(id="440_1"))
        assert seen == []
        await hub.drain()
        return seen

    assert asyncio.run(run()) == ["440_1"]
