import io

import pytest

from alarmbot.core.contracts import AlarmState, InboundEvent
from alarmbot.core.state import StateStore
from alarmbot.modules.bot.orchestrator import (
    ARMED_REPLY,
    CHANGE_PIN_USAGE,
    DISARMED_REPLY,
    PIN_CHANGED_REPLY,
    STATUS_ARMED_REPLY,
    STATUS_DISARMED_REPLY,
    UNKNOWN_COMMAND_REPLY,
    BotOrchestrator,
)
from alarmbot.modules.device.client import DeviceTransportError
from alarmbot.modules.messaging.telegram_gateway import MessagingError


def _event(text: str, chat_id: int | None = 7, update_id: int = 1) -> InboundEvent:
    return InboundEvent(update_id=update_id, chat_id=chat_id, text=text)


def _orchestrator(device, gateway, store: StateStore | None = None) -> BotOrchestrator:
    return BotOrchestrator(store=store or StateStore(), device=device, gateway=gateway)


@pytest.mark.asyncio
async def test_arm_and_disarm_update_store_after_device_success(fake_device, fake_gateway) -> None:
    store = StateStore()
    orchestrator = _orchestrator(fake_device, fake_gateway, store)

    await orchestrator.handle(_event("/arm"))
    assert store.get() is AlarmState.ARMED

    await orchestrator.handle(_event("/disarm"))
    assert store.get() is AlarmState.DISARMED

    assert fake_device.calls == ["arm", "disarm"]
    assert fake_gateway.messages == [(7, ARMED_REPLY), (7, DISARMED_REPLY)]


@pytest.mark.asyncio
async def test_device_failure_replies_with_marker_and_keeps_state(
    rejecting_device, fake_gateway
) -> None:
    store = StateStore()
    orchestrator = _orchestrator(rejecting_device, fake_gateway, store)

    await orchestrator.handle(_event("/arm"))

    assert store.get() is AlarmState.DISARMED
    [(chat_id, text)] = fake_gateway.messages
    assert chat_id == 7
    assert text.startswith("❌")
    assert "500" in text


@pytest.mark.asyncio
async def test_status_reports_device_state_not_store(fake_device, fake_gateway) -> None:
    store = StateStore()
    orchestrator = _orchestrator(fake_device, fake_gateway, store)

    fake_device.state = "ARMED"
    await orchestrator.handle(_event("/status"))
    fake_device.state = "SOMETHING ELSE"
    await orchestrator.handle(_event("/status"))

    assert [text for _, text in fake_gateway.messages] == [
        STATUS_ARMED_REPLY,
        STATUS_DISARMED_REPLY,
    ]
    assert store.get() is AlarmState.DISARMED


@pytest.mark.asyncio
async def test_status_transport_failure(fake_device, fake_gateway) -> None:
    fake_device.error = DeviceTransportError("connection refused")
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event("/status"))

    assert fake_gateway.messages == [(7, "❌ connection refused")]


@pytest.mark.asyncio
async def test_unknown_text_gets_single_reply_without_device_call(
    fake_device, fake_gateway
) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event("hello"))
    await orchestrator.handle(_event("/armed"))
    await orchestrator.handle(_event("/change_pinned 1234"))

    assert fake_device.calls == []
    assert fake_device.pins == []
    assert fake_gateway.messages == [(7, UNKNOWN_COMMAND_REPLY)] * 3


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["/change_pin", "/change_pin 1 2", "/change_pin   "])
async def test_change_pin_requires_exactly_one_argument(fake_device, fake_gateway, text) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event(text))

    assert fake_device.calls == []
    assert fake_gateway.messages == [(7, CHANGE_PIN_USAGE)]


@pytest.mark.asyncio
async def test_change_pin_forwards_pin(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event("/change_pin 4321"))

    assert fake_device.pins == ["4321"]
    assert fake_gateway.messages == [(7, PIN_CHANGED_REPLY)]


@pytest.mark.asyncio
async def test_event_without_chat_is_ignored(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event("/arm", chat_id=None))

    assert fake_device.calls == []
    assert fake_gateway.messages == []
    assert len(orchestrator.registry) == 0


@pytest.mark.asyncio
async def test_any_message_registers_chat(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    await orchestrator.handle(_event("hi", chat_id=1))
    await orchestrator.handle(_event("hi again", chat_id=1))
    await orchestrator.handle(_event("/status", chat_id=2))

    assert orchestrator.registry.snapshot() == [1, 2]


@pytest.mark.asyncio
async def test_failed_reply_is_swallowed(fake_device, fake_gateway) -> None:
    fake_gateway.failing_chats.add(7)
    store = StateStore()
    orchestrator = _orchestrator(fake_device, fake_gateway, store)

    await orchestrator.handle(_event("/arm"))

    assert store.get() is AlarmState.ARMED


@pytest.mark.asyncio
async def test_text_broadcast_skips_failed_chats(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)
    for chat_id in (1, 2, 3):
        orchestrator.registry.add(chat_id)
    fake_gateway.failing_chats.add(2)

    delivered = await orchestrator.broadcast("🚨 ALARM TRIGGERED")

    assert delivered == 2
    assert fake_gateway.messages == [(1, "🚨 ALARM TRIGGERED"), (3, "🚨 ALARM TRIGGERED")]


@pytest.mark.asyncio
async def test_broadcast_with_no_chats_sends_nothing(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)

    assert await orchestrator.broadcast("anyone?") == 0
    assert await orchestrator.broadcast_video(io.BytesIO(b"clip"), "clip") == 0
    assert fake_gateway.messages == []
    assert fake_gateway.videos == []


@pytest.mark.asyncio
async def test_video_broadcast_sends_identical_bytes(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)
    for chat_id in (1, 2, 3):
        orchestrator.registry.add(chat_id)

    delivered = await orchestrator.broadcast_video(io.BytesIO(b"\x00mp4-bytes"), "clip")

    assert delivered == 3
    assert fake_gateway.videos == [
        (1, b"\x00mp4-bytes", "clip"),
        (2, b"\x00mp4-bytes", "clip"),
        (3, b"\x00mp4-bytes", "clip"),
    ]


@pytest.mark.asyncio
async def test_video_broadcast_stops_at_first_failure(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)
    for chat_id in (1, 2, 3):
        orchestrator.registry.add(chat_id)
    fake_gateway.fail_video_call = 2

    with pytest.raises(MessagingError):
        await orchestrator.broadcast_video(io.BytesIO(b"clip"), "clip")

    assert [chat_id for chat_id, _, _ in fake_gateway.videos] == [1]


@pytest.mark.asyncio
async def test_health_reports_registry_and_state(fake_device, fake_gateway) -> None:
    orchestrator = _orchestrator(fake_device, fake_gateway)
    orchestrator.registry.add(5)

    health = await orchestrator.health()

    assert health.status == "healthy"
    assert health.details == {"registered_chats": 1, "state": "DISARMED"}
