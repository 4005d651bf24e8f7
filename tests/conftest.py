from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from alarmbot.core.config import ConfigService
from alarmbot.core.contracts import AlarmState, DeviceStatus, InboundEvent
from alarmbot.modules.device.client import DeviceRejectedError
from alarmbot.modules.messaging.telegram_gateway import MessagingError


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


class FakeGateway:
    """In-memory messaging gateway that records every send."""

    def __init__(self) -> None:
        self.messages: list[tuple[int, str]] = []
        self.videos: list[tuple[int, bytes, str]] = []
        self.failing_chats: set[int] = set()
        self.fail_video_call: int | None = None
        self.batches: list[list[InboundEvent] | Exception] = []
        self.fetch_calls: list[tuple[int, int]] = []
        self._video_calls = 0

    async def send_message(self, chat_id: int, text: str) -> None:
        if chat_id in self.failing_chats:
            raise MessagingError(f"chat {chat_id} unreachable")
        self.messages.append((chat_id, text))

    async def send_video(self, chat_id: int, data: bytes, caption: str) -> None:
        self._video_calls += 1
        if self._video_calls == self.fail_video_call:
            raise MessagingError(f"video to {chat_id} rejected")
        self.videos.append((chat_id, data, caption))

    async def fetch_updates(self, offset: int, timeout: int) -> list[InboundEvent]:
        self.fetch_calls.append((offset, timeout))
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


class FakeDevice:
    """Device stand-in; set ``error`` to make every call fail."""

    def __init__(self, state: str = AlarmState.DISARMED.value) -> None:
        self.state = state
        self.calls: list[str] = []
        self.pins: list[str] = []
        self.error: Exception | None = None

    def _record(self, call: str) -> None:
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    async def arm(self) -> None:
        self._record("arm")
        self.state = AlarmState.ARMED.value

    async def disarm(self) -> None:
        self._record("disarm")
        self.state = AlarmState.DISARMED.value

    async def status(self) -> DeviceStatus:
        self._record("status")
        return DeviceStatus(state=self.state, raw=self.state)

    async def change_pin(self, pin: str) -> None:
        self._record("change_pin")
        self.pins.append(pin)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def rejecting_device() -> FakeDevice:
    device = FakeDevice()
    device.error = DeviceRejectedError(500, "Internal Server Error")
    return device


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_yaml = f"""
    telegram:
      poll_timeout: 25
      retry_delay_seconds: 2

    device:
      timeout: 3

    listener:
      host: "127.0.0.1"
      port: 9100
      serve_api: false
      max_upload_bytes: 2048
      video_caption: "clip"

    logging:
      level: "DEBUG"
      file: "{(tmp_path / 'logs' / 'alarmbot.log').as_posix()}"
    """
    secrets_yaml = """
    telegram:
      token: "123:ABC"

    device:
      base_url: "http://alarm.test/"
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    _write_yaml(config_dir / "secrets.yaml", secrets_yaml)
    return config_dir


@pytest.fixture
def sample_config_service(sample_config_dir: Path) -> ConfigService:
    """Return a ConfigService wired to the temporary configuration."""

    return ConfigService(config_dir=sample_config_dir, environ={})
