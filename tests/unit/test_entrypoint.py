from pathlib import Path

import pytest

from alarmbot.core.config import ConfigService
from alarmbot.entrypoint import build_modules, main, parse_args


def test_main_exits_with_config_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "BOT_TOKEN",
        "SERVER_BASE_URL",
        "ALARMBOT_TELEGRAM__TOKEN",
        "ALARMBOT_DEVICE__BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)

    assert main(["--config-dir", str(tmp_path / "missing")]) == 2


def test_parse_args_defaults() -> None:
    args = parse_args([])

    assert args.config_dir is None
    assert args.log_level is None


def test_build_modules_in_start_order(sample_config_service: ConfigService) -> None:
    modules = build_modules(sample_config_service.snapshot)

    assert [module.name for module in modules] == [
        "modules.device.client",
        "modules.messaging.telegram_gateway",
        "modules.bot.orchestrator",
        "modules.bot.poller",
        "modules.listener.local_api",
    ]
    for module in modules:
        assert sample_config_service.module_config_for(module) is not None


def test_main_exits_with_config_error_on_malformed_yaml(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("device: {base_url: [\n", encoding="utf-8")

    assert main(["--config-dir", str(config_dir)]) == 2
