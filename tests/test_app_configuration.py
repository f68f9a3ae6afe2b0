from pathlib import Path

import pytest

from warden.configuration.app_configuration import AppConfig
from warden.datatypes.sanction_datatypes import SanctionKind


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reads_every_section(config_path: Path) -> None:
    config_path.write_text(
        """
sanctions:
  max_concurrent_revocations: 8
  mute_role_name: Silenced
  mute:
    sweep_interval_seconds: 60
  ban:
    sweep_interval_seconds: 900
custom_commands:
  document_path: state/cc.json
  prefix: "?"
database:
  path: state/warden.db
""",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.sweep_interval(SanctionKind.MUTE) == pytest.approx(60)
    assert config.sweep_interval(SanctionKind.BAN) == pytest.approx(900)
    assert config.max_concurrent_revocations == 8
    assert config.mute_role_name == "Silenced"
    assert config.custom_commands_path == Path("state/cc.json")
    assert config.command_prefix == "?"
    assert config.database_path == Path("state/warden.db")
    assert config.get("database") == {"path": "state/warden.db"}


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.sweep_interval(SanctionKind.MUTE) == pytest.approx(3600)
    assert config.sweep_interval(SanctionKind.BAN) == pytest.approx(3600)
    assert config.max_concurrent_revocations == 4
    assert config.mute_role_name == "Muted"
    assert config.custom_commands_path == Path("data/commands.json")
    assert config.command_prefix == "!"
    assert config.database_path == Path("data/app.db")


def test_app_config_invalid_values_fall_back(config_path: Path) -> None:
    config_path.write_text(
        """
sanctions:
  max_concurrent_revocations: zero
  mute:
    sweep_interval_seconds: -5
  ban: not-a-mapping
""",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.max_concurrent_revocations == 4
    assert config.sweep_interval(SanctionKind.MUTE) == pytest.approx(3600)
    assert config.sweep_interval(SanctionKind.BAN) == pytest.approx(3600)


def test_app_config_malformed_yaml_yields_empty(config_path: Path) -> None:
    config_path.write_text("sanctions: [unterminated", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_non_mapping_root_yields_empty(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("custom_commands:\n  prefix: '!'\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.command_prefix == "!"

    config_path.write_text("custom_commands:\n  prefix: '$'\n", encoding="utf-8")
    data = config.reload()

    assert data == {"custom_commands": {"prefix": "$"}}
    assert config.command_prefix == "$"
