"""Tests for the score tally, settings, snapshot storage, and configuration."""

import json
import logging

import pytest
from pydantic import ValidationError

from classicxo.ai import Difficulty
from classicxo.config import load_config
from classicxo.game import Draw, InProgress, Mark, Win
from classicxo.profile import GameMode, ScoreTally, Settings, Snapshot, Theme
from classicxo.storage import SnapshotStore


def test_tally_counts_each_result():
    tally = ScoreTally()
    tally = tally.record(Win(mark=Mark.X, line=(0, 1, 2)))
    tally = tally.record(Win(mark=Mark.O, line=(2, 4, 6)))
    tally = tally.record(Win(mark=Mark.O, line=(0, 3, 6)))
    tally = tally.record(Draw())
    tally = tally.record(InProgress())
    assert (tally.x_wins, tally.o_wins, tally.draws) == (1, 2, 1)
    assert tally.reset() == ScoreTally()


def test_tally_record_does_not_modify_original():
    tally = ScoreTally()
    tally.record(Draw())
    assert tally.draws == 0


@pytest.mark.parametrize("volume", [-1, 101])
def test_settings_reject_bad_volume(volume):
    with pytest.raises(ValidationError):
        Settings(volume=volume)


def test_settings_reject_unknown_theme():
    with pytest.raises(ValidationError):
        Settings(theme="sepia")


def test_snapshot_payload_uses_flat_client_keys():
    payload = Snapshot().to_payload()
    assert payload == {
        "settings": {
            "soundEnabled": True,
            "musicEnabled": False,
            "volume": 50,
            "theme": "default",
        },
        "gameStats": {"playerX": 0, "playerO": 0, "draws": 0},
        "gameMode": "pvp",
        "aiDifficulty": "medium",
    }


def test_missing_file_loads_defaults(tmp_path):
    store = SnapshotStore(tmp_path / "missing.json")
    assert store.load() == Snapshot()


def test_partial_file_merges_over_defaults(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(
        json.dumps(
            {
                "settings": {"theme": "neon"},
                "gameStats": {"playerO": 4},
                "aiDifficulty": "hard",
            }
        ),
        encoding="utf-8",
    )

    snapshot = SnapshotStore(path).load()

    assert snapshot.settings.theme is Theme.NEON
    assert snapshot.settings.volume == 50
    assert snapshot.stats.o_wins == 4
    assert snapshot.stats.x_wins == 0
    assert snapshot.game_mode is GameMode.PVP
    assert snapshot.ai_difficulty is Difficulty.HARD


def test_corrupt_file_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "data.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="classicxo.storage"):
        snapshot = SnapshotStore(path).load()

    assert snapshot == Snapshot()
    assert "Ignoring snapshot" in caplog.text


def test_saved_snapshot_is_read_back(tmp_path):
    store = SnapshotStore(tmp_path / "nested" / "data.json")
    snapshot = Snapshot(
        settings=Settings(sound_enabled=False, theme=Theme.DARK),
        stats=ScoreTally(x_wins=3, draws=1),
        game_mode=GameMode.AI,
        ai_difficulty=Difficulty.EASY,
    )

    store.save(snapshot)

    assert store.load() == snapshot
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["gameStats"]["playerX"] == 3


def test_config_defaults(monkeypatch):
    for name in (
        "HOST",
        "PORT",
        "DATA_PATH",
        "AI_DELAY_MIN",
        "AI_DELAY_MAX",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(f"CLASSICXO_{name}", raising=False)

    config = load_config()

    assert config.port == 8000
    assert config.ai_think_delay == (0.5, 1.5)
    assert config.log_file is None


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("CLASSICXO_PORT", "9001")
    monkeypatch.setenv("CLASSICXO_AI_DELAY_MIN", "0")
    monkeypatch.setenv("CLASSICXO_AI_DELAY_MAX", "0.25")
    monkeypatch.setenv("CLASSICXO_LOG_LEVEL", "debug")

    config = load_config()

    assert config.port == 9001
    assert config.ai_think_delay == (0.0, 0.25)
    assert config.log_level == "DEBUG"


def test_config_rejects_inverted_delay(monkeypatch):
    monkeypatch.setenv("CLASSICXO_AI_DELAY_MIN", "2")
    monkeypatch.setenv("CLASSICXO_AI_DELAY_MAX", "1")
    with pytest.raises(ValueError):
        load_config()
