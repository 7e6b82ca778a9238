import json

import pytest

from gatorfeed.cli import build_commands, main
from gatorfeed.config import read


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    config_path = tmp_path / ".gatorconfig.json"
    config_path.write_text(
        json.dumps({"db_url": str(tmp_path / "gator.db"), "current_user_name": ""}),
        encoding="utf-8",
    )
    return tmp_path


def test_build_commands_registers_everything():
    commands = build_commands()
    names = [
        "login", "register", "reset", "users", "agg", "addfeed",
        "feeds", "follow", "following", "unfollow", "browse",
    ]
    assert all(name in commands for name in names)


def test_no_command_prints_usage(home, capsys):
    assert main([]) == 1
    assert "Usage: cli <command> [args...]" in capsys.readouterr().err


def test_unknown_command_fails(home, capsys):
    assert main(["dance"]) == 1
    assert "error running command: command not found" in capsys.readouterr().err


def test_register_updates_config_file(home, capsys):
    assert main(["register", "alice"]) == 0
    assert read(home / ".gatorconfig.json").current_user_name == "alice"
    assert "User created successfully!" in capsys.readouterr().out


def test_state_persists_between_runs(home, capsys):
    assert main(["register", "alice"]) == 0
    assert main(["register", "bob"]) == 0
    assert main(["login", "alice"]) == 0
    capsys.readouterr()
    assert main(["users"]) == 0
    assert capsys.readouterr().out.splitlines() == ["* alice (current)", "* bob"]


def test_logged_in_command_without_user_fails(home, capsys):
    assert main(["following"]) == 1
    assert "error running command" in capsys.readouterr().err


def test_missing_config_fails(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert main(["users"]) == 1
    assert "error reading config" in capsys.readouterr().err