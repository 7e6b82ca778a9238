"""Reading and writing the user's gator configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Any, Union

CONFIG_FILE_NAME = ".gatorconfig.json"

PathArg = Union[str, "PathLike[str]"]


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Database connection string and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, username: str) -> None:
        """Make ``username`` the current user and persist the change."""
        self.current_user_name = username
        self.save()

    def save(self) -> None:
        """Write the configuration back to its file."""
        target = self.path if self.path is not None else config_file_path()
        data = {"db_url": self.db_url, "current_user_name": self.current_user_name}
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        with open(target, "w", encoding="utf-8") as handle:
            handle.write(text + "\n")


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read(path: PathArg | None = None) -> Config:
    """Load the configuration from ``path`` or from the default location.

    Only the first JSON value in the file is used; unknown keys are ignored.
    """
    target = Path(path) if path is not None else config_file_path()
    with open(target, encoding="utf-8") as handle:
        text = handle.read()
    data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
        path=target,
    )