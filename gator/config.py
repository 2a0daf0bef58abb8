"""Reading and writing the user's JSON configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = ".gatorconfig.json"


def default_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILENAME


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, username: str) -> None:
        """Record *username* as the current user and save the file."""
        self.current_user_name = username
        target = self.path if self.path is not None else default_path()
        target.write_text(self.to_json(), encoding="utf-8")

    def to_json(self) -> str:
        """Serialise to the compact JSON stored on disk."""
        return json.dumps(
            {"db_url": self.db_url, "current_user_name": self.current_user_name},
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> Config:
        """Build a configuration from JSON text; unknown keys are ignored."""
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("configuration must be a JSON object")
        values = {}
        for key in ("db_url", "current_user_name"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"configuration field {key!r} must be a string")
            values[key] = value
        return cls(**values)


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from *path*, or from the default location."""
    target = Path(path) if path is not None else default_path()
    config = Config.from_json(target.read_bytes())
    config.path = target
    return config