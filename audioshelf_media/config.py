from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_PLACEHOLDER_COVER = "resource://audioshelf/drawable/icon"


class ServerSettings(BaseModel):
    """Connection details the cover and stream URLs are built from."""

    address: str = ""
    token: str = ""
    placeholder_cover: str = DEFAULT_PLACEHOLDER_COVER

    @field_validator("address")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class ScannerSettings(BaseModel):
    include_extensions: List[str] = Field(
        default_factory=lambda: [".mp3", ".m4a", ".m4b", ".flac", ".ogg", ".opus", ".aac", ".wav"]
    )
    exclude_patterns: List[str] = Field(default_factory=list)

    @field_validator("include_extensions")
    @classmethod
    def _normalize_extensions(cls, values: List[str]) -> List[str]:
        return [value.lower() if value.startswith(".") else f".{value.lower()}" for value in values]


class Settings(BaseModel):
    server: ServerSettings = ServerSettings()
    scanner: ScannerSettings = ScannerSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw or {})


def find_config(explicit_path: Optional[Path]) -> Path:
    if explicit_path:
        return explicit_path.expanduser()
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    raise FileNotFoundError("Could not find config.yaml - pass --config explicitly.")
