"""Server configuration snapshot, validated once at startup."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_PORT = 8080


def default_port() -> int:
    """``$PORT`` when it holds an integer, else 8080."""
    try:
        return int(os.environ.get("PORT", ""))
    except ValueError:
        return DEFAULT_PORT


class ServerConfig(BaseModel):
    """Immutable server settings derived from the command line."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = Field("127.0.0.1", description="Bind host")
    port: int = Field(default_factory=default_port, ge=1, le=65535, description="Bind port")
    static_root: Path | None = Field(None, description="Serve static files from this directory")
    pausable_static: bool = Field(False, description="Enable /pause and /unpause")
    compress: bool = Field(False, description="Gzip compressible files when accepted")
    wait_for_static_ms: int = Field(0, ge=0, description="Wait this long for missing files")
    wait_for_lockfile_ms: int = Field(0, ge=0, description="Wait this long for *.lock files")
    verbose: bool = Field(False, description="Log what the server is doing")

    @field_validator("static_root")
    @classmethod
    def absolute_root(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return Path(os.path.abspath(value))

    @model_validator(mode="after")
    def pause_needs_root(self) -> ServerConfig:
        if self.pausable_static and self.static_root is None:
            raise ValueError("pausable_static requires static_root")
        return self
