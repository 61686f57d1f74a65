"""
Client Configuration
====================

Frozen configuration for the remote DPDA API client.

ENVIRONMENT:
============
- DPDA_API_BASE_URL    base URL of the remote API
- DPDA_API_TIMEOUT_MS  transport timeout in milliseconds
- DPDA_SESSION_FILE    durable session file ("" disables durable storage)
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_SESSION_FILE = Path("~/.dpda-sync/session.json")
SESSION_HEADER = "X-Session-ID"


@dataclass(frozen=True)
class ClientConfig:
    """
    Configuration for the sync layer.

    WHY FROZEN:
    Changing the target API or session location mid-flight would mix
    cache entries from two sources. Build a new context instead.
    """
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_MS / 1000.0
    session_header: str = SESSION_HEADER
    session_file: Optional[Path] = DEFAULT_SESSION_FILE

    # Force-directed layout for the visualization engine
    layout_seed: int = 42
    layout_iterations: int = 50

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.layout_iterations < 1:
            raise ValueError("layout_iterations must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
        env = os.environ if environ is None else environ

        timeout_ms = DEFAULT_TIMEOUT_MS
        raw_timeout = env.get("DPDA_API_TIMEOUT_MS")
        if raw_timeout:
            try:
                timeout_ms = int(raw_timeout)
            except ValueError:
                raise ValueError(f"DPDA_API_TIMEOUT_MS must be an integer, got {raw_timeout!r}")

        session_file: Optional[Path] = DEFAULT_SESSION_FILE
        if "DPDA_SESSION_FILE" in env:
            raw_file = env["DPDA_SESSION_FILE"]
            session_file = Path(raw_file) if raw_file else None

        return cls(
            base_url=env.get("DPDA_API_BASE_URL") or DEFAULT_BASE_URL,
            timeout_seconds=timeout_ms / 1000.0,
            session_file=session_file,
        )
