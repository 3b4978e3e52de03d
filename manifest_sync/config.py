"""Configuration management for manifest-sync.

Loads environment variables and provides centralized config access. Inside a
GitHub Actions run most values come from the runner's own variables; locally
they can be set in a `.env` file.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .loader.runtime_loader import DEFAULT_OUTPUT_LIMIT

__version__ = "1.0.0"


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_file: Optional[Path] = None):
        """Initialize config by loading a .env file.

        Args:
            env_file: Explicit .env path; defaults to .env in the working directory
        """
        load_dotenv(env_file if env_file is not None else Path.cwd() / ".env")

    @property
    def workspace(self) -> Path:
        """Get the plugin repository root.

        Returns:
            GITHUB_WORKSPACE, or the current directory
        """
        return Path(os.getenv("GITHUB_WORKSPACE", os.getcwd()))

    @property
    def manifest_path(self) -> Optional[Path]:
        """Get manifest.json path.

        Returns:
            MANIFEST_PATH, or None to use manifest.json in the project root
        """
        configured = os.getenv("MANIFEST_PATH")
        return Path(configured) if configured else None

    @property
    def repository(self) -> Optional[str]:
        return os.getenv("GITHUB_REPOSITORY")

    @property
    def ref_name(self) -> Optional[str]:
        return os.getenv("GITHUB_REF_NAME")

    @property
    def excluded_events(self) -> str:
        """Get the comma-separated list of supported events to leave out."""
        return os.getenv("EXCLUDED_SUPPORTED_EVENTS", "")

    @property
    def skip_bot_events(self) -> Optional[str]:
        return os.getenv("SKIP_BOT_EVENTS")

    @property
    def deno_binary(self) -> str:
        return os.getenv("MANIFEST_SYNC_DENO", "deno")

    @property
    def node_binary(self) -> str:
        return os.getenv("MANIFEST_SYNC_NODE", "node")

    @property
    def loader_output_limit(self) -> int:
        """Get the byte cap on loader subprocess output.

        Returns:
            MANIFEST_SYNC_OUTPUT_LIMIT, or 16 MiB when unset or not a number
        """
        raw = os.getenv("MANIFEST_SYNC_OUTPUT_LIMIT")
        try:
            return int(raw) if raw else DEFAULT_OUTPUT_LIMIT
        except ValueError:
            return DEFAULT_OUTPUT_LIMIT


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
