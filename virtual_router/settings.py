"""
Environment driven settings for the router

Values are read from the process environment, optionally seeded from a
``.env`` file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from virtual_router.config import DEFAULT_PREFIX

DEFAULT_CONFIG_PATH = Path("config") / "router.json"


def env_flag(name: str, default: str = "false") -> bool:
    value = os.getenv(name, default).strip().lower()
    return value in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class RouterSettings:
    """Runtime settings for one router instance"""
    config_path: Path = DEFAULT_CONFIG_PATH
    debug: bool = False
    prefix: str = DEFAULT_PREFIX
    langfuse_public_key: Optional[str] = None
    langfuse_secret_key: Optional[str] = None
    langfuse_host: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 8765

    @property
    def langfuse_enabled(self) -> bool:
        return bool(self.langfuse_public_key and self.langfuse_secret_key)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "RouterSettings":
        """
        Build settings from environment variables

        Args:
            dotenv_path: Optional explicit .env file; existing variables are not overridden
        """
        load_dotenv(dotenv_path=dotenv_path, override=False)

        return cls(
            config_path=Path(os.getenv("VIRTUAL_ROUTER_CONFIG", str(DEFAULT_CONFIG_PATH))),
            debug=env_flag("VIRTUAL_ROUTER_DEBUG"),
            prefix=os.getenv("VIRTUAL_ROUTER_PREFIX", DEFAULT_PREFIX),
            langfuse_public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            langfuse_secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            langfuse_host=os.getenv("LANGFUSE_HOST"),
            host=os.getenv("VIRTUAL_ROUTER_HOST", "127.0.0.1"),
            port=int(os.getenv("VIRTUAL_ROUTER_PORT", "8765")),
        )
