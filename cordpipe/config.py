"""
Dispatch configuration for cordpipe.

Values come from the environment only (never hardcoded):
- DISCORD_BOT_TOKEN
- CORDPIPE_ALLOW_GUILDS / CORDPIPE_DENY_GUILDS  (comma separated guild ids)
- CORDPIPE_ADMIN_IDS  (comma separated user ids)
- CORDPIPE_IGNORE_BOTS  (true/false)
- CORDPIPE_LOG_LEVEL
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env file from the package directory, without overriding real env vars
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _parse_id_set(env_name: str) -> Set[int]:
    """Parse a comma separated list of integer ids, skipping malformed entries."""
    ids_str = os.getenv(env_name, "")
    ids = set()
    for id_str in ids_str.split(","):
        id_str = id_str.strip()
        if not id_str:
            continue
        if id_str.lstrip("-").isdigit():
            ids.add(int(id_str))
        else:
            logger.warning(f"Ignoring malformed id in {env_name}: {id_str!r}")
    return ids


def _parse_bool(env_name: str, default: bool) -> bool:
    value = os.getenv(env_name, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


@dataclass
class DispatchConfig:
    """Dispatch pipeline configuration."""

    # === DISCORD ===
    bot_token: str = field(default_factory=lambda: os.getenv("DISCORD_BOT_TOKEN", "").strip())

    # === ACCESS FILTER ===
    # Empty allow_guilds means every guild is allowed
    allow_guilds: Set[int] = field(default_factory=lambda: _parse_id_set("CORDPIPE_ALLOW_GUILDS"))
    deny_guilds: Set[int] = field(default_factory=lambda: _parse_id_set("CORDPIPE_DENY_GUILDS"))

    # === GUARDS ===
    admin_ids: Set[int] = field(default_factory=lambda: _parse_id_set("CORDPIPE_ADMIN_IDS"))
    ignore_bot_messages: bool = field(default_factory=lambda: _parse_bool("CORDPIPE_IGNORE_BOTS", True))

    # === LOGGING ===
    log_level: str = field(default_factory=lambda: os.getenv("CORDPIPE_LOG_LEVEL", "INFO").upper())

    def is_admin(self, user_id: int) -> bool:
        """Check if user is an admin."""
        return user_id in self.admin_ids

    def has_access_rules(self) -> bool:
        """Whether any guild allow/deny rule is configured."""
        return bool(self.allow_guilds or self.deny_guilds)


# Global config instance
_config: Optional[DispatchConfig] = None


def get_config() -> DispatchConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = DispatchConfig()
    return _config


def reload_config() -> DispatchConfig:
    """Rebuild configuration from the current environment."""
    global _config
    _config = DispatchConfig()
    return _config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging using the configured (or given) level."""
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
