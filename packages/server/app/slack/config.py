"""Slack integration configuration - reads from environment variables.

Channel configs and agent bindings are structured, so they come from a YAML
file (SLACK_CONFIG_FILE) or, failing that, JSON env vars:

    channels:
      C0123ABCD:
        requireMention: false
        users: ["U024BE7LH", "alice"]
        systemPrompt: "You are the on-call assistant."
        skills: ["pagerduty"]
      "#random":
        allowed: false
      "*":
        requireMention: true
    bindings:
      - agentId: ops
        peer: {kind: channel, id: C0123ABCD}
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from app.logging_config import get_logger
from app.slack.channel_config import ChannelConfig

logger = get_logger(__name__)

DM_POLICIES = {"open", "pairing", "allowlist", "disabled"}
GROUP_POLICIES = {"open", "allowlist", "disabled"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def _load_config_file() -> dict[str, Any]:
    """Load the optional YAML config file, returning {} when unset or missing."""
    path = os.getenv("SLACK_CONFIG_FILE", "")
    if not path:
        return {}
    if not os.path.isfile(path):
        logger.warning(f"SLACK_CONFIG_FILE {path} does not exist, ignoring")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}
    if not isinstance(content, dict):
        raise RuntimeError(f"SLACK_CONFIG_FILE {path} must contain a mapping")
    return content


def _load_json_env(name: str) -> Any:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return json.loads(raw)


def load_channels() -> dict[str, ChannelConfig]:
    raw = _load_config_file().get("channels")
    if raw is None:
        raw = _load_json_env("SLACK_CHANNELS_JSON") or {}
    return parse_channels(raw)


def parse_channels(raw: dict[str, Any]) -> dict[str, ChannelConfig]:
    """Validate a raw ``{key: {...}}`` mapping into ChannelConfig objects."""
    return {
        str(key): ChannelConfig.model_validate(value or {})
        for key, value in raw.items()
    }


def load_bindings() -> list[dict[str, Any]]:
    raw = _load_config_file().get("bindings")
    if raw is None:
        raw = _load_json_env("SLACK_BINDINGS_JSON") or []
    return list(raw)


@dataclass
class SlashCommandSettings:
    """The single configurable slash command (used when no native commands are set)."""

    enabled: bool = field(
        default_factory=lambda: _env_bool("SLACK_SLASH_COMMAND_ENABLED", True)
    )
    name: str = field(
        default_factory=lambda: os.getenv("SLACK_SLASH_COMMAND_NAME", "agent")
    )
    session_prefix: str = field(
        default_factory=lambda: os.getenv("SLACK_SLASH_SESSION_PREFIX", "slack:slash")
    )
    # Replies visible only to the invoking user
    ephemeral: bool = field(
        default_factory=lambda: _env_bool("SLACK_SLASH_EPHEMERAL", True)
    )


@dataclass
class SlackSettings:
    """Centralised Slack configuration read from env vars at import time."""

    bot_token: str = field(default_factory=lambda: os.getenv("SLACK_BOT_TOKEN", ""))
    signing_secret: str = field(
        default_factory=lambda: os.getenv("SLACK_SIGNING_SECRET", "")
    )
    # Requests older than this are rejected as replays
    signature_tolerance_seconds: int = field(
        default_factory=lambda: int(os.getenv("SLACK_SIGNATURE_TOLERANCE", "300"))
    )
    bot_user_id: str = field(
        default_factory=lambda: os.getenv("SLACK_BOT_USER_ID", "")
    )
    team_id: str = field(default_factory=lambda: os.getenv("SLACK_TEAM_ID", ""))
    account_id: str = field(
        default_factory=lambda: os.getenv("SLACK_ACCOUNT_ID", "default")
    )

    # ── Direct messages ──
    dm_enabled: bool = field(default_factory=lambda: _env_bool("SLACK_DM_ENABLED", True))
    # open | pairing | allowlist | disabled
    dm_policy: str = field(
        default_factory=lambda: os.getenv("SLACK_DM_POLICY", "pairing").lower()
    )
    allow_from: list[str] = field(default_factory=lambda: _env_list("SLACK_ALLOW_FROM"))

    # ── Group DMs (mpim) ──
    group_dm_enabled: bool = field(
        default_factory=lambda: _env_bool("SLACK_GROUP_DM_ENABLED", False)
    )
    group_dm_channels: list[str] = field(
        default_factory=lambda: _env_list("SLACK_GROUP_DM_CHANNELS")
    )

    # ── Rooms ──
    # open | allowlist | disabled
    group_policy: str = field(
        default_factory=lambda: os.getenv("SLACK_GROUP_POLICY", "open").lower()
    )
    use_access_groups: bool = field(
        default_factory=lambda: _env_bool("SLACK_USE_ACCESS_GROUPS", True)
    )
    default_require_mention: Optional[bool] = field(
        default_factory=lambda: _env_optional_bool("SLACK_REQUIRE_MENTION")
    )
    channels: dict[str, ChannelConfig] = field(default_factory=load_channels)

    # ── Commands & routing ──
    slash_command: SlashCommandSettings = field(default_factory=SlashCommandSettings)
    native_commands: list[str] = field(
        default_factory=lambda: _env_list("SLACK_NATIVE_COMMANDS")
    )
    default_agent_id: str = field(
        default_factory=lambda: os.getenv("SLACK_DEFAULT_AGENT_ID", "main")
    )
    bindings: list[dict[str, Any]] = field(default_factory=load_bindings)

    # ── Delivery ──
    text_limit: int = field(
        default_factory=lambda: int(os.getenv("SLACK_TEXT_LIMIT", "4000"))
    )
    dispatch_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SLACK_DISPATCH_TIMEOUT", "120"))
    )

    def validate(self) -> None:
        """Raise if the settings cannot produce a working integration."""
        if self.dm_policy not in DM_POLICIES:
            raise RuntimeError(
                f"SLACK_DM_POLICY must be one of {sorted(DM_POLICIES)}, got {self.dm_policy!r}"
            )
        if self.group_policy not in GROUP_POLICIES:
            raise RuntimeError(
                f"SLACK_GROUP_POLICY must be one of {sorted(GROUP_POLICIES)}, "
                f"got {self.group_policy!r}"
            )
        if self.text_limit <= 0:
            raise RuntimeError("SLACK_TEXT_LIMIT must be positive")
        if not self.signing_secret:
            logger.warning(
                "SLACK_SIGNING_SECRET is not set - slash command requests "
                "will be rejected"
            )


# Singleton - imported everywhere.
slack_settings = SlackSettings()
