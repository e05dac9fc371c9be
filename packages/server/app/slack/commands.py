"""Slash command payloads and command-name matching."""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.slack.config import SlackSettings


class SlashCommand(BaseModel):
    """The fields of a Slack slash-command invocation that the pipeline reads."""

    model_config = ConfigDict(extra="ignore")

    command: str
    text: str = ""
    user_id: str
    user_name: Optional[str] = None
    channel_id: str
    channel_name: Optional[str] = None
    team_id: Optional[str] = None
    trigger_id: Optional[str] = None
    response_url: Optional[str] = None


def normalize_command_name(name: str) -> str:
    return name.strip().lstrip("/").lower()


def build_slash_command_matcher(name: str) -> re.Pattern:
    """'/agent' and 'agent' both match a command configured as 'agent'."""
    return re.compile(rf"^/?{re.escape(normalize_command_name(name))}$", re.IGNORECASE)


def build_command_text(name: str, text: Optional[str]) -> str:
    """Prompt text for a native command: '/status verbose'."""
    args = (text or "").strip()
    return f"/{name} {args}" if args else f"/{name}"


def resolve_command_prompt(settings: SlackSettings, command: SlashCommand) -> Optional[str]:
    """Map an incoming command to the prompt the pipeline should handle.

    Native commands, when configured, replace the single slash command and
    forward the command name as part of the prompt. Returns None for commands
    this server does not handle.
    """
    name = normalize_command_name(command.command)
    native = {normalize_command_name(n) for n in settings.native_commands}
    if native:
        if name in native:
            return build_command_text(name, command.text)
        return None

    slash = settings.slash_command
    if slash.enabled and build_slash_command_matcher(slash.name).match(command.command.strip()):
        return (command.text or "").strip()
    return None
