"""Tests for Slack settings loading."""
import json

import pytest

from app.slack.config import SlackSettings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "SLACK_CONFIG_FILE",
        "SLACK_CHANNELS_JSON",
        "SLACK_BINDINGS_JSON",
        "SLACK_DM_POLICY",
        "SLACK_GROUP_POLICY",
        "SLACK_ALLOW_FROM",
        "SLACK_REQUIRE_MENTION",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = SlackSettings()

    assert settings.dm_policy == "pairing"
    assert settings.group_policy == "open"
    assert settings.use_access_groups is True
    assert settings.default_require_mention is None
    assert settings.channels == {}
    assert settings.slash_command.name == "agent"
    settings.validate()


def test_channels_and_bindings_from_yaml_file(clean_env, tmp_path):
    config_file = tmp_path / "slack.yaml"
    config_file.write_text(
        "channels:\n"
        "  C1:\n"
        "    requireMention: false\n"
        "    skills: [deploy]\n"
        "  '*':\n"
        "    allowed: true\n"
        "bindings:\n"
        "  - agentId: ops\n"
        "    peer: {kind: channel, id: C1}\n"
    )
    clean_env.setenv("SLACK_CONFIG_FILE", str(config_file))

    settings = SlackSettings()

    assert settings.channels["C1"].require_mention is False
    assert settings.channels["C1"].skills == frozenset({"deploy"})
    assert settings.channels["*"].allowed is True
    assert settings.bindings == [{"agentId": "ops", "peer": {"kind": "channel", "id": "C1"}}]


def test_channels_from_json_env(clean_env):
    clean_env.setenv("SLACK_CHANNELS_JSON", json.dumps({"#ops": {"allowed": False}}))
    clean_env.setenv("SLACK_ALLOW_FROM", "U1, alice ,")
    clean_env.setenv("SLACK_REQUIRE_MENTION", "false")

    settings = SlackSettings()

    assert settings.channels["#ops"].allowed is False
    assert settings.allow_from == ["U1", "alice"]
    assert settings.default_require_mention is False


def test_validate_rejects_unknown_policies(clean_env):
    clean_env.setenv("SLACK_DM_POLICY", "everyone")
    with pytest.raises(RuntimeError, match="SLACK_DM_POLICY"):
        SlackSettings().validate()

    clean_env.setenv("SLACK_DM_POLICY", "open")
    clean_env.setenv("SLACK_GROUP_POLICY", "sometimes")
    with pytest.raises(RuntimeError, match="SLACK_GROUP_POLICY"):
        SlackSettings().validate()
