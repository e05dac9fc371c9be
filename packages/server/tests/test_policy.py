"""Tests for the room access-group policy gate."""
import pytest

from app.slack.policy import is_room_allowed_by_policy


@pytest.mark.parametrize("configured", [True, False])
@pytest.mark.parametrize("channel_allowed", [True, False])
def test_disabled_policy_blocks_every_room(configured, channel_allowed):
    assert is_room_allowed_by_policy("disabled", configured, channel_allowed) is False


def test_open_policy_without_channel_allowlist():
    assert is_room_allowed_by_policy("open", False, False) is True


def test_allowlist_policy_without_channel_allowlist():
    assert is_room_allowed_by_policy("allowlist", False, True) is False


@pytest.mark.parametrize("policy", ["open", "allowlist"])
def test_configured_allowlist_decides(policy):
    assert is_room_allowed_by_policy(policy, True, True) is True
    assert is_room_allowed_by_policy(policy, True, False) is False
