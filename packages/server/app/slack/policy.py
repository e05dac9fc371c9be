"""Access-group policy gate for Slack rooms (public/private channels)."""


def is_room_allowed_by_policy(
    group_policy: str,
    channel_allowlist_configured: bool,
    channel_allowed: bool,
) -> bool:
    """Decide whether a room may use the bot under the workspace group policy.

    - ``disabled``: no room is allowed.
    - No channel allow-list configured: the policy alone decides; ``open``
      allows every room, ``allowlist`` allows none.
    - Channel allow-list configured: the room must also be allowed by it,
      whatever the policy says.
    """
    if group_policy == "disabled":
        return False
    if not channel_allowlist_configured:
        return group_policy == "open"
    return channel_allowed
