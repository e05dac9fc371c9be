"""Agent routing for inbound Slack messages.

Bindings (from the Slack config file) map a peer, team or account to an
agent. The most specific binding wins:

    peer (kind + id)  >  team  >  account  >  default agent

Bindings without a ``channel`` key apply to every channel.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class RoutePeer:
    # dm | channel | group
    kind: str
    id: str


@dataclass(frozen=True)
class AgentRoute:
    agent_id: str
    session_key: str
    account_id: str


def build_session_key(agent_id: str, channel: str, peer: RoutePeer) -> str:
    """DMs share the agent's main session; rooms get one session per peer."""
    if peer.kind == "dm":
        return f"agent:{agent_id}:main"
    return f"agent:{agent_id}:{channel}:{peer.kind}:{peer.id}"


def _binding_applies(binding: dict[str, Any], channel: str, account_id: str) -> bool:
    bound_channel = binding.get("channel")
    if bound_channel and bound_channel != channel:
        return False
    bound_account = binding.get("accountId")
    if bound_account and bound_account not in ("*", account_id):
        return False
    return bool(binding.get("agentId"))


def _peer_matches(binding: dict[str, Any], peer: RoutePeer) -> bool:
    bound_peer = binding.get("peer") or {}
    return bound_peer.get("kind") == peer.kind and str(bound_peer.get("id")) == peer.id


def resolve_agent_route(
    bindings: Sequence[dict[str, Any]],
    default_agent_id: str,
    channel: str,
    account_id: str,
    peer: RoutePeer,
    team_id: Optional[str] = None,
) -> AgentRoute:
    candidates = [b for b in bindings if _binding_applies(b, channel, account_id)]

    tiers = [
        [b for b in candidates if b.get("peer") and _peer_matches(b, peer)],
        [
            b
            for b in candidates
            if not b.get("peer") and team_id and b.get("teamId") == team_id
        ],
        [
            b
            for b in candidates
            if not b.get("peer") and not b.get("teamId") and b.get("accountId")
        ],
    ]
    agent_id = default_agent_id
    for tier in tiers:
        if tier:
            agent_id = str(tier[0]["agentId"])
            break

    return AgentRoute(
        agent_id=agent_id,
        session_key=build_session_key(agent_id, channel, peer),
        account_id=account_id,
    )
