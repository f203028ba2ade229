"""
Election Messages and Data Structures

This module defines the values exchanged between simulated nodes and the
read-only views the cluster hands out to observers. Messages are created at
send time, consumed once by the receiver, and then discarded.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class NodeState(Enum):
    """Possible states for a Raft node"""
    FOLLOWER = "follower"
    CANDIDATE = "candidate"
    LEADER = "leader"


class MessageType(Enum):
    """Kinds of message exchanged during an election"""
    REQUEST_VOTE = "RequestVote"
    VOTE = "Vote"
    APPEND_ENTRIES = "AppendEntries"
    ACK = "Ack"


@dataclass(frozen=True)
class Message:
    """
    One protocol event travelling between two nodes.

    The term is the sender's term at the moment the message was sent; the
    receiver uses it to discard traffic from older elections.
    """
    type: MessageType
    sender_id: int
    sender: Any = field(compare=False, repr=False)
    term: int = 0

    def __str__(self) -> str:
        return f"{self.type.value}(from=n{self.sender_id}, term={self.term})"


@dataclass
class NodeSnapshot:
    """Point-in-time view of a node, emitted whenever its visible state changes"""
    node_id: int
    state: NodeState
    term: int
    voted_for: Optional[int]
    remaining_timeout: Optional[float]
    timer_running: bool
    enabled: bool
    paused: bool

    @property
    def mode(self) -> str:
        """What the node is currently doing, for status displays"""
        if not self.enabled:
            return "down"
        if self.state == NodeState.LEADER:
            return "sending heartbeats"
        if self.state == NodeState.CANDIDATE:
            return "waiting for votes"
        if self.timer_running and self.remaining_timeout is not None:
            return f"timeout in {max(self.remaining_timeout, 0.0):.1f}s"
        return "idle"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "node_id": self.node_id,
            "state": self.state.value,
            "term": self.term,
            "voted_for": self.voted_for,
            "remaining_timeout": self.remaining_timeout,
            "timer_running": self.timer_running,
            "enabled": self.enabled,
            "paused": self.paused,
            "mode": self.mode,
        }


@dataclass
class ClusterStats:
    """Statistics for the entire simulated cluster"""
    total_nodes: int
    active_nodes: int
    leader_id: Optional[int]
    current_term: int
    scenario: str
    nodes: Dict[int, NodeSnapshot]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "total_nodes": self.total_nodes,
            "active_nodes": self.active_nodes,
            "leader_id": self.leader_id,
            "current_term": self.current_term,
            "scenario": self.scenario,
            "nodes": {node_id: snapshot.to_dict() for node_id, snapshot in self.nodes.items()}
        }
