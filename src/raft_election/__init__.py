"""
Raft Leader Election Simulation

This package simulates the leader election phase of the Raft consensus
algorithm on a small in-process cluster, with one worker thread per node
and a delayed, lossy message bus between them.

Two scenarios are provided:
- best case: one node times out first and wins cleanly
- split vote: forced candidates split the vote until a follower opens a
  new term

Rendering is left to consumers, which subscribe to narration, node
snapshots and message traffic through ``EventDispatcher``.
"""

from .node import RaftNode
from .cluster import RaftCluster
from .bus import MessageBus
from .config import Scenario, SimulationConfig, InvalidConfigurationError
from .events import EventDispatcher, MessageEvent, MessagePhase, DropReason
from .messages import Message, MessageType, NodeState, NodeSnapshot, ClusterStats
from .scenarios import ScenarioPlan
from .scheduler import PeriodicTask
from .simulation import ElectionSimulation

__version__ = "1.0.0"
__all__ = [
    "RaftNode",
    "RaftCluster",
    "MessageBus",
    "Scenario",
    "SimulationConfig",
    "InvalidConfigurationError",
    "EventDispatcher",
    "MessageEvent",
    "MessagePhase",
    "DropReason",
    "Message",
    "MessageType",
    "NodeState",
    "NodeSnapshot",
    "ClusterStats",
    "ScenarioPlan",
    "PeriodicTask",
    "ElectionSimulation",
]
