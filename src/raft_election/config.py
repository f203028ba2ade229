"""
Simulation Configuration

Timing constants and scenario selection for the leader election simulation.
All durations are expressed in seconds of wall-clock time. The defaults
reproduce the pacing of the classic visual demo (100ms ticks, one second
message transit, three second heartbeats) and can be compressed with
``SimulationConfig.scaled`` to run the same scenarios faster.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Tuple


class Scenario(Enum):
    """Election scenarios the cluster can be prepared for"""
    BEST_CASE = "best_case"
    SPLIT_VOTE = "split_vote"


# Split vote needs enough active nodes for two forced candidates and two followers
SPLIT_VOTE_NODE_COUNTS = (4, 5)


class InvalidConfigurationError(ValueError):
    """Raised synchronously when a simulation cannot be set up as requested"""


@dataclass
class SimulationConfig:
    """
    Timing parameters shared by every component of a simulation run.

    Attributes:
        tick_interval: Sleep between two iterations of a node worker
        transit_delay: Simulated time a message spends on the wire
        transit_jitter: Upper bound of extra random delay added per message
        heartbeat_interval: Period of the leader's AppendEntries broadcast
        election_timeout_range: Min/max of a freshly randomized timeout
        best_case_first_timeout: Timeout of the node seeded to win the best case
        best_case_other_timeout_range: Min/max timeout of the other nodes
        split_vote_fast_timeout: Timeout of the follower that breaks the tie
        split_vote_disable_node: Take one node down when five are requested
    """
    tick_interval: float = 0.1
    transit_delay: float = 1.0
    transit_jitter: float = 0.0
    heartbeat_interval: float = 3.0
    election_timeout_range: Tuple[float, float] = (5.0, 6.5)
    best_case_first_timeout: float = 5.0
    best_case_other_timeout_range: Tuple[float, float] = (8.0, 10.0)
    split_vote_fast_timeout: float = 1.0
    split_vote_disable_node: bool = True

    def validate(self) -> "SimulationConfig":
        """Check durations and ranges, returning self for chaining"""
        for name in ("tick_interval", "transit_delay", "heartbeat_interval",
                     "best_case_first_timeout", "split_vote_fast_timeout"):
            if getattr(self, name) <= 0:
                raise InvalidConfigurationError(f"{name} must be positive")

        if self.transit_jitter < 0:
            raise InvalidConfigurationError("transit_jitter cannot be negative")

        for name in ("election_timeout_range", "best_case_other_timeout_range"):
            low, high = getattr(self, name)
            if low <= 0 or high < low:
                raise InvalidConfigurationError(f"{name} must be a positive (min, max) pair, got {(low, high)}")

        return self

    def scaled(self, factor: float) -> "SimulationConfig":
        """
        Return a copy with every duration multiplied by ``factor``.

        Relative ordering of the timeouts is preserved, so scenario outcomes
        stay the same while the run completes proportionally faster.
        """
        if factor <= 0:
            raise InvalidConfigurationError("Scale factor must be positive")

        changes = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool):
                continue
            if isinstance(value, tuple):
                changes[field.name] = tuple(v * factor for v in value)
            else:
                changes[field.name] = value * factor
        return replace(self, **changes)


def validate_cluster_size(num_nodes: int, scenario: Scenario) -> None:
    """Reject node counts the requested scenario cannot run with"""
    if num_nodes < 1:
        raise InvalidConfigurationError("Cluster must have at least one node")

    if scenario is Scenario.SPLIT_VOTE and num_nodes not in SPLIT_VOTE_NODE_COUNTS:
        raise InvalidConfigurationError(
            f"Split vote scenario requires {SPLIT_VOTE_NODE_COUNTS[0]} or "
            f"{SPLIT_VOTE_NODE_COUNTS[1]} nodes, got {num_nodes}"
        )
