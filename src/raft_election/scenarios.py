"""
Election Scenarios

Setup hooks that put a freshly built cluster into a known starting position
before its workers begin ticking:

- best case: one node gets a clearly shorter timeout than everybody else,
  times out first and wins the election without competition
- split vote: several nodes are forced into candidacy for the same term so
  that none of them can reach quorum, and a follower with a very short
  timeout then starts a new term that resolves the tie

All random choices come from the cluster's seedable generator, so a given
seed always produces the same plan.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from .config import Scenario

if TYPE_CHECKING:
    from .cluster import RaftCluster


logger = logging.getLogger("raft_election.scenarios")

SPLIT_VOTE_TERM = 1
SPLIT_VOTE_FOLLOWERS = 2


@dataclass
class ScenarioPlan:
    """The choices a scenario setup made, for inspection by tests and displays"""
    scenario: Scenario
    first_candidate_id: Optional[int] = None
    disabled_node_id: Optional[int] = None
    follower_ids: List[int] = field(default_factory=list)
    candidate_ids: List[int] = field(default_factory=list)
    fast_follower_id: Optional[int] = None


def prepare_scenario(cluster: "RaftCluster") -> ScenarioPlan:
    """Dispatch to the setup for the cluster's scenario"""
    if cluster.scenario is Scenario.SPLIT_VOTE:
        return prepare_split_vote(cluster)
    return prepare_best_case(cluster)


def _narrate(cluster: "RaftCluster", text: str) -> None:
    logger.info(text)
    cluster.events.log(text)


def prepare_best_case(cluster: "RaftCluster") -> ScenarioPlan:
    """
    Seed one random node with the short timeout and the rest with long ones.

    Every node's countdown restarts at setup time, so the seeded node is
    the first to expire by a margin of at least three seconds (default
    timings), which is enough for its whole election round trip.
    """
    config = cluster.config
    rng = cluster.rng

    first = rng.choice(cluster.nodes)
    for node in cluster.nodes:
        if node is first:
            timeout = config.best_case_first_timeout
            _narrate(cluster, f"Node n{node.node_id} will become candidate first "
                              f"with a timeout of {timeout * 1000:.0f}ms.")
        else:
            timeout = rng.uniform(*config.best_case_other_timeout_range)
            _narrate(cluster, f"Node n{node.node_id} has an election timeout of {timeout * 1000:.0f}ms.")
        node.set_election_timeout(timeout, reset_baseline=True)

    return ScenarioPlan(scenario=Scenario.BEST_CASE, first_candidate_id=first.node_id)


def prepare_split_vote(cluster: "RaftCluster") -> ScenarioPlan:
    """
    Force a split vote among the active nodes.

    With five nodes one may be taken down first, leaving four active. Two
    active nodes are kept as followers; every other active node becomes a
    candidate for term 1 and votes for itself. Since each candidate holds
    only its own vote and the followers can be shared at best, no
    candidate reaches a strict majority. One retained follower gets a very
    short timeout so that it alone opens the next election.
    """
    config = cluster.config
    rng = cluster.rng
    plan = ScenarioPlan(scenario=Scenario.SPLIT_VOTE)

    if config.split_vote_disable_node and len(cluster.nodes) == 5:
        down = rng.choice(cluster.nodes)
        down.disable()
        plan.disabled_node_id = down.node_id
        _narrate(cluster, f"Node n{down.node_id} has been randomly set to 'down'.")

    active = cluster.active_nodes()
    for node in active:
        node.reset_to_follower(SPLIT_VOTE_TERM)

    followers = rng.sample(active, SPLIT_VOTE_FOLLOWERS)
    candidates = [node for node in active if node not in followers]
    plan.follower_ids = [node.node_id for node in followers]
    plan.candidate_ids = [node.node_id for node in candidates]

    fast = rng.choice(followers)
    fast.set_election_timeout(config.split_vote_fast_timeout, reset_baseline=True)
    plan.fast_follower_id = fast.node_id
    _narrate(cluster, f"Node n{fast.node_id} has a faster election timeout "
                      f"of {config.split_vote_fast_timeout * 1000:.0f}ms.")

    for node in candidates:
        node.force_candidacy()
        _narrate(cluster, f"Node n{node.node_id} becomes a candidate in term {node.get_term()} "
                          f"and votes for itself.")

    def poll_followers():
        for follower in followers:
            follower.check_election_timeout()

    cluster.add_periodic_task("split-vote-timeouts", config.tick_interval, poll_followers)
    return plan
