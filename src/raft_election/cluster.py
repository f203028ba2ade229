"""
Raft Cluster Management

This module provides the cluster-level coordinator for simulated nodes:
- Node registry and the active (not down) subset
- Single-winner leadership arbitration
- Periodic heartbeat broadcast from the leader
- Start, pause, resume and stop cascaded to every worker
- Scenario setup hooks and cluster-wide statistics
"""

import time
import random
import logging
import threading
from typing import Callable, List, Optional

from .bus import MessageBus
from .config import Scenario, SimulationConfig, validate_cluster_size
from .events import EventDispatcher
from .messages import ClusterStats, Message, MessageType, NodeState
from .node import RaftNode
from .scenarios import ScenarioPlan, prepare_scenario
from .scheduler import PeriodicTask


class RaftCluster:
    """
    Coordinator for one simulation run.

    The cluster owns the only value shared between node workers, the
    leader-of-record, and assigns it exclusively through
    ``claim_leadership``. It never mutates node state directly: nodes are
    driven through their own methods and decide for themselves.
    """

    def __init__(self, num_nodes: int = 5,
                 scenario: Scenario = Scenario.BEST_CASE,
                 config: Optional[SimulationConfig] = None,
                 seed: Optional[int] = None,
                 events: Optional[EventDispatcher] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cluster and its nodes without starting them.

        Args:
            num_nodes: Number of nodes in the cluster
            scenario: Election scenario to prepare
            config: Timing parameters shared by every component
            seed: Seed for every random choice of the run
            events: Dispatcher receiving narration, snapshots and traffic
            clock: Monotonic time source in seconds

        Raises:
            InvalidConfigurationError: if the scenario cannot run with this setup
        """
        validate_cluster_size(num_nodes, scenario)
        self.config = (config or SimulationConfig()).validate()

        self.num_nodes = num_nodes
        self.scenario = scenario
        self.seed = seed
        self.rng = random.Random(seed)
        self.clock = clock
        self.events = events or EventDispatcher()
        self.bus = MessageBus(
            transit_delay=self.config.transit_delay,
            transit_jitter=self.config.transit_jitter,
            events=self.events,
            rng=random.Random(self.rng.getrandbits(32))
        )

        initial_term = 1 if scenario is Scenario.SPLIT_VOTE else 0
        self.nodes: List[RaftNode] = [
            RaftNode(
                node_id=i + 1,
                cluster=self,
                config=self.config,
                initial_term=initial_term,
                rng=random.Random(self.rng.getrandbits(32)),
                clock=clock
            )
            for i in range(num_nodes)
        ]

        # Cluster state
        self.lock = threading.Lock()
        self._leader: Optional[RaftNode] = None
        self.leadership_claims = 0
        self.plan: Optional[ScenarioPlan] = None
        self._heartbeat_task: Optional[PeriodicTask] = None
        self.tasks: List[PeriodicTask] = []
        self.started = False
        self.paused = False
        self.stopped = False

        self.logger = logging.getLogger("raft_election.cluster")
        self.logger.info(f"Cluster initialized with {num_nodes} nodes for {scenario.value} scenario")

    # Registry

    def get_node(self, node_id: int) -> RaftNode:
        """Look up a node by id, raising KeyError for unknown ids"""
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        raise KeyError(f"Unknown node: {node_id}")

    def active_nodes(self) -> List[RaftNode]:
        """Nodes that are currently up, in creation order (recomputed on every call)"""
        return [node for node in self.nodes if node.enabled]

    # Arbitration

    def claim_leadership(self, node: RaftNode) -> bool:
        """
        Atomically record ``node`` as leader if no leader exists yet.

        Returns:
            bool: True if this claim won, False if a leader was already recorded
        """
        with self.lock:
            if self._leader is not None:
                self.logger.debug(f"Leadership claim by n{node.node_id} rejected, n{self._leader.node_id} leads")
                return False
            self._leader = node
            self.leadership_claims += 1

        self.logger.info(f"Node n{node.node_id} recorded as leader")
        return True

    def get_leader(self) -> Optional[RaftNode]:
        with self.lock:
            return self._leader

    def get_leader_id(self) -> Optional[int]:
        leader = self.get_leader()
        return leader.node_id if leader is not None else None

    def notify_timeout_expired(self, node: RaftNode) -> None:
        """Hand an expired election timer back to the node that owns it"""
        node.on_election_timeout()

    # Scheduling

    def add_periodic_task(self, name: str, interval: float, action: Callable[[], None]) -> PeriodicTask:
        """Register a task that follows the cluster's start/pause/resume/stop"""
        task = PeriodicTask(name, interval, action, poll_interval=self.config.tick_interval)
        if not self._register_task(task):
            raise RuntimeError("Cluster has been stopped")
        return task

    def _register_task(self, task: PeriodicTask) -> bool:
        with self.lock:
            if self.stopped:
                return False
            self.tasks.append(task)
            running = self.started
            paused = self.paused

        if paused:
            task.pause()
        if running:
            task.start()
        return True

    def start_heartbeats(self) -> None:
        """Begin the leader's periodic AppendEntries broadcast (idempotent)"""
        with self.lock:
            if self._heartbeat_task is not None:
                return
            self._heartbeat_task = PeriodicTask(
                "heartbeat", self.config.heartbeat_interval, self._send_heartbeats,
                poll_interval=self.config.tick_interval
            )

        self._register_task(self._heartbeat_task)

    def _send_heartbeats(self) -> None:
        leader = self.get_leader()
        if leader is None:
            return

        term = leader.get_term()
        text = f"Leader n{leader.node_id} sends AppendEntries to followers."
        self.logger.info(text)
        self.events.log(text)

        for node in self.active_nodes():
            if node is not leader:
                self.bus.send(leader, node, Message(MessageType.APPEND_ENTRIES, leader.node_id, leader, term))

    # Lifecycle

    def prepare_scenario(self) -> ScenarioPlan:
        """Apply the scenario's initial timeouts and roles (runs once)"""
        if self.plan is None:
            self.plan = prepare_scenario(self)
        return self.plan

    def start(self) -> None:
        """Prepare the scenario if needed and start every worker"""
        with self.lock:
            if self.stopped:
                raise RuntimeError("Cluster has been stopped; create a new cluster to run again")
            if self.started:
                return

        self.prepare_scenario()

        with self.lock:
            self.started = True
            tasks = list(self.tasks)

        for node in self.nodes:
            node.start()
        for task in tasks:
            task.start()

        self.logger.info(f"Cluster started: {[f'n{node.node_id}' for node in self.nodes]}")

    def pause(self) -> None:
        """Pause every node and periodic task"""
        with self.lock:
            if self.stopped:
                return
            self.paused = True
            tasks = list(self.tasks)

        for node in self.nodes:
            node.pause()
        for task in tasks:
            task.pause()
        self.logger.info("Cluster paused")

    def resume(self) -> None:
        with self.lock:
            if self.stopped:
                return
            self.paused = False
            tasks = list(self.tasks)

        for node in self.nodes:
            node.resume()
        for task in tasks:
            task.resume()
        self.logger.info("Cluster resumed")

    def stop(self) -> None:
        """Stop all nodes, tasks and in-flight messages; safe to call more than once"""
        with self.lock:
            if self.stopped:
                return
            self.stopped = True
            tasks = list(self.tasks)

        self.bus.stop()
        for task in tasks:
            task.stop()
        for node in self.nodes:
            node.stop()
        self.logger.info("Cluster stopped")

    def disable_node(self, node_id: int) -> None:
        """Simulate a node going down"""
        self.get_node(node_id).disable()

    def enable_node(self, node_id: int) -> None:
        self.get_node(node_id).enable()

    # Monitoring

    def get_cluster_stats(self) -> ClusterStats:
        """
        Get cluster statistics.

        Returns:
            ClusterStats: Current cluster state with a snapshot of every node
        """
        snapshots = {node.node_id: node.snapshot() for node in self.nodes}
        return ClusterStats(
            total_nodes=len(self.nodes),
            active_nodes=sum(1 for s in snapshots.values() if s.enabled),
            leader_id=self.get_leader_id(),
            current_term=max((s.term for s in snapshots.values()), default=0),
            scenario=self.scenario.value,
            nodes=snapshots
        )

    def leaders(self) -> List[RaftNode]:
        """Every node currently in the leader role"""
        return [node for node in self.nodes if node.get_state() == NodeState.LEADER]

    def wait_for_leader_election(self, timeout: float = 15.0) -> bool:
        """
        Wait for a leader to be elected.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            bool: True if leader was elected within timeout
        """
        start_time = time.monotonic()

        while time.monotonic() - start_time < timeout:
            leader = self.get_leader()
            if leader is not None and leader.is_leader():
                self.logger.info(f"Leader elected: n{leader.node_id}")
                return True
            time.sleep(min(0.05, self.config.tick_interval))

        self.logger.warning("No leader elected within timeout")
        return False

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure cleanup"""
        self.stop()

    def __str__(self) -> str:
        active = len(self.active_nodes())
        leader = self.get_leader_id()
        return f"RaftCluster({active}/{len(self.nodes)} nodes, leader={leader})"
