"""
Simulation Host Controls

Lifecycle surface for whatever hosts the simulation (a GUI, the console
demo, a test). One ``ElectionSimulation`` outlives many runs; each
``start`` builds a brand new cluster, since a stopped cluster cannot be
restarted.
"""

import logging
import threading
from typing import Optional

from .cluster import RaftCluster
from .config import Scenario, SimulationConfig
from .events import EventDispatcher
from .messages import ClusterStats


class ElectionSimulation:
    """Start, pause, resume and stop election runs"""

    def __init__(self, config: Optional[SimulationConfig] = None,
                 events: Optional[EventDispatcher] = None,
                 seed: Optional[int] = None):
        self.config = config or SimulationConfig()
        self.events = events or EventDispatcher()
        self.seed = seed
        self.cluster: Optional[RaftCluster] = None
        self.lock = threading.Lock()
        self.logger = logging.getLogger("raft_election.simulation")

    def start(self, node_count: int, scenario: Scenario = Scenario.BEST_CASE) -> RaftCluster:
        """
        Stop any current run and start a new one.

        Raises:
            InvalidConfigurationError: if the scenario cannot run with node_count
                nodes; the previous run, if any, is left untouched
        """
        cluster = RaftCluster(
            num_nodes=node_count,
            scenario=scenario,
            config=self.config,
            seed=self.seed,
            events=self.events
        )

        with self.lock:
            previous, self.cluster = self.cluster, cluster

        if previous is not None:
            previous.stop()

        cluster.start()
        self.logger.info(f"Simulation started: {node_count} nodes, {scenario.value}")
        return cluster

    def pause(self) -> None:
        if self.cluster is not None:
            self.cluster.pause()

    def resume(self) -> None:
        if self.cluster is not None:
            self.cluster.resume()

    def stop(self) -> None:
        if self.cluster is not None:
            self.cluster.stop()

    def disable_node(self, node_id: int) -> None:
        """Take a node of the current run down"""
        if self.cluster is None:
            raise RuntimeError("No simulation is running")
        self.cluster.disable_node(node_id)

    def is_running(self) -> bool:
        cluster = self.cluster
        return cluster is not None and cluster.started and not cluster.stopped

    def get_cluster_stats(self) -> Optional[ClusterStats]:
        return self.cluster.get_cluster_stats() if self.cluster is not None else None
