"""Shared fixtures for the election tests"""

import time
import threading

from raft_election import RaftCluster, Scenario, SimulationConfig

# Long enough that nothing sent during a unit test is ever delivered
PARKED_CONFIG = SimulationConfig(transit_delay=60.0)

# Real scenarios, five times faster than the default pacing
FAST_CONFIG = SimulationConfig().scaled(0.2)


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Collects everything an EventDispatcher publishes"""

    def __init__(self, events):
        self.lines = []
        self.snapshots = []
        self.messages = []
        self.lock = threading.Lock()
        events.add_log_handler(self._on_log)
        events.add_state_handler(self._on_state)
        events.add_message_handler(self._on_message)

    def _on_log(self, text):
        with self.lock:
            self.lines.append(text)

    def _on_state(self, snapshot):
        with self.lock:
            self.snapshots.append(snapshot)

    def _on_message(self, event):
        with self.lock:
            self.messages.append(event)

    def sent(self, message_type=None, from_id=None):
        from raft_election import MessagePhase
        with self.lock:
            return [e for e in self.messages
                    if e.phase == MessagePhase.SENT
                    and (message_type is None or e.type == message_type)
                    and (from_id is None or e.from_id == from_id)]

    def of_phase(self, phase):
        with self.lock:
            return [e for e in self.messages if e.phase == phase]

    def ids_in_state(self, state):
        with self.lock:
            return {s.node_id for s in self.snapshots if s.state == state}


def parked_cluster(num_nodes=3, scenario=Scenario.BEST_CASE, clock=None, seed=7):
    """Cluster whose workers are not started and whose messages never land"""
    kwargs = {"clock": clock} if clock is not None else {}
    return RaftCluster(num_nodes=num_nodes, scenario=scenario, config=PARKED_CONFIG, seed=seed, **kwargs)


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
