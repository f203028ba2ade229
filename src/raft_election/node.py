"""
Core Raft Node Implementation

This module implements the per-node leader election state machine:
- Randomized election timeouts with a pausable countdown
- Term management and the stale-message filter
- Vote granting (at most one vote per term) and vote counting
- Quorum detection and leadership arbitration through the cluster

Each node runs its own worker thread. Every state transition is performed
while holding the node's lock, so a transition is atomic with respect to
messages arriving concurrently from the bus.
"""

import time
import random
import logging
import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set, TYPE_CHECKING

from .config import SimulationConfig
from .messages import Message, MessageType, NodeSnapshot, NodeState

if TYPE_CHECKING:
    from .cluster import RaftCluster


class RaftNode:
    """
    Simulated Raft node taking part in leader election.

    A node starts as a follower. When its election timer runs out and no
    leader has been recorded by the cluster, it starts a new term, votes for
    itself and asks every active peer for a vote. Collecting votes from a
    strict majority of active nodes lets it claim leadership; only the first
    claim in a cluster succeeds.

    Log replication is deliberately absent: AppendEntries carries no entries
    and only serves as the leader's heartbeat.
    """

    def __init__(self, node_id: int, cluster: "RaftCluster",
                 config: Optional[SimulationConfig] = None,
                 initial_term: int = 0,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize a Raft node.

        Args:
            node_id: Unique positive identifier within the cluster
            cluster: Coordinator owning the bus, registry and arbitration
            config: Timing parameters
            initial_term: Term the node starts in
            rng: Random source for election timeouts
            clock: Monotonic time source in seconds
        """
        self.node_id = node_id
        self.cluster = cluster
        self.config = config or SimulationConfig()
        self.rng = rng or random.Random()
        self.clock = clock

        # Election state
        self.current_term = initial_term
        self.voted_for: Optional[int] = None
        self.state = NodeState.FOLLOWER
        self.votes_received: Set[int] = set()
        self.acks_received = 0

        # Election timer
        self.election_timeout = self._get_election_timeout()
        self.last_heartbeat = self.clock()
        self.election_timer_running = True

        # Availability and execution control
        self.enabled = True
        self.paused = False
        self._paused_at: Optional[float] = None
        self.inbox: Deque[Message] = deque()

        # Thread safety and control
        self.lock = threading.RLock()
        self._runnable = threading.Event()
        self._runnable.set()
        self._stopped = threading.Event()
        self.thread: Optional[threading.Thread] = None

        self._handlers: Dict[MessageType, Callable[[Message], None]] = {
            MessageType.REQUEST_VOTE: self._handle_request_vote,
            MessageType.VOTE: self._handle_vote,
            MessageType.APPEND_ENTRIES: self._handle_append_entries,
            MessageType.ACK: self._handle_ack,
        }

        self.logger = logging.getLogger(f"raft_election.n{node_id}")

    def _get_election_timeout(self) -> float:
        """Generate randomized election timeout to prevent split votes"""
        return self.rng.uniform(*self.config.election_timeout_range)

    # Worker loop

    def start(self) -> None:
        """Start the node's worker thread"""
        if self._stopped.is_set():
            raise RuntimeError(f"Node n{self.node_id} has been stopped")
        if self.thread is not None:
            return

        self.thread = threading.Thread(target=self._run_node, name=f"raft-n{self.node_id}", daemon=True)
        self.thread.start()
        self.logger.debug(f"Node n{self.node_id} started as {self.state.value} in term {self.current_term}")

    def _run_node(self) -> None:
        """Main node loop - check the timer, then drain the inbox"""
        while not self._stopped.is_set():
            self._runnable.wait()
            if self._stopped.is_set():
                break

            try:
                self._tick()
            except Exception as e:
                self.logger.error(f"Error in node loop: {e}")

            self._stopped.wait(self.config.tick_interval)

    def _tick(self) -> None:
        if not self.check_election_timeout():
            with self.lock:
                if self._can_act() and self.election_timer_running and self.state == NodeState.FOLLOWER:
                    self._emit_state()  # countdown refresh

        self._process_incoming_messages()

    def check_election_timeout(self) -> bool:
        """
        Report an expired election timer to the cluster.

        Returns:
            bool: True if the timer had run out
        """
        with self.lock:
            if not self._can_act() or not self.election_timer_running:
                return False
            if self._remaining_time() > 0:
                return False

            # Reported under the lock so no reset can slip in before the node acts
            self.cluster.notify_timeout_expired(self)
            return True

    def _can_act(self) -> bool:
        return self.enabled and not self.paused and not self._stopped.is_set()

    def _update_gate(self) -> None:
        if self._can_act() or self._stopped.is_set():
            self._runnable.set()
        else:
            self._runnable.clear()

    def _remaining_time(self) -> float:
        now = self._paused_at if self.paused and self._paused_at is not None else self.clock()
        return self.election_timeout - (now - self.last_heartbeat)

    # State transitions

    def on_election_timeout(self) -> None:
        """
        Handle expiry of the election timer.

        The cluster is consulted first: if a leader has already been
        recorded the node stays a follower and re-arms its timer, and its
        term is left untouched. Only otherwise does it start a new term. An
        expiry reported after the timer was re-armed is ignored.
        """
        with self.lock:
            if not self._can_act() or not self.election_timer_running:
                return
            if self.state == NodeState.LEADER or self._remaining_time() > 0:
                return

            if self.cluster.get_leader() is not None:
                self._log(f"Node n{self.node_id} detected existing leader. Remaining follower.")
                self._become_follower()
                return

            self.current_term += 1
            self._log(f"Node n{self.node_id} starts a new election in term {self.current_term}.")
            self._become_candidate()

    def force_candidacy(self) -> None:
        """Enter candidacy for the current term without starting a new one"""
        with self.lock:
            if not self.enabled or self._stopped.is_set():
                return
            self._become_candidate()

    def _become_candidate(self) -> None:
        self.state = NodeState.CANDIDATE
        self.election_timer_running = False  # candidates wait for votes, not for a timer
        self.voted_for = self.node_id
        self.votes_received = {self.node_id}

        self._log(f"Node n{self.node_id} becomes candidate for term {self.current_term} and requests votes.")
        self._emit_state()

        for peer in self.cluster.active_nodes():
            if peer is not self:
                self._send(peer, MessageType.REQUEST_VOTE)

        self._check_quorum()

    def _check_quorum(self) -> None:
        quorum = len(self.cluster.active_nodes()) // 2 + 1
        if len(self.votes_received) >= quorum:
            self._become_leader()

    def _become_leader(self) -> None:
        """Try to win arbitration; revert to follower if another node already did"""
        if self.state != NodeState.CANDIDATE:
            return

        if self.cluster.claim_leadership(self):
            self.state = NodeState.LEADER
            self.election_timer_running = False  # heartbeats keep the others quiet
            self._log(f"Node n{self.node_id} becomes leader in term {self.current_term}.")
            self._emit_state()
            self.cluster.start_heartbeats()
        else:
            self._log(f"Node n{self.node_id} detected an existing leader. Aborting leadership.")
            self._become_follower()

    def _become_follower(self) -> None:
        self.state = NodeState.FOLLOWER
        self.votes_received.clear()
        self.election_timer_running = True
        self._reset_election_timeout()

    def _step_down_if_newer(self, term: int) -> None:
        """Adopt a higher term from any message, whatever the current role"""
        if term > self.current_term:
            self.current_term = term
            self.voted_for = None
            self._log(f"Node n{self.node_id} steps down to follower in term {term}.")
            self._become_follower()

    def _reset_election_timeout(self) -> None:
        self.election_timeout = self._get_election_timeout()
        self.last_heartbeat = self.clock()
        if self.paused:
            self._paused_at = self.last_heartbeat
        self._emit_state()

    # Messaging

    def _send(self, receiver: "RaftNode", message_type: MessageType) -> bool:
        message = Message(message_type, self.node_id, self, self.current_term)
        return self.cluster.bus.send(self, receiver, message)

    def receive_message(self, message: Message) -> bool:
        """
        Queue an arriving message for the worker.

        Messages from an older term are rejected here and never queued, so a
        late or reordered delivery cannot move the node back in time.

        Returns:
            bool: True if the message was queued
        """
        with self.lock:
            if not self.enabled or self._stopped.is_set():
                return False
            if message.term < self.current_term:
                self.logger.debug(f"Ignoring stale {message} (local term {self.current_term})")
                return False
            self.inbox.append(message)
            return True

    def _process_incoming_messages(self) -> None:
        while True:
            with self.lock:
                if not self._can_act() or not self.inbox:
                    return
                # An expired timer fires before any message that arrived after it
                if self.check_election_timeout():
                    continue
                message = self.inbox.popleft()
                self._process_message(message)

    def _process_message(self, message: Message) -> None:
        self._step_down_if_newer(message.term)
        self._handlers[message.type](message)

    def _handle_request_vote(self, message: Message) -> None:
        if message.term < self.current_term:
            self._log(f"Node n{self.node_id} ignores stale vote request from n{message.sender_id} "
                      f"(term {message.term} < {self.current_term}).", logging.DEBUG)
            return

        if self.voted_for is None or self.voted_for == message.sender_id:
            self.voted_for = message.sender_id
            self.last_heartbeat = self.clock()  # granting a vote restarts the countdown
            self._send(message.sender, MessageType.VOTE)
            self._log(f"Node n{self.node_id} votes for Node n{message.sender_id} in term {self.current_term}.")
            self._emit_state()
        else:
            self._log(f"Node n{self.node_id} has already voted in term {self.current_term}.")

    def _handle_vote(self, message: Message) -> None:
        if self.state != NodeState.CANDIDATE or message.term != self.current_term:
            self.logger.debug(f"Ignoring {message} as {self.state.value} in term {self.current_term}")
            return

        self.votes_received.add(message.sender_id)
        self._log(f"Node n{self.node_id} received vote from Node n{message.sender_id} in term {self.current_term}.")
        self._check_quorum()

    def _handle_append_entries(self, message: Message) -> None:
        if message.term < self.current_term:
            self._log(f"Node n{self.node_id} ignores stale AppendEntries from n{message.sender_id}.", logging.DEBUG)
            return

        if self.state == NodeState.CANDIDATE:
            self._log(f"Node n{self.node_id} recognizes Leader n{message.sender_id} in term {self.current_term}.")
            self._become_follower()

        self.last_heartbeat = self.clock()
        self._send(message.sender, MessageType.ACK)
        self._log(f"Node n{self.node_id} acknowledges AppendEntries from Leader n{message.sender_id} "
                  f"in term {self.current_term}.")
        self._emit_state()

    def _handle_ack(self, message: Message) -> None:
        self.acks_received += 1
        self.logger.debug(f"Leader n{self.node_id} got Ack from n{message.sender_id}")

    # Execution control

    def pause(self) -> None:
        """Freeze the worker; the election countdown does not advance while paused"""
        with self.lock:
            if self.paused or self._stopped.is_set():
                return
            self.paused = True
            self._paused_at = self.clock()
            self._update_gate()
            self._emit_state()

    def resume(self) -> None:
        with self.lock:
            if not self.paused:
                return
            if self._paused_at is not None:
                self.last_heartbeat += self.clock() - self._paused_at
            self.paused = False
            self._paused_at = None
            self._update_gate()
            self._emit_state()

    def stop(self) -> None:
        """Stop the node permanently; safe to call more than once"""
        with self.lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
            self.inbox.clear()
            self._runnable.set()

        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self.logger.info(f"Node n{self.node_id} stopped")

    def disable(self) -> None:
        """Take the node down: it stops timing out, sending and accepting messages"""
        with self.lock:
            if not self.enabled:
                return
            self.enabled = False
            self.inbox.clear()
            self._update_gate()
            self._log(f"Node n{self.node_id} is down.")
            self._emit_state()

    def enable(self) -> None:
        """Bring a down node back as it was, with a fresh election timer"""
        with self.lock:
            if self.enabled:
                return
            self.enabled = True
            self._update_gate()
            self._log(f"Node n{self.node_id} is back up in term {self.current_term}.")
            if self.state != NodeState.LEADER:
                self.election_timer_running = True
            self._reset_election_timeout()

    # Scenario setup

    def set_election_timeout(self, timeout: float, reset_baseline: bool = True) -> None:
        """Override the current timeout, optionally restarting the countdown now"""
        with self.lock:
            self.election_timeout = timeout
            if reset_baseline:
                self.last_heartbeat = self.clock()
                if self.paused:
                    self._paused_at = self.last_heartbeat
            self._emit_state()

    def reset_election_timeout(self) -> None:
        """Draw a fresh randomized timeout and restart the countdown"""
        with self.lock:
            self._reset_election_timeout()

    def reset_to_follower(self, term: int) -> None:
        """Put the node in ``term`` as a follower that has not voted yet"""
        with self.lock:
            if term < self.current_term:
                raise ValueError(f"Term cannot go backwards ({term} < {self.current_term})")
            self.current_term = term
            self.voted_for = None
            self._become_follower()

    # Accessors

    def snapshot(self) -> NodeSnapshot:
        """Get current node state (thread-safe)"""
        with self.lock:
            return self._snapshot()

    def _snapshot(self) -> NodeSnapshot:
        remaining = self._remaining_time() if self.election_timer_running else None
        return NodeSnapshot(
            node_id=self.node_id,
            state=self.state,
            term=self.current_term,
            voted_for=self.voted_for,
            remaining_timeout=remaining,
            timer_running=self.election_timer_running,
            enabled=self.enabled,
            paused=self.paused
        )

    def _emit_state(self) -> None:
        self.cluster.events.node_state(self._snapshot())

    def _log(self, text: str, level: int = logging.INFO) -> None:
        self.logger.log(level, text)
        self.cluster.events.log(text)

    def get_state(self) -> NodeState:
        with self.lock:
            return self.state

    def get_term(self) -> int:
        with self.lock:
            return self.current_term

    def get_voted_for(self) -> Optional[int]:
        with self.lock:
            return self.voted_for

    def get_votes_received(self) -> List[int]:
        with self.lock:
            return sorted(self.votes_received)

    def get_election_timeout(self) -> float:
        with self.lock:
            return self.election_timeout

    def remaining_timeout(self) -> Optional[float]:
        """Seconds left before the election timer fires, None if it is not running"""
        with self.lock:
            return self._remaining_time() if self.election_timer_running else None

    def pending_messages(self) -> int:
        with self.lock:
            return len(self.inbox)

    def is_leader(self) -> bool:
        """Check if this node is currently the leader"""
        with self.lock:
            return self.state == NodeState.LEADER

    def is_running(self) -> bool:
        return self.thread is not None and not self._stopped.is_set()

    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def __str__(self) -> str:
        return f"RaftNode(n{self.node_id}, {self.state.value}, term={self.current_term})"
