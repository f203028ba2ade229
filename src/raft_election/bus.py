"""
Simulated Message Bus

Asynchronous, delayed, lossy delivery between simulated nodes. Sending never
blocks: each message is handed to a timer that enqueues it at the receiver
once the transit delay has elapsed. Traffic from or to a node that is down is
silently dropped, both when it is sent and again when it arrives.
"""

import random
import logging
import threading
from typing import Dict, Optional, TYPE_CHECKING

from .events import DropReason, EventDispatcher, MessagePhase
from .messages import Message

if TYPE_CHECKING:
    from .node import RaftNode


class MessageBus:
    """
    In-memory network connecting the nodes of one cluster.

    No ordering is promised between messages; the receiving node's term
    filter is what keeps reordered or late traffic harmless.
    """

    def __init__(self, transit_delay: float = 1.0, transit_jitter: float = 0.0,
                 events: Optional[EventDispatcher] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the bus.

        Args:
            transit_delay: Seconds between send and delivery
            transit_jitter: Upper bound of random extra delay per message
            events: Dispatcher that receives send/delivery/drop events
            rng: Random source for jitter
        """
        self.transit_delay = transit_delay
        self.transit_jitter = transit_jitter
        self.events = events or EventDispatcher()
        self.rng = rng or random.Random()

        self.lock = threading.Lock()
        self.pending: Dict[int, threading.Timer] = {}
        self._next_id = 0
        self.stopped = False

        self.sent_count = 0
        self.delivered_count = 0
        self.dropped_count = 0

        self.logger = logging.getLogger("raft_election.bus")

    def send(self, sender: "RaftNode", receiver: "RaftNode", message: Message) -> bool:
        """
        Put a message in transit.

        Returns:
            bool: True if the message will be delivered after the transit delay
        """
        reason = None
        if self.stopped:
            reason = DropReason.BUS_STOPPED
        elif not sender.enabled:
            reason = DropReason.SENDER_DOWN
        elif not receiver.enabled:
            reason = DropReason.RECEIVER_DOWN

        if reason is not None:
            self._drop(message, receiver, reason)
            return False

        delay = self.transit_delay
        if self.transit_jitter > 0:
            delay += self.rng.uniform(0, self.transit_jitter)

        with self.lock:
            if self.stopped:
                reason = DropReason.BUS_STOPPED
            else:
                delivery_id = self._next_id
                self._next_id += 1
                timer = threading.Timer(delay, self._deliver, args=(delivery_id, receiver, message))
                timer.daemon = True
                self.pending[delivery_id] = timer
                self.sent_count += 1

        if reason is not None:
            self._drop(message, receiver, reason)
            return False

        self.logger.debug(f"Sending {message} to n{receiver.node_id}")
        self.events.message(MessagePhase.SENT, message.sender_id, receiver.node_id,
                            message.type, message.term)
        timer.start()
        return True

    def _deliver(self, delivery_id: int, receiver: "RaftNode", message: Message) -> None:
        with self.lock:
            if self.pending.pop(delivery_id, None) is None:
                return  # cancelled by stop()

        if not receiver.enabled:
            self._drop(message, receiver, DropReason.RECEIVER_DOWN)
            return

        if receiver.receive_message(message):
            with self.lock:
                self.delivered_count += 1
            self.events.message(MessagePhase.DELIVERED, message.sender_id, receiver.node_id,
                                message.type, message.term)
        elif not self.stopped:
            reason = DropReason.STALE_TERM if receiver.enabled else DropReason.RECEIVER_DOWN
            self._drop(message, receiver, reason)

    def _drop(self, message: Message, receiver: "RaftNode", reason: DropReason) -> None:
        with self.lock:
            self.dropped_count += 1
        self.logger.debug(f"Dropped {message} to n{receiver.node_id}: {reason.value}")
        self.events.message(MessagePhase.DROPPED, message.sender_id, receiver.node_id,
                            message.type, message.term, reason=reason)

    def in_flight(self) -> int:
        """Number of messages sent but not yet delivered"""
        with self.lock:
            return len(self.pending)

    def stop(self) -> None:
        """Cancel every pending delivery and refuse new sends"""
        with self.lock:
            if self.stopped:
                return
            self.stopped = True
            timers = list(self.pending.values())
            self.pending.clear()

        for timer in timers:
            timer.cancel()
        self.logger.debug(f"Bus stopped, {len(timers)} deliveries cancelled")
