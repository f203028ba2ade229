"""
Simulation Events

Observer surface through which the election core reports what it is doing.
Consumers (a GUI, a test, the console demo) register plain callables; the
protocol code never depends on who, if anyone, is listening.

Three streams are published:
- narration: free-text lines describing each transition, vote or message
- node state: ``NodeSnapshot`` values whenever role, term, vote or timer change
- message traffic: ``MessageEvent`` values at send, delivery and drop time

Handlers run synchronously on the thread that raised the event, which is
often a node worker holding its own lock. Handlers must therefore return
quickly and must not call back into nodes or the cluster.
"""

import time
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .messages import MessageType, NodeSnapshot


class MessagePhase(Enum):
    """Stage of a message's journey across the bus"""
    SENT = "sent"
    DELIVERED = "delivered"
    DROPPED = "dropped"


class DropReason(Enum):
    """Why the bus or the receiver discarded a message"""
    SENDER_DOWN = "sender_down"
    RECEIVER_DOWN = "receiver_down"
    STALE_TERM = "stale_term"
    BUS_STOPPED = "bus_stopped"


@dataclass(frozen=True)
class MessageEvent:
    """A single step of a message in transit"""
    phase: MessagePhase
    from_id: int
    to_id: int
    type: MessageType
    term: int
    timestamp: float
    reason: Optional[DropReason] = None

    def __str__(self) -> str:
        suffix = f" ({self.reason.value})" if self.reason else ""
        return f"{self.type.value} n{self.from_id}->n{self.to_id} term={self.term} {self.phase.value}{suffix}"


LogHandler = Callable[[str], None]
StateHandler = Callable[[NodeSnapshot], None]
MessageHandler = Callable[[MessageEvent], None]


class EventDispatcher:
    """Fan-out of simulation events to registered handlers"""

    def __init__(self):
        self.log_handlers: List[LogHandler] = []
        self.state_handlers: List[StateHandler] = []
        self.message_handlers: List[MessageHandler] = []
        self.lock = threading.Lock()
        self.logger = logging.getLogger("raft_election.events")

    def add_log_handler(self, handler: LogHandler) -> None:
        """Add narration handler function"""
        with self.lock:
            self.log_handlers.append(handler)

    def add_state_handler(self, handler: StateHandler) -> None:
        """Add node snapshot handler function"""
        with self.lock:
            self.state_handlers.append(handler)

    def add_message_handler(self, handler: MessageHandler) -> None:
        """Add message traffic handler function"""
        with self.lock:
            self.message_handlers.append(handler)

    def remove_log_handler(self, handler: LogHandler) -> None:
        with self.lock:
            if handler in self.log_handlers:
                self.log_handlers.remove(handler)

    def remove_state_handler(self, handler: StateHandler) -> None:
        with self.lock:
            if handler in self.state_handlers:
                self.state_handlers.remove(handler)

    def remove_message_handler(self, handler: MessageHandler) -> None:
        with self.lock:
            if handler in self.message_handlers:
                self.message_handlers.remove(handler)

    def log(self, text: str) -> None:
        """Publish a narration line"""
        self._notify(self.log_handlers, text)

    def node_state(self, snapshot: NodeSnapshot) -> None:
        """Publish a node snapshot"""
        self._notify(self.state_handlers, snapshot)

    def message(self, phase: MessagePhase, from_id: int, to_id: int,
                message_type: MessageType, term: int,
                reason: Optional[DropReason] = None) -> MessageEvent:
        """Publish a message traffic event and return it"""
        event = MessageEvent(
            phase=phase,
            from_id=from_id,
            to_id=to_id,
            type=message_type,
            term=term,
            timestamp=time.monotonic(),
            reason=reason
        )
        self._notify(self.message_handlers, event)
        return event

    def _notify(self, handlers: list, payload) -> None:
        with self.lock:
            targets = list(handlers)

        for handler in targets:
            try:
                handler(payload)
            except Exception as e:
                self.logger.error(f"Error in event handler {handler!r}: {e}")
