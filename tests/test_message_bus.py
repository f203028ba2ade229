"""
Message Bus Tests

Tests for simulated delivery between nodes:
- Delivery happens only after the transit delay
- Traffic to or from down nodes is dropped at send and at arrival
- Stale deliveries are reported as drops
- Stopping cancels everything in flight
"""

import unittest
import time
import random
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from raft_election import (
    DropReason, Message, MessageBus, MessagePhase, MessageType, RaftCluster,
    SimulationConfig
)
from helpers import EventRecorder, wait_until


class TestMessageBus(unittest.TestCase):
    """Test message transit between unstarted nodes"""

    def setUp(self):
        self.cluster = RaftCluster(num_nodes=3, config=SimulationConfig(transit_delay=0.1), seed=3)
        self.recorder = EventRecorder(self.cluster.events)
        self.bus = self.cluster.bus
        self.n1, self.n2, self.n3 = self.cluster.nodes

    def tearDown(self):
        self.cluster.stop()

    def vote(self, sender, term=0):
        return Message(MessageType.VOTE, sender.node_id, sender, term)

    def test_delivery_after_transit_delay(self):
        """Test a message lands in the receiver's inbox after the delay"""
        self.assertTrue(self.bus.send(self.n1, self.n2, self.vote(self.n1)))

        self.assertEqual(self.n2.pending_messages(), 0)
        self.assertEqual(self.bus.in_flight(), 1)

        self.assertTrue(wait_until(lambda: self.n2.pending_messages() == 1, timeout=2.0))
        self.assertEqual(self.bus.in_flight(), 0)
        self.assertEqual(self.bus.delivered_count, 1)

        phases = [e.phase for e in self.recorder.messages]
        self.assertEqual(phases, [MessagePhase.SENT, MessagePhase.DELIVERED])
        sent, delivered = self.recorder.messages
        self.assertGreaterEqual(delivered.timestamp - sent.timestamp, 0.09)
        self.assertEqual((delivered.from_id, delivered.to_id, delivered.type), (1, 2, MessageType.VOTE))

    def test_send_to_down_node_dropped(self):
        """Test sending to a down node is a no-op"""
        self.cluster.disable_node(2)

        self.assertFalse(self.bus.send(self.n1, self.n2, self.vote(self.n1)))

        self.assertEqual(self.bus.in_flight(), 0)
        drops = self.recorder.of_phase(MessagePhase.DROPPED)
        self.assertEqual([e.reason for e in drops], [DropReason.RECEIVER_DOWN])

    def test_receiver_down_during_transit(self):
        """Test a receiver going down mid-flight never gets the message"""
        self.bus.send(self.n1, self.n2, self.vote(self.n1))
        self.cluster.disable_node(2)

        self.assertTrue(wait_until(lambda: self.bus.in_flight() == 0, timeout=2.0))
        self.assertEqual(self.n2.pending_messages(), 0)
        drops = self.recorder.of_phase(MessagePhase.DROPPED)
        self.assertEqual([e.reason for e in drops], [DropReason.RECEIVER_DOWN])

    def test_stale_delivery_reported(self):
        """Test the receiver's term filter shows up as a stale drop"""
        self.n2.reset_to_follower(5)

        self.bus.send(self.n1, self.n2, self.vote(self.n1, term=1))

        self.assertTrue(wait_until(lambda: self.recorder.of_phase(MessagePhase.DROPPED), timeout=2.0))
        drops = self.recorder.of_phase(MessagePhase.DROPPED)
        self.assertEqual(drops[0].reason, DropReason.STALE_TERM)
        self.assertEqual(self.n2.pending_messages(), 0)

    def test_stop_cancels_in_flight(self):
        """Test stop discards pending deliveries and refuses new sends"""
        self.bus.send(self.n1, self.n2, self.vote(self.n1))
        self.bus.send(self.n1, self.n3, self.vote(self.n1))

        self.bus.stop()
        self.bus.stop()

        self.assertEqual(self.bus.in_flight(), 0)
        self.assertFalse(self.bus.send(self.n1, self.n2, self.vote(self.n1)))
        time.sleep(0.25)
        self.assertEqual(self.n2.pending_messages(), 0)
        self.assertEqual(self.n3.pending_messages(), 0)
        self.assertEqual(self.recorder.of_phase(MessagePhase.DELIVERED), [])

    def test_jitter_adds_bounded_delay(self):
        """Test jittered messages still arrive, no earlier than the base delay"""
        bus = MessageBus(transit_delay=0.05, transit_jitter=0.05,
                         events=self.cluster.events, rng=random.Random(1))
        try:
            for _ in range(3):
                bus.send(self.n1, self.n3, self.vote(self.n1))
            self.assertTrue(wait_until(lambda: self.n3.pending_messages() == 3, timeout=2.0))
        finally:
            bus.stop()

    def test_message_term_fixed_at_send_time(self):
        """Test a message keeps the term it was sent with"""
        message = Message(MessageType.REQUEST_VOTE, 1, self.n1, 4)
        self.assertEqual(message.term, 4)
        self.assertEqual(str(message), "RequestVote(from=n1, term=4)")
        with self.assertRaises(Exception):
            message.term = 5


if __name__ == '__main__':
    unittest.main()
