"""
Simulation Host Tests

Tests for the lifecycle controls a host drives: start, pause, resume, stop,
disabling nodes and restarting with a fresh cluster.
"""

import io
import unittest
import sys
import os
from contextlib import redirect_stdout

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from raft_election import (
    ElectionSimulation, EventDispatcher, InvalidConfigurationError, NodeState, Scenario
)
from raft_election import demo
from helpers import FAST_CONFIG


class TestElectionSimulation(unittest.TestCase):
    """Test host lifecycle controls"""

    def setUp(self):
        self.lines = []
        self.events = EventDispatcher()
        self.events.add_log_handler(self.lines.append)
        self.simulation = ElectionSimulation(config=FAST_CONFIG, events=self.events, seed=4)

    def tearDown(self):
        self.simulation.stop()

    def test_start_runs_election(self):
        """Test start builds, prepares and runs a cluster"""
        self.assertFalse(self.simulation.is_running())

        cluster = self.simulation.start(3, Scenario.BEST_CASE)

        self.assertTrue(self.simulation.is_running())
        self.assertIs(self.simulation.cluster, cluster)
        self.assertIsNotNone(cluster.plan)
        self.assertTrue(cluster.wait_for_leader_election(timeout=5.0))
        self.assertTrue(any("becomes leader" in line for line in self.lines))

        stats = self.simulation.get_cluster_stats()
        self.assertEqual(stats.leader_id, cluster.get_leader_id())
        self.assertEqual(stats.nodes[stats.leader_id].state, NodeState.LEADER)

    def test_restart_replaces_cluster(self):
        """Test a second start stops the first run"""
        first = self.simulation.start(3)
        second = self.simulation.start(4, Scenario.SPLIT_VOTE)

        self.assertIsNot(first, second)
        self.assertTrue(first.stopped)
        self.assertFalse(second.stopped)
        self.assertEqual(len(second.nodes), 4)

    def test_invalid_start_keeps_current_run(self):
        """Test configuration errors surface before anything changes"""
        current = self.simulation.start(3)

        with self.assertRaises(InvalidConfigurationError):
            self.simulation.start(3, Scenario.SPLIT_VOTE)

        self.assertIs(self.simulation.cluster, current)
        self.assertFalse(current.stopped)

    def test_pause_resume_stop(self):
        """Test controls cascade to the cluster"""
        cluster = self.simulation.start(3)

        self.simulation.pause()
        self.assertTrue(cluster.paused)
        self.assertTrue(all(node.paused for node in cluster.nodes))

        self.simulation.resume()
        self.assertFalse(any(node.paused for node in cluster.nodes))

        self.simulation.stop()
        self.simulation.stop()
        self.assertFalse(self.simulation.is_running())

    def test_disable_node(self):
        """Test a host can take a node down"""
        cluster = self.simulation.start(3)

        self.simulation.disable_node(2)

        self.assertFalse(cluster.get_node(2).enabled)
        self.assertEqual(self.simulation.get_cluster_stats().active_nodes, 2)

    def test_controls_without_run(self):
        """Test controls before any start"""
        self.simulation.pause()
        self.simulation.resume()
        self.assertIsNone(self.simulation.get_cluster_stats())
        with self.assertRaises(RuntimeError):
            self.simulation.disable_node(1)


class TestDemoEntryPoint(unittest.TestCase):
    """Test the console command installed with the package"""

    def run_main(self, argv):
        output = io.StringIO()
        with redirect_stdout(output):
            with self.assertRaises(SystemExit) as raised:
                demo.main(argv)
        return raised.exception.code, output.getvalue()

    def test_entry_point_lives_in_package(self):
        """Test the console script target is importable from the installed package"""
        import raft_election.demo
        self.assertTrue(callable(raft_election.demo.main))
        self.assertEqual(demo.build_parser().prog, 'raft-election-demo')

    def test_best_case_run_exits_cleanly(self):
        """Test a fast best case run elects a leader and exits 0"""
        code, output = self.run_main(['--time-scale', '0.2', '--seed', '5', '--duration', '5'])

        self.assertEqual(code, 0)
        self.assertIn("Leader elected", output)
        self.assertIn("becomes leader in term 1", output)

    def test_invalid_split_vote_size_exits_2(self):
        """Test an impossible setup is reported instead of raised"""
        code, output = self.run_main(['--scenario', 'split_vote', '--nodes', '3'])

        self.assertEqual(code, 2)
        self.assertIn("Cannot start simulation", output)


if __name__ == '__main__':
    unittest.main()
