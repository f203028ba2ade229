"""
Console Demo

Runs one of the election scenarios and narrates it on the console:
- best case: one node times out first and wins cleanly
- split vote: forced candidates split the vote, then a follower with a
  short timeout starts a new term and wins it

Installed as the ``raft-election-demo`` command and runnable with
``python -m raft_election``. Use --time-scale to run faster than the
default one-second message transit.
"""

import sys
import time
import logging
import argparse
from typing import List, Optional

from .config import InvalidConfigurationError, Scenario, SimulationConfig
from .events import EventDispatcher
from .simulation import ElectionSimulation


def setup_logging(verbose: bool):
    """Configure logging for the demo"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def print_section(title):
    """Print a section header"""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_cluster_state(simulation):
    """Print current cluster state"""
    stats = simulation.get_cluster_stats()
    if stats is None:
        return

    print(f"\nCluster State:")
    print(f"  Total nodes: {stats.total_nodes}")
    print(f"  Active nodes: {stats.active_nodes}")
    print(f"  Current leader: {f'n{stats.leader_id}' if stats.leader_id else None}")
    print(f"  Current term: {stats.current_term}")

    for node_id, snapshot in stats.nodes.items():
        voted = f"n{snapshot.voted_for}" if snapshot.voted_for is not None else "None"
        print(f"  n{node_id}: {snapshot.state.value:<9} term={snapshot.term} "
              f"votedFor={voted:<4} {snapshot.mode}")


def build_events(show_traffic: bool, started: float) -> EventDispatcher:
    events = EventDispatcher()

    def narrate(text):
        print(f"[{time.monotonic() - started:6.2f}s] {text}")

    def traffic(event):
        print(f"[{time.monotonic() - started:6.2f}s]   {event}")

    events.add_log_handler(narrate)
    if show_traffic:
        events.add_message_handler(traffic)
    return events


def run_demo(args) -> int:
    config = SimulationConfig(split_vote_disable_node=not args.keep_all_up)
    if args.time_scale != 1.0:
        config = config.scaled(args.time_scale)

    scenario = Scenario(args.scenario)
    started = time.monotonic()
    simulation = ElectionSimulation(
        config=config,
        events=build_events(args.traffic, started),
        seed=args.seed
    )

    print_section(f"{scenario.value.replace('_', ' ').title()} Election with {args.nodes} Nodes")

    try:
        cluster = simulation.start(args.nodes, scenario)
    except InvalidConfigurationError as e:
        print(f"❌ Cannot start simulation: {e}")
        return 2

    try:
        if args.disable is not None:
            time.sleep(config.tick_interval)
            print(f"\n🔥 Taking node n{args.disable} down...")
            try:
                simulation.disable_node(args.disable)
            except KeyError as e:
                print(f"⚠️  {e}")

        elected = cluster.wait_for_leader_election(timeout=args.duration)
        if elected:
            print(f"\n✅ Leader elected: n{cluster.get_leader_id()}")
            # Let a couple of heartbeats go by before reporting
            time.sleep(min(args.duration, 2 * config.heartbeat_interval))
        else:
            print(f"\n❌ No leader elected within {args.duration:.1f}s")

        print_cluster_state(simulation)
        return 0 if elected else 1
    finally:
        simulation.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='raft-election-demo',
                                     description='Raft leader election simulation')
    parser.add_argument('-n', '--nodes', type=int, default=5,
                        help='Number of nodes (split vote needs 4 or 5)')
    parser.add_argument('-s', '--scenario', default='best_case',
                        choices=[s.value for s in Scenario],
                        help='Election scenario to run')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for reproducible timeouts and choices')
    parser.add_argument('-t', '--time-scale', type=float, default=1.0,
                        help='Multiply every duration (0.2 runs five times faster)')
    parser.add_argument('-d', '--duration', type=float, default=30.0,
                        help='Seconds to wait for a leader')
    parser.add_argument('--disable', type=int, default=None,
                        help='Take this node id down right after start')
    parser.add_argument('--keep-all-up', action='store_true',
                        help='Do not take a node down in the five-node split vote')
    parser.add_argument('--traffic', action='store_true',
                        help='Print every message send, delivery and drop')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main demo entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    print("🚀 Raft Consensus Algorithm - Leader Election Demo")

    try:
        sys.exit(run_demo(args))
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)
