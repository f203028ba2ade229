#!/usr/bin/env python3
"""
Quick verification script to ensure the election simulation works correctly.
Run this script after installation to verify everything is working.
"""

import sys
import os
import traceback
from dataclasses import replace

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

def test_imports():
    """Test that all modules can be imported"""
    print("🔄 Testing imports...")

    try:
        from raft_election import RaftNode, RaftCluster, NodeState, ElectionSimulation
        from raft_election.messages import Message, MessageType
        from raft_election.scenarios import prepare_best_case, prepare_split_vote
        print("✅ All imports successful")
        return True
    except ImportError as e:
        print(f"❌ Import failed: {e}")
        return False

def test_best_case():
    """Test a best case election"""
    print("🔄 Testing best case election...")

    try:
        from raft_election import RaftCluster, Scenario, SimulationConfig

        with RaftCluster(num_nodes=5, scenario=Scenario.BEST_CASE,
                         config=SimulationConfig().scaled(0.2), seed=1) as cluster:
            cluster.start()

            if not cluster.wait_for_leader_election(timeout=5.0):
                print("❌ Leader election failed")
                return False

            leader = cluster.get_leader_id()
            if leader != cluster.plan.first_candidate_id:
                print(f"❌ Expected n{cluster.plan.first_candidate_id} to lead, got n{leader}")
                return False

        print(f"✅ Best case election working (leader n{leader})")
        return True

    except Exception as e:
        print(f"❌ Best case test failed: {e}")
        return False

def test_split_vote():
    """Test a split vote election"""
    print("🔄 Testing split vote election...")

    try:
        from raft_election import RaftCluster, Scenario, SimulationConfig

        config = replace(SimulationConfig().scaled(0.2), split_vote_fast_timeout=0.05)
        with RaftCluster(num_nodes=5, scenario=Scenario.SPLIT_VOTE, config=config, seed=1) as cluster:
            cluster.start()

            if not cluster.wait_for_leader_election(timeout=5.0):
                print("❌ Split vote never resolved")
                return False

            stats = cluster.get_cluster_stats()
            if stats.nodes[stats.leader_id].term < 2:
                print(f"❌ Leader should be elected in a later term, got {stats.current_term}")
                return False

        print(f"✅ Split vote resolved (leader n{stats.leader_id}, term {stats.current_term})")
        return True

    except Exception as e:
        print(f"❌ Split vote test failed: {e}")
        return False

def test_configuration_errors():
    """Test invalid setups are rejected"""
    print("🔄 Testing configuration validation...")

    from raft_election import InvalidConfigurationError, RaftCluster, Scenario

    try:
        RaftCluster(num_nodes=3, scenario=Scenario.SPLIT_VOTE)
    except InvalidConfigurationError:
        print("✅ Invalid split vote size rejected")
        return True

    print("❌ Three-node split vote was accepted")
    return False

def run_quick_tests():
    """Run quick verification tests"""
    print("🚀 Raft Leader Election - Quick Verification")
    print("=" * 50)

    all_passed = True

    for check in (test_imports, test_best_case, test_split_vote, test_configuration_errors):
        if not check():
            all_passed = False

    print("=" * 50)

    if all_passed:
        print("🎉 All verification tests PASSED!")
        print("\nNext steps:")
        print("- Run: python examples/election_demo.py --time-scale 0.3")
        print("- Run: python examples/election_demo.py --scenario split_vote")
        print("- Run tests: python -m unittest discover tests/ -v")
        return True
    else:
        print("❌ Some verification tests FAILED!")
        print("\nPlease check the error messages above.")
        return False

if __name__ == '__main__':
    try:
        success = run_quick_tests()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nVerification interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n\nVerification failed with unexpected error: {e}")
        traceback.print_exc()
        sys.exit(1)
