#!/usr/bin/env python3
"""
Raft Leader Election Demo

Runs the console demo from a source checkout without installing:

  python examples/election_demo.py --time-scale 0.3
  python examples/election_demo.py --scenario split_vote --traffic

See ``python examples/election_demo.py --help`` for every option.
"""

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from raft_election.demo import main


if __name__ == '__main__':
    main()
