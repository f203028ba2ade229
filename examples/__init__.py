"""
Raft Leader Election Examples

Runnable demonstrations of the election simulation:
- Best case election narrated on the console
- Split vote resolved by a follower with a short timeout
- Taking a node down mid-run
"""
