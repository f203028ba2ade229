"""
Raft Leader Election Test Suite

Test suite covering:
- Node state transitions, terms and vote bookkeeping
- Message bus delivery, drops and cancellation
- Leadership arbitration and heartbeat scheduling
- Best case and split vote scenarios end to end
- Pause, resume and stop semantics
"""
