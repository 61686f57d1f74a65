"""
Integration Tests Package

Whole-stack flows through SyncContext against the in-memory DPDA server.

TEST AXIOMS:
=============
1. Reads after a successful write always reach the network
2. Every request in one context carries the same session header
3. Explicit failure: remote errors surface unchanged
"""
