"""
Church Kernel - publication workflow core

A small, strictly authorized approval pipeline for parish church records:
- Fixed transition edge table with role and guard checks
- Optimistic concurrency via version tokens
- Append-only, hash-chained audit ledger of every transition attempt
- Diocese / parish tenant boundaries enforced on every mutation
"""

__version__ = "0.1.0"
