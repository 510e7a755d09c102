"""Core (pure) library layer.

This package is intended to be transport-agnostic and safe to import from:
- the sync orchestrator and repository
- CLI entrypoints
- tests

It performs no I/O and holds no state beyond module constants.
"""
