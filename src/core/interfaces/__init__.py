"""Core interfaces.

Why:
- Contracts (Protocol) implemented by concrete adapters.
- Services depend on these abstractions, so tests swap in fakes instead of
  real `docker`/`az`/`gh` binaries.
"""
