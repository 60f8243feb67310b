"""
AgriTrace Test Suite.

Test Categories:
- Traceback engine (live walk, index fallback)
- Mass balance validation
- Audit chain integrity
- Event store and validation
- Provenance service and HTTP API
"""
