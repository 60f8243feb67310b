"""
AgriTrace - Food & Agriculture Provenance Core

Traceback of EPCIS event lineage, mass-balance validation of
transformation events and a tamper-evident audit chain, exposed
through a small Flask JSON API.
"""

__version__ = "1.0.0"
