"""
Storage module.
Contains the durable job layout, the job record state machine and the registry.
"""

from bip.store.job import JobRecord
from bip.store.layout import JobLayout, validate_name
from bip.store.registry import Registry

__all__ = [
    "JobLayout",
    "JobRecord",
    "Registry",
    "validate_name",
]
