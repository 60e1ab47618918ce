"""
Adapters layer - persistence gateways and credential storage.
"""

from .credentials import CredentialStore
from .memory_gateway import InMemoryGateway
from .rest_gateway import RestPersistenceGateway
from .retry import with_retry

__all__ = ["CredentialStore", "InMemoryGateway", "RestPersistenceGateway", "with_retry"]
