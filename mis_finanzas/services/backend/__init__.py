"""
Backend Services Package

Provides the abstract data/object-storage interfaces and their
implementations: Supabase for production, in-memory for tests.
"""

from mis_finanzas.services.backend.interface import (
    AuthSession,
    BackendError,
    DataBackend,
    Join,
    NotAuthenticatedError,
    NotFoundError,
    ObjectStorage,
    RemoteError,
)
from mis_finanzas.services.backend.memory import (
    InMemoryAuth,
    InMemoryBackend,
    InMemoryObjectStorage,
)
from mis_finanzas.services.backend.supabase_backend import (
    SupabaseAuth,
    SupabaseBackend,
    SupabaseConnection,
    SupabaseObjectStorage,
)

__all__ = [
    # Interfaces
    "AuthSession",
    "DataBackend",
    "Join",
    "ObjectStorage",
    # Exceptions
    "BackendError",
    "NotAuthenticatedError",
    "NotFoundError",
    "RemoteError",
    # In-memory implementation
    "InMemoryAuth",
    "InMemoryBackend",
    "InMemoryObjectStorage",
    # Supabase implementation
    "SupabaseAuth",
    "SupabaseBackend",
    "SupabaseConnection",
    "SupabaseObjectStorage",
]
