"""Optimistic query cache over remote accessors."""

from query_cache.accessor import ListResult, RemoteAccessor
from query_cache.crud import BulkItem, BulkPolicy, CrudOperations, EntityConfig, register_entity
from query_cache.errors import (
    BulkUpdateError,
    ClassifiedError,
    ConfigurationError,
    ErrorKind,
    RemoteError,
    classify,
    classify_error,
)
from query_cache.executor import Mutation, MutationExecutor, MutationPhase, MutationResult
from query_cache.filters import Eq, ILike, In, Like, ListQuery, Range
from query_cache.ids import PendingId, RecordId, is_pending
from query_cache.keys import KeyFactory, QueryKey, build_key
from query_cache.realtime import ChangeEvent, ChangeType, RealtimeBridge
from query_cache.retry import RetryPolicy, mutation_policy, query_policy
from query_cache.store import CacheStatus, CacheStore, QueryState

__all__ = [
    # Keys
    "QueryKey",
    "KeyFactory",
    "build_key",
    # Filters
    "Eq",
    "In",
    "Range",
    "Like",
    "ILike",
    "ListQuery",
    # Ids
    "PendingId",
    "RecordId",
    "is_pending",
    # Store
    "CacheStore",
    "CacheStatus",
    "QueryState",
    # Errors
    "ErrorKind",
    "ClassifiedError",
    "RemoteError",
    "BulkUpdateError",
    "ConfigurationError",
    "classify",
    "classify_error",
    # Retry
    "RetryPolicy",
    "query_policy",
    "mutation_policy",
    # Mutations
    "Mutation",
    "MutationExecutor",
    "MutationPhase",
    "MutationResult",
    # CRUD
    "ListResult",
    "RemoteAccessor",
    "EntityConfig",
    "BulkItem",
    "BulkPolicy",
    "CrudOperations",
    "register_entity",
    # Realtime
    "ChangeEvent",
    "ChangeType",
    "RealtimeBridge",
]
