"""
Infrastructure layer - storage ports and adapters
"""

from dispatch_engine.infra.ports import AggregateSink, DispatchRepository, PricingStore, RepositorySession
from dispatch_engine.infra.memory_store import (
    InMemoryAggregateStore,
    InMemoryDispatchRepository,
    InMemoryPricingStore,
)
from dispatch_engine.infra.database import (
    Database,
    SqlAggregateStore,
    SqlDispatchRepository,
    SqlPricingStore,
    get_database,
)

__all__ = [
    "AggregateSink",
    "DispatchRepository",
    "PricingStore",
    "RepositorySession",
    "InMemoryAggregateStore",
    "InMemoryDispatchRepository",
    "InMemoryPricingStore",
    "Database",
    "SqlAggregateStore",
    "SqlDispatchRepository",
    "SqlPricingStore",
    "get_database",
]
