"""
Remote account store backends.

Backend Selection:

    # In-memory (offline mode, tests)
    from account_sync.remote import InMemoryAccountStore

    # SQLite for single-host deployments
    from account_sync.remote.sqlite import SQLiteAccountStore, SQLiteConfig

    # Cosmos DB for cloud multi-device sync
    from account_sync.remote.cosmos import CosmosAccountStore, CosmosConfig
"""

from ..config import BACKEND_COSMOS, BACKEND_SQLITE, SyncConfig
from ..exceptions import AuthenticationError
from .base import AccountStore, RemoteRecord
from .memory import InMemoryAccountStore


def create_account_store(config: SyncConfig) -> AccountStore:
    """Build the (uninitialized) account store selected by config.backend."""
    if config.backend == BACKEND_SQLITE:
        from .sqlite import SQLiteAccountStore, SQLiteConfig

        return SQLiteAccountStore(SQLiteConfig(db_path=config.sqlite_path))

    if config.backend == BACKEND_COSMOS:
        from .cosmos import CosmosAccountStore, CosmosConfig

        if not config.cosmos_endpoint:
            raise AuthenticationError("cosmos", "cosmos_endpoint not configured")

        return CosmosAccountStore(
            CosmosConfig(
                endpoint=config.cosmos_endpoint,
                database_name=config.cosmos_database,
                container_name=config.cosmos_container,
                auth_method=config.cosmos_auth_method,
                key=config.cosmos_key,
                max_retries=config.max_retries,
                retry_delay=config.retry_delay,
            )
        )

    return InMemoryAccountStore()


__all__ = [
    "AccountStore",
    "RemoteRecord",
    "InMemoryAccountStore",
    "create_account_store",
]
