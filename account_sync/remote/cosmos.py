"""
Cosmos DB account store.

All account data lives in one container partitioned by /user_id, so
every read and write for a user is a single-partition point operation.
Documents carry a type discriminator:
- user_data: id = user_id, holds local_storage and cookies
- preference: id = "{user_id}:{data_type}", holds data
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential

from ..config import AUTH_DEFAULT_CREDENTIAL, AUTH_KEY
from ..exceptions import AuthenticationError, RemoteStoreError, StorageConnectionError
from .base import AccountStore, RemoteRecord

logger = logging.getLogger(__name__)

DOC_TYPE_USER_DATA = "user_data"
DOC_TYPE_PREFERENCE = "preference"

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds


@dataclass
class CosmosConfig:
    """Configuration for the Cosmos DB account store.

    Attributes:
        endpoint: Cosmos DB account endpoint URL
        database_name: Name of the database to use
        container_name: Name of the account container
        auth_method: "key" or "default_credential"
        key: Account key (key auth only)
        max_retries: Maximum attempts for transient failures
        retry_delay: Base delay between retries (seconds)
    """

    endpoint: str
    database_name: str = "account-sync"
    container_name: str = "user_data"
    auth_method: str = AUTH_DEFAULT_CREDENTIAL
    key: str | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_env(cls) -> CosmosConfig:
        """Create config from environment variables.

        Expected environment variables:
        - ACCOUNT_SYNC_COSMOS_ENDPOINT: Cosmos DB account endpoint
        - ACCOUNT_SYNC_COSMOS_DATABASE: Database name (optional)
        - ACCOUNT_SYNC_COSMOS_AUTH_METHOD: key or default_credential (optional)
        - ACCOUNT_SYNC_COSMOS_KEY: Account key (key auth only)

        Raises:
            AuthenticationError: If required environment variables are missing
        """
        endpoint = os.environ.get("ACCOUNT_SYNC_COSMOS_ENDPOINT")
        database = os.environ.get("ACCOUNT_SYNC_COSMOS_DATABASE", "account-sync")
        auth_method = os.environ.get("ACCOUNT_SYNC_COSMOS_AUTH_METHOD", AUTH_DEFAULT_CREDENTIAL)
        key = os.environ.get("ACCOUNT_SYNC_COSMOS_KEY")

        if not endpoint:
            raise AuthenticationError("cosmos", "ACCOUNT_SYNC_COSMOS_ENDPOINT not set")

        if auth_method == AUTH_KEY and not key:
            raise AuthenticationError("cosmos", "ACCOUNT_SYNC_COSMOS_KEY required for key auth")

        return cls(endpoint=endpoint, database_name=database, auth_method=auth_method, key=key)


class CosmosAccountStore(AccountStore):
    """Account store backed by Azure Cosmos DB."""

    def __init__(self, config: CosmosConfig, container: ContainerProxy | None = None):
        """Initialize the store.

        Args:
            config: Cosmos configuration
            container: Pre-built container proxy (skips connection setup)
        """
        self.config = config
        self._client: CosmosClient | None = None
        self._credential: DefaultAzureCredential | None = None
        self._database: DatabaseProxy | None = None
        self._container: ContainerProxy | None = container
        self._initialized = container is not None

    @classmethod
    async def create(cls, config: CosmosConfig | None = None) -> CosmosAccountStore:
        """Create and initialize a Cosmos account store (config from env if None)."""
        store = cls(config or CosmosConfig.from_env())
        await store.initialize()
        return store

    async def initialize(self) -> None:
        """Initialize the Cosmos connection and ensure the container exists."""
        if self._initialized:
            return

        try:
            if self.config.auth_method == AUTH_KEY:
                if not self.config.key:
                    raise AuthenticationError("cosmos", "Key required for key auth")
                self._client = CosmosClient(self.config.endpoint, credential=self.config.key)
            else:
                self._credential = DefaultAzureCredential()
                self._client = CosmosClient(self.config.endpoint, credential=self._credential)

            self._database = await self._client.create_database_if_not_exists(
                id=self.config.database_name
            )
            self._container = await self._database.create_container_if_not_exists(
                id=self.config.container_name,
                partition_key=PartitionKey(path="/user_id"),
            )

            self._initialized = True
            logger.info(
                f"Account store initialized: {self.config.endpoint}", extra={"backend": "cosmos"}
            )

        except CosmosHttpResponseError as e:
            await self.close()
            if e.status_code == 401:
                raise AuthenticationError(self.config.endpoint, str(e)) from e
            raise StorageConnectionError(self.config.endpoint, e) from e
        except AuthenticationError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise StorageConnectionError(self.config.endpoint, e) from e

    async def close(self) -> None:
        """Close the Cosmos connection."""
        if self._client:
            await self._client.close()
            self._client = None
            self._database = None
            self._container = None
            self._initialized = False
        if self._credential:
            await self._credential.close()
            self._credential = None

    def _get_container(self, operation: str) -> ContainerProxy:
        if self._container is None:
            raise RemoteStoreError(operation, RuntimeError("Store not initialized"))
        return self._container

    async def upsert_record(self, record: RemoteRecord) -> RemoteRecord:
        container = self._get_container("upsert_record")
        updated_at = datetime.now(UTC)
        body = {
            "id": record.user_id,
            "type": DOC_TYPE_USER_DATA,
            "user_id": record.user_id,
            "local_storage": record.local_storage,
            "cookies": record.cookies,
            "updated_at": updated_at.isoformat(),
        }

        await self._with_retry("upsert_record", lambda: container.upsert_item(body=body))

        return RemoteRecord(
            user_id=record.user_id,
            local_storage=record.local_storage,
            cookies=record.cookies,
            updated_at=updated_at,
        )

    async def get_record(self, user_id: str) -> RemoteRecord | None:
        container = self._get_container("get_record")

        try:
            item = await self._with_retry(
                "get_record",
                lambda: container.read_item(item=user_id, partition_key=user_id),
            )
        except CosmosResourceNotFoundError:
            return None

        return RemoteRecord.from_dict(item)

    async def delete_record(self, user_id: str) -> bool:
        container = self._get_container("delete_record")

        try:
            await self._with_retry(
                "delete_record",
                lambda: container.delete_item(item=user_id, partition_key=user_id),
            )
            return True
        except CosmosResourceNotFoundError:
            return False

    async def upsert_preference(self, user_id: str, data_type: str, data: Any) -> None:
        container = self._get_container("upsert_preference")
        body = {
            "id": _preference_id(user_id, data_type),
            "type": DOC_TYPE_PREFERENCE,
            "user_id": user_id,
            "data_type": data_type,
            "data": data,
            "updated_at": datetime.now(UTC).isoformat(),
        }

        await self._with_retry("upsert_preference", lambda: container.upsert_item(body=body))

    async def get_preference(self, user_id: str, data_type: str) -> Any | None:
        container = self._get_container("get_preference")
        item_id = _preference_id(user_id, data_type)

        try:
            item = await self._with_retry(
                "get_preference",
                lambda: container.read_item(item=item_id, partition_key=user_id),
            )
        except CosmosResourceNotFoundError:
            return None

        return item.get("data")

    async def _with_retry(self, operation_name: str, operation: Any) -> Any:
        """Execute an operation with retry logic for transient failures.

        Not-found errors propagate unchanged so callers can map them to None.

        Raises:
            RemoteStoreError: After max retries or on a non-retryable error
        """
        last_error: Exception | None = None

        for attempt in range(self.config.max_retries):
            try:
                return await operation()
            except CosmosResourceNotFoundError:
                raise
            except CosmosHttpResponseError as e:
                # Don't retry client errors (4xx) except rate limiting
                status = e.status_code or 0
                if 400 <= status < 500 and status != 429:
                    raise RemoteStoreError(operation_name, e) from e

                last_error = e
                if attempt < self.config.max_retries - 1:
                    delay = self.config.retry_delay * (2**attempt)
                    logger.debug(
                        f"Retrying in {delay}s after status {e.status_code}",
                        extra={"operation": operation_name},
                    )
                    await asyncio.sleep(delay)
            except Exception as e:
                raise RemoteStoreError(operation_name, e) from e

        raise RemoteStoreError(
            operation_name, last_error or RuntimeError("Unexpected retry failure")
        )


def _preference_id(user_id: str, data_type: str) -> str:
    return f"{user_id}:{data_type}"
