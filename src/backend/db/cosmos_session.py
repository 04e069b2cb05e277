"""
Azure Cosmos DB access for game document storage.

Every game collection maps to one container partitioned by /game_id, so
all reads and writes for a game stay inside a single logical partition.
The emulator is reached through a connection string; deployed instances
authenticate with DefaultAzureCredential (RBAC).
"""

import logging
from typing import Any

from azure.cosmos import exceptions as cosmos_exceptions
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.identity.aio import DefaultAzureCredential

from core.config import settings

logger = logging.getLogger(__name__)

PARTITION_KEY_PATH = "/game_id"

# Lazy-initialized, shared by every store instance in the process
_client: CosmosClient | None = None
_credential: DefaultAzureCredential | None = None
_database: DatabaseProxy | None = None


def parse_connection_string(value: str) -> tuple[str, str]:
    """Split an emulator connection string into (endpoint, key)."""
    parts = dict(segment.split("=", 1) for segment in value.split(";") if "=" in segment)
    endpoint, key = parts.get("AccountEndpoint", ""), parts.get("AccountKey", "")
    if not endpoint or not key:
        raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")
    return endpoint, key


def _create_client() -> CosmosClient:
    global _credential

    if settings.AZURE_COSMOS_CONNECTION_STRING:
        endpoint, key = parse_connection_string(settings.AZURE_COSMOS_CONNECTION_STRING)
        verify = not settings.AZURE_COSMOS_DISABLE_SSL
        logger.info(f"Connecting to Cosmos DB at {endpoint} with account key (verify_ssl={verify})")
        return CosmosClient(url=endpoint, credential=key, connection_verify=verify)

    if not settings.AZURE_COSMOS_ENDPOINT:
        raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

    _credential = DefaultAzureCredential()
    logger.info(f"Connecting to Cosmos DB at {settings.AZURE_COSMOS_ENDPOINT} with managed identity")
    return CosmosClient(url=settings.AZURE_COSMOS_ENDPOINT, credential=_credential)


async def get_database() -> DatabaseProxy:
    """Return the game database, creating the client on first use."""
    global _client, _database

    if _database is None:
        if _client is None:
            _client = _create_client()
        _database = _client.get_database_client(settings.AZURE_COSMOS_DATABASE)
    return _database


async def get_container(collection: str) -> ContainerProxy:
    """Container proxy for a game collection ('sessions', 'votes', ...)."""
    database = await get_database()
    return database.get_container_client(collection)


async def close_cosmos() -> None:
    """Release the shared client and credential."""
    global _client, _credential, _database

    _database = None
    if _client is not None:
        await _client.close()
        _client = None
        logger.info("Closed Cosmos DB client")
    if _credential is not None:
        await _credential.close()
        _credential = None


# ============================================================================
# Item helpers
# ============================================================================


async def read_item(collection: str, item_id: str, partition_key: str) -> dict[str, Any] | None:
    """Point read. Returns None when the item does not exist."""
    container = await get_container(collection)
    try:
        return await container.read_item(item=item_id, partition_key=partition_key)
    except cosmos_exceptions.CosmosResourceNotFoundError:
        return None


async def upsert_item(collection: str, item: dict[str, Any]) -> dict[str, Any]:
    """Create or replace an item. The body must carry 'id' and 'game_id'."""
    container = await get_container(collection)
    return await container.upsert_item(body=item)


async def patch_item(
    collection: str,
    item_id: str,
    partition_key: str,
    changes: dict[str, Any],
) -> dict[str, Any]:
    """
    Set top-level fields of an existing item.

    Raises:
        CosmosResourceNotFoundError: If the item does not exist
    """
    container = await get_container(collection)
    operations = [{"op": "set", "path": f"/{field}", "value": value} for field, value in changes.items()]
    return await container.patch_item(item=item_id, partition_key=partition_key, patch_operations=operations)


async def delete_item(collection: str, item_id: str, partition_key: str) -> None:
    """Delete an item. Missing items are ignored."""
    container = await get_container(collection)
    try:
        await container.delete_item(item=item_id, partition_key=partition_key)
    except cosmos_exceptions.CosmosResourceNotFoundError:
        logger.debug(f"Delete of missing item {item_id} in {collection} ignored")


async def query_items(
    collection: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
    max_items: int | None = None,
) -> list[dict[str, Any]]:
    """
    Run a SQL query and collect the results.

    Example:
        await query_items(
            "issues",
            'SELECT * FROM c WHERE c.game_id = @game_id ORDER BY c["order"] ASC',
            parameters=[{"name": "@game_id", "value": game_id}],
            partition_key=game_id,
        )
    """
    container = await get_container(collection)
    kwargs: dict[str, Any] = {"query": query, "parameters": parameters or []}
    if partition_key:
        kwargs["partition_key"] = partition_key
    if max_items:
        kwargs["max_item_count"] = max_items

    items: list[dict[str, Any]] = []
    async for item in container.query_items(**kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break
    return items
