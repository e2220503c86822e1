"""
Driver handles built from explicit settings.

The client is long-lived and shared by every request; builders, executors
and transaction scopes receive it (or a database from it) as an argument.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from .errors import StoreIOError

if TYPE_CHECKING:
    from pymongo.asynchronous.database import AsyncDatabase

    from .config.settings import Settings

logger = logging.getLogger("docquery.store")


def create_client(settings: Settings, **kwargs: Any) -> AsyncMongoClient:
    """Create an AsyncMongoClient from settings. No I/O until first use."""
    logger.info(f"[STORE] Creating client: database={settings.database_name}")
    return AsyncMongoClient(
        settings.mongodb_uri.get_secret_value(),
        appname=settings.app_name,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        **kwargs,
    )


def get_database(client: AsyncMongoClient, settings: Settings) -> AsyncDatabase:
    return client[settings.database_name]


async def ping(client: AsyncMongoClient) -> dict[str, Any]:
    """
    Check connectivity.

    Returns:
        The server's buildInfo document

    Raises:
        StoreIOError: If the server cannot be reached
    """
    try:
        await client.admin.command("ping")
        return await client.admin.command("buildInfo")
    except PyMongoError as e:
        logger.error(f"[STORE] Ping failed: {e}")
        raise StoreIOError(f"Cannot reach MongoDB: {e}") from e
