"""
Common utilities for backend scripts.

Sets up the import path so scripts can be run directly
(python scripts/foo.py) and provides the store lifecycle every script
needs.

Usage:
    from _common import document_store

    async with document_store() as store:
        ...
"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

BACKEND_ROOT = Path(__file__).parent.parent
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from core.logging_config import configure_logging  # noqa: E402
from db.provider import close_document_store, get_document_store  # noqa: E402
from db.store import DocumentStore  # noqa: E402


@asynccontextmanager
async def document_store() -> AsyncGenerator[DocumentStore, None]:
    """Configure logging, open the configured store and close it afterwards."""
    configure_logging()
    store = get_document_store()
    try:
        yield store
    finally:
        await close_document_store()
