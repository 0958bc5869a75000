from collections.abc import AsyncGenerator

import structlog

from tablebook.app.core.config import settings
from tablebook.app.core.errors import RepositoryUnavailable
from tablebook.app.db.store import AirtableStore, MemoryStore, RecordStore


logger = structlog.get_logger()

store: RecordStore | None = None


def build_store() -> RecordStore:
    if settings.STORE_BACKEND == "memory":
        logger.warning("Using in-memory record store; data is lost on restart")
        return MemoryStore()
    return AirtableStore(
        token=settings.AIRTABLE_TOKEN,
        base_id=settings.AIRTABLE_BASE_ID,
        api_url=settings.AIRTABLE_API_URL,
        timeout=settings.STORE_TIMEOUT_SECONDS,
        read_retries=settings.STORE_READ_RETRIES,
    )


async def init_store() -> None:
    """Create the shared record store client."""
    global store
    store = build_store()


async def close_store() -> None:
    """Close the record store client if it was initialised."""
    global store
    if store is not None:
        await store.close()
        store = None


async def get_store() -> AsyncGenerator[RecordStore, None]:
    """Yield the shared record store for request handling."""
    if store is None:
        raise RepositoryUnavailable("Record store not initialised")
    yield store
