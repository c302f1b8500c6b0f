from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import orjson
import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from tutorly.domain.enums import Collection
from tutorly.domain.models import DashboardState, OneOffBooking, RecurringException, Student, Transaction
from tutorly.services.stores.blob_store import BlobStore

logger = structlog.get_logger(__name__)

_ADAPTERS: dict[Collection, TypeAdapter[Any]] = {
    Collection.STUDENTS: TypeAdapter(Student),
    Collection.ONE_OFF_BOOKINGS: TypeAdapter(OneOffBooking),
    Collection.RECURRING_EXCEPTIONS: TypeAdapter(RecurringException),
    Collection.TRANSACTIONS: TypeAdapter(Transaction),
    Collection.PROCESSED_KEYS: TypeAdapter(str),
}

_FIELDS: dict[Collection, str] = {
    Collection.STUDENTS: "students",
    Collection.ONE_OFF_BOOKINGS: "one_off_bookings",
    Collection.RECURRING_EXCEPTIONS: "recurring_exceptions",
    Collection.TRANSACTIONS: "transactions",
    Collection.PROCESSED_KEYS: "processed_keys",
}


class DashboardStateRepository:
    """Loads and saves each dashboard collection as an independent JSON blob.

    A collection that is missing, unreadable or not a JSON list loads as empty. Records that
    fail validation are skipped one by one, so a single bad record never hides the rest.
    Failures are logged and never raised to the caller.
    """

    def __init__(self, store: BlobStore) -> None:
        self._store = store

    async def load(self) -> DashboardState:
        values: dict[str, Any] = {}
        for collection in Collection:
            items = await self._load_collection(collection)
            if collection == Collection.PROCESSED_KEYS:
                values[_FIELDS[collection]] = frozenset(items)
            else:
                values[_FIELDS[collection]] = items
        state = DashboardState(**values)
        logger.info(
            "state.loaded",
            students=len(state.students),
            bookings=len(state.one_off_bookings),
            exceptions=len(state.recurring_exceptions),
            transactions=len(state.transactions),
            processed_keys=len(state.processed_keys),
        )
        return state

    async def save(self, state: DashboardState, collections: Iterable[Collection] | None = None) -> None:
        targets = list(collections) if collections is not None else list(Collection)
        for collection in targets:
            payload = self._dump(collection, getattr(state, _FIELDS[collection]))
            await self._store.save(collection.value, payload)

    async def clear(self) -> None:
        for collection in Collection:
            await self._store.clear(collection.value)

    async def _load_collection(self, collection: Collection) -> list[Any]:
        try:
            raw = await self._store.load(collection.value)
        except Exception:
            logger.exception("state.load_failed", collection=collection.value)
            return []
        if raw is None:
            return []
        try:
            decoded = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("state.malformed_json", collection=collection.value)
            return []
        if not isinstance(decoded, list):
            logger.warning("state.invalid_collection", collection=collection.value)
            return []

        adapter = _ADAPTERS[collection]
        items: list[Any] = []
        skipped = 0
        for record in decoded:
            try:
                items.append(adapter.validate_python(record))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning("state.invalid_records", collection=collection.value, skipped=skipped, kept=len(items))
        return items

    def _dump(self, collection: Collection, items: Any) -> bytes:
        if collection == Collection.PROCESSED_KEYS:
            return orjson.dumps(sorted(items))
        return orjson.dumps([_to_document(item) for item in items])


def _to_document(item: BaseModel) -> dict[str, Any]:
    return item.model_dump(mode="json", by_alias=True)
