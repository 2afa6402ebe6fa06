"""
Storage for analysed properties.

Two interchangeable repositories implement the PropertyRepository protocol:

- SupabasePropertyStore: `properties` row (summary columns + full input in a
  JSONB `details` column) followed by a `reports` row referencing it.
- LocalPropertyStore: a single JSON document whose `properties` entry holds
  the whole list. Kept in memory when no file path is configured.

create_persistence_adapter() picks one at startup based on whether Supabase
credentials and a client are available. The choice is never revisited while
the process runs.
"""

import asyncio
import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import ValidationError
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from inmoai.config import Settings
from inmoai.constants import LOCAL_USER_ID
from inmoai.exceptions import PersistenceError
from inmoai.models.property import AnalysisReport, PropertyInput, PropertyRecord

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_record(
    property_input: PropertyInput,
    report: AnalysisReport | None,
    *,
    record_id: str,
    user_id: str,
    created_at: datetime,
    saved: bool = True,
) -> PropertyRecord:
    """Extend a PropertyInput with ownership metadata and its report."""
    return PropertyRecord(
        **property_input.model_dump(exclude={"id"}),
        id=record_id,
        user_id=user_id,
        created_at=created_at,
        report=report,
        saved=saved,
    )


class PropertyRepository(Protocol):
    """Storage contract for analysed properties."""

    async def save(
        self, property_input: PropertyInput, report: AnalysisReport, user_id: str | None = None
    ) -> PropertyRecord:
        """Store the (input, report) pair and return the new record."""

    async def list(self, user_id: str | None = None) -> list[PropertyRecord]:
        """Return every record reachable for the given user."""

    def owner_for(self, user_id: str | None) -> str:
        """Owner id that save() stamps on records of the given caller."""


class LocalPropertyStore:
    """Local-only repository backed by a JSON file (or memory).

    File access runs in a worker thread; saves are serialized so concurrent
    read-modify-write cycles do not drop records.
    """

    STORAGE_KEY = "properties"

    def __init__(
        self,
        path: str | Path | None = None,
        now_provider: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.path = Path(path) if path else None
        self.now_provider = now_provider
        self._memory: dict[str, list[dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def owner_for(self, user_id: str | None) -> str:
        return LOCAL_USER_ID

    def _read(self) -> list[dict[str, Any]]:
        if self.path is None:
            return list(self._memory.get(self.STORAGE_KEY, []))
        if not self.path.exists():
            return []
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read local store {self.path}: {e}") from e
        return list(document.get(self.STORAGE_KEY, []))

    def _write(self, items: list[dict[str, Any]]) -> None:
        if self.path is None:
            self._memory[self.STORAGE_KEY] = items
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps({self.STORAGE_KEY: items}, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as e:
            raise PersistenceError(f"Cannot write local store {self.path}: {e}") from e

    async def save(
        self, property_input: PropertyInput, report: AnalysisReport, user_id: str | None = None
    ) -> PropertyRecord:
        # Local mode has no authentication, every record belongs to the same placeholder user
        record = build_record(
            property_input,
            report,
            record_id=str(uuid.uuid4()),
            user_id=LOCAL_USER_ID,
            created_at=self.now_provider(),
        )
        async with self._lock:
            items = await asyncio.to_thread(self._read)
            items.append(record.model_dump(mode="json", by_alias=True, exclude={"saved"}))
            await asyncio.to_thread(self._write, items)
        logger.info("local_store_saved", record_id=record.id, total=len(items))
        return record

    async def list(self, user_id: str | None = None) -> list[PropertyRecord]:
        items = await asyncio.to_thread(self._read)
        return [PropertyRecord.model_validate(item) for item in items]


class SupabasePropertyStore:
    """Supabase-backed repository (`properties` + `reports` tables)."""

    def __init__(
        self,
        client: AsyncSupabaseClient,
        properties_table: str = "properties",
        reports_table: str = "reports",
        now_provider: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.client = client
        self.properties_table = properties_table
        self.reports_table = reports_table
        self.now_provider = now_provider

    def owner_for(self, user_id: str | None) -> str:
        return user_id or LOCAL_USER_ID

    async def save(
        self, property_input: PropertyInput, report: AnalysisReport, user_id: str | None = None
    ) -> PropertyRecord:
        """
        Insert the property, then the report referencing it.

        The returned record is always populated. A failed write is logged as a
        warning and the caller still receives the in-memory record; when the
        property insert succeeds the record id is synced to the database id.
        """
        record = build_record(
            property_input,
            report,
            record_id=str(uuid.uuid4()),
            user_id=user_id or LOCAL_USER_ID,
            created_at=self.now_provider(),
        )

        try:
            response = (
                await self.client.table(self.properties_table)
                .insert(
                    {
                        "title": property_input.title,
                        "description": property_input.description,
                        "price": property_input.price,
                        "location": property_input.location,
                        "details": property_input.model_dump(mode="json", by_alias=True),
                        "user_id": user_id,
                    }
                )
                .execute()
            )
        except Exception as e:
            logger.warning("supabase_property_insert_failed", error=str(e))
            return record

        rows = response.data or []
        if not rows:
            logger.warning("supabase_property_insert_empty", record_id=record.id)
            return record

        property_id = str(rows[0]["id"])
        try:
            await self.client.table(self.reports_table).insert(
                {
                    "property_id": property_id,
                    "content": report.model_dump(mode="json", by_alias=True),
                }
            ).execute()
        except Exception as e:
            logger.warning("supabase_report_insert_failed", property_id=property_id, error=str(e))

        logger.info("supabase_property_saved", property_id=property_id)
        return record.model_copy(update={"id": property_id})

    def _row_to_record(self, row: dict[str, Any]) -> PropertyRecord | None:
        reports = row.get(self.reports_table) or []
        data = {
            **(row.get("details") or {}),
            "id": str(row["id"]),
            "userId": row.get("user_id") or LOCAL_USER_ID,
            "createdAt": row.get("created_at") or self.now_provider().isoformat(),
            "report": reports[0].get("content") if reports else None,
        }
        try:
            return PropertyRecord.model_validate(data)
        except ValidationError as e:
            logger.warning("supabase_row_invalid", property_id=row.get("id"), errors=e.error_count())
            return None

    async def list(self, user_id: str | None = None) -> list[PropertyRecord]:
        query = self.client.table(self.properties_table).select(f"*, {self.reports_table}(*)")
        if user_id:
            query = query.eq("user_id", user_id)
        try:
            response = await query.execute()
        except Exception as e:
            logger.error("supabase_list_failed", error=str(e))
            return []

        records = [self._row_to_record(row) for row in response.data or []]
        return [record for record in records if record is not None]


def create_persistence_adapter(
    settings: Settings, supabase_client: AsyncSupabaseClient | None = None
) -> PropertyRepository:
    """
    Choose the storage backend once, at startup.

    Supabase is used only when credentials are configured AND a client could
    be created; everything else falls back to the local store.
    """
    if settings.supabase_configured and supabase_client is not None:
        logger.info("persistence_backend_selected", backend="supabase")
        return SupabasePropertyStore(
            supabase_client,
            properties_table=settings.storage.properties_table,
            reports_table=settings.storage.reports_table,
        )

    logger.info(
        "persistence_backend_selected",
        backend="local",
        path=settings.storage.local_store_path or "memory",
    )
    return LocalPropertyStore(settings.storage.local_store_path or None)
