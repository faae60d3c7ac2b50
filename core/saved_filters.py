"""Named filter sets persisted in the ``saved_filters`` table.

The filter state is stored as a JSON text blob and always comes back through
``normalize_filters``, so rows written by older layouts (camelCase keys, bare
string selections) still load.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, delete, insert, select, update
from sqlalchemy.engine import Engine

from core.filters import DashboardFilters, count_active_filters, filters_to_dict, normalize_filters

logger = logging.getLogger(__name__)

metadata = MetaData()


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


saved_filters_table = Table(
    "saved_filters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("filters", Text, nullable=False),
    Column("created_at", DateTime, nullable=False, default=_now),
    Column("updated_at", DateTime, nullable=False, default=_now),
)


class SavedFilterNotFound(KeyError):
    pass


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Filter name is required")
    return cleaned


def _dump(filters: Any) -> str:
    return json.dumps(filters_to_dict(normalize_filters(filters)))


def _load(blob: Optional[str]) -> DashboardFilters:
    try:
        raw = json.loads(blob) if blob else {}
    except (TypeError, ValueError):
        logger.warning("Unreadable saved filter blob; treating as empty")
        raw = {}
    return normalize_filters(raw if isinstance(raw, dict) else {})


def saved_filter_label(item: Dict[str, Any]) -> str:
    """Picker label; the id keeps same-named sets apart."""
    return f"{item['name']} ({count_active_filters(item['filters'])} filters, #{item['id']})"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SavedFilterStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        metadata.create_all(engine, tables=[saved_filters_table])

    def _row_to_dict(self, row: Any) -> Dict[str, Any]:
        return {
            "id": int(row.id),
            "name": row.name,
            "filters": _load(row.filters),
            "created_at": _iso(row.created_at),
            "updated_at": _iso(row.updated_at),
        }

    def list(self) -> List[Dict[str, Any]]:
        stmt = select(saved_filters_table).order_by(
            saved_filters_table.c.created_at.desc(), saved_filters_table.c.id.desc()
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [self._row_to_dict(row) for row in rows]

    def get(self, filter_id: int) -> Dict[str, Any]:
        stmt = select(saved_filters_table).where(saved_filters_table.c.id == filter_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            raise SavedFilterNotFound(filter_id)
        return self._row_to_dict(row)

    def save(self, name: str, filters: Any) -> Dict[str, Any]:
        cleaned = _clean_name(name)
        now = _now()
        stmt = insert(saved_filters_table).values(name=cleaned, filters=_dump(filters), created_at=now, updated_at=now)
        with self.engine.begin() as conn:
            new_id = conn.execute(stmt).inserted_primary_key[0]
        logger.info("Saved filter %r as id %s", cleaned, new_id)
        return self.get(int(new_id))

    def update(self, filter_id: int, name: str, filters: Any) -> Dict[str, Any]:
        cleaned = _clean_name(name)
        stmt = (
            update(saved_filters_table)
            .where(saved_filters_table.c.id == filter_id)
            .values(name=cleaned, filters=_dump(filters), updated_at=_now())
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise SavedFilterNotFound(filter_id)
        return self.get(filter_id)

    def delete(self, filter_id: int) -> None:
        stmt = delete(saved_filters_table).where(saved_filters_table.c.id == filter_id)
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise SavedFilterNotFound(filter_id)
        logger.info("Deleted saved filter %s", filter_id)
