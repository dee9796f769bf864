# backend/quizfoundry/core/store.py

import copy, logging, threading, uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from supabase import create_client

from .config import Settings
from .errors import StoreError

logger = logging.getLogger("quizfoundry.store")

Row = Dict[str, Any]

TABLES = (
    "auth_users",
    "profiles",
    "user_sessions",
    "onboarding_progress",
    "quizzes",
    "questions",
    "question_options",
    "quiz_attempts",
    "quiz_attempt_answers",
)

# Tables whose rows carry an updated_at column.
_TIMESTAMPED = {"profiles", "user_sessions", "onboarding_progress", "quizzes"}

# Rows keyed by a column other than "id".
_PRIMARY_KEYS = {"onboarding_progress": "user_id"}


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_ts(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _matches(row: Row, eq: Optional[Dict[str, Any]], in_: Optional[Dict[str, Iterable[Any]]]) -> bool:
    for key, value in (eq or {}).items():
        if row.get(key) != value:
            return False
    for key, values in (in_ or {}).items():
        if row.get(key) not in set(values):
            return False
    return True


# ------------------------------------------------------------
# In-memory store (development & tests)
# ------------------------------------------------------------
class MemoryStore:
    """Thread-safe table store. Every read returns copies."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tables: Dict[str, List[Row]] = {name: [] for name in TABLES}
        self._buckets: Dict[str, Dict[str, bytes]] = {}

    def _table(self, name: str) -> List[Row]:
        if name not in self._tables:
            raise StoreError(f"Unknown table: {name}")
        return self._tables[name]

    def insert(self, table: str, rows: List[Row]) -> List[Row]:
        now = utcnow_iso()
        created: List[Row] = []
        with self._lock:
            data = self._table(table)
            pk = _PRIMARY_KEYS.get(table, "id")
            for row in rows:
                row = dict(row)
                if pk == "id":
                    row.setdefault("id", str(uuid.uuid4()))
                if any(existing.get(pk) == row.get(pk) for existing in data):
                    raise StoreError(f"Duplicate key in {table}: {row.get(pk)}")
                row.setdefault("created_at", now)
                if table in _TIMESTAMPED:
                    row.setdefault("updated_at", now)
                data.append(row)
                created.append(copy.deepcopy(row))
        return created

    def select(
        self,
        table: str,
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Iterable[Any]]] = None,
        order: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._table(table) if _matches(r, eq, in_)]
        if order:
            rows.sort(key=lambda r: (r.get(order) is None, r.get(order)), reverse=descending)
        return rows

    def update(self, table: str, values: Row, eq: Dict[str, Any]) -> List[Row]:
        updated: List[Row] = []
        with self._lock:
            for row in self._table(table):
                if _matches(row, eq, None):
                    row.update(values)
                    if table in _TIMESTAMPED and "updated_at" not in values:
                        row["updated_at"] = utcnow_iso()
                    updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, eq: Optional[Dict[str, Any]] = None,
               in_: Optional[Dict[str, Iterable[Any]]] = None) -> int:
        if not eq and not in_:
            raise StoreError("Refusing to delete without a filter")
        with self._lock:
            data = self._table(table)
            keep = [r for r in data if not _matches(r, eq, in_)]
            removed = len(data) - len(keep)
            data[:] = keep
        return removed

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        with self._lock:
            self._buckets.setdefault(bucket, {})[path] = content
        return f"memory://{bucket}/{path}"


# ------------------------------------------------------------
# Supabase-backed store
# ------------------------------------------------------------
class SupabaseStore:
    """Same interface as MemoryStore, backed by a supabase-py client."""

    def __init__(self, client):
        self.client = client

    def _run(self, action: str, table: str, query) -> List[Row]:
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"[store] {action} on {table} failed: {e}")
            raise StoreError(f"Failed to {action} {table}") from e
        return list(response.data or [])

    @staticmethod
    def _filter(query, eq, in_):
        for key, value in (eq or {}).items():
            query = query.eq(key, value)
        for key, values in (in_ or {}).items():
            query = query.in_(key, list(values))
        return query

    def insert(self, table: str, rows: List[Row]) -> List[Row]:
        return self._run("insert", table, self.client.table(table).insert(rows))

    def select(self, table, eq=None, in_=None, order=None, descending=False) -> List[Row]:
        query = self._filter(self.client.table(table).select("*"), eq, in_)
        if order:
            query = query.order(order, desc=descending)
        return self._run("select", table, query)

    def update(self, table: str, values: Row, eq: Dict[str, Any]) -> List[Row]:
        query = self._filter(self.client.table(table).update(values), eq, None)
        return self._run("update", table, query)

    def delete(self, table: str, eq=None, in_=None) -> int:
        if not eq and not in_:
            raise StoreError("Refusing to delete without a filter")
        query = self._filter(self.client.table(table).delete(), eq, in_)
        return len(self._run("delete", table, query))

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        storage = self.client.storage.from_(bucket)
        try:
            storage.upload(path, content, {"content-type": content_type, "upsert": "true"})
        except Exception as e:
            logger.error(f"[store] upload to {bucket}/{path} failed: {e}")
            raise StoreError("Failed to upload file") from e
        return storage.get_public_url(path)


def create_store(settings: Settings):
    if settings.store_backend == "supabase":
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        logger.info("[store] using supabase backend")
        return SupabaseStore(client)
    logger.info("[store] using in-memory backend")
    return MemoryStore()
