# ============================================================================
# CAMPUS GUARDIAN - Document Store
# ============================================================================
# JSON documents grouped in collections, queried by equality / membership on
# named fields and ordered by insertion. Two read paths:
#   subscribe()  -> live snapshots until the Subscription is cancelled
#   fetch_page() -> one page plus the cursor for the next one
# Writes go through the access rules and notify subscribers after commit.
# ============================================================================

import json
import logging
import re
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import NotFound, ValidationFailed
from .models import COLLECTIONS, get_conn, init_store_schema, server_ts
from .rules import Actor, check_read, check_write

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Placeholder replaced with the store's clock when the document is written.
SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass
class Query:
    """Equality / membership filters over one collection, newest first by default."""
    collection: str
    filters: Tuple[Tuple[str, str, Any], ...] = ()
    descending: bool = True

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        if op not in ("==", "in"):
            raise ValueError(f"Unsupported operator: {op}")
        if not _FIELD_RE.match(field_name):
            raise ValueError(f"Invalid field name: {field_name}")
        if op == "in":
            value = tuple(value)
        return replace(self, filters=self.filters + ((field_name, op, value),))

    def ascending(self) -> "Query":
        return replace(self, descending=False)

    def matches(self, doc: Dict) -> bool:
        for name, op, value in self.filters:
            if op == "==" and doc.get(name) != value:
                return False
            if op == "in" and doc.get(name) not in value:
                return False
        return True


@dataclass
class Page:
    items: List[Dict]
    cursor: Optional[str]
    has_more: bool


@dataclass
class Subscription:
    """Handle for a live query. cancel() stops further snapshots."""
    query: Query
    callback: Callable[[List[Dict]], None]
    _store: "DocumentStore" = field(repr=False)
    active: bool = True

    def cancel(self):
        if self.active:
            self.active = False
            self._store._remove_subscription(self)


class DocumentStore:
    """
    sqlite-backed document database.

    Every public read and write takes the acting identity; writes are checked
    against the access rules before anything is stored.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_store_schema(db_path)
        self._subs: Dict[str, List[Subscription]] = {}
        self._subs_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, data: Dict, actor: Actor) -> str:
        """Create a document under a generated id and return the id."""
        with self.transaction(actor) as tx:
            doc_id = tx.add(collection, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict, actor: Actor):
        """Create or replace the document stored under doc_id."""
        with self.transaction(actor) as tx:
            tx.set(collection, doc_id, data)

    def update(self, collection: str, doc_id: str, changes: Dict, actor: Actor) -> Dict:
        """Merge `changes` into an existing document; returns the new document."""
        with self.transaction(actor) as tx:
            doc = tx.update(collection, doc_id, changes)
        return doc

    def delete(self, collection: str, doc_id: str, actor: Actor):
        with self.transaction(actor) as tx:
            tx.delete(collection, doc_id)

    @contextmanager
    def transaction(self, actor: Actor) -> Iterator["Transaction"]:
        """All writes inside the block commit together or not at all."""
        conn = get_conn(self.db_path)
        conn.isolation_level = None
        conn.execute("BEGIN IMMEDIATE")
        tx = Transaction(self, conn, actor)
        try:
            yield tx
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
        self._notify(tx.touched)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, doc_id: str, actor: Actor) -> Optional[Dict]:
        _check_collection(collection)
        check_read(actor, collection)
        conn = get_conn(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_doc(row) if row else None

    def query(self, query: Query, actor: Actor, limit: Optional[int] = None) -> List[Dict]:
        check_read(actor, query.collection)
        rows = self._select(query, cursor=None, limit=limit)
        return [_row_to_doc(r) for r in rows]

    def fetch_page(
        self,
        query: Query,
        actor: Actor,
        cursor: Optional[str] = None,
        page_size: int = 10,
    ) -> Page:
        """One-shot page read. `cursor` is the value returned with the previous page."""
        check_read(actor, query.collection)
        if page_size < 1:
            raise ValidationFailed("page_size must be at least 1", field="page_size")
        rows = self._select(query, cursor=_decode_cursor(cursor), limit=page_size + 1)
        has_more = len(rows) > page_size
        rows = rows[:page_size]
        next_cursor = str(rows[-1]["seq"]) if rows else None
        return Page(items=[_row_to_doc(r) for r in rows], cursor=next_cursor, has_more=has_more)

    def subscribe(
        self,
        query: Query,
        callback: Callable[[List[Dict]], None],
        actor: Actor,
    ) -> Subscription:
        """Deliver the current result set now and again after every committed write."""
        check_read(actor, query.collection)
        sub = Subscription(query=query, callback=callback, _store=self)
        with self._subs_lock:
            self._subs.setdefault(query.collection, []).append(sub)
        self._deliver(sub)
        return sub

    def subscription_count(self, collection: Optional[str] = None) -> int:
        with self._subs_lock:
            if collection:
                return len(self._subs.get(collection, []))
            return sum(len(v) for v in self._subs.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select(self, query: Query, cursor: Optional[int], limit: Optional[int]):
        _check_collection(query.collection)
        conditions = ["collection = ?"]
        params: List[Any] = [query.collection]

        for name, op, value in query.filters:
            if op == "==":
                conditions.append(f"json_extract(data, '$.{name}') = ?")
                params.append(_bind(value))
            else:
                if not value:
                    return []
                marks = ",".join("?" for _ in value)
                conditions.append(f"json_extract(data, '$.{name}') IN ({marks})")
                params.extend(_bind(v) for v in value)

        if cursor is not None:
            conditions.append("seq < ?" if query.descending else "seq > ?")
            params.append(cursor)

        order = "DESC" if query.descending else "ASC"
        sql = f"SELECT * FROM documents WHERE {' AND '.join(conditions)} ORDER BY seq {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        conn = get_conn(self.db_path)
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def _remove_subscription(self, sub: Subscription):
        with self._subs_lock:
            subs = self._subs.get(sub.query.collection, [])
            if sub in subs:
                subs.remove(sub)

    def _notify(self, collections: Sequence[str]):
        for collection in set(collections):
            with self._subs_lock:
                subs = list(self._subs.get(collection, []))
            for sub in subs:
                self._deliver(sub)

    def _deliver(self, sub: Subscription):
        if not sub.active:
            return
        try:
            docs = [_row_to_doc(r) for r in self._select(sub.query, cursor=None, limit=None)]
            sub.callback(docs)
        except Exception as e:
            # A broken listener must not fail the write that triggered it.
            logger.error(f"[Store] snapshot delivery failed for {sub.query.collection}: {e}")


class Transaction:
    """Write handle bound to one open sqlite transaction."""

    def __init__(self, store: DocumentStore, conn, actor: Actor):
        self._store = store
        self._conn = conn
        self.actor = actor
        self.touched: List[str] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        _check_collection(collection)
        check_read(self.actor, collection)
        row = self._fetch(collection, doc_id)
        return _row_to_doc(row) if row else None

    def find(self, collection: str, field_name: str, value: Any) -> List[Dict]:
        """Equality lookup that sees this transaction's own writes."""
        _check_collection(collection)
        check_read(self.actor, collection)
        if not _FIELD_RE.match(field_name):
            raise ValueError(f"Invalid field name: {field_name}")
        rows = self._conn.execute(
            f"SELECT * FROM documents WHERE collection = ? AND json_extract(data, '$.{field_name}') = ? "
            "ORDER BY seq DESC",
            (collection, _bind(value)),
        ).fetchall()
        return [_row_to_doc(r) for r in rows]

    def add(self, collection: str, data: Dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self.set(collection, doc_id, data, _operation="create")
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict, _operation: Optional[str] = None):
        _check_collection(collection)
        row = self._fetch(collection, doc_id)
        existing = _row_to_doc(row) if row else None
        operation = _operation or ("update" if existing else "create")
        if _operation == "create" and existing:
            raise ValidationFailed(f"Document already exists: {collection}/{doc_id}")

        now = server_ts()
        doc = _resolve_sentinels(data, now)
        doc.pop("id", None)
        check_write(self.actor, operation, collection, doc_id, _strip_id(existing), doc)

        if existing:
            self._conn.execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND doc_id = ?",
                (json.dumps(doc), now, collection, doc_id),
            )
        else:
            self._conn.execute(
                "INSERT INTO documents (collection, doc_id, created_at, updated_at, data) VALUES (?, ?, ?, ?, ?)",
                (collection, doc_id, now, now, json.dumps(doc)),
            )
        self.touched.append(collection)

    def update(self, collection: str, doc_id: str, changes: Dict) -> Dict:
        _check_collection(collection)
        row = self._fetch(collection, doc_id)
        if not row:
            raise NotFound(f"No document at {collection}/{doc_id}")
        existing = _strip_id(_row_to_doc(row))
        now = server_ts()
        merged = dict(existing)
        merged.update(_resolve_sentinels(changes, now))
        merged.pop("id", None)
        check_write(self.actor, "update", collection, doc_id, existing, merged)

        self._conn.execute(
            "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND doc_id = ?",
            (json.dumps(merged), now, collection, doc_id),
        )
        self.touched.append(collection)
        return {"id": doc_id, **merged}

    def delete(self, collection: str, doc_id: str):
        _check_collection(collection)
        row = self._fetch(collection, doc_id)
        if not row:
            raise NotFound(f"No document at {collection}/{doc_id}")
        check_write(self.actor, "delete", collection, doc_id, _strip_id(_row_to_doc(row)), None)
        self._conn.execute(
            "DELETE FROM documents WHERE collection = ? AND doc_id = ?", (collection, doc_id)
        )
        self.touched.append(collection)

    def _fetch(self, collection: str, doc_id: str):
        return self._conn.execute(
            "SELECT * FROM documents WHERE collection = ? AND doc_id = ?", (collection, doc_id)
        ).fetchone()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _check_collection(collection: str):
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")


def _row_to_doc(row) -> Dict:
    doc = json.loads(row["data"])
    doc["id"] = row["doc_id"]
    return doc


def _strip_id(doc: Optional[Dict]) -> Optional[Dict]:
    if doc is None:
        return None
    return {k: v for k, v in doc.items() if k != "id"}


def _resolve_sentinels(data: Dict, now: str) -> Dict:
    return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


def _bind(value: Any) -> Any:
    # json_extract yields 1/0 for JSON booleans
    if isinstance(value, bool):
        return int(value)
    return value


def _decode_cursor(cursor: Optional[str]) -> Optional[int]:
    if cursor in (None, ""):
        return None
    try:
        return int(cursor)
    except (TypeError, ValueError):
        raise ValidationFailed("Invalid page cursor", field="cursor")
