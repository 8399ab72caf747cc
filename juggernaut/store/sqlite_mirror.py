"""
Juggernaut SQLite Mirror Store
------------------------------
Read/write access to the desktop app's local CMS mirror: posts, post meta,
taxonomy terms, post-term assignments, namespaced plugin data, and the
append-only change log.

The database file belongs to the desktop app, which creates and migrates the
schema during its first sync and keeps writing to it from its own sync/push
cycle. This store therefore:

- opens an existing file only, and never creates tables;
- uses WAL journaling plus a bounded busy timeout, so a write that collides
  with the app's transaction waits instead of failing immediately;
- runs every multi-statement mutation inside ``transaction()``, which takes
  the write lock up front (``BEGIN IMMEDIATE``) and rolls back on any error.
"""

import sqlite3
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from juggernaut.core.config import DEFAULT_LOCK_TIMEOUT_MS
from juggernaut.core.errors import StoreBusyError, StoreOperationError, StoreUnavailableError
from juggernaut.core.types import BASIC_FIELDS, ChangeLogEntry, Post, PostSummary, Term
from juggernaut.store.codec import decode_value, encode_value

logger = logging.getLogger("Juggernaut.Store")

REQUIRED_TABLES = (
    "posts",
    "post_meta",
    "terms",
    "post_terms",
    "plugin_data",
    "change_log",
    "sync_meta",
)

DIRTY_TAXONOMIES_KEY = "_dirty_taxonomies"
NOT_SET = "(not set)"

_LOCK_MESSAGES = ("database is locked", "database is busy", "database table is locked")


class SQLiteMirrorStore:
    """Transactional access to the shared mirror database."""

    def __init__(self, db_path, lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS):
        self.db_path = Path(db_path) if not isinstance(db_path, Path) else db_path
        self.lock_timeout_ms = lock_timeout_ms
        self._conn: Optional[sqlite3.Connection] = None
        if not self.db_path.is_file():
            raise StoreUnavailableError(
                f"Database not found at {self.db_path}. "
                "Open Juggernaut and run a sync first."
            )

    # ------------------------------------------------------------------
    # Connection and transaction management
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            uri = f"{self.db_path.resolve().as_uri()}?mode=rw"
            with self._translate_errors():
                conn = sqlite3.connect(
                    uri,
                    uri=True,
                    timeout=self.lock_timeout_ms / 1000.0,
                    isolation_level=None,
                    check_same_thread=False,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute(f"PRAGMA busy_timeout={int(self.lock_timeout_ms)};")
            self._conn = conn
            logger.info("Opened mirror store at %s", self.db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None
            logger.info("Closed mirror store at %s", self.db_path)

    def __enter__(self) -> "SQLiteMirrorStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _translate(self, exc: sqlite3.Error) -> Exception:
        message = str(exc)
        if isinstance(exc, sqlite3.OperationalError) and any(
            hint in message.lower() for hint in _LOCK_MESSAGES
        ):
            logger.warning(
                "Store still locked after %d ms wait: %s", self.lock_timeout_ms, message
            )
            return StoreBusyError(
                "Database is locked by another Juggernaut process "
                f"(waited {self.lock_timeout_ms} ms). Retry after the current sync finishes.",
                details={"lock_timeout_ms": self.lock_timeout_ms},
            )
        return StoreOperationError(f"Database error: {message}")

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise self._translate(exc) from exc

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically.

        ``immediate=True`` takes the write lock before the first read, so a
        read-modify-write cannot interleave with another writer. Read-only
        blocks pass ``immediate=False`` to get a consistent snapshot.
        """
        conn = self._get_conn()
        with self._translate_errors():
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._translate_errors():
            return self._get_conn().execute(sql, tuple(params)).fetchall()

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._translate_errors():
            return self._get_conn().execute(sql, tuple(params)).fetchone()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._translate_errors():
            return self._get_conn().execute(sql, tuple(params))

    def verify_schema(self) -> None:
        """Raise StoreUnavailableError unless every mirror table exists."""
        missing = self.missing_tables()
        if missing:
            raise StoreUnavailableError(
                f"Database at {self.db_path} is missing tables: {', '.join(missing)}. "
                "Open Juggernaut and run a sync to initialize it."
            )

    def missing_tables(self) -> List[str]:
        rows = self._fetchall("SELECT name FROM sqlite_master WHERE type = 'table'")
        existing = {row["name"] for row in rows}
        return [table for table in REQUIRED_TABLES if table not in existing]

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    @staticmethod
    def _post_filters(
        post_type: Optional[str] = None,
        status: Optional[str] = None,
        is_dirty: Optional[bool] = None,
        search_pattern: Optional[str] = None,
    ) -> Tuple[str, List[Any]]:
        conditions: List[str] = []
        values: List[Any] = []
        if post_type:
            conditions.append("post_type = ?")
            values.append(post_type)
        if status:
            conditions.append("status = ?")
            values.append(status)
        if is_dirty is not None:
            conditions.append("is_dirty = ?")
            values.append(1 if is_dirty else 0)
        if search_pattern:
            conditions.append("(title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')")
            values.extend([search_pattern, search_pattern])
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return where, values

    def list_posts(
        self,
        *,
        post_type: Optional[str] = None,
        status: Optional[str] = None,
        is_dirty: Optional[bool] = None,
        search_pattern: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[PostSummary]]:
        """
        Return (total matching, one page of summaries).

        ``search_pattern`` is a ready LIKE pattern; callers escape user text
        with ``validation.escape_like`` first.
        """
        where, values = self._post_filters(post_type, status, is_dirty, search_pattern)
        with self.transaction(immediate=False) as conn:
            total = conn.execute(f"SELECT COUNT(*) AS count FROM posts {where}", values).fetchone()["count"]
            rows = conn.execute(
                f"""SELECT id, title, slug, status, post_type, is_dirty, modified_gmt, date_gmt
                    FROM posts {where} ORDER BY modified_gmt DESC LIMIT ? OFFSET ?""",
                [*values, limit, offset],
            ).fetchall()
        return total, [PostSummary(**{**dict(row), "is_dirty": bool(row["is_dirty"])}) for row in rows]

    def get_post(self, post_id: int) -> Optional[Post]:
        row = self._fetchone("SELECT * FROM posts WHERE id = ?", (post_id,))
        if row is None:
            return None
        d = dict(row)
        d["is_dirty"] = bool(d.get("is_dirty"))
        return Post(**d)

    def post_exists(self, post_id: int) -> bool:
        return self._fetchone("SELECT 1 FROM posts WHERE id = ?", (post_id,)) is not None

    def update_post_fields(self, post_id: int, fields: Dict[str, Any]) -> None:
        """Write basic columns and set the dirty flag. Call inside transaction()."""
        unknown = set(fields) - set(BASIC_FIELDS)
        if unknown:
            raise ValueError(f"Not a writable post column: {sorted(unknown)}")
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self._execute(
            f"UPDATE posts SET {assignments}, is_dirty = 1 WHERE id = ?",
            [*fields.values(), post_id],
        )

    def mark_dirty(self, post_id: int) -> None:
        self._execute("UPDATE posts SET is_dirty = 1 WHERE id = ?", (post_id,))

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def get_meta_rows(self, post_id: int) -> Dict[str, Optional[str]]:
        rows = self._fetchall(
            "SELECT field_id, value FROM post_meta WHERE post_id = ?", (post_id,)
        )
        return {row["field_id"]: row["value"] for row in rows}

    def get_meta_raw(self, post_id: int, field_id: str) -> Optional[str]:
        row = self._fetchone(
            "SELECT value FROM post_meta WHERE post_id = ? AND field_id = ?",
            (post_id, field_id),
        )
        return row["value"] if row is not None else None

    def upsert_meta(self, post_id: int, field_id: str, encoded: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO post_meta (post_id, field_id, value) VALUES (?, ?, ?)",
            (post_id, field_id, encoded),
        )

    def add_dirty_taxonomy(self, post_id: int, taxonomy: str) -> List[str]:
        """
        Record a taxonomy with pending assignment changes. Idempotent.

        The app's push process reads and clears this list; it is never
        cleared here. Call inside transaction().
        """
        raw = self.get_meta_raw(post_id, DIRTY_TAXONOMIES_KEY)
        taxonomies: List[Any] = []
        if raw is not None:
            decoded = decode_value(raw)
            if not decoded.is_raw and isinstance(decoded.value, list):
                taxonomies = list(decoded.value)
            else:
                logger.warning(
                    "Rebuilding corrupt %s marker for post %s: %r",
                    DIRTY_TAXONOMIES_KEY,
                    post_id,
                    raw,
                )
        if taxonomy not in taxonomies:
            taxonomies.append(taxonomy)
        self.upsert_meta(post_id, DIRTY_TAXONOMIES_KEY, encode_value(taxonomies))
        return taxonomies

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    def list_terms(self, taxonomy: Optional[str] = None) -> List[Term]:
        if taxonomy:
            rows = self._fetchall(
                "SELECT id, taxonomy, name, slug, parent_id FROM terms WHERE taxonomy = ? ORDER BY name",
                (taxonomy,),
            )
        else:
            rows = self._fetchall(
                "SELECT id, taxonomy, name, slug, parent_id FROM terms ORDER BY taxonomy, name"
            )
        return [Term(**dict(row)) for row in rows]

    def count_terms(self, taxonomy: str) -> int:
        row = self._fetchone("SELECT COUNT(*) AS count FROM terms WHERE taxonomy = ?", (taxonomy,))
        return int(row["count"])

    def existing_term_ids(self, taxonomy: str, term_ids: Iterable[int]) -> set:
        ids = list(dict.fromkeys(term_ids))
        if not ids:
            return set()
        placeholders = ",".join("?" for _ in ids)
        rows = self._fetchall(
            f"SELECT id FROM terms WHERE taxonomy = ? AND id IN ({placeholders})",
            [taxonomy, *ids],
        )
        return {row["id"] for row in rows}

    def term_names(self, taxonomy: str, term_ids: Sequence[int]) -> List[str]:
        if not term_ids:
            return []
        placeholders = ",".join("?" for _ in term_ids)
        rows = self._fetchall(
            f"SELECT name FROM terms WHERE taxonomy = ? AND id IN ({placeholders}) ORDER BY name",
            [taxonomy, *term_ids],
        )
        return [row["name"] for row in rows]

    def get_post_terms(self, post_id: int) -> List[Term]:
        rows = self._fetchall(
            """SELECT t.id, pt.taxonomy, t.name, t.slug, t.parent_id
               FROM post_terms pt
               JOIN terms t ON pt.term_id = t.id AND pt.taxonomy = t.taxonomy
               WHERE pt.post_id = ?
               ORDER BY pt.taxonomy, t.name""",
            (post_id,),
        )
        return [Term(**dict(row)) for row in rows]

    def get_post_term_ids(self, post_id: int, taxonomy: str) -> List[int]:
        rows = self._fetchall(
            "SELECT term_id FROM post_terms WHERE post_id = ? AND taxonomy = ? ORDER BY term_id",
            (post_id, taxonomy),
        )
        return [row["term_id"] for row in rows]

    def replace_post_terms(self, post_id: int, taxonomy: str, term_ids: Sequence[int]) -> None:
        """Swap a post's assignments for one taxonomy. Call inside transaction()."""
        self._execute(
            "DELETE FROM post_terms WHERE post_id = ? AND taxonomy = ?",
            (post_id, taxonomy),
        )
        with self._translate_errors():
            self._get_conn().executemany(
                "INSERT INTO post_terms (post_id, term_id, taxonomy) VALUES (?, ?, ?)",
                [(post_id, term_id, taxonomy) for term_id in term_ids],
            )

    # ------------------------------------------------------------------
    # Plugin data
    # ------------------------------------------------------------------

    def get_plugin_data_rows(self, post_id: int) -> List[Tuple[str, str, Optional[str]]]:
        rows = self._fetchall(
            "SELECT plugin_id, data_key, data_value FROM plugin_data WHERE post_id = ? ORDER BY plugin_id, data_key",
            (post_id,),
        )
        return [(row["plugin_id"], row["data_key"], row["data_value"]) for row in rows]

    def get_plugin_value(self, post_id: int, plugin_id: str, data_key: str) -> Optional[str]:
        row = self._fetchone(
            "SELECT data_value FROM plugin_data WHERE post_id = ? AND plugin_id = ? AND data_key = ?",
            (post_id, plugin_id, data_key),
        )
        return row["data_value"] if row is not None else None

    def write_plugin_value(self, post_id: int, plugin_id: str, data_key: str, encoded: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO plugin_data (post_id, plugin_id, data_key, data_value) VALUES (?, ?, ?, ?)",
            (post_id, plugin_id, data_key, encoded),
        )

    # ------------------------------------------------------------------
    # Change log
    # ------------------------------------------------------------------

    def append_change(self, post_id: int, field: str, old_value: str, new_value: str) -> None:
        self._execute(
            """INSERT INTO change_log (post_id, field, old_value, new_value, changed_at)
               VALUES (?, ?, ?, ?, datetime('now'))""",
            (post_id, field, old_value, new_value),
        )

    def get_history(self, post_id: int, limit: int) -> List[ChangeLogEntry]:
        rows = self._fetchall(
            """SELECT id, post_id, field, old_value, new_value, changed_at
               FROM change_log WHERE post_id = ?
               ORDER BY changed_at DESC, id DESC LIMIT ?""",
            (post_id, limit),
        )
        return [ChangeLogEntry(**dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Sync metadata and aggregates
    # ------------------------------------------------------------------

    def get_sync_value(self, key: str) -> Optional[str]:
        row = self._fetchone("SELECT value FROM sync_meta WHERE key = ?", (key,))
        return row["value"] if row is not None else None

    def get_stats(self, post_type: Optional[str] = None) -> Dict[str, Any]:
        type_filter = "WHERE post_type = ?" if post_type else ""
        dirty_filter = "WHERE post_type = ? AND is_dirty = 1" if post_type else "WHERE is_dirty = 1"
        params: List[Any] = [post_type] if post_type else []

        with self.transaction(immediate=False) as conn:
            total = conn.execute(f"SELECT COUNT(*) AS count FROM posts {type_filter}", params).fetchone()["count"]
            dirty = conn.execute(f"SELECT COUNT(*) AS count FROM posts {dirty_filter}", params).fetchone()["count"]
            by_status = conn.execute(
                f"""SELECT status, COUNT(*) AS count FROM posts {type_filter}
                    GROUP BY status ORDER BY count DESC, status""",
                params,
            ).fetchall()
            # The type breakdown ignores post_type so the caller sees every type.
            by_type = conn.execute(
                "SELECT post_type, COUNT(*) AS count FROM posts GROUP BY post_type ORDER BY count DESC, post_type"
            ).fetchall()
            recent = conn.execute(
                "SELECT COUNT(*) AS count FROM change_log WHERE changed_at > datetime('now', '-24 hours')"
            ).fetchone()["count"]
            last_sync = self.get_sync_value("last_sync_time")

        return {
            "total": total,
            "dirty": dirty,
            "by_status": [dict(row) for row in by_status],
            "all_types": [dict(row) for row in by_type],
            "last_sync": last_sync or "never",
            "changes_last_24h": recent,
        }
