import json
import sqlite3
from pathlib import Path

import pytest

from juggernaut.core.feature_flags import reset_flags
from juggernaut.mcp.handlers import call_tool
from juggernaut.store.sqlite_mirror import SQLiteMirrorStore

# Schema owned by the desktop app; the server only ever opens an existing file.
MIRROR_SCHEMA = """
CREATE TABLE sync_meta (
  key TEXT PRIMARY KEY,
  value TEXT
);

CREATE TABLE terms (
  id INTEGER PRIMARY KEY,
  taxonomy TEXT NOT NULL,
  name TEXT NOT NULL,
  slug TEXT NOT NULL,
  parent_id INTEGER DEFAULT 0,
  UNIQUE(id, taxonomy)
);

CREATE TABLE posts (
  id INTEGER PRIMARY KEY,
  post_type TEXT DEFAULT 'resource',
  title TEXT,
  slug TEXT,
  status TEXT DEFAULT 'publish',
  content TEXT,
  excerpt TEXT,
  featured_media INTEGER DEFAULT 0,
  date_gmt TEXT,
  modified_gmt TEXT,
  synced_at TEXT,
  is_dirty INTEGER DEFAULT 0,
  synced_snapshot TEXT
);

CREATE TABLE post_meta (
  post_id INTEGER NOT NULL,
  field_id TEXT NOT NULL,
  value TEXT,
  PRIMARY KEY (post_id, field_id)
);

CREATE TABLE post_terms (
  post_id INTEGER NOT NULL,
  term_id INTEGER NOT NULL,
  taxonomy TEXT NOT NULL,
  PRIMARY KEY (post_id, term_id)
);

CREATE TABLE plugin_data (
  post_id INTEGER NOT NULL,
  plugin_id TEXT NOT NULL,
  data_key TEXT NOT NULL,
  data_value TEXT,
  PRIMARY KEY (post_id, plugin_id, data_key)
);

CREATE TABLE change_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  post_id INTEGER NOT NULL,
  field TEXT NOT NULL,
  old_value TEXT,
  new_value TEXT,
  changed_at TEXT DEFAULT (datetime('now'))
);
"""

SEED_POSTS = [
    (100, "resource", "Alpha Guide", "alpha-guide", "publish", "<p>Alpha content</p>",
     "Alpha excerpt", "2026-01-01T00:00:00", "2026-02-01T00:00:00", 1),
    (200, "resource", "Beta Tutorial", "beta-tutorial", "draft", "<p>Beta content</p>",
     "Beta excerpt", "2026-01-02T00:00:00", "2026-02-02T00:00:00", 0),
    (300, "post", "Blog Post One", "blog-post-one", "publish", "<p>Blog content 100%</p>",
     "Blog excerpt", "2026-01-03T00:00:00", "2026-02-03T00:00:00", 0),
]

SEED_TERMS = [
    (10, "category", "News", "news"),
    (11, "category", "Updates", "updates"),
    (20, "resource-type", "Guide", "guide"),
    (21, "resource-type", "Tutorial", "tutorial"),
]

SEED_POST_TERMS = [
    (100, 11, "category"),
    (100, 20, "resource-type"),
    (300, 10, "category"),
]

SEED_META = [
    (100, "version", json.dumps("2.0")),
    (100, "download_count", json.dumps(150)),
    # Written verbatim by an older sync, never JSON.
    (100, "legacy_note", "plain text, not json"),
]

SEED_SEO = {"title": "X", "description": "old"}


def create_mirror(db_path: Path, *, seed: bool = True) -> Path:
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(MIRROR_SCHEMA)
        if seed:
            conn.executemany(
                """INSERT INTO posts (id, post_type, title, slug, status, content, excerpt,
                                      date_gmt, modified_gmt, is_dirty)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                SEED_POSTS,
            )
            conn.executemany(
                "INSERT INTO terms (id, taxonomy, name, slug) VALUES (?, ?, ?, ?)", SEED_TERMS
            )
            conn.executemany(
                "INSERT INTO post_terms (post_id, term_id, taxonomy) VALUES (?, ?, ?)",
                SEED_POST_TERMS,
            )
            conn.executemany(
                "INSERT INTO post_meta (post_id, field_id, value) VALUES (?, ?, ?)", SEED_META
            )
            conn.execute(
                "INSERT INTO plugin_data (post_id, plugin_id, data_key, data_value) VALUES (?, ?, ?, ?)",
                (100, "seopress", "seo", json.dumps(SEED_SEO)),
            )
            conn.execute(
                "INSERT INTO sync_meta (key, value) VALUES ('last_sync_time', '2026-02-20T12:00:00Z')"
            )
        conn.commit()
    finally:
        conn.close()
    return db_path


def invoke(store, name, arguments=None):
    """Call a tool and return (decoded payload, is_error)."""
    result = call_tool(store, name, arguments if arguments is not None else {})
    payload = json.loads(result["content"][0]["text"])
    return payload, result.get("isError", False)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    for key in (
        "DATABASE_PATH",
        "JUGGERNAUT_DATA_DIR",
        "JUGGERNAUT_MCP_SERVER",
        "JUGGERNAUT_MCP_LOCK_TIMEOUT_MS",
        "JUGGERNAUT_MCP_LOG_LEVEL",
        "JUGGERNAUT_MCP_LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_flags()
    yield
    reset_flags()


@pytest.fixture
def db_path(tmp_path):
    return create_mirror(tmp_path / "juggernaut.db")


@pytest.fixture
def store(db_path):
    s = SQLiteMirrorStore(db_path, lock_timeout_ms=200)
    yield s
    s.close()


@pytest.fixture
def raw_conn(db_path):
    """Independent connection for checking what actually landed on disk."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def call(store):
    def _call(name, **arguments):
        return invoke(store, name, arguments)
    return _call


@pytest.fixture
def make_mirror():
    """Factory for extra mirror files, e.g. under a fake data directory."""
    return create_mirror
