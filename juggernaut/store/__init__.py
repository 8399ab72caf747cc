from juggernaut.store.sqlite_mirror import SQLiteMirrorStore

__all__ = ["SQLiteMirrorStore"]
