"""
Juggernaut MCP Tool Handlers
----------------------------
One function per tool, each taking the store handle and its validated
argument model and returning a JSON-serializable result. Rejections are
raised as ``ToolError`` subclasses.

Mutating handlers validate first, then do all their writes (field or
metadata change, change-log rows, dirty flag) inside a single store
transaction, so the app's sync process never sees half an update.
"""

import copy
import logging
from typing import Any, Callable, Dict, List

from juggernaut.core.errors import PostNotFoundError, ToolValidationError
from juggernaut.core.types import BASIC_FIELDS, FieldChange, SeoData
from juggernaut.mcp.arguments import (
    GetPostArgs,
    GetPostHistoryArgs,
    GetStatsArgs,
    ListPostsArgs,
    ListTermsArgs,
    UpdatePostArgs,
    UpdatePostTermsArgs,
    UpdateSeoArgs,
)
from juggernaut.mcp.definitions import ToolName
from juggernaut.store.codec import decode_value, encode_value
from juggernaut.store.sqlite_mirror import DIRTY_TAXONOMIES_KEY, NOT_SET, SQLiteMirrorStore
from juggernaut.validation import (
    clamp,
    escape_like,
    validate_status,
    validate_taxonomy_has_terms,
    validate_term_ids,
)

logger = logging.getLogger("Juggernaut.mcp.tools")

SEO_PLUGIN_ID = "seopress"
SEO_DATA_KEY = "seo"

LIST_DEFAULT_LIMIT, LIST_MAX_LIMIT = 50, 200
HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT = 20, 100
DISPLAY_MAX_CHARS = 200


def truncate(text: str, max_chars: int = DISPLAY_MAX_CHARS) -> str:
    return text[:max_chars] + "..." if len(text) > max_chars else text


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested dicts merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _require_post(store: SQLiteMirrorStore, post_id: int) -> None:
    if not store.post_exists(post_id):
        raise PostNotFoundError(post_id)


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------

def list_posts(store: SQLiteMirrorStore, args: ListPostsArgs) -> Dict[str, Any]:
    if args.status:
        validate_status(args.status)
    limit = clamp(args.limit, LIST_DEFAULT_LIMIT, 1, LIST_MAX_LIMIT)
    offset = max(args.offset or 0, 0)
    pattern = f"%{escape_like(args.search)}%" if args.search else None

    total, posts = store.list_posts(
        post_type=args.post_type,
        status=args.status,
        is_dirty=args.is_dirty,
        search_pattern=pattern,
        limit=limit,
        offset=offset,
    )
    return {
        "total": total,
        "count": len(posts),
        "limit": limit,
        "offset": offset,
        "posts": [post.model_dump() for post in posts],
    }


def get_post(store: SQLiteMirrorStore, args: GetPostArgs) -> Dict[str, Any]:
    with store.transaction(immediate=False):
        post = store.get_post(args.id)
        if post is None:
            raise PostNotFoundError(args.id)
        meta_rows = store.get_meta_rows(args.id)
        terms = store.get_post_terms(args.id)
        plugin_rows = store.get_plugin_data_rows(args.id)

    meta: Dict[str, Any] = {}
    raw_meta_keys: List[str] = []
    for field_id, raw in meta_rows.items():
        decoded = decode_value(raw)
        meta[field_id] = decoded.value
        if decoded.is_raw:
            raw_meta_keys.append(field_id)

    grouped_terms: Dict[str, List[Dict[str, Any]]] = {}
    for term in terms:
        grouped_terms.setdefault(term.taxonomy, []).append(
            {"id": term.id, "name": term.name, "slug": term.slug}
        )

    plugin_data: Dict[str, Dict[str, Any]] = {}
    for plugin_id, data_key, raw in plugin_rows:
        plugin_data.setdefault(plugin_id, {})[data_key] = decode_value(raw).value

    return {
        **post.model_dump(),
        "meta": meta,
        "raw_meta_keys": sorted(raw_meta_keys),
        "terms": grouped_terms,
        "plugin_data": plugin_data,
    }


def list_terms(store: SQLiteMirrorStore, args: ListTermsArgs) -> Dict[str, Any]:
    if args.taxonomy:
        terms = store.list_terms(args.taxonomy)
        return {
            "taxonomy": args.taxonomy,
            "count": len(terms),
            "terms": [term.model_dump() for term in terms],
        }

    terms = store.list_terms()
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for term in terms:
        grouped.setdefault(term.taxonomy, []).append(term.model_dump())
    return {"total": len(terms), "taxonomies": grouped}


def get_stats(store: SQLiteMirrorStore, args: GetStatsArgs) -> Dict[str, Any]:
    return store.get_stats(args.post_type)


def get_post_history(store: SQLiteMirrorStore, args: GetPostHistoryArgs) -> Dict[str, Any]:
    limit = clamp(args.limit, HISTORY_DEFAULT_LIMIT, 1, HISTORY_MAX_LIMIT)
    entries = store.get_history(args.post_id, limit)
    return {
        "post_id": args.post_id,
        "count": len(entries),
        "entries": [entry.model_dump() for entry in entries],
    }


# ---------------------------------------------------------------------------
# Mutating tools
# ---------------------------------------------------------------------------

def _encode_meta(meta: Dict[str, Any]) -> Dict[str, str]:
    encoded = {}
    for field_id, value in meta.items():
        try:
            encoded[field_id] = encode_value(value)
        except ValueError as exc:
            raise ToolValidationError(
                f"Meta value for '{field_id}' is not valid JSON: {exc}",
                details={"field": f"meta.{field_id}"},
            ) from exc
    return encoded


def update_post(store: SQLiteMirrorStore, args: UpdatePostArgs) -> Dict[str, Any]:
    if args.status is not None:
        validate_status(args.status)
    meta = args.meta or {}
    if DIRTY_TAXONOMIES_KEY in meta:
        raise ToolValidationError(
            f"Meta key '{DIRTY_TAXONOMIES_KEY}' is managed by update_post_terms and cannot be set directly."
        )
    encoded_meta = _encode_meta(meta)
    _require_post(store, args.id)

    fields = {name: getattr(args, name) for name in BASIC_FIELDS if getattr(args, name) is not None}
    changes: List[FieldChange] = []

    if fields or meta:
        with store.transaction():
            post = store.get_post(args.id)
            if post is None:
                raise PostNotFoundError(args.id)

            for name, value in fields.items():
                old = getattr(post, name)
                changes.append(FieldChange(
                    field=name,
                    old_value="" if old is None else str(old),
                    new_value=str(value),
                ))
            store.update_post_fields(args.id, fields)

            for field_id, encoded in encoded_meta.items():
                existing = store.get_meta_raw(args.id, field_id)
                store.upsert_meta(args.id, field_id, encoded)
                changes.append(FieldChange(
                    field=f"meta.{field_id}",
                    old_value=existing if existing is not None else NOT_SET,
                    new_value=encoded,
                ))
            if not fields:
                store.mark_dirty(args.id)

            for change in changes:
                store.append_change(args.id, change.field, change.old_value, change.new_value)

    logger.info("update_post %s: %d change(s)", args.id, len(changes))
    return {
        "success": True,
        "post_id": args.id,
        "changes_made": len(changes),
        "changes": [
            {"field": c.field, "from": truncate(c.old_value), "to": truncate(c.new_value)}
            for c in changes
        ],
        "note": (
            "Post marked as dirty. Review changes in Juggernaut UI and push when ready."
            if changes
            else "No fields or meta supplied; nothing was changed."
        ),
    }


def _seo_patch(args: UpdateSeoArgs) -> Dict[str, Any]:
    """Nested partial SEO blob holding only the fields the caller supplied."""
    patch: Dict[str, Any] = {}
    for name, key in (
        ("title", "title"),
        ("description", "description"),
        ("canonical", "canonical"),
        ("target_keywords", "targetKeywords"),
    ):
        value = getattr(args, name)
        if value is not None:
            patch[key] = value
    for section, names in (
        ("og", ("title", "description", "image")),
        ("twitter", ("title", "description", "image")),
    ):
        for name in names:
            value = getattr(args, f"{section}_{name}")
            if value is not None:
                patch.setdefault(section, {})[name] = value
    for flag in ("noindex", "nofollow", "nosnippet", "noimageindex"):
        value = getattr(args, flag)
        if value is not None:
            patch.setdefault("robots", {})[flag] = value
    return patch


def _usable_sections(defaults: Dict[str, Any], stored: Dict[str, Any], post_id: int) -> Dict[str, Any]:
    """Drop stored og/twitter/robots values that are not objects so the defaults stay."""
    usable = {}
    for key, value in stored.items():
        if isinstance(defaults.get(key), dict) and not isinstance(value, dict):
            logger.warning("Ignoring malformed SEO section %r for post %s", key, post_id)
            continue
        usable[key] = value
    return usable


def update_seo(store: SQLiteMirrorStore, args: UpdateSeoArgs) -> Dict[str, Any]:
    _require_post(store, args.post_id)
    patch = _seo_patch(args)

    # Read, merge and write under one write lock so a concurrent edit is not lost.
    with store.transaction():
        existing = store.get_plugin_value(args.post_id, SEO_PLUGIN_ID, SEO_DATA_KEY)
        seo = SeoData().to_blob()
        if existing is not None:
            decoded = decode_value(existing)
            if not decoded.is_raw and isinstance(decoded.value, dict):
                seo = deep_merge(seo, _usable_sections(seo, decoded.value, args.post_id))
            else:
                logger.warning(
                    "Unparseable SEO data for post %s; starting from defaults", args.post_id
                )
        seo = deep_merge(seo, patch)
        encoded = encode_value(seo)

        store.write_plugin_value(args.post_id, SEO_PLUGIN_ID, SEO_DATA_KEY, encoded)
        store.mark_dirty(args.post_id)
        store.append_change(
            args.post_id,
            "seo",
            existing if existing is not None else NOT_SET,
            encoded,
        )

    return {
        "success": True,
        "post_id": args.post_id,
        "seo": seo,
        "note": "SEO data updated. Post marked as dirty.",
    }


def update_post_terms(store: SQLiteMirrorStore, args: UpdatePostTermsArgs) -> Dict[str, Any]:
    _require_post(store, args.post_id)
    validate_taxonomy_has_terms(store, args.taxonomy)

    term_ids = list(dict.fromkeys(args.term_ids))
    partition = validate_term_ids(store, term_ids, args.taxonomy)
    if partition.invalid:
        raise ToolValidationError(
            f"Invalid term IDs for taxonomy '{args.taxonomy}': "
            f"{', '.join(str(i) for i in partition.invalid)}",
            details={"valid_ids": partition.valid, "invalid_ids": partition.invalid},
        )

    with store.transaction():
        previous = store.get_post_term_ids(args.post_id, args.taxonomy)
        store.replace_post_terms(args.post_id, args.taxonomy, term_ids)
        store.mark_dirty(args.post_id)
        dirty_taxonomies = store.add_dirty_taxonomy(args.post_id, args.taxonomy)
        store.append_change(
            args.post_id,
            f"terms.{args.taxonomy}",
            encode_value(previous),
            encode_value(sorted(term_ids)),
        )

    return {
        "success": True,
        "post_id": args.post_id,
        "taxonomy": args.taxonomy,
        "term_ids": term_ids,
        "assigned_terms": store.term_names(args.taxonomy, term_ids),
        "dirty_taxonomies": dirty_taxonomies,
        "note": "Post marked as dirty. Push from Juggernaut UI when ready.",
    }


ToolHandler = Callable[[SQLiteMirrorStore, Any], Dict[str, Any]]

TOOL_HANDLERS: Dict[ToolName, ToolHandler] = {
    ToolName.LIST_POSTS: list_posts,
    ToolName.GET_POST: get_post,
    ToolName.UPDATE_POST: update_post,
    ToolName.UPDATE_SEO: update_seo,
    ToolName.LIST_TERMS: list_terms,
    ToolName.UPDATE_POST_TERMS: update_post_terms,
    ToolName.GET_STATS: get_stats,
    ToolName.GET_POST_HISTORY: get_post_history,
}

if set(TOOL_HANDLERS) != set(ToolName):
    raise RuntimeError("TOOL_HANDLERS must cover every ToolName")
