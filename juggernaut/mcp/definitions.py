from enum import Enum
from typing import List, Dict, Any

from juggernaut.core.types import VALID_STATUSES


class ToolName(str, Enum):
    LIST_POSTS = "list_posts"
    GET_POST = "get_post"
    UPDATE_POST = "update_post"
    UPDATE_SEO = "update_seo"
    LIST_TERMS = "list_terms"
    UPDATE_POST_TERMS = "update_post_terms"
    GET_STATS = "get_stats"
    GET_POST_HISTORY = "get_post_history"


TOOLS_SCHEMAS: List[Dict[str, Any]] = [
    {
        "name": ToolName.LIST_POSTS.value,
        "description": "List WordPress posts from the local Juggernaut database with optional filters. Returns post summaries.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "post_type": {"type": "string", "description": "Filter by post type slug (e.g., 'resource', 'post')"},
                "status": {"type": "string", "enum": list(VALID_STATUSES), "description": "Filter by status"},
                "is_dirty": {"type": "boolean", "description": "Filter by dirty flag (true = locally modified, pending push)"},
                "search": {"type": "string", "description": "Search in title and content"},
                "limit": {"type": "integer", "default": 50, "description": "Max results to return (default: 50, max: 200)"},
                "offset": {"type": "integer", "default": 0, "description": "Pagination offset (default: 0)"}
            }
        }
    },
    {
        "name": ToolName.GET_POST.value,
        "description": "Get a single post with all its content, meta fields, taxonomy terms, and plugin data.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer", "description": "WordPress post ID"}
            },
            "required": ["id"]
        }
    },
    {
        "name": ToolName.UPDATE_POST.value,
        "description": "Update a post's fields and/or meta data. Marks the post as dirty (pending push to WordPress). Changes are logged.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "integer", "description": "WordPress post ID to update"},
                "title": {"type": "string", "description": "Post title"},
                "content": {"type": "string", "description": "Post content (HTML)"},
                "excerpt": {"type": "string", "description": "Post excerpt"},
                "slug": {"type": "string", "description": "URL slug"},
                "status": {"type": "string", "enum": list(VALID_STATUSES), "description": "Post status"},
                "meta": {"type": "object", "description": "Meta fields to update as key-value pairs. Values are stored as JSON."}
            },
            "required": ["id"]
        }
    },
    {
        "name": ToolName.UPDATE_SEO.value,
        "description": "Update SEO metadata for a post (title, description, Open Graph, Twitter card, robots). Stored as SEOPress plugin data. Fields you omit keep their current values.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "post_id": {"type": "integer", "description": "WordPress post ID"},
                "title": {"type": "string", "description": "SEO title"},
                "description": {"type": "string", "description": "SEO meta description"},
                "canonical": {"type": "string", "description": "Canonical URL"},
                "target_keywords": {"type": "string", "description": "Comma-separated target keywords"},
                "og_title": {"type": "string", "description": "Open Graph title"},
                "og_description": {"type": "string", "description": "Open Graph description"},
                "og_image": {"type": "string", "description": "Open Graph image URL"},
                "twitter_title": {"type": "string", "description": "Twitter card title"},
                "twitter_description": {"type": "string", "description": "Twitter card description"},
                "twitter_image": {"type": "string", "description": "Twitter card image URL"},
                "noindex": {"type": "boolean", "description": "Set noindex"},
                "nofollow": {"type": "boolean", "description": "Set nofollow"},
                "nosnippet": {"type": "boolean", "description": "Set nosnippet"},
                "noimageindex": {"type": "boolean", "description": "Set noimageindex"}
            },
            "required": ["post_id"]
        }
    },
    {
        "name": ToolName.LIST_TERMS.value,
        "description": "List taxonomy terms. Can list all terms or filter by a specific taxonomy.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "taxonomy": {"type": "string", "description": "Taxonomy slug to filter by (e.g., 'category', 'resource-type'). Omit to list all."}
            }
        }
    },
    {
        "name": ToolName.UPDATE_POST_TERMS.value,
        "description": "Set taxonomy terms for a post. Replaces all existing terms for the specified taxonomy. Marks the post as dirty.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "post_id": {"type": "integer", "description": "WordPress post ID"},
                "taxonomy": {"type": "string", "description": "Taxonomy slug (e.g., 'category', 'resource-type')"},
                "term_ids": {"type": "array", "items": {"type": "integer"}, "description": "Array of term IDs to assign"}
            },
            "required": ["post_id", "taxonomy", "term_ids"]
        }
    },
    {
        "name": ToolName.GET_STATS.value,
        "description": "Get overview statistics about posts in the local database.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "post_type": {"type": "string", "description": "Filter stats by post type"}
            }
        }
    },
    {
        "name": ToolName.GET_POST_HISTORY.value,
        "description": "View the change log for a specific post. Shows what fields were changed, with old and new values.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "post_id": {"type": "integer", "description": "WordPress post ID"},
                "limit": {"type": "integer", "default": 20, "description": "Max entries to return (default: 20, max: 100)"}
            },
            "required": ["post_id"]
        }
    },
]

READ_ONLY_TOOLS = {
    ToolName.LIST_POSTS,
    ToolName.GET_POST,
    ToolName.LIST_TERMS,
    ToolName.GET_STATS,
    ToolName.GET_POST_HISTORY,
}

# Replaces existing assignments rather than adding to them.
DESTRUCTIVE_TOOLS = {
    ToolName.UPDATE_POST_TERMS,
}

if sorted(schema["name"] for schema in TOOLS_SCHEMAS) != sorted(tool.value for tool in ToolName):
    raise RuntimeError("TOOLS_SCHEMAS must describe every ToolName exactly once")
