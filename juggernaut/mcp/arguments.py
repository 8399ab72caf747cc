"""
Typed tool arguments.

Each tool's raw ``arguments`` object is validated into its model before the
handler runs; a schema violation becomes a ToolValidationError listing every
offending field.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, StrictBool, StrictInt, ValidationError

from juggernaut.core.errors import ToolValidationError
from juggernaut.mcp.definitions import ToolName


class ListPostsArgs(BaseModel):
    post_type: Optional[str] = None
    status: Optional[str] = None
    is_dirty: Optional[StrictBool] = None
    search: Optional[str] = None
    limit: Optional[StrictInt] = None
    offset: Optional[StrictInt] = None


class GetPostArgs(BaseModel):
    id: StrictInt


class UpdatePostArgs(BaseModel):
    id: StrictInt
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class UpdateSeoArgs(BaseModel):
    post_id: StrictInt
    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    target_keywords: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    twitter_title: Optional[str] = None
    twitter_description: Optional[str] = None
    twitter_image: Optional[str] = None
    noindex: Optional[StrictBool] = None
    nofollow: Optional[StrictBool] = None
    nosnippet: Optional[StrictBool] = None
    noimageindex: Optional[StrictBool] = None


class ListTermsArgs(BaseModel):
    taxonomy: Optional[str] = None


class UpdatePostTermsArgs(BaseModel):
    post_id: StrictInt
    taxonomy: str
    term_ids: List[StrictInt]


class GetStatsArgs(BaseModel):
    post_type: Optional[str] = None


class GetPostHistoryArgs(BaseModel):
    post_id: StrictInt
    limit: Optional[StrictInt] = None


ARGUMENT_MODELS: Dict[ToolName, Type[BaseModel]] = {
    ToolName.LIST_POSTS: ListPostsArgs,
    ToolName.GET_POST: GetPostArgs,
    ToolName.UPDATE_POST: UpdatePostArgs,
    ToolName.UPDATE_SEO: UpdateSeoArgs,
    ToolName.LIST_TERMS: ListTermsArgs,
    ToolName.UPDATE_POST_TERMS: UpdatePostTermsArgs,
    ToolName.GET_STATS: GetStatsArgs,
    ToolName.GET_POST_HISTORY: GetPostHistoryArgs,
}

if set(ARGUMENT_MODELS) != set(ToolName):
    raise RuntimeError("ARGUMENT_MODELS must cover every ToolName")


def _format_errors(exc: ValidationError) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "(arguments)",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def parse_arguments(tool: ToolName, raw: Any) -> BaseModel:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ToolValidationError(f"Arguments for '{tool.value}' must be an object")
    try:
        return ARGUMENT_MODELS[tool].model_validate(raw)
    except ValidationError as exc:
        errors = _format_errors(exc)
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        raise ToolValidationError(
            f"Invalid arguments for '{tool.value}': {summary}",
            details={"errors": errors},
        ) from exc
