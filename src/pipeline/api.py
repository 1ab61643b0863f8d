"""Request/response boundary of the filter pipeline.

Callers send `{entity, text, schema}` and get back either a filter envelope tagged with its source,
or an error payload with a non-success status. Statuses follow HTTP conventions so the boundary can
sit behind any transport.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.pipeline.orchestrator import FilterPipeline, QueryInputError, UnresolvableQueryError
from src.query.dsl import Entity
from src.query.schema import FieldSchema

logger = logging.getLogger(__name__)


class NLRequest(BaseModel):
    """Validated request payload."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    entity: Entity
    text: str = Field(min_length=1)
    columns: list[FieldSchema] = Field(default_factory=list, alias="schema")


def _invalid(details: Any) -> tuple[int, dict[str, Any]]:
    return 400, {"error": "Invalid request", "reason": "invalid_request", "details": details}


async def handle_nl_request(payload: Any, pipeline: FilterPipeline) -> tuple[int, dict[str, Any]]:
    """Resolve one request into `(status, body)`."""

    try:
        request = NLRequest.model_validate(payload)
    except ValidationError as exc:
        return _invalid(exc.errors(include_url=False, include_context=False))

    try:
        resolved = await pipeline.resolve(request.entity, request.text, request.columns)
    except QueryInputError as exc:
        return _invalid(str(exc))
    except UnresolvableQueryError as exc:
        return 422, {
            "error": "AI did not return a valid filter JSON",
            "reason": exc.reason,
            "raw_first": exc.raw_first,
            "raw_retry": exc.raw_retry,
        }

    return 200, resolved.to_response(request.entity)
