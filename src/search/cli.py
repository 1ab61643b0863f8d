"""Run a single English query against a dataset file and print the result as JSON.

Example:
    python -m src.search.cli --path data.json --entity workers "skills include coding"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from dotenv import load_dotenv

from src.config.logging import configure_logging
from src.llm.client import LLMConfig, OllamaClient
from src.pipeline.orchestrator import FilterPipeline, QueryInputError, UnresolvableQueryError
from src.query.dsl import Entity
from src.query.schema import infer_schema
from src.search.session import SearchSession
from src.store.dataset import DatasetError, load_dataset


def _llm_from_env() -> OllamaClient:
    defaults = LLMConfig()
    return OllamaClient(
        LLMConfig(
            base_url=os.getenv("LLM_BASE_URL") or defaults.base_url,
            model=os.getenv("LLM_MODEL") or defaults.model,
            timeout_s=float(os.getenv("LLM_TIMEOUT_S") or defaults.timeout_s),
        )
    )


async def run_query(
        *,
        path: str,
        entity: Entity,
        text: str,
        limit: int,
        use_llm: bool,
) -> dict[str, Any]:
    """Load `path`, run one search and return a JSON-serializable report.

    Raises:
        QueryInputError: If the query is empty or the entity has no rows.
        UnresolvableQueryError: If no tier produced a filter.
    """

    store = load_dataset(path)
    llm = _llm_from_env() if use_llm else None
    pipeline = FilterPipeline(llm, timeout_s=llm.config.timeout_s if llm else 25.0)

    outcome = await SearchSession(store, pipeline).search(entity, text)
    assert outcome is not None
    return {
        "kind": "filter",
        "entity": str(entity),
        "filter": outcome.filter.to_dict(),
        "source": outcome.source,
        "softened": outcome.softened,
        "count": outcome.count,
        "rows": outcome.rows[:limit],
    }


def describe_schema(*, path: str, entity: Entity, max_samples: int) -> list[dict[str, Any]]:
    store = load_dataset(path)
    return [field.model_dump(mode="json") for field in infer_schema(store.rows(entity), max_samples)]


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""

    parser = argparse.ArgumentParser(description="Filter a dataset sheet with a plain-English query.")
    parser.add_argument("query", nargs="?", default="", help="The query, e.g. \"duration > 2\".")
    parser.add_argument("--path", help="Dataset JSON file (defaults to DATASET_PATH).")
    parser.add_argument(
        "--entity",
        choices=[entity.value for entity in Entity],
        default=Entity.tasks.value,
        help="Sheet to search.",
    )
    parser.add_argument("--limit", type=int, default=10, help="Number of matching rows to print.")
    parser.add_argument("--no-llm", action="store_true", help="Skip the AI tier.")
    parser.add_argument("--schema", action="store_true", help="Print the inferred schema and exit.")
    args = parser.parse_args(argv)

    load_dotenv(".env")
    configure_logging(os.getenv("LOG_LEVEL") or "WARNING")

    path = args.path or os.getenv("DATASET_PATH")
    if not path:
        parser.error("--path or DATASET_PATH is required")
    entity = Entity(args.entity)

    try:
        if args.schema:
            report: Any = describe_schema(path=path, entity=entity, max_samples=4)
        else:
            report = asyncio.run(
                run_query(path=path, entity=entity, text=args.query, limit=args.limit, use_llm=not args.no_llm)
            )
    except (QueryInputError, DatasetError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except UnresolvableQueryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(report, ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
