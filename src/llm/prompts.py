"""Prompt construction for the filter-envelope request."""

from __future__ import annotations

import json
from pathlib import Path
from string import Template

SYSTEM_PROMPT = (
    "You are a strict JSON generator. Always return a single JSON object and nothing else. "
    "No markdown, no comments, no trailing commas."
)

_EXAMPLES = """
Examples (follow the columns list strictly):

User: "skills include coding"
Return:
{"kind":"filter","entity":"workers","filter":{"op":"includes","field":"Skills","value":"coding"}}

User: "duration between 2 and 5 and preferred phases includes 3"
Return:
{"kind":"filter","entity":"tasks","filter":{"op":"and","children":[
  {"op":"between","field":"Duration","from":2,"to":5},
  {"op":"includes","field":"PreferredPhases","value":3}
]}}
""".strip()


def _load_template() -> Template:
    prompt_path = Path(__file__).resolve().parent / "prompt_filter_v1.md"
    return Template(prompt_path.read_text(encoding="utf-8"))


def build_user_prompt(entity: str, text: str, columns: list[str], *, with_examples: bool) -> str:
    """Render the user prompt; the retry variant appends worked examples."""

    prompt = _load_template().substitute(
        entity=entity,
        columns=json.dumps(columns, ensure_ascii=False),
        query=json.dumps(text, ensure_ascii=False),
    ).strip()
    if not with_examples:
        return prompt
    return prompt + "\n\n" + _EXAMPLES
