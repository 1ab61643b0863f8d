"""Filter expression grammar (Pydantic models).

A filter is a tree of nodes discriminated by `op`. Composite nodes (`and`, `or`, `not`) own
children; leaf nodes own a `field` plus the operands of their operator. The AI tier, the
deterministic translator and the heuristics all produce this shape, and the evaluator consumes it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class Entity(StrEnum):
    """The three record kinds a query can target."""

    clients = "clients"
    workers = "workers"
    tasks = "tasks"


Comparator = Literal[">", ">=", "<", "<=", "==", "!="]
MatchOp = Literal["includes", "contains", "startsWith", "endsWith", "regex"]
SetOp = Literal["in", "nin"]
PresenceOp = Literal["exists", "notExists"]


class _Node(BaseModel):
    # Model output carries every optional key on every node; unknown keys are ignored.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the wire shape (`from`, no unset operands)."""

        return self.model_dump(by_alias=True, exclude_none=True)


class AndNode(_Node):
    op: Literal["and"] = "and"
    children: list[FilterNode] = Field(default_factory=list)


class OrNode(_Node):
    op: Literal["or"] = "or"
    children: list[FilterNode] = Field(default_factory=list)


class NotNode(_Node):
    """Logical negation. Strictly unary: exactly one child."""

    op: Literal["not"] = "not"
    children: list[FilterNode]

    @field_validator("children")
    @classmethod
    def validate_unary(cls, value: list[FilterNode]) -> list[FilterNode]:
        if len(value) != 1:
            raise ValueError("not requires exactly one child")
        return value


class _Leaf(_Node):
    field: str = Field(min_length=1)


class CmpNode(_Leaf):
    op: Literal["cmp"] = "cmp"
    cmp: Comparator = "=="
    value: Any = None

    @field_validator("cmp", mode="before")
    @classmethod
    def normalize_equals(cls, value: Any) -> Any:
        return "==" if value == "=" else value


class MatchNode(_Leaf):
    """Single-needle string/list predicates."""

    op: MatchOp
    value: Any = None


class SetNode(_Leaf):
    op: SetOp
    values: list[Any] = Field(default_factory=list)


class PresenceNode(_Leaf):
    op: PresenceOp


class BetweenNode(_Leaf):
    op: Literal["between"] = "between"
    from_: Any = Field(default=None, alias="from")
    to: Any = None


CompositeNode = Union[AndNode, OrNode, NotNode]
LeafNode = Union[CmpNode, MatchNode, SetNode, PresenceNode, BetweenNode]

FilterNode = Annotated[
    Union[AndNode, OrNode, NotNode, CmpNode, MatchNode, SetNode, PresenceNode, BetweenNode],
    Field(discriminator="op"),
]

for _model in (AndNode, OrNode, NotNode):
    _model.model_rebuild()


class FilterEnvelope(BaseModel):
    """The single JSON object the text-generation service is asked to return."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["filter"]
    entity: str
    filter: FilterNode


_FILTER_ADAPTER: TypeAdapter[Any] = TypeAdapter(FilterNode)


def filter_from_obj(obj: Any) -> CompositeNode | LeafNode:
    """Validate an arbitrary decoded JSON object as a filter node.

    Raises:
        pydantic.ValidationError: If the object is not a well-formed filter tree.
    """

    return _FILTER_ADAPTER.validate_python(obj)


def is_composite(node: Any) -> bool:
    return isinstance(node, (AndNode, OrNode, NotNode))
