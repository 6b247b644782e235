"""Result schema for Symbol Atlas.

Defines kind discriminators, the tagged payload union used to request symbol
details, and the result/page records handed between the search stages.
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields
from enum import StrEnum
from typing import Any, ClassVar

# ---------------------------------------------------------------------------
# Kind discriminators
# ---------------------------------------------------------------------------


class SymbolKind(StrEnum):
    TYPE = "type"
    FUNCTION = "function"
    PROPERTY = "property"
    NAMESPACE = "namespace"


class SearchKind(StrEnum):
    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"
    METHOD = "method"
    FUNCTION = "function"
    PROPERTY = "property"
    GLOBAL_VARIABLE = "globalvariable"


_SEARCH_KIND_NAMES = frozenset(kind.value for kind in SearchKind)


class TypeDefKind(StrEnum):
    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"


class SymbolSource(StrEnum):
    NATIVE = "native"
    SCRIPT = "script"


class SearchSource(StrEnum):
    NATIVE = "native"
    SCRIPT = "script"
    BOTH = "both"


def normalize_kinds(raw: Any) -> frozenset[SearchKind]:
    """Map a kind name or list of names to a set of :class:`SearchKind`.

    Names are trimmed and compared case-insensitively; unknown names and
    non-string entries are dropped.
    """
    values = [raw] if isinstance(raw, str) else (raw or [])
    kinds: set[SearchKind] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        normalized = value.strip().lower()
        if normalized in _SEARCH_KIND_NAMES:
            kinds.add(SearchKind(normalized))
    return frozenset(kinds)


# ---------------------------------------------------------------------------
# Payloads (what the detail provider needs to render one symbol)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TypePayload:
    tag: ClassVar[str] = "type"

    name: str
    namespace: str
    type_kind: TypeDefKind


@dataclass(frozen=True)
class MethodPayload:
    tag: ClassVar[str] = "method"

    type_name: str
    name: str
    symbol_id: int
    namespace: str
    arg_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class FunctionPayload:
    tag: ClassVar[str] = "function"

    qualified_name: str
    symbol_id: int
    arg_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class PropertyPayload:
    tag: ClassVar[str] = "property"

    type_name: str
    name: str


@dataclass(frozen=True)
class GlobalPayload:
    tag: ClassVar[str] = "global"

    qualified_name: str


@dataclass(frozen=True)
class NamespacePayload:
    tag: ClassVar[str] = "namespace"

    qualified_name: str


Payload = TypePayload | MethodPayload | FunctionPayload | PropertyPayload | GlobalPayload | NamespacePayload

_PAYLOAD_TYPES: dict[str, type[Payload]] = {
    cls.tag: cls
    for cls in (TypePayload, MethodPayload, FunctionPayload, PropertyPayload, GlobalPayload, NamespacePayload)
}


def payload_identity(payload: Payload) -> str:
    """Stable dedup key built from the payload's tag and fields."""
    match payload:
        case TypePayload(name=name, namespace=namespace):
            parts = ["type", name, namespace]
        case MethodPayload():
            parts = [
                "method",
                payload.type_name,
                payload.name,
                str(payload.symbol_id),
                payload.namespace,
                ",".join(payload.arg_types),
            ]
        case FunctionPayload():
            parts = ["function", payload.qualified_name, str(payload.symbol_id), ",".join(payload.arg_types)]
        case PropertyPayload(type_name=type_name, name=name):
            parts = ["property", type_name, name]
        case GlobalPayload(qualified_name=qualified_name):
            parts = ["global", qualified_name]
        case NamespacePayload(qualified_name=qualified_name):
            parts = ["namespace", qualified_name]
    return "|".join(parts)


def result_kind(payload: Payload) -> SearchKind | None:
    """Kind-filter category of a payload, or ``None`` when it has none."""
    match payload:
        case MethodPayload():
            return SearchKind.METHOD
        case FunctionPayload():
            return SearchKind.FUNCTION
        case PropertyPayload():
            return SearchKind.PROPERTY
        case GlobalPayload():
            return SearchKind.GLOBAL_VARIABLE
        case TypePayload(type_kind=type_kind):
            return SearchKind(type_kind.value)
        case NamespacePayload():
            return None


def payload_to_data(payload: Payload) -> dict[str, Any]:
    """Plain-dict wire form of a payload (``{"tag": ..., <fields>}``)."""
    data: dict[str, Any] = {"tag": payload.tag}
    for spec in fields(payload):
        name = spec.name
        value = getattr(payload, name)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, StrEnum):
            value = value.value
        data[name] = value
    return data


def payload_from_data(data: dict[str, Any]) -> Payload:
    """Inverse of :func:`payload_to_data`.

    Raises ``ValueError`` for unknown tags or missing/invalid fields.
    """
    if not isinstance(data, dict):
        msg = f"Payload data must be an object, got {type(data).__name__}"
        raise ValueError(msg)  # noqa: TRY004
    tag = data.get("tag")
    cls = _PAYLOAD_TYPES.get(tag) if isinstance(tag, str) else None
    if cls is None:
        msg = f"Unknown payload tag: {tag!r}"
        raise ValueError(msg)

    kwargs: dict[str, Any] = {}
    for spec in fields(cls):
        name = spec.name
        if name not in data:
            if spec.default is not MISSING or spec.default_factory is not MISSING:
                continue
            msg = f"Payload {tag!r} is missing field {name!r}"
            raise ValueError(msg)
        kwargs[name] = data[name]

    try:
        if "arg_types" in kwargs:
            kwargs["arg_types"] = tuple(str(arg) for arg in kwargs["arg_types"])
        if "type_kind" in kwargs:
            kwargs["type_kind"] = TypeDefKind(str(kwargs["type_kind"]).lower())
        if "symbol_id" in kwargs:
            kwargs["symbol_id"] = int(kwargs["symbol_id"])
    except (TypeError, ValueError) as exc:
        msg = f"Payload {tag!r} has an invalid field: {exc}"
        raise ValueError(msg) from exc
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Results and pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SymbolResult:
    """A single search hit.

    ``identity`` is derived from ``payload`` (never from ``label``) so that
    overloads sharing a display label stay distinct.
    """

    kind: SymbolKind
    label: str
    identity: str
    payload: Payload
    source: SymbolSource = SymbolSource.NATIVE
    score: float = -1.0
    index: int = 0


@dataclass(frozen=True)
class ParsedDetail:
    signature: str
    docs: str | None = None


@dataclass(frozen=True)
class PageItem:
    signature: str
    docs: str | None = None
    type: str | None = None
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"signature": self.signature}
        if self.docs is not None:
            out["docs"] = self.docs
        if self.type is not None:
            out["type"] = self.type
        if self.data is not None:
            out["data"] = self.data
        return out


@dataclass(frozen=True)
class SearchPage:
    """One page of a cached, ranked result list."""

    query: str
    start_index: int
    next_start_index: int | None
    remaining_count: int
    total: int
    returned: int
    truncated: bool
    items: list[PageItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase response shape."""
        return {
            "query": self.query,
            "searchIndex": self.start_index,
            "nextSearchIndex": self.next_start_index,
            "remainingCount": self.remaining_count,
            "total": self.total,
            "returned": self.returned,
            "truncated": self.truncated,
            "items": [item.to_dict() for item in self.items],
        }
