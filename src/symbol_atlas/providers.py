"""Symbol-search and detail providers.

The search engine talks to exactly two collaborators: a symbol provider
(query text → ranked :class:`SymbolResult` list) and a detail provider
(payload → formatted detail blob).  The ``Local*`` implementations serve both
from an in-memory :class:`SymbolDatabase`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from symbol_atlas.database import Method, Property
from symbol_atlas.schema import (
    FunctionPayload,
    GlobalPayload,
    MethodPayload,
    NamespacePayload,
    PropertyPayload,
    TypeDefKind,
    TypePayload,
)
from symbol_atlas.search.details import SNIPPET_HEADER
from symbol_atlas.search.tokenizer import tokenize
from symbol_atlas.search.walker import ExclusionRules, search_symbols

if TYPE_CHECKING:
    from collections.abc import Sequence

    from symbol_atlas.database import SymbolDatabase, TypeNode
    from symbol_atlas.schema import Payload, SymbolResult


@runtime_checkable
class SymbolProvider(Protocol):
    async def search(self, query: str) -> list[SymbolResult]: ...

    async def search_all(self) -> list[SymbolResult]: ...


@runtime_checkable
class DetailProvider(Protocol):
    supports_batch: bool

    async def get_details(self, payload: Payload) -> str: ...

    async def get_details_batch(self, payloads: Sequence[Payload]) -> list[str]: ...


# ---------------------------------------------------------------------------
# Local implementations
# ---------------------------------------------------------------------------


class LocalSymbolProvider:
    """Run the tokenizer and tree walker over an in-memory database."""

    def __init__(self, database: SymbolDatabase, rules: ExclusionRules | None = None) -> None:
        self.database = database
        self.rules = rules or ExclusionRules()

    async def search(self, query: str) -> list[SymbolResult]:
        groups = tokenize(query)
        if not groups:
            return []
        return search_symbols(self.database, groups, rules=self.rules)

    async def search_all(self) -> list[SymbolResult]:
        return search_symbols(self.database, [], rules=self.rules, match_all=True)


class LocalDetailProvider:
    """Render detail blobs straight from the database."""

    def __init__(self, database: SymbolDatabase, *, batch: bool = True) -> None:
        self.database = database
        self.supports_batch = batch

    async def get_details(self, payload: Payload) -> str:
        return render_details(self.database, payload)

    async def get_details_batch(self, payloads: Sequence[Payload]) -> list[str]:
        return [render_details(self.database, payload) for payload in payloads]


# ---------------------------------------------------------------------------
# Detail rendering
# ---------------------------------------------------------------------------


def _snippet(body: str, documentation: str = "") -> str:
    text = f"{SNIPPET_HEADER}\n{body}\n```\n"
    if documentation:
        text += f"{documentation.strip()}\n"
    return text


def _find_type(db: SymbolDatabase, name: str, namespace: str) -> TypeNode | None:
    ns = db.lookup_namespace(namespace) if namespace else db.root
    found = db.lookup_type(ns, name) if ns is not None else None
    return found or db.get_type_by_name(name)


def _pick_method(candidates: Sequence[object], symbol_id: int, arg_types: Sequence[str]) -> Method | None:
    """Overload resolution: symbol id, then argument types, then last candidate."""
    methods = [symbol for symbol in candidates if isinstance(symbol, Method)]
    if symbol_id:
        for method in methods:
            if method.symbol_id == symbol_id:
                return method
    if arg_types:
        for method in methods:
            if method.arg_types == tuple(arg_types):
                return method
    return methods[-1] if methods else None


def _format_method(method: Method) -> str:
    if method.containing_type is not None:
        owner = f"{method.containing_type.qualified_name}."
    elif method.is_mixin and method.args:
        owner = f"{method.args[0].typename}."
    elif method.namespace is not None and not method.namespace.is_root:
        owner = f"{method.namespace.qualified_name}::"
    else:
        owner = ""

    args = method.args[1:] if method.is_mixin else method.args
    if args:
        params = ",".join(f"\n\t\t{arg.format()}" for arg in args)
        call = f"({params}\n)"
    else:
        call = "()"
    return f"{method.return_type} {owner}{method.name}{call}"


def _render_type(db: SymbolDatabase, payload: TypePayload) -> str:
    type_node = _find_type(db, payload.name, payload.namespace)
    if type_node is None:
        return ""
    header = f"{type_node.type_kind.value} {type_node.qualified_name}"
    if type_node.supertype and type_node.type_kind is not TypeDefKind.ENUM:
        header += f" : {type_node.supertype}"
    return _snippet(header, type_node.documentation)


def render_details(db: SymbolDatabase, payload: Payload) -> str:
    """Detail blob for *payload*, or ``""`` when the symbol is gone."""
    match payload:
        case NamespacePayload(qualified_name=qualified_name):
            namespace = db.lookup_namespace(qualified_name)
            return namespace.documentation if namespace is not None else ""
        case TypePayload():
            return _render_type(db, payload)
        case MethodPayload():
            type_node = _find_type(db, payload.type_name, payload.namespace)
            candidates = type_node.find_symbols(payload.name) if type_node is not None else []
            method = _pick_method(candidates, payload.symbol_id, payload.arg_types)
            return _snippet(_format_method(method), method.documentation) if method is not None else ""
        case FunctionPayload():
            candidates = db.lookup_global_symbols(payload.qualified_name)
            method = _pick_method(candidates, payload.symbol_id, payload.arg_types)
            return _snippet(_format_method(method), method.documentation) if method is not None else ""
        case GlobalPayload(qualified_name=qualified_name):
            for symbol in db.lookup_global_symbols(qualified_name):
                if isinstance(symbol, Property):
                    ns = symbol.namespace
                    prefix = "" if ns is None or ns.is_root else f"{ns.qualified_name}::"
                    return _snippet(symbol.format(prefix), symbol.documentation)
            return ""
        case PropertyPayload(type_name=type_name, name=name):
            type_node = db.get_type_by_name(type_name)
            if type_node is None:
                return ""
            for symbol in type_node.find_symbols(name):
                if isinstance(symbol, Property):
                    return _snippet(symbol.format(f"{type_node.qualified_name}."), symbol.documentation)
            return ""
    return ""
