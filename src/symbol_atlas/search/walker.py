"""Symbol tree walker.

Walks the namespace/type hierarchy depth first, tests every node and member
against the phrase matcher, de-duplicates by payload identity and returns
typed :class:`SymbolResult` records in a deterministic order.

Also hosts :func:`list_namespace`, the non-searching browse listing of one
namespace level.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from symbol_atlas.database import NodeKind
from symbol_atlas.schema import (
    FunctionPayload,
    GlobalPayload,
    MethodPayload,
    NamespacePayload,
    PropertyPayload,
    SymbolKind,
    SymbolResult,
    TypePayload,
    payload_identity,
)
from symbol_atlas.search.matcher import PhraseMatcher
from symbol_atlas.search.scoring import score_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from symbol_atlas.database import Method, Namespace, Property, SymbolDatabase, TypeNode
    from symbol_atlas.schema import Payload
    from symbol_atlas.search.tokenizer import PhraseGroup


@dataclass(frozen=True)
class ExclusionRules:
    """Which compiler-generated entries the walker drops.

    The defaults mirror what the script engine registers implicitly: a
    parameterless default constructor and a single-argument copy constructor
    for every value type, plus ``op*`` operator overloads.
    """

    skip_constructor_arg_counts: frozenset[int] = frozenset({0, 1})
    operator_prefix: str = "op"

    def skips_method(self, method: Method) -> bool:
        if method.is_constructor and len(method.args) in self.skip_constructor_arg_counts:
            return True
        return bool(self.operator_prefix) and method.name.startswith(self.operator_prefix)


_KIND_ORDER = {SymbolKind.TYPE: 0, SymbolKind.FUNCTION: 1, SymbolKind.PROPERTY: 2}


class _SymbolWalker:
    def __init__(self, database: SymbolDatabase, matcher: PhraseMatcher, rules: ExclusionRules) -> None:
        self.db = database
        self.matcher = matcher
        self.rules = rules
        self.seen: set[str] = set()
        self.type_results: list[SymbolResult] = []
        self.results: list[SymbolResult] = []

    def _emit(self, into: list[SymbolResult], result: SymbolResult) -> None:
        if result.identity in self.seen:
            return
        self.seen.add(result.identity)
        into.append(result)

    def visit(self, node: Namespace | TypeNode) -> None:
        prefix = ""
        node_matches = False
        match node.kind:
            case NodeKind.NAMESPACE:
                for child in node.children.values():
                    if not child.is_shadowing_type():
                        self.visit(child)
                if not node.is_root:
                    prefix = f"{node.qualified_name}::"
                    node_matches = self.matcher.can_complete(node.name) or self.matcher.can_complete(prefix)
            case NodeKind.TYPE:
                prefix = f"{node.qualified_name}."
                node_matches = self._type_matches(node)
                if node_matches:
                    self._visit_type_result(node)

        for symbol in node.iter_symbols():
            match symbol.kind:
                case NodeKind.METHOD:
                    self._visit_method(symbol, prefix, node_matches)
                case NodeKind.PROPERTY:
                    self._visit_property(symbol, prefix, node_matches)
                case NodeKind.TYPE:
                    if symbol.is_template_instantiation or symbol.is_delegate or symbol.is_event:
                        continue
                    if symbol.is_template:
                        # Generic members are listed on instantiations, not here.
                        if self._type_matches(symbol):
                            self._visit_type_result(symbol)
                        continue
                    self.visit(symbol)

    def _type_matches(self, type_node: TypeNode) -> bool:
        return self.matcher.can_complete(type_node.name) or self.matcher.can_complete(f"{type_node.qualified_name}.")

    def _visit_type_result(self, type_node: TypeNode) -> None:
        if type_node.is_delegate or type_node.is_event or type_node.is_primitive or type_node.is_template_instantiation:
            return
        namespace = "" if type_node.namespace.is_root else type_node.namespace.qualified_name
        payload = TypePayload(name=type_node.name, namespace=namespace, type_kind=type_node.type_kind)
        self._emit(
            self.type_results,
            SymbolResult(
                kind=SymbolKind.TYPE,
                label=type_node.display_name,
                identity=payload_identity(payload),
                payload=payload,
                source=type_node.source,
            ),
        )

    def _member_matches(self, name: str, prefix: str, node_matches: bool) -> bool:
        return node_matches or self.matcher.can_complete(name) or self.matcher.can_complete(prefix + name)

    def _visit_method(self, method: Method, prefix: str, node_matches: bool) -> None:
        if self.rules.skips_method(method):
            return
        # Mixins are also registered under the type they extend; the namespace entry is canonical.
        if method.is_mixin and method.containing_type is not None:
            return
        owner: TypeNode | None = None
        if method.is_constructor:
            owner = resolve_constructor_owner(self.db, method)
            if owner is not None and (owner.is_delegate or owner.is_event):
                return
        if not self._member_matches(method.name, prefix, node_matches):
            return

        payload = method_payload(method)
        if method.is_constructor:
            label = _constructor_label(method, owner, prefix)
        elif method.is_mixin and method.args:
            label = f"{method.args[0].typename}.{method.name}()"
        else:
            label = f"{prefix}{method.name}()"

        self._emit(
            self.results,
            SymbolResult(
                kind=SymbolKind.FUNCTION,
                label=label,
                identity=payload_identity(payload),
                payload=payload,
                source=method.source,
            ),
        )

    def _visit_property(self, prop: Property, prefix: str, node_matches: bool) -> None:
        if not self._member_matches(prop.name, prefix, node_matches):
            return
        payload = property_payload(prop)
        self._emit(
            self.results,
            SymbolResult(
                kind=SymbolKind.PROPERTY,
                label=f"{prefix}{prop.name}",
                identity=payload_identity(payload),
                payload=payload,
                source=prop.source,
            ),
        )


# ---------------------------------------------------------------------------
# Payload / label helpers
# ---------------------------------------------------------------------------


def method_payload(method: Method) -> Payload:
    owner = method.containing_type
    if owner is not None:
        namespace = "" if owner.namespace.is_root else owner.namespace.qualified_name
        return MethodPayload(
            type_name=owner.name,
            name=method.name,
            symbol_id=method.symbol_id,
            namespace=namespace,
            arg_types=method.arg_types,
        )
    if method.namespace is not None and not method.namespace.is_root:
        qualified = f"{method.namespace.qualified_name}::{method.name}"
    else:
        qualified = method.name
    return FunctionPayload(qualified_name=qualified, symbol_id=method.symbol_id, arg_types=method.arg_types)


def property_payload(prop: Property) -> Payload:
    if prop.containing_type is not None:
        return PropertyPayload(type_name=prop.containing_type.name, name=prop.name)
    if prop.namespace is not None and not prop.namespace.is_root:
        return GlobalPayload(qualified_name=f"{prop.namespace.qualified_name}::{prop.name}")
    return GlobalPayload(qualified_name=prop.name)


def resolve_constructor_owner(database: SymbolDatabase, method: Method) -> TypeNode | None:
    """Find the type a constructor builds.

    Order: containing type, the type shadowed by the declaring namespace, the
    declared return type (from the declaring namespace, then globally), the
    symbol name.
    """
    if method.containing_type is not None:
        return method.containing_type
    if method.namespace is not None and method.namespace.shadowed_type is not None:
        return method.namespace.shadowed_type
    if method.return_type:
        lookup_ns = method.namespace
        if lookup_ns is not None and lookup_ns.is_root:
            lookup_ns = None
        found = database.lookup_type(lookup_ns, method.return_type) or database.get_type_by_name(method.return_type)
        if found is not None:
            return found
    if method.name:
        return database.get_type_by_name(method.name)
    return None


def _constructor_label(method: Method, owner: TypeNode | None, prefix: str) -> str:
    args = ", ".join(arg.typename + (f" {arg.name}" if arg.name else "") for arg in method.args)
    if owner is not None:
        type_name = owner.qualified_name
    elif method.return_type:
        if method.namespace is not None and not method.namespace.is_root:
            type_name = f"{method.namespace.qualified_name}::{method.return_type}"
        else:
            type_name = method.return_type
    else:
        type_name = method.name
    if not type_name and prefix:
        type_name = prefix.removesuffix("::").removesuffix(".")
    return f"<ctor>{type_name}({args})"


def _search_name(result: SymbolResult) -> str:
    """Name a result is ranked by: ``Ns::Type`` for types, the label otherwise."""
    payload = result.payload
    if isinstance(payload, TypePayload):
        return f"{payload.namespace}::{payload.name}" if payload.namespace else payload.name
    return result.label


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def search_symbols(
    database: SymbolDatabase,
    groups: Sequence[PhraseGroup],
    *,
    rules: ExclusionRules | None = None,
    match_all: bool = False,
) -> list[SymbolResult]:
    """Find every symbol matching any of *groups*.

    Types come first, then functions, then properties; within each kind by
    descending structured score, then label.  ``index`` on each returned
    result records its position for later stable re-ranking.
    """
    matcher = PhraseMatcher.match_all() if match_all else PhraseMatcher(groups)
    if not match_all and not matcher.groups:
        return []

    walker = _SymbolWalker(database, matcher, rules or ExclusionRules())
    walker.visit(database.root)

    scored = [
        replace(result, score=float(score_name(_search_name(result), groups)))
        for result in walker.type_results + walker.results
    ]
    scored.sort(key=lambda r: (_KIND_ORDER.get(r.kind, 3), -r.score, r.label))
    return [replace(result, index=i) for i, result in enumerate(scored)]


_ROOT_MARKER = re.compile(r"__(ns|fun|prop)_")


def list_namespace(database: SymbolDatabase, root: str = "") -> list[SymbolResult]:
    """Browse one namespace level.

    Lists non-shadowing child namespaces (alphabetically when browsing the
    root, which lists nothing else) and, for a named namespace, its global
    functions and variables.
    """
    root = _ROOT_MARKER.sub("", root, count=1)

    namespace = database.lookup_namespace(root) if root else database.root
    if namespace is None:
        return []

    listing: list[SymbolResult] = []
    for child in namespace.children.values():
        if child.is_shadowing_type():
            continue
        payload = NamespacePayload(qualified_name=child.qualified_name)
        listing.append(
            SymbolResult(
                kind=SymbolKind.NAMESPACE,
                label=f"{child.qualified_name}::",
                identity=payload_identity(payload),
                payload=payload,
            )
        )

    if namespace.is_root:
        listing.sort(key=lambda r: r.label)
        return [replace(result, index=i) for i, result in enumerate(listing)]

    for symbol in namespace.iter_symbols():
        match symbol.kind:
            case NodeKind.METHOD if not symbol.is_mixin:
                payload = method_payload(symbol)
                listing.append(
                    SymbolResult(
                        kind=SymbolKind.FUNCTION,
                        label=f"{symbol.name}()",
                        identity=payload_identity(payload),
                        payload=payload,
                        source=symbol.source,
                    )
                )
            case NodeKind.PROPERTY:
                payload = property_payload(symbol)
                listing.append(
                    SymbolResult(
                        kind=SymbolKind.PROPERTY,
                        label=symbol.name,
                        identity=payload_identity(payload),
                        payload=payload,
                        source=symbol.source,
                    )
                )
    return [replace(result, index=i) for i, result in enumerate(listing)]
