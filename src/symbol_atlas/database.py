"""In-memory symbol database for Symbol Atlas.

A read-only (once loaded) hierarchy of namespaces, types, methods and
properties.  Every node carries a ``kind`` discriminator (:class:`NodeKind`)
that the walker dispatches on with ``match``.

Namespaces that share their qualified name with a type *shadow* that type:
their symbols (static functions, constructors) are reached through the type
and the namespace itself is never listed on its own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from loguru import logger

from symbol_atlas.schema import SymbolSource, TypeDefKind

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class NodeKind(StrEnum):
    NAMESPACE = "namespace"
    TYPE = "type"
    METHOD = "method"
    PROPERTY = "property"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Argument:
    typename: str
    name: str = ""
    default: str = ""

    def format(self) -> str:
        text = self.typename
        if self.name:
            text += f" {self.name}"
        if self.default:
            text += f" = {self.default}"
        return text


@dataclass(eq=False)
class Method:
    """A method on a type, or a global function when ``containing_type`` is None."""

    kind: ClassVar[NodeKind] = NodeKind.METHOD

    name: str
    symbol_id: int
    return_type: str = "void"
    args: list[Argument] = field(default_factory=list)
    containing_type: TypeNode | None = field(default=None, repr=False)
    namespace: Namespace | None = field(default=None, repr=False)
    is_constructor: bool = False
    is_mixin: bool = False
    documentation: str = ""
    declared_module: str | None = None

    @property
    def source(self) -> SymbolSource:
        return SymbolSource.SCRIPT if self.declared_module else SymbolSource.NATIVE

    @property
    def arg_types(self) -> tuple[str, ...]:
        return tuple(arg.typename for arg in self.args)


@dataclass(eq=False)
class Property:
    """A property on a type, or a global variable when ``containing_type`` is None."""

    kind: ClassVar[NodeKind] = NodeKind.PROPERTY

    name: str
    typename: str
    containing_type: TypeNode | None = field(default=None, repr=False)
    namespace: Namespace | None = field(default=None, repr=False)
    documentation: str = ""
    declared_module: str | None = None

    @property
    def source(self) -> SymbolSource:
        return SymbolSource.SCRIPT if self.declared_module else SymbolSource.NATIVE

    def format(self, prefix: str = "") -> str:
        return f"{self.typename} {prefix}{self.name}"


@dataclass(eq=False)
class TypeNode:
    kind: ClassVar[NodeKind] = NodeKind.TYPE

    name: str
    namespace: Namespace = field(repr=False)
    type_kind: TypeDefKind = TypeDefKind.CLASS
    supertype: str = ""
    documentation: str = ""
    is_delegate: bool = False
    is_event: bool = False
    is_primitive: bool = False
    is_template_instantiation: bool = False
    template_subtypes: list[str] = field(default_factory=list)
    members: list[Method | Property] = field(default_factory=list, repr=False)
    nested_types: list[TypeNode] = field(default_factory=list, repr=False)
    declared_module: str | None = None

    @property
    def source(self) -> SymbolSource:
        return SymbolSource.SCRIPT if self.declared_module else SymbolSource.NATIVE

    @property
    def is_template(self) -> bool:
        return bool(self.template_subtypes) and not self.is_template_instantiation

    @property
    def qualified_name(self) -> str:
        """Name including its namespace (``Ns::Name``), bare for root types."""
        if self.namespace.is_root:
            return self.name
        return f"{self.namespace.qualified_name}::{self.name}"

    @property
    def display_name(self) -> str:
        if self.is_template:
            return format_template_typename(self.name, self.template_subtypes)
        return self.name

    def shadow_namespace(self) -> Namespace | None:
        child = self.namespace.children.get(self.name)
        if child is not None and child.shadowed_type is self:
            return child
        return None

    def iter_symbols(self) -> Iterator[Method | Property | TypeNode]:
        """Members, then nested types, then the symbols of the shadowing namespace."""
        yield from self.members
        yield from self.nested_types
        shadow = self.shadow_namespace()
        if shadow is not None:
            yield from shadow.iter_symbols()

    def find_symbols(self, name: str) -> list[Method | Property | TypeNode]:
        return [symbol for symbol in self.iter_symbols() if symbol.name == name]


@dataclass(eq=False)
class Namespace:
    kind: ClassVar[NodeKind] = NodeKind.NAMESPACE

    name: str
    parent: Namespace | None = field(default=None, repr=False)
    children: dict[str, Namespace] = field(default_factory=dict, repr=False)
    symbols: list[Method | Property | TypeNode] = field(default_factory=list, repr=False)
    types: dict[str, TypeNode] = field(default_factory=dict, repr=False)
    documentation: str = ""
    shadowed_type: TypeNode | None = field(default=None, repr=False)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def qualified_name(self) -> str:
        if self.parent is None:
            return ""
        if self.parent.is_root:
            return self.name
        return f"{self.parent.qualified_name}::{self.name}"

    def is_shadowing_type(self) -> bool:
        return self.shadowed_type is not None

    def iter_symbols(self) -> Iterator[Method | Property | TypeNode]:
        yield from self.symbols


def format_template_typename(name: str, subtypes: list[str]) -> str:
    return f"{name}<{', '.join(subtypes)}>"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class SymbolDatabase:
    """Hierarchical symbol store rooted at an unnamed namespace."""

    def __init__(self) -> None:
        self.root = Namespace(name="")
        self._types_by_name: dict[str, list[TypeNode]] = {}
        self._next_id = 1

    def __repr__(self) -> str:
        return f"SymbolDatabase(types={sum(len(v) for v in self._types_by_name.values())})"

    def _allocate_id(self, symbol_id: int | None) -> int:
        if symbol_id is None:
            symbol_id = self._next_id
        self._next_id = max(self._next_id, symbol_id + 1)
        return symbol_id

    # -- construction -------------------------------------------------------

    def add_namespace(self, qualified_name: str, *, documentation: str = "") -> Namespace:
        """Return the namespace for *qualified_name*, creating missing parts."""
        current = self.root
        for part in _split_namespace(qualified_name):
            child = current.children.get(part)
            if child is None:
                child = Namespace(name=part, parent=current)
                child.shadowed_type = current.types.get(part)
                current.children[part] = child
            current = child
        if documentation:
            current.documentation = documentation
        return current

    def add_type(
        self,
        name: str,
        namespace: str = "",
        *,
        outer: TypeNode | None = None,
        **fields: Any,
    ) -> TypeNode:
        """Register a type in *namespace*, or nested inside *outer* when given."""
        owner_ns = outer.namespace if outer is not None else self.add_namespace(namespace)
        type_node = TypeNode(name=name, namespace=owner_ns, **fields)
        if outer is not None:
            outer.nested_types.append(type_node)
        else:
            owner_ns.symbols.append(type_node)
            owner_ns.types[name] = type_node
            shadow = owner_ns.children.get(name)
            if shadow is not None:
                shadow.shadowed_type = type_node
        self._types_by_name.setdefault(name, []).append(type_node)
        return type_node

    def add_method(
        self,
        owner: TypeNode,
        name: str,
        *,
        return_type: str = "void",
        args: list[Argument] | None = None,
        symbol_id: int | None = None,
        **fields: Any,
    ) -> Method:
        method = Method(
            name=name,
            symbol_id=self._allocate_id(symbol_id),
            return_type=return_type,
            args=args or [],
            containing_type=owner,
            namespace=owner.namespace,
            **fields,
        )
        owner.members.append(method)
        return method

    def add_function(
        self,
        namespace: str,
        name: str,
        *,
        return_type: str = "void",
        args: list[Argument] | None = None,
        symbol_id: int | None = None,
        **fields: Any,
    ) -> Method:
        ns = self.add_namespace(namespace)
        method = Method(
            name=name,
            symbol_id=self._allocate_id(symbol_id),
            return_type=return_type,
            args=args or [],
            namespace=ns,
            **fields,
        )
        ns.symbols.append(method)
        return method

    def add_property(self, owner: TypeNode, name: str, typename: str, **fields: Any) -> Property:
        prop = Property(name=name, typename=typename, containing_type=owner, namespace=owner.namespace, **fields)
        owner.members.append(prop)
        return prop

    def add_global(self, namespace: str, name: str, typename: str, **fields: Any) -> Property:
        ns = self.add_namespace(namespace)
        prop = Property(name=name, typename=typename, namespace=ns, **fields)
        ns.symbols.append(prop)
        return prop

    # -- lookup -------------------------------------------------------------

    def lookup_namespace(self, qualified_name: str) -> Namespace | None:
        current = self.root
        for part in _split_namespace(qualified_name):
            child = current.children.get(part)
            if child is None:
                return None
            current = child
        return current

    def lookup_type(self, namespace: Namespace | None, name: str) -> TypeNode | None:
        """Resolve *name* from *namespace* outwards (root when ``None``).

        *name* may itself be qualified (``Ns::Type``).
        """
        if "::" in name:
            ns_part, _, type_name = name.rpartition("::")
            target = self.lookup_namespace(ns_part)
            return target.types.get(type_name) if target is not None else None

        current = namespace or self.root
        while current is not None:
            found = current.types.get(name)
            if found is not None:
                return found
            current = current.parent
        return None

    def get_type_by_name(self, name: str) -> TypeNode | None:
        candidates = self._types_by_name.get(name)
        return candidates[0] if candidates else None

    def lookup_global_symbols(self, qualified_name: str) -> list[Method | Property]:
        """Functions and global variables registered under ``Ns::name``."""
        ns_part, _, name = qualified_name.rpartition("::")
        namespace = self.lookup_namespace(ns_part)
        if namespace is None:
            return []
        return [
            symbol
            for symbol in namespace.iter_symbols()
            if isinstance(symbol, Method | Property) and symbol.name == name
        ]


def _split_namespace(qualified_name: str) -> list[str]:
    return [part for part in qualified_name.split("::") if part]


# ---------------------------------------------------------------------------
# JSON loading
# ---------------------------------------------------------------------------


def _parse_args(raw: list[dict[str, Any]] | None) -> list[Argument]:
    return [
        Argument(typename=arg["type"], name=arg.get("name", ""), default=arg.get("default", ""))
        for arg in raw or []
    ]


def _method_fields(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "return_type": raw.get("return_type", "void"),
        "args": _parse_args(raw.get("args")),
        "symbol_id": raw.get("id"),
        "is_constructor": bool(raw.get("constructor", False)),
        "is_mixin": bool(raw.get("mixin", False)),
        "documentation": raw.get("documentation", ""),
        "declared_module": raw.get("module"),
    }


def _property_fields(raw: dict[str, Any]) -> dict[str, Any]:
    return {"documentation": raw.get("documentation", ""), "declared_module": raw.get("module")}


def _load_type(db: SymbolDatabase, raw: dict[str, Any], namespace: str, outer: TypeNode | None = None) -> None:
    type_node = db.add_type(
        raw["name"],
        namespace,
        outer=outer,
        type_kind=TypeDefKind(raw.get("kind", "class").lower()),
        supertype=raw.get("supertype", ""),
        documentation=raw.get("documentation", ""),
        is_delegate=bool(raw.get("delegate", False)),
        is_event=bool(raw.get("event", False)),
        is_primitive=bool(raw.get("primitive", False)),
        is_template_instantiation=bool(raw.get("template_instantiation", False)),
        template_subtypes=list(raw.get("template_subtypes", [])),
        declared_module=raw.get("module"),
    )
    for method in raw.get("methods", []):
        db.add_method(type_node, method["name"], **_method_fields(method))
    for prop in raw.get("properties", []):
        db.add_property(type_node, prop["name"], prop["type"], **_property_fields(prop))
    for nested in raw.get("types", []):
        _load_type(db, nested, namespace, outer=type_node)


def _load_scope(db: SymbolDatabase, raw: dict[str, Any], namespace: str) -> None:
    for type_raw in raw.get("types", []):
        _load_type(db, type_raw, namespace)
    for function in raw.get("functions", []):
        db.add_function(namespace, function["name"], **_method_fields(function))
    for global_var in raw.get("globals", []):
        db.add_global(namespace, global_var["name"], global_var["type"], **_property_fields(global_var))


def database_from_dict(data: dict[str, Any]) -> SymbolDatabase:
    """Build a :class:`SymbolDatabase` from a JSON-style symbol dump.

    Top-level ``types``/``functions``/``globals`` live in the root namespace;
    each entry of ``namespaces`` carries a qualified ``name`` and the same
    three arrays.  Types declare ``methods``, ``properties`` and nested
    ``types``.
    """
    db = SymbolDatabase()
    _load_scope(db, data, "")
    for ns_raw in data.get("namespaces", []):
        db.add_namespace(ns_raw["name"], documentation=ns_raw.get("documentation", ""))
        _load_scope(db, ns_raw, ns_raw["name"])
    return db


def load_database(path: Path) -> SymbolDatabase:
    """Load a symbol dump from *path*."""
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    db = database_from_dict(data)
    logger.info("Loaded symbol database from {} ({})", path, db)
    return db
