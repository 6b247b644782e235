"""Shared fixtures for performance benchmarks.

Provides a deterministic synthetic symbol dump generator with two size
presets (small, medium) and session-scoped database fixtures.
"""

from __future__ import annotations

from typing import Any

import pytest

from symbol_atlas.database import SymbolDatabase, database_from_dict

# ---------------------------------------------------------------------------
# Synthetic symbol dump generator
# ---------------------------------------------------------------------------

_PRESETS: dict[str, dict[str, int]] = {
    "small": {"namespaces": 20, "types_per_namespace": 10, "methods_per_type": 8},
    "medium": {"namespaces": 100, "types_per_namespace": 20, "methods_per_type": 10},
}

_VERBS = ("Location", "Rotation", "Scale", "Name")


def generate_symbol_dump(preset: str = "small") -> dict[str, Any]:
    """Generate a deterministic symbol dump in the ``database_from_dict`` format.

    Each namespace holds classes with methods and properties, a few global
    functions and a global variable, so every walker branch is exercised.
    """
    cfg = _PRESETS[preset]
    namespaces: list[dict[str, Any]] = []
    for n in range(cfg["namespaces"]):
        types = []
        for t in range(cfg["types_per_namespace"]):
            methods = [
                {
                    "name": f"Get{_VERBS[m % len(_VERBS)]}{m}",
                    "return_type": "int",
                    "args": [{"type": "float64", "name": "Value"}],
                    "documentation": f"Compute value {m}.",
                }
                for m in range(cfg["methods_per_type"])
            ]
            types.append(
                {
                    "name": f"AType{n}_{t}",
                    "supertype": "UObject",
                    "methods": methods,
                    "properties": [{"name": f"bFlag{t}", "type": "bool"}],
                    "module": f"Game.Mod{n}" if t % 2 else None,
                }
            )
        namespaces.append(
            {
                "name": f"Ns{n}",
                "types": types,
                "functions": [{"name": f"Spawn{n}_{i}", "return_type": "AActor"} for i in range(3)],
                "globals": [{"name": f"CONST_{n}", "type": "float64"}],
            }
        )
    return {"types": [{"name": "UObject"}], "namespaces": namespaces}


# ---------------------------------------------------------------------------
# Session-scoped fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def bench_small() -> SymbolDatabase:
    """Small synthetic database (~200 types, ~1600 methods)."""
    return database_from_dict(generate_symbol_dump("small"))


@pytest.fixture(scope="session")
def bench_medium() -> SymbolDatabase:
    """Medium synthetic database (~2000 types, ~20000 methods)."""
    return database_from_dict(generate_symbol_dump("medium"))
