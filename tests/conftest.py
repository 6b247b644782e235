"""Shared test fixtures for Symbol Atlas."""

from __future__ import annotations

import pytest

from symbol_atlas.database import Argument, SymbolDatabase
from symbol_atlas.schema import TypeDefKind
from symbol_atlas.settings import AtlasSettings


def build_sample_database() -> SymbolDatabase:
    """A small engine-like API: objects, actors, math helpers and script types."""
    db = SymbolDatabase()

    uobject = db.add_type("UObject", documentation="Base class of all objects.")
    db.add_method(uobject, "GetName", return_type="FString", documentation="Name of this object.")
    db.add_method(uobject, "opEquals", return_type="bool", args=[Argument("const UObject&", "Other")])

    library = db.add_type("UObjectLibrary", supertype="UObject")
    db.add_method(library, "GetName", return_type="FString")
    db.add_method(library, "GetObjectCount", return_type="int")

    actor = db.add_type("AActor", supertype="UObject", documentation="An object placed in a level.")
    db.add_method(actor, "GetActorLocation", return_type="FVector", documentation="World location of the actor.")
    db.add_method(
        actor,
        "SetActorLocation",
        return_type="bool",
        args=[Argument("FVector", "NewLocation"), Argument("bool", "bSweep", "false")],
    )
    db.add_property(actor, "bHidden", "bool", documentation="Whether the actor is hidden in game.")
    db.add_function("AActor", "Spawn", return_type="AActor", args=[Argument("UClass", "Class")])

    vector = db.add_type("FVector", type_kind=TypeDefKind.STRUCT)
    db.add_property(vector, "X", "float64")
    db.add_method(vector, "FVector", return_type="", is_constructor=True)
    db.add_method(
        vector,
        "FVector",
        return_type="",
        is_constructor=True,
        args=[Argument("float64", "InX"), Argument("float64", "InY"), Argument("float64", "InZ")],
    )

    db.add_type("ECollisionChannel", type_kind=TypeDefKind.ENUM)
    db.add_type("FOnActorHit", is_delegate=True)
    db.add_type("float64", is_primitive=True)
    array = db.add_type("TArray", template_subtypes=["T"])
    db.add_method(array, "Num", return_type="int")
    db.add_type("TArray<int>", is_template_instantiation=True)

    db.add_namespace("Math", documentation="Math helpers.")
    db.add_function("Math", "Abs", return_type="float64", args=[Argument("float64", "Value")])
    db.add_function("Math", "Abs", return_type="int", args=[Argument("int", "Value")])
    db.add_global("Math", "PI", "float64", documentation="Ratio of a circle's circumference to its diameter.")

    db.add_function("Gameplay", "GetActorOfClass", return_type="AActor", args=[Argument("UClass", "ActorClass")])
    db.add_function("", "GetGameTime", return_type="float64")
    db.add_function(
        "ActorExtensions",
        "DestroyAfter",
        args=[Argument("AActor", "Self"), Argument("float64", "Delay")],
        is_mixin=True,
    )

    script_actor = db.add_type("AScriptDoor", supertype="AActor", declared_module="Game.Door")
    db.add_method(script_actor, "OpenDoor", declared_module="Game.Door")
    return db


@pytest.fixture
def sample_db():
    return build_sample_database()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings isolated from any ``symatlas.toml`` or environment overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ("SYMATLAS_DATABASE__PATH", "SYMATLAS_SEARCH__DEFAULT_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    return AtlasSettings()
