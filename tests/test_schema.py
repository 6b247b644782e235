"""Tests for kind normalization, payload wire forms and page records."""

from __future__ import annotations

import pytest

from symbol_atlas.schema import (
    FunctionPayload,
    GlobalPayload,
    MethodPayload,
    NamespacePayload,
    PageItem,
    PropertyPayload,
    SearchKind,
    SearchPage,
    TypeDefKind,
    TypePayload,
    normalize_kinds,
    payload_from_data,
    payload_identity,
    payload_to_data,
    result_kind,
)


class TestNormalizeKinds:
    def test_single_name(self):
        assert normalize_kinds("Class") == {SearchKind.CLASS}

    def test_list_trimmed_case_insensitive(self):
        assert normalize_kinds([" Property ", "globalVariable"]) == {SearchKind.PROPERTY, SearchKind.GLOBAL_VARIABLE}

    def test_unknown_and_non_string_dropped(self):
        assert normalize_kinds(["bogus", 3, None, "enum"]) == {SearchKind.ENUM}

    def test_empty(self):
        assert normalize_kinds(None) == frozenset()
        assert normalize_kinds([]) == frozenset()


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class TestPayloadData:
    def test_method_to_data(self):
        payload = MethodPayload(
            type_name="AActor", name="SetActorLocation", symbol_id=4, namespace="", arg_types=("FVector", "bool")
        )
        assert payload_to_data(payload) == {
            "tag": "method",
            "type_name": "AActor",
            "name": "SetActorLocation",
            "symbol_id": 4,
            "namespace": "",
            "arg_types": ["FVector", "bool"],
        }

    def test_type_kind_serialized_as_value(self):
        data = payload_to_data(TypePayload(name="FVector", namespace="", type_kind=TypeDefKind.STRUCT))
        assert data == {"tag": "type", "name": "FVector", "namespace": "", "type_kind": "struct"}

    @pytest.mark.parametrize(
        "payload",
        [
            TypePayload(name="EDir", namespace="Math", type_kind=TypeDefKind.ENUM),
            MethodPayload(type_name="UObject", name="GetName", symbol_id=1, namespace="", arg_types=()),
            FunctionPayload(qualified_name="Math::Abs", symbol_id=9, arg_types=("int",)),
            NamespacePayload(qualified_name="Math"),
        ],
    )
    def test_from_data_inverts_to_data(self, payload):
        assert payload_from_data(payload_to_data(payload)) == payload

    def test_defaults_may_be_omitted(self):
        assert payload_from_data({"tag": "function", "qualified_name": "Print", "symbol_id": 3}) == FunctionPayload(
            qualified_name="Print", symbol_id=3
        )

    def test_values_coerced(self):
        payload = payload_from_data({"tag": "type", "name": "AActor", "namespace": "", "type_kind": "Class"})
        assert payload.type_kind is TypeDefKind.CLASS

    def test_unknown_tag(self):
        with pytest.raises(ValueError, match="Unknown payload tag"):
            payload_from_data({"tag": "macro"})

    def test_missing_field(self):
        with pytest.raises(ValueError, match="missing field 'name'"):
            payload_from_data({"tag": "property", "type_name": "AActor"})

    def test_invalid_field(self):
        with pytest.raises(ValueError, match="invalid field"):
            payload_from_data({"tag": "function", "qualified_name": "Print", "symbol_id": "seven"})

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="must be an object"):
            payload_from_data(["function", "Print"])


class TestPayloadIdentity:
    def test_overloads_differ(self):
        first = FunctionPayload(qualified_name="Math::Abs", symbol_id=1, arg_types=("float64",))
        second = FunctionPayload(qualified_name="Math::Abs", symbol_id=2, arg_types=("int",))
        assert payload_identity(first) != payload_identity(second)

    def test_type_identity(self):
        payload = TypePayload(name="FVec", namespace="Math", type_kind=TypeDefKind.STRUCT)
        assert payload_identity(payload) == "type|FVec|Math"


class TestResultKind:
    @pytest.mark.parametrize(
        ("payload", "kind"),
        [
            (TypePayload(name="A", namespace="", type_kind=TypeDefKind.CLASS), SearchKind.CLASS),
            (TypePayload(name="S", namespace="", type_kind=TypeDefKind.STRUCT), SearchKind.STRUCT),
            (TypePayload(name="E", namespace="", type_kind=TypeDefKind.ENUM), SearchKind.ENUM),
            (MethodPayload(type_name="A", name="m", symbol_id=1, namespace=""), SearchKind.METHOD),
            (FunctionPayload(qualified_name="f", symbol_id=1), SearchKind.FUNCTION),
            (PropertyPayload(type_name="A", name="p"), SearchKind.PROPERTY),
            (GlobalPayload(qualified_name="g"), SearchKind.GLOBAL_VARIABLE),
            (NamespacePayload(qualified_name="Math"), None),
        ],
    )
    def test_mapping(self, payload, kind):
        assert result_kind(payload) == kind


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TestPageRecords:
    def test_item_omits_missing_fields(self):
        assert PageItem(signature="int A").to_dict() == {"signature": "int A"}

    def test_page_uses_camel_case(self):
        page = SearchPage(
            query="A",
            start_index=0,
            next_start_index=None,
            remaining_count=0,
            total=1,
            returned=1,
            truncated=False,
            items=[PageItem(signature="int A", docs="Doc.", type="function")],
        )
        assert page.to_dict() == {
            "query": "A",
            "searchIndex": 0,
            "nextSearchIndex": None,
            "remainingCount": 0,
            "total": 1,
            "returned": 1,
            "truncated": False,
            "items": [{"signature": "int A", "docs": "Doc.", "type": "function"}],
        }
