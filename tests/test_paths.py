import pytest

from mcp_load_tester.errors import InvalidMappingError, PathNotFoundError, PathSyntaxError
from mcp_load_tester.models import PathOptions
from mcp_load_tester.paths import apply_mapping, parse_path, resolve, validate_mapping, write

DOC = {
    "specs": [
        {"title": "API Reference", "tags": ["a", "b"]},
        {"title": "Guides", "tags": []},
    ],
    "count": 2,
    "odd key": "spaced",
    "nothing": None,
}

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("expr", ["specs.title", "$.specs[", "$..title", "$.specs[abc]", "", "$.a b"])
def test_parse_path_rejects_malformed(expr):
    with pytest.raises(PathSyntaxError):
        parse_path(expr)


def test_parse_path_rejects_non_string():
    with pytest.raises(PathSyntaxError):
        parse_path(42)


# ---------------------------------------------------------------------------
# Resolving
# ---------------------------------------------------------------------------


def test_resolve_root():
    assert resolve("$", DOC) is DOC


def test_resolve_dotted_and_bracketed():
    assert resolve("$.specs[0].title", DOC) == "API Reference"
    assert resolve("$['odd key']", DOC) == "spaced"
    assert resolve("$.specs[-1].title", DOC) == "Guides"


def test_resolve_jq_style_paths():
    assert resolve(".", DOC) == DOC
    assert resolve(".specs[0].title", DOC) == "API Reference"
    assert resolve(".[1]", ["x", "y"]) == "y"


# ---------------------------------------------------------------------------
# jq programs
# ---------------------------------------------------------------------------

ENDPOINTS = {"/api/v1/docs": {"GET": {"summary": "list"}, "POST": {"summary": "create"}}}


def test_resolve_jq_programs_pick_first_endpoint():
    assert resolve("keys_unsorted[0]", ENDPOINTS) == "/api/v1/docs"
    assert resolve(".[keys_unsorted[0]] | keys_unsorted[0]", ENDPOINTS) == "GET"


def test_resolve_jq_program_with_several_outputs_is_a_list():
    assert resolve(".specs[].title", DOC) == ["API Reference", "Guides"]
    assert resolve("[.specs[].title]", DOC) == ["API Reference", "Guides"]


def test_resolve_jq_null_or_error_is_no_match():
    assert resolve(".missing", DOC) is None
    assert resolve(".specs.title", DOC) is None
    with pytest.raises(PathNotFoundError):
        resolve(".missing", DOC, required=True)
    with pytest.raises(PathNotFoundError):
        resolve(".specs.title", DOC, required=True)


def test_malformed_jq_program_is_a_syntax_error():
    with pytest.raises(PathSyntaxError):
        resolve(".[", DOC)
    with pytest.raises(PathSyntaxError):
        validate_mapping({"path": "keys_unsorted[0"})


def test_original_style_output_mapping():
    target = {}
    apply_mapping({"path": "keys_unsorted[0]", "method": ".[keys_unsorted[0]] | keys_unsorted[0]"}, ENDPOINTS, target)
    assert target == {"path": "/api/v1/docs", "method": "GET"}


def test_resolve_wildcard_returns_list_in_document_order():
    assert resolve("$.specs[*].title", DOC) == ["API Reference", "Guides"]
    assert resolve("$.specs[*].tags[*]", DOC) == ["a", "b"]
    assert resolve("$.specs[0].*", DOC) == ["API Reference", ["a", "b"]]


def test_resolve_wildcard_without_matches_is_empty_list():
    assert resolve("$.missing[*].title", DOC) == []


def test_resolve_wildcard_unwrap_single_match():
    assert resolve("$.specs[*].tags[0]", DOC, unwrap=True) == "a"
    # unwrap only applies to exactly one match
    assert resolve("$.specs[*].title", DOC, unwrap=True) == ["API Reference", "Guides"]


def test_resolve_missing_exact_path():
    assert resolve("$.specs[5].title", DOC) is None
    with pytest.raises(PathNotFoundError, match="No match"):
        resolve("$.specs[5].title", DOC, required=True)


def test_resolve_present_null_is_not_missing():
    assert resolve("$.nothing", DOC, required=True) is None


def test_resolve_required_wildcard_without_matches():
    with pytest.raises(PathNotFoundError):
        resolve("$.missing[*]", DOC, required=True)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def test_write_creates_dicts_and_lists_on_demand():
    target = {}
    write(target, "a.b[0].c", 1)
    assert target == {"a": {"b": [{"c": 1}]}}


def test_write_pads_lists():
    target = {}
    write(target, "items[2]", "z")
    assert target == {"items": [None, None, "z"]}


def test_write_overwrites_scalar_intermediate():
    target = {"a": 5}
    write(target, "a.b", 1)
    assert target == {"a": {"b": 1}}


def test_write_preserves_sibling_keys():
    target = {"filter": {"a": 1}}
    write(target, "filter.b", 2)
    assert target == {"filter": {"a": 1, "b": 2}}


def test_write_accepts_anchored_keys():
    target = {}
    write(target, "$.user.id", 7)
    assert target == {"user": {"id": 7}}


@pytest.mark.parametrize("key", ["$", "items[*]", ""])
def test_write_rejects_unassignable_keys(key):
    with pytest.raises(PathSyntaxError):
        write({}, key, 1)


def test_write_field_into_list_is_invalid():
    with pytest.raises(InvalidMappingError):
        write({"a": [1]}, "a.b", 2)


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


def test_apply_mapping_nested_object():
    context = {"u": {"id": 1, "email": "a@b.com"}}
    mapping = {"user": {"id": "$.u.id", "email": "$.u.email"}}
    assert apply_mapping(mapping, context, {}) == {"user": {"id": 1, "email": "a@b.com"}}


def test_apply_mapping_skips_missing_paths():
    target = {"keep": True}
    apply_mapping({"title": "$.nope", "count": "$.count"}, DOC, target)
    assert target == {"keep": True, "count": 2}


def test_apply_mapping_required_missing_path_raises():
    with pytest.raises(PathNotFoundError):
        apply_mapping({"title": "$.nope"}, DOC, {}, PathOptions(required=True))


def test_apply_mapping_rejects_non_string_values_before_writing():
    target = {}
    with pytest.raises(InvalidMappingError, match="bad"):
        apply_mapping({"good": "$.count", "bad": 42}, DOC, target)
    assert target == {}


def test_validate_mapping_checks_nested_paths():
    with pytest.raises(PathSyntaxError):
        validate_mapping({"user": {"id": "u.id"}})
    with pytest.raises(InvalidMappingError):
        validate_mapping(["$.a"])
