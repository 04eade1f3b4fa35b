import pytest

from otel_extras.resource import Resource, ResourceDetector


def test_get_and_len():
    resource = Resource({"service.name": "svc", "count": 3})
    assert len(resource) == 2
    assert resource.get("service.name") == "svc"
    assert resource.get("count") == 3


def test_get_missing_returns_none():
    assert Resource({"a": "b"}).get("missing") is None


def test_empty_resource():
    assert len(Resource.empty()) == 0
    assert list(Resource.empty()) == []


def test_iteration_yields_pairs_in_order():
    resource = Resource([("first", "1"), ("second", "2")])
    assert list(resource) == [("first", "1"), ("second", "2")]


def test_later_duplicate_key_wins():
    resource = Resource([("k", "old"), ("k", "new")])
    assert len(resource) == 1
    assert resource.get("k") == "new"


def test_list_values_become_tuples():
    resource = Resource({"args": ["a", "b"]})
    assert resource.get("args") == ("a", "b")


def test_unsupported_value_type_raises():
    with pytest.raises(TypeError):
        Resource({"bad": object()})


def test_attributes_view_is_read_only():
    resource = Resource({"a": "b"})
    with pytest.raises(TypeError):
        resource.attributes["a"] = "c"  # type: ignore[index]
    assert resource.get("a") == "b"
    assert len(resource) == 1


def test_merge_other_takes_precedence():
    left = Resource({"a": "left", "b": "keep"})
    right = Resource({"a": "right", "c": "new"})
    merged = left.merge(right)
    assert merged.get("a") == "right"
    assert merged.get("b") == "keep"
    assert merged.get("c") == "new"
    assert len(merged) == 3


def test_merge_schema_url_rules():
    url = "https://example.com/schema"
    with_url = Resource({"a": "1"}, schema_url=url)
    without = Resource({"b": "2"})
    assert with_url.merge(without).schema_url == url
    assert without.merge(with_url).schema_url == url
    conflicting = Resource({}, schema_url="https://example.com/other")
    assert with_url.merge(conflicting).schema_url is None


def test_equality():
    assert Resource({"a": "1"}) == Resource([("a", "1")])
    assert not (Resource({"a": "1"}) == Resource({"a": "2"}))


def test_detector_is_abstract():
    with pytest.raises(TypeError):
        ResourceDetector()  # type: ignore[abstract]


def test_detector_subclass_result_merges():
    expected = Resource({"x": "y"})

    class Fixed(ResourceDetector):
        def detect(self):
            return expected

    merged = Fixed().detect().merge(Resource({"z": "w"}))
    assert merged.get("x") == "y"
    assert merged.get("z") == "w"
    assert len(merged) == 2