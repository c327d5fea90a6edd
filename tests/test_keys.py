"""
Unit tests for key serialization.
"""
from swrcache.cache.keys import (
    NOT_READY,
    as_descriptor,
    context_key,
    error_key,
    infinite_key,
    page_size_key,
    serialize,
    serialize_page,
)


class _Token:
    pass


class TestSerialize:

    def test_scalar_key(self):
        key = serialize("/api/user")
        assert key.identity == "/api/user"
        assert key.args is None
        assert key.is_ready

    def test_number_key_uses_string_form(self):
        assert serialize(42).identity == "42"

    def test_array_key_keeps_args(self):
        key = serialize(["/api/items", 3])
        assert key.identity == 'arg@"/api/items"@3'
        assert key.args == ("/api/items", 3)

    def test_array_key_is_stable(self):
        a = serialize(["/q", {"b": 1, "a": 2}])
        b = serialize(["/q", {"a": 2, "b": 1}])
        assert a.identity == b.identity

    def test_string_and_number_args_differ(self):
        assert serialize(["1"]).identity != serialize([1]).identity

    def test_object_args_identified_by_instance(self):
        token = _Token()
        assert serialize([token]).identity == serialize([token]).identity
        assert serialize([token]).identity != serialize([_Token()]).identity

    def test_containers_holding_objects_get_distinct_identities(self):
        identities = set()
        for _ in range(50):
            # dropped right away, so its memory may be reused by the next one
            identities.add(serialize([{"x": object()}]).identity)
        assert len(identities) == 50

    def test_container_is_rendered_around_object_leaf(self):
        token = _Token()
        identity = serialize(["/q", {"page": 1, "owner": token}]).identity
        assert identity.startswith('arg@"/q"@{"owner":"#')
        assert identity.endswith('","page":1}')
        assert identity == serialize(["/q", {"owner": token, "page": 1}]).identity

    def test_function_key_is_called(self):
        assert serialize(lambda: "/api/me").identity == "/api/me"

    def test_function_returning_none_or_false_is_not_ready(self):
        assert serialize(lambda: None) == NOT_READY
        assert serialize(lambda: False) == NOT_READY

    def test_raising_function_is_not_ready(self):
        def key():
            raise AttributeError("user not loaded")

        assert serialize(key).identity is None

    def test_empty_descriptors_are_not_ready(self):
        for descriptor in (None, False, "", [], ()):
            assert not serialize(descriptor).is_ready


class TestPageKeys:

    def test_page_loader_receives_index_and_previous_page(self):
        seen = []

        def get_key(i, previous):
            seen.append((i, previous))
            return f"/items?page={i}"

        key = serialize_page(get_key, 2, ["x"])
        assert key.identity == "/items?page=2"
        assert seen == [(2, ["x"])]

    def test_page_loader_end_of_sequence(self):
        assert not serialize_page(lambda i, prev: None if prev == [] else i, 1, []).is_ready

    def test_derived_keys(self):
        assert context_key("a") == "ctx@a"
        assert page_size_key("a") == "len@a"
        assert error_key("a") == "err@a"
        assert infinite_key("a").identity == 'arg@"inf"@"a"'
        assert not infinite_key(None).is_ready

    def test_as_descriptor_round_trips(self):
        for descriptor in ("/a", ["/a", 1]):
            key = serialize(descriptor)
            assert serialize(as_descriptor(key)) == key
