"""Unit tests for identifiers.py - Identifier codec."""

import pytest

from errors import MalformedLocator, MissingSegment, UnparseableIdentifier
from identifiers import IdentifierFormat, ResourceLocator, decode, encode

DB1_ID = "/group/rg1/account/acct1/databases/db1"

DB1 = ResourceLocator(
    scope_path=(("group", "rg1"), ("account", "acct1")),
    resource_type="databases",
    resource_name="db1",
)

DATABASE_FORMAT = IdentifierFormat(
    scope_segments=("group", "account"), resource_segment="databases"
)


ROUND_TRIP_LOCATORS = [
    pytest.param(
        ResourceLocator((("group", "rg1"),), "databases", "db1"), id="one-pair"
    ),
    pytest.param(DB1, id="two-pair"),
    pytest.param(
        ResourceLocator(
            scope_path=(
                ("subscriptions", "0000"),
                ("resourceGroups", "rg1"),
                ("providers", "Microsoft.DocumentDB"),
                ("databaseAccounts", "acct1"),
                ("gremlinDatabases", "db1"),
            ),
            resource_type="throughputSettings",
            resource_name="default",
        ),
        id="deep",
    ),
    pytest.param(
        ResourceLocator((("resourceGroups", "MyGroup"),), "Projects", "Proj-1"),
        id="mixed-case",
    ),
    pytest.param(
        ResourceLocator(
            (("group", "rg.prod-01"), ("account", "my account")), "databases", "db 1.v2"
        ),
        id="punctuation-and-spaces",
    ),
    pytest.param(
        ResourceLocator((("folder", "a"), ("folder", "b")), "folder", "c"),
        id="repeated-segment-type",
    ),
]


class TestEncode:
    """Tests for encode()."""

    def test_encode(self):
        assert encode(DB1) == DB1_ID
        assert str(DB1) == DB1_ID

    @pytest.mark.parametrize("locator", ROUND_TRIP_LOCATORS)
    def test_decode_inverts_encode(self, locator):
        assert decode(encode(locator)) == locator

    @pytest.mark.parametrize("locator", ROUND_TRIP_LOCATORS)
    def test_encode_inverts_decode(self, locator):
        identifier = encode(locator)
        assert encode(decode(identifier)) == identifier

    def test_case_preserved(self):
        locator = ResourceLocator(
            scope_path=(("resourceGroups", "MyGroup"),),
            resource_type="gremlinDatabases",
            resource_name="Graph1",
        )
        assert encode(locator) == "/resourceGroups/MyGroup/gremlinDatabases/Graph1"
        assert encode(locator) != encode(
            ResourceLocator(
                scope_path=(("resourceGroups", "mygroup"),),
                resource_type="gremlinDatabases",
                resource_name="Graph1",
            )
        )

    def test_empty_scope(self):
        with pytest.raises(MalformedLocator):
            encode(ResourceLocator((), "databases", "db1"))

    def test_empty_name(self):
        with pytest.raises(MalformedLocator):
            encode(ResourceLocator((("group", "rg1"),), "databases", ""))

    def test_empty_scope_value(self):
        with pytest.raises(MalformedLocator):
            encode(ResourceLocator((("group", ""),), "databases", "db1"))

    def test_separator_in_value(self):
        with pytest.raises(MalformedLocator):
            encode(ResourceLocator((("group", "rg/1"),), "databases", "db1"))


class TestDecode:
    """Tests for decode()."""

    def test_decode(self):
        locator = decode(DB1_ID)
        assert locator.scope_path == (("group", "rg1"), ("account", "acct1"))
        assert locator.resource_type == "databases"
        assert locator.resource_name == "db1"
        assert locator.scope_value("account") == "acct1"

    @pytest.mark.parametrize(
        "identifier",
        [
            "",
            "group/rg1/databases/db1",
            "/group/rg1/databases",
            "/group//databases/db1",
            "/group/rg1/databases/db1/",
            "/databases/db1",
        ],
    )
    def test_unparseable(self, identifier):
        with pytest.raises(UnparseableIdentifier):
            decode(identifier)

    def test_scope_value_missing(self):
        with pytest.raises(KeyError):
            decode(DB1_ID).scope_value("subscriptions")

    def test_child(self):
        child = DB1.child("throughputSettings", "default")
        assert encode(child) == DB1_ID + "/throughputSettings/default"


class TestIdentifierFormat:
    """Tests for IdentifierFormat."""

    def test_decode(self):
        assert DATABASE_FORMAT.decode(DB1_ID) == DB1

    def test_missing_segment(self):
        with pytest.raises(MissingSegment) as exc_info:
            DATABASE_FORMAT.decode("/group/rg1/databases/db1")
        assert exc_info.value.segment_type == "account"
        assert exc_info.value.target == "/group/rg1/databases/db1"

    def test_wrong_order(self):
        with pytest.raises(UnparseableIdentifier) as exc_info:
            DATABASE_FORMAT.decode("/account/acct1/group/rg1/databases/db1")
        assert not isinstance(exc_info.value, MissingSegment)

    def test_extra_segment(self):
        with pytest.raises(UnparseableIdentifier):
            DATABASE_FORMAT.decode("/group/rg1/account/acct1/extra/x/databases/db1")

    def test_build(self):
        assert DATABASE_FORMAT.build(["rg1", "acct1"], "db1") == DB1

    def test_build_wrong_count(self):
        with pytest.raises(MalformedLocator):
            DATABASE_FORMAT.build(["rg1"], "db1")
