"""Tests for the call-site matcher."""

import pytest

from sockscope.models.sockets import Confidence, Protocol, TrafficDirection
from sockscope.models.syntax import (
    CallSite,
    MemberAccess,
    NameRef,
    NestedCall,
    OtherExpr,
    StringLiteral,
)
from sockscope.scanner.catalog import GO_CATALOG, PYTHON_CATALOG
from sockscope.scanner.matcher import address_argument, match_call_site, qualified_name


def _call(callee, *args, line=10, function_name="main"):
    return CallSite(callee=callee, arguments=tuple(args), line=line, function_name=function_name)


def _sel(*parts):
    return MemberAccess(tuple(parts))


class TestQualifiedName:
    def test_selector(self):
        assert qualified_name(_sel("net", "Dial")) == "net.Dial"

    def test_bare_identifier(self):
        assert qualified_name(NameRef("urlopen")) == "urlopen"

    def test_deep_selector_not_matched(self):
        assert qualified_name(_sel("a", "b", "c")) is None

    def test_computed_callee_not_matched(self):
        assert qualified_name(OtherExpr("getClient().Get")) is None

    def test_import_alias_is_canonicalized(self):
        assert qualified_name(_sel("h", "Get"), {"h": "http"}) == "http.Get"

    def test_unimported_receiver_is_rejected(self):
        assert qualified_name(_sel("net", "Dial"), {"http": "http"}) is None

    def test_bare_name_must_be_imported(self):
        assert qualified_name(NameRef("urlopen"), {}) is None
        assert qualified_name(NameRef("uo"), {"uo": "urlopen"}) == "urlopen"


class TestMatchCallSite:
    def test_literal_listener(self):
        call = _call(_sel("http", "ListenAndServe"), StringLiteral(":3000"), NameRef("nil"))
        record = match_call_site(call, GO_CATALOG, source_file="server.go", owner_name="svc")
        assert record.direction == TrafficDirection.INGRESS
        assert record.protocol == Protocol.HTTP
        assert record.pattern_id == "http.ListenAndServe"
        assert record.resolved is True
        assert record.listen_interface == "0.0.0.0"
        assert record.listen_port == 3000
        assert record.raw_value == ":3000"
        assert record.confidence == Confidence.HIGH
        assert record.source_file == "server.go"
        assert record.source_line == 10
        assert record.owner_name == "svc"
        assert record.function_name == "main"

    def test_address_at_catalog_index(self):
        call = _call(_sel("net", "Dial"), StringLiteral("tcp"), StringLiteral("db.internal:5432"))
        record = match_call_site(call, GO_CATALOG)
        assert record.destination_host == "db.internal"
        assert record.destination_port == 5432

    def test_url_literal_promotes_https(self):
        call = _call(_sel("http", "Get"), StringLiteral("https://www.example.org/search"))
        record = match_call_site(call, GO_CATALOG)
        assert record.protocol == Protocol.HTTPS
        assert record.destination_host == "www.example.org"
        assert record.destination_port == 443

    def test_grpc_dns_target(self):
        call = _call(_sel("grpc", "Dial"), StringLiteral("dns:///orders.internal:50051"), NameRef("opts"))
        record = match_call_site(call, GO_CATALOG)
        assert record.protocol == Protocol.GRPC
        assert record.destination_host == "orders.internal"
        assert record.destination_port == 50051
        assert record.raw_value == "dns:///orders.internal:50051"

    def test_ipv6_url_literal(self):
        call = _call(_sel("http", "Get"), StringLiteral("http://[::1]/health"))
        record = match_call_site(call, GO_CATALOG)
        assert record.destination_host == "[::1]"
        assert record.destination_port == 80

    def test_non_literal_left_for_resolver(self):
        call = _call(_sel("net", "Listen"), StringLiteral("tcp"), NameRef("serverPort"))
        record = match_call_site(call, GO_CATALOG)
        assert record.resolved is False
        assert record.raw_value == ""
        assert record.listen_port is None
        assert record.confidence is None

    def test_unparseable_literal_keeps_raw_value(self):
        call = _call(_sel("net", "Listen"), StringLiteral("tcp"), StringLiteral("nocolon"))
        record = match_call_site(call, GO_CATALOG)
        assert record.resolved is False
        assert record.raw_value == "nocolon"

    def test_too_few_arguments(self):
        call = _call(_sel("net", "DialTCP"), StringLiteral("tcp"), NameRef("nil"))
        assert match_call_site(call, GO_CATALOG) is None

    def test_uncatalogued_call(self):
        call = _call(_sel("fmt", "Println"), StringLiteral("hello"))
        assert match_call_site(call, GO_CATALOG) is None

    def test_lexical_match_ignores_what_receiver_is(self):
        # a local variable named like a package still matches by default
        call = _call(_sel("net", "Dial"), StringLiteral("tcp"), StringLiteral("a:1"))
        assert match_call_site(call, GO_CATALOG) is not None
        assert match_call_site(call, GO_CATALOG, imports={}) is None

    def test_python_bare_name(self):
        call = _call(NameRef("urlopen"), StringLiteral("http://localhost:8000/health"))
        record = match_call_site(call, PYTHON_CATALOG)
        assert record.destination_host == "localhost"
        assert record.destination_port == 8000

    def test_nested_call_argument_is_unresolved(self):
        call = _call(_sel("http", "Get"), NestedCall(NameRef("getURL"), (), "getURL()"))
        record = match_call_site(call, GO_CATALOG)
        assert record.resolved is False


class TestAddressArgument:
    def test_returns_indexed_argument(self):
        call = _call(_sel("net", "Dial"), StringLiteral("tcp"), NameRef("addr"))
        assert address_argument(call, GO_CATALOG["net.Dial"]) == NameRef("addr")

    def test_short_call(self):
        call = _call(_sel("net", "Dial"), StringLiteral("tcp"))
        assert address_argument(call, GO_CATALOG["net.Dial"]) is None


def _catalog_cases():
    for catalog in (GO_CATALOG, PYTHON_CATALOG):
        for name, descriptor in catalog.items():
            yield pytest.param(catalog, name, descriptor, id=f"{catalog.name}:{name}")


@pytest.mark.parametrize("catalog, name, descriptor", list(_catalog_cases()))
def test_every_entry_matches_its_literal(catalog, name, descriptor):
    if descriptor.direction == TrafficDirection.INGRESS:
        literal = ":8080"
    elif descriptor.address_is_url:
        literal = "http://api.example.com/data"
    else:
        literal = "api.example.com:443"

    args = [StringLiteral("x")] * descriptor.address_index + [StringLiteral(literal)]
    callee = NameRef(name) if "." not in name else MemberAccess(tuple(name.split(".")))
    record = match_call_site(_call(callee, *args), catalog)

    assert record.pattern_id == name
    assert record.direction == descriptor.direction
    assert record.protocol == descriptor.protocol
    assert record.raw_value == literal
    assert record.resolved is True
