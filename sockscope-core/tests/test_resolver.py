"""Tests for the value resolver strategies."""

from sockscope.models.sockets import Confidence, Protocol
from sockscope.models.syntax import (
    BinaryAdd,
    CallSite,
    MemberAccess,
    NameRef,
    NestedCall,
    OtherExpr,
    StringLiteral,
)
from sockscope.scanner.catalog import GO_CATALOG
from sockscope.scanner.matcher import match_call_site
from sockscope.scanner.resolver import (
    CONTINUATION_MARKER,
    concat_operands,
    constant_value,
    known_prefix,
    resolve,
)


def _run(callee, args, declarations=None):
    call = CallSite(callee=MemberAccess(tuple(callee.split("."))), arguments=tuple(args), line=5)
    record = match_call_site(call, GO_CATALOG, source_file="x.go")
    return resolve(record, call, declarations or {}, GO_CATALOG)


def _lit(value):
    return StringLiteral(value, f'"{value}"')


class TestConstantValue:
    def test_follows_names(self):
        decls = {"a": NameRef("b"), "b": _lit("x:1")}
        assert constant_value(NameRef("a"), decls) == "x:1"

    def test_folds_concatenation(self):
        decls = {"host": _lit("api.example.com"), "addr": BinaryAdd(NameRef("host"), _lit(":443"))}
        assert constant_value(NameRef("addr"), decls) == "api.example.com:443"

    def test_cycle_is_unknown(self):
        decls = {"a": NameRef("b"), "b": NameRef("a")}
        assert constant_value(NameRef("a"), decls) is None

    def test_undeclared_is_unknown(self):
        assert constant_value(NameRef("missing"), {}) is None


class TestKnownPrefix:
    def test_complete(self):
        assert known_prefix(BinaryAdd(_lit("a"), _lit("b")), {}) == ("ab", True)

    def test_stops_at_first_unknown(self):
        expr = BinaryAdd(BinaryAdd(_lit("http://h"), NameRef("path")), _lit("/tail"))
        assert known_prefix(expr, {}) == ("http://h", False)

    def test_unknown_left(self):
        assert known_prefix(BinaryAdd(NameRef("x"), _lit("/y")), {}) == ("", False)

    def test_long_chain_folds_without_recursion(self):
        expr = _lit("http://h")
        for _ in range(5000):
            expr = BinaryAdd(expr, _lit("/a"))
        prefix, complete = known_prefix(expr, {})
        assert complete is True
        assert prefix == "http://h" + "/a" * 5000
        assert constant_value(expr, {}) == prefix


class TestConcatOperands:
    def test_leaves_in_source_order(self):
        expr = BinaryAdd(BinaryAdd(_lit("a"), NameRef("b")), BinaryAdd(_lit("c"), _lit("d")))
        assert concat_operands(expr) == [_lit("a"), NameRef("b"), _lit("c"), _lit("d")]

    def test_single_operand(self):
        assert concat_operands(NameRef("x")) == [NameRef("x")]


class TestConstantLookup:
    def test_ingress_constant(self):
        record = _run("net.Listen", [_lit("tcp"), NameRef("serverPort")], {"serverPort": _lit(":8080")})
        assert record.resolved is True
        assert record.listen_interface == "0.0.0.0"
        assert record.listen_port == 8080
        assert record.raw_value == ":8080"
        assert record.confidence == Confidence.HIGH

    def test_egress_constant(self):
        record = _run("net.Dial", [_lit("tcp"), NameRef("apiHost")], {"apiHost": _lit("api.example.com:443")})
        assert record.destination_host == "api.example.com"
        assert record.destination_port == 443
        assert record.protocol == Protocol.TCP

    def test_unparseable_constant_keeps_literal(self):
        record = _run("net.Listen", [_lit("tcp"), NameRef("sock")], {"sock": _lit("/tmp/app.sock")})
        assert record.resolved is False
        assert record.raw_value == "/tmp/app.sock"

    def test_constant_beats_name_idiom(self):
        record = _run("http.Get", [NameRef("apiURL")], {"apiURL": _lit("https://api.example.com")})
        assert record.destination_host == "api.example.com"
        assert record.confidence == Confidence.HIGH


class TestNameIdiomStrategy:
    def test_httptest_server_url(self):
        record = _run("http.Post", [MemberAccess(("server", "URL")), _lit("application/json"), NameRef("nil")])
        assert record.resolved is True
        assert record.destination_host == "localhost"
        assert record.destination_port is None
        assert record.raw_value == "server.URL"
        assert record.confidence == Confidence.LOW

    def test_ingress_never_guessed(self):
        record = _run("net.Listen", [_lit("tcp"), NameRef("localhostAddr")])
        assert record.resolved is False
        assert record.raw_value == "localhostAddr"


class TestConcatenationStrategy:
    def test_known_prefix_with_unknown_suffix(self):
        record = _run("http.Get", [BinaryAdd(NameRef("baseURL"), NameRef("endpoint"))], {"baseURL": _lit("https://api.example.com")})
        assert record.resolved is True
        assert record.destination_host == "api.example.com"
        assert record.destination_port == 443
        assert record.protocol == Protocol.HTTPS
        assert record.raw_value == "https://api.example.com" + CONTINUATION_MARKER
        assert record.confidence == Confidence.MEDIUM

    def test_fully_known_concatenation(self):
        record = _run("http.Get", [BinaryAdd(NameRef("baseURL"), _lit("/users"))], {"baseURL": _lit("https://api.example.com")})
        assert record.raw_value == "https://api.example.com/users" + CONTINUATION_MARKER
        assert record.confidence == Confidence.HIGH

    def test_port_concatenation(self):
        record = _run("net.Listen", [_lit("tcp"), BinaryAdd(_lit(":"), NameRef("port"))])
        # ":" alone names every interface but no port
        assert record.listen_interface == "0.0.0.0"
        assert record.listen_port is None
        assert record.raw_value == ":" + CONTINUATION_MARKER

    def test_unknown_prefix_is_unresolved(self):
        record = _run("http.Get", [BinaryAdd(NameRef("base"), _lit("/x"), "base + \"/x\"")])
        assert record.resolved is False
        assert record.raw_value == 'base + "/x"'


class TestCallIdiomStrategy:
    def test_url_string(self):
        record = _run("http.Get", [NestedCall(MemberAccess(("parsedURL", "String")), (), "parsedURL.String()")])
        assert record.destination_host == "parsed-url-host"
        assert record.raw_value == "parsed-url"
        assert record.confidence == Confidence.LOW

    def test_url_getter(self):
        record = _run("http.Post", [NestedCall(NameRef("getServiceURL"), (), "getServiceURL()"), _lit("a/b"), NameRef("nil")])
        assert record.destination_host == "dynamic-url"
        assert record.raw_value == "getServiceURL()"

    def test_environment_variable(self):
        env = NestedCall(MemberAccess(("os", "Getenv")), (_lit("API_URL"),), 'os.Getenv("API_URL")')
        record = _run("http.Get", [env])
        assert record.destination_host == "external-service"
        assert record.raw_value == "os.Getenv('API_URL')"


class TestResolveContract:
    def test_resolved_record_returned_unchanged(self):
        call = CallSite(MemberAccess(("net", "Dial")), (_lit("tcp"), _lit("a.example:1")), 3)
        record = match_call_site(call, GO_CATALOG)
        assert resolve(record, call, {}, GO_CATALOG) is record

    def test_resolve_is_idempotent(self):
        call = CallSite(MemberAccess(("net", "Listen")), (_lit("tcp"), NameRef("p")), 3)
        decls = {"p": _lit(":9000")}
        first = resolve(match_call_site(call, GO_CATALOG), call, decls, GO_CATALOG)
        assert resolve(first, call, decls, GO_CATALOG) is first

    def test_miss_keeps_source_text(self):
        record = _run("net.ListenUDP", [_lit("udp"), OtherExpr("&net.UDPAddr{Port: 9090}")])
        assert record.resolved is False
        assert record.raw_value == "&net.UDPAddr{Port: 9090}"
        assert record.listen_port is None
        assert record.confidence is None

    def test_unrelated_env_variable_is_unresolved(self):
        env = NestedCall(MemberAccess(("os", "Getenv")), (_lit("DB_ADDR"),), 'os.Getenv("DB_ADDR")')
        record = _run("net.Dial", [_lit("tcp"), env])
        assert record.resolved is False
        assert record.raw_value == 'os.Getenv("DB_ADDR")'
