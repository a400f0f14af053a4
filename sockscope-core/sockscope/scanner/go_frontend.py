# sockscope: Static Socket Inventory
# Copyright (C) 2026 sockscope Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Go front end: tree-sitter syntax tree -> SourceUnit.

Go call structure (tree-sitter-go):
  call_expression
    function: identifier | selector_expression | ...
    arguments: argument_list

A tree containing ERROR or MISSING nodes is rejected as a whole; the Go
toolchain would refuse such a file too, and guessing over a broken tree
risks silently wrong classifications.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator, Optional

from tree_sitter_language_pack import get_parser

from sockscope.exceptions import MalformedSourceError
from sockscope.models.syntax import (
    BinaryAdd,
    CallSite,
    Expr,
    MemberAccess,
    NameRef,
    NestedCall,
    OtherExpr,
    SourceUnit,
    StringLiteral,
)

logger = logging.getLogger(__name__)

_FUNCTION_NODES = {"function_declaration", "method_declaration"}
_NAME_NODES = {"identifier", "field_identifier", "package_identifier", "type_identifier"}

_GO_ESCAPE_RE = re.compile(
    r"\\(?:([abfnrtv\\\"'])|x([0-9a-fA-F]{2})|u([0-9a-fA-F]{4})|U([0-9a-fA-F]{8})|([0-7]{3}))"
)
_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", '"': '"', "'": "'",
}
_MAJOR_VERSION_RE = re.compile(r"v[0-9]+")

# Parser objects are not safe to share between threads
_local = threading.local()


def _get_go_parser() -> Any:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = get_parser("go")
        _local.parser = parser
    return parser


def _node_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _line(node: Any) -> int:
    return node.start_point[0] + 1


# ── Literals ──────────────────────────────────────────────────────


def unquote_interpreted(text: str) -> Optional[str]:
    """Unquote a Go "..." literal. Returns None for an invalid escape."""
    body = text[1:-1]
    out: list[str] = []
    pos = 0
    while True:
        idx = body.find("\\", pos)
        if idx < 0:
            out.append(body[pos:])
            return "".join(out)
        out.append(body[pos:idx])
        m = _GO_ESCAPE_RE.match(body, idx)
        if m is None:
            return None
        simple, hex2, hex4, hex8, octal = m.groups()
        if simple is not None:
            out.append(_SIMPLE_ESCAPES[simple])
        elif octal is not None:
            out.append(chr(int(octal, 8)))
        else:
            code = int(hex2 or hex4 or hex8, 16)
            if code > 0x10FFFF:
                return None
            out.append(chr(code))
        pos = m.end()


def _string_literal(node: Any) -> Optional[StringLiteral]:
    text = _node_text(node)
    if node.type == "raw_string_literal":
        # carriage returns are discarded from raw strings
        return StringLiteral(value=text[1:-1].replace("\r", ""), text=text)
    value = unquote_interpreted(text)
    if value is None:
        return None
    return StringLiteral(value=value, text=text)


# ── Expressions ───────────────────────────────────────────────────


def _selector_parts(node: Any) -> Optional[list[str]]:
    if node.type in _NAME_NODES:
        return [_node_text(node)]
    if node.type == "selector_expression":
        operand = _selector_parts(node.child_by_field_name("operand"))
        field = node.child_by_field_name("field")
        if operand is None or field is None:
            return None
        return operand + [_node_text(field)]
    return None


def _arguments(call_node: Any) -> tuple[Expr, ...]:
    args_node = call_node.child_by_field_name("arguments")
    if args_node is None:
        return ()
    return tuple(to_expr(child) for child in args_node.named_children if child.type != "comment")


def _is_add(node: Any) -> bool:
    operator = node.child_by_field_name("operator")
    return operator is not None and operator.type == "+"


def _add_chain(node: Any) -> BinaryAdd:
    """Build a left-nested BinaryAdd by walking the left spine in a loop.

    ``a + b + c`` parses as ``(a + b) + c``, so long chains only grow on
    the left; only the outermost node keeps its source text.
    """
    rights = []
    current = node
    while current.type == "binary_expression" and _is_add(current):
        rights.append(current.child_by_field_name("right"))
        current = current.child_by_field_name("left")

    expr = to_expr(current)
    for right in reversed(rights[1:]):
        expr = BinaryAdd(left=expr, right=to_expr(right))
    return BinaryAdd(left=expr, right=to_expr(rights[0]), text=_node_text(node))


def to_expr(node: Any) -> Expr:
    """Map a tree-sitter-go expression node onto the argument variants."""
    kind = node.type

    if kind in ("interpreted_string_literal", "raw_string_literal"):
        literal = _string_literal(node)
        if literal is not None:
            return literal

    elif kind in _NAME_NODES:
        return NameRef(_node_text(node))

    elif kind == "selector_expression":
        parts = _selector_parts(node)
        if parts is not None:
            return MemberAccess(tuple(parts))

    elif kind == "binary_expression" and _is_add(node):
        return _add_chain(node)

    elif kind == "call_expression":
        return NestedCall(
            callee=to_expr(node.child_by_field_name("function")),
            arguments=_arguments(node),
            text=_node_text(node),
        )

    elif kind == "parenthesized_expression":
        inner = [child for child in node.named_children if child.type != "comment"]
        if len(inner) == 1:
            return to_expr(inner[0])

    return OtherExpr(_node_text(node))


# ── Declarations, imports, package ────────────────────────────────


def _iter_specs(node: Any, spec_types: set[str]) -> Iterator[Any]:
    for child in node.named_children:
        if child.type in spec_types:
            yield child
        elif child.type.endswith("_spec_list"):
            yield from _iter_specs(child, spec_types)


def extract_declarations(root: Any) -> dict[str, Expr]:
    """Top-level ``const`` and ``var`` bindings that have an initializer."""
    declarations: dict[str, Expr] = {}
    for decl in root.named_children:
        if decl.type not in ("const_declaration", "var_declaration"):
            continue
        for spec in _iter_specs(decl, {"const_spec", "var_spec"}):
            names = spec.children_by_field_name("name")
            value_list = spec.child_by_field_name("value")
            if value_list is None:
                continue
            values = [child for child in value_list.named_children if child.type != "comment"]
            for name_node, value_node in zip(names, values):
                declarations.setdefault(_node_text(name_node), to_expr(value_node))
    return declarations


def package_name_for_path(import_path: str) -> str:
    """Default package name of an import path (``net/http`` -> ``http``)."""
    segments = [s for s in import_path.split("/") if s]
    if not segments:
        return import_path
    if len(segments) > 1 and _MAJOR_VERSION_RE.fullmatch(segments[-1]):
        return segments[-2]
    return segments[-1]


def extract_imports(root: Any) -> dict[str, str]:
    """Map each local package name to the package name catalogs use."""
    imports: dict[str, str] = {}
    for decl in root.named_children:
        if decl.type != "import_declaration":
            continue
        for spec in _iter_specs(decl, {"import_spec"}):
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            literal = _string_literal(path_node)
            if literal is None:
                continue
            package = package_name_for_path(literal.value)
            alias_node = spec.child_by_field_name("name")
            if alias_node is None:
                imports[package] = package
            elif alias_node.type == "package_identifier":
                imports[_node_text(alias_node)] = package
            # dot and blank imports bind no selector name
    return imports


def extract_package_name(root: Any) -> str:
    for child in root.named_children:
        if child.type == "package_clause":
            for sub in child.named_children:
                if sub.type == "package_identifier":
                    return _node_text(sub)
    return ""


def owner_name_for(package: str, file_path: str) -> str:
    """Package name, or the directory name for the ``main`` package."""
    if package == "main" or not package:
        return Path(file_path).absolute().parent.name
    return package


# ── Calls ─────────────────────────────────────────────────────────


def iter_calls(root: Any) -> Iterator[CallSite]:
    """Yield every call expression in source order, outer calls first."""
    stack: list[tuple[Any, str]] = [(root, "")]
    while stack:
        node, function_name = stack.pop()
        if node.type in _FUNCTION_NODES:
            function_name = _node_text(node.child_by_field_name("name")) or function_name
        elif node.type == "call_expression":
            yield CallSite(
                callee=to_expr(node.child_by_field_name("function")),
                arguments=_arguments(node),
                line=_line(node),
                function_name=function_name,
            )
        for child in reversed(node.children):
            stack.append((child, function_name))


def _first_error(root: Any) -> Optional[Any]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


def parse_go_source(source: bytes | str, file_path: str) -> SourceUnit:
    """Parse Go source text into a SourceUnit.

    Raises:
        MalformedSourceError: the source has syntax errors
    """
    if isinstance(source, str):
        source = source.encode("utf-8")
    tree = _get_go_parser().parse(source)
    root = tree.root_node

    if root.has_error:
        bad = _first_error(root)
        where = f"line {_line(bad)}" if bad is not None else "unknown position"
        raise MalformedSourceError(file_path, f"Go syntax error at {where}")

    package = extract_package_name(root)
    if not package:
        raise MalformedSourceError(file_path, "missing package clause")

    try:
        calls = tuple(iter_calls(root))
        declarations = extract_declarations(root)
    except RecursionError:
        raise MalformedSourceError(file_path, "expression nesting too deep") from None
    logger.debug("Parsed %s: package %s, %d call(s)", file_path, package, len(calls))

    return SourceUnit(
        path=file_path,
        language="go",
        owner_name=owner_name_for(package, file_path),
        calls=calls,
        declarations=declarations,
        imports=extract_imports(root),
    )


def parse_go_file(file_path: Path, relative_name: str | None = None) -> SourceUnit:
    """Read and parse one Go file.

    ``relative_name`` is recorded as the unit path when given; the owner
    name is always derived from the real location.
    """
    try:
        source = file_path.read_bytes()
    except OSError as e:
        raise MalformedSourceError(str(file_path), f"cannot read file: {e}") from e

    unit = parse_go_source(source, str(file_path))
    if relative_name is None:
        return unit
    return replace(unit, path=relative_name)
