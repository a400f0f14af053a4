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

"""Python front end: ``ast`` module tree -> SourceUnit.

Python spellings are mapped onto the language-neutral argument variants:

- ``"http://x"``                 -> StringLiteral
- ``("0.0.0.0", 8080)``          -> StringLiteral "0.0.0.0:8080"
- ``f"http://{host}/x"``         -> BinaryAdd chain, so the known prefix folds
- ``base + path``                -> BinaryAdd
- ``cfg.url``                    -> MemberAccess
- ``build_url()``                -> NestedCall

Only positional arguments are considered; keyword addresses such as
``requests.get(url=...)`` fall outside the catalog's argument indexes.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

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

# Modules whose owner is better described by their package directory
_ENTRY_POINT_STEMS = {"__main__", "__init__"}


def _attribute_parts(node: ast.expr) -> Optional[list[str]]:
    if isinstance(node, ast.Name):
        return [node.id]
    if isinstance(node, ast.Attribute):
        base = _attribute_parts(node.value)
        if base is None:
            return None
        return base + [node.attr]
    return None


def _address_tuple(node: ast.Tuple) -> Optional[StringLiteral]:
    """Fold a ``(host, port)`` literal into ``host:port``."""
    if len(node.elts) != 2:
        return None
    host, port = node.elts
    if not (isinstance(host, ast.Constant) and isinstance(host.value, str)):
        return None
    if not (isinstance(port, ast.Constant) and type(port.value) is int):
        return None
    host_text = f"[{host.value}]" if ":" in host.value else host.value
    return StringLiteral(value=f"{host_text}:{port.value}", text=ast.unparse(node))


def _joined_str(node: ast.JoinedStr) -> Expr:
    parts: list[Expr] = []
    for value in node.values:
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            parts.append(StringLiteral(value=value.value, text=repr(value.value)))
        elif isinstance(value, ast.FormattedValue) and value.conversion == -1 and value.format_spec is None:
            parts.append(to_expr(value.value))
        else:
            parts.append(OtherExpr(ast.unparse(value)))

    text = ast.unparse(node)
    if not parts:
        return StringLiteral(value="", text=text)
    if all(isinstance(p, StringLiteral) for p in parts):
        return StringLiteral(value="".join(p.value for p in parts), text=text)  # type: ignore[union-attr]

    expr = parts[0]
    for part in parts[1:]:
        expr = BinaryAdd(left=expr, right=part)
    return BinaryAdd(left=expr.left, right=expr.right, text=text) if isinstance(expr, BinaryAdd) else expr


def _is_add(node: ast.AST) -> bool:
    return isinstance(node, ast.BinOp) and isinstance(node.op, ast.Add)


def _add_chain(node: ast.BinOp) -> BinaryAdd:
    """Build a left-nested BinaryAdd by walking the left spine in a loop.

    The source text is joined from the operands; ``ast.unparse`` recurses
    once per operator.
    """
    rights: list[ast.expr] = []
    current: ast.expr = node
    while _is_add(current):
        rights.append(current.right)  # type: ignore[attr-defined]
        current = current.left  # type: ignore[attr-defined]

    operand_nodes = [current, *reversed(rights)]
    operands = [to_expr(n) for n in operand_nodes]
    parts = [operands[0].source]
    for operand_node, operand in zip(operand_nodes[1:], operands[1:]):
        if isinstance(operand_node, ast.BinOp) and isinstance(operand_node.op, (ast.Add, ast.Sub)):
            parts.append(f"({operand.source})")
        else:
            parts.append(operand.source)
    text = " + ".join(parts)

    expr = operands[0]
    for operand in operands[1:-1]:
        expr = BinaryAdd(left=expr, right=operand)
    return BinaryAdd(left=expr, right=operands[-1], text=text)


def to_expr(node: ast.expr) -> Expr:
    """Map a Python expression node onto the argument variants."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return StringLiteral(value=node.value, text=ast.unparse(node))

    if isinstance(node, ast.Name):
        return NameRef(node.id)

    if isinstance(node, ast.Attribute):
        parts = _attribute_parts(node)
        if parts is not None:
            return MemberAccess(tuple(parts))

    elif _is_add(node):
        return _add_chain(node)  # type: ignore[arg-type]

    elif isinstance(node, ast.JoinedStr):
        return _joined_str(node)

    elif isinstance(node, ast.Tuple):
        folded = _address_tuple(node)
        if folded is not None:
            return folded

    elif isinstance(node, ast.Call):
        return NestedCall(
            callee=to_expr(node.func),
            arguments=tuple(to_expr(a) for a in node.args),
            text=ast.unparse(node),
        )

    return OtherExpr(ast.unparse(node))


class SocketCallVisitor(ast.NodeVisitor):
    """Collect call sites, module-level bindings and import aliases."""

    def __init__(self) -> None:
        self.calls: list[CallSite] = []
        self.imports: dict[str, str] = {}
        self._function_stack: list[str] = []

    @property
    def _current_function(self) -> str:
        return self._function_stack[-1] if self._function_stack else ""

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._function_stack.append(node.name)
        self.generic_visit(node)
        self._function_stack.pop()

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._function_stack.append(node.name)
        self.generic_visit(node)
        self._function_stack.pop()

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                # import urllib.request as ur -> ur => request
                self.imports[alias.asname] = alias.name.split(".")[-1]
            else:
                # import urllib.request -> local symbol is "urllib"
                root_name = alias.name.split(".")[0]
                self.imports[root_name] = root_name

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        for alias in node.names:
            if alias.name == "*":
                continue
            self.imports[alias.asname or alias.name] = alias.name

    def visit_BinOp(self, node: ast.BinOp) -> None:
        # long operator chains nest on the left; walk that spine in a loop
        rights: list[ast.expr] = []
        current: ast.expr = node
        while isinstance(current, ast.BinOp):
            rights.append(current.right)
            current = current.left
        self.visit(current)
        for right in reversed(rights):
            self.visit(right)

    def visit_Call(self, node: ast.Call) -> None:
        self.calls.append(
            CallSite(
                callee=to_expr(node.func),
                arguments=tuple(to_expr(a) for a in node.args),
                line=node.lineno,
                function_name=self._current_function,
            )
        )
        self.generic_visit(node)


def extract_declarations(tree: ast.Module) -> dict[str, Expr]:
    """Module-level assignments, first binding of a name wins."""
    declarations: dict[str, Expr] = {}

    def bind(target: ast.expr, value: ast.expr) -> None:
        if isinstance(target, ast.Name):
            declarations.setdefault(target.id, to_expr(value))
        elif (
            isinstance(target, (ast.Tuple, ast.List))
            and isinstance(value, (ast.Tuple, ast.List))
            and len(target.elts) == len(value.elts)
        ):
            for sub_target, sub_value in zip(target.elts, value.elts):
                bind(sub_target, sub_value)

    for stmt in tree.body:
        if isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                bind(target, stmt.value)
        elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
            bind(stmt.target, stmt.value)
    return declarations


def owner_name_for(file_path: str) -> str:
    """Module name, or the package directory for ``__main__``/``__init__``."""
    path = Path(file_path)
    if path.stem in _ENTRY_POINT_STEMS:
        return path.absolute().parent.name
    return path.stem


def parse_python_source(source: str, file_path: str) -> SourceUnit:
    """Parse Python source text into a SourceUnit.

    Raises:
        MalformedSourceError: the source does not compile
    """
    try:
        tree = ast.parse(source, filename=file_path)
    except SyntaxError as e:
        raise MalformedSourceError(file_path, f"Python syntax error at line {e.lineno}: {e.msg}") from e
    except RecursionError:
        raise MalformedSourceError(file_path, "expression nesting too deep") from None

    visitor = SocketCallVisitor()
    try:
        visitor.visit(tree)
        declarations = extract_declarations(tree)
    except RecursionError:
        raise MalformedSourceError(file_path, "expression nesting too deep") from None
    logger.debug("Parsed %s: %d call(s)", file_path, len(visitor.calls))

    return SourceUnit(
        path=file_path,
        language="python",
        owner_name=owner_name_for(file_path),
        calls=tuple(visitor.calls),
        declarations=declarations,
        imports=visitor.imports,
    )


def parse_python_file(file_path: Path, relative_name: str | None = None) -> SourceUnit:
    """Read and parse one Python file."""
    try:
        source = file_path.read_text(encoding="utf-8")
    except (UnicodeDecodeError, OSError) as e:
        raise MalformedSourceError(str(file_path), f"cannot read file: {e}") from e

    unit = parse_python_source(source, str(file_path))
    if relative_name is None:
        return unit
    return replace(unit, path=relative_name)
