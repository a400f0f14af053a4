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

"""Language-neutral view of call sites, as produced by the front ends.

Every argument expression the core looks at is one of six shapes:

- StringLiteral  "..." with its unquoted value
- NameRef        a bare identifier
- MemberAccess   a dotted chain of identifiers (``server.URL``)
- BinaryAdd      ``left + right``
- NestedCall     a call used as an argument
- OtherExpr      anything else, kept as source text for diagnostics

The set is closed: front ends must map whatever their parser produces
onto these classes, and the resolver dispatches on them with isinstance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union


@dataclass(frozen=True)
class StringLiteral:
    value: str
    text: str = ""

    @property
    def source(self) -> str:
        return self.text or repr(self.value)


@dataclass(frozen=True)
class NameRef:
    name: str

    @property
    def source(self) -> str:
        return self.name


@dataclass(frozen=True)
class MemberAccess:
    """``a.b.c`` where every part is a plain identifier."""

    parts: tuple[str, ...]

    @property
    def source(self) -> str:
        return ".".join(self.parts)

    @property
    def receiver(self) -> str:
        return self.parts[0]

    @property
    def member(self) -> str:
        return self.parts[-1]


@dataclass(frozen=True)
class BinaryAdd:
    left: "Expr"
    right: "Expr"
    text: str = ""

    @property
    def source(self) -> str:
        return self.text or f"{self.left.source} + {self.right.source}"


@dataclass(frozen=True)
class NestedCall:
    callee: "Expr"
    arguments: tuple["Expr", ...] = ()
    text: str = ""

    @property
    def source(self) -> str:
        return self.text or f"{self.callee.source}(...)"


@dataclass(frozen=True)
class OtherExpr:
    text: str = ""

    @property
    def source(self) -> str:
        return self.text


Expr = Union[StringLiteral, NameRef, MemberAccess, BinaryAdd, NestedCall, OtherExpr]


@dataclass(frozen=True)
class CallSite:
    """One call expression and where it was found."""

    callee: Expr
    arguments: tuple[Expr, ...]
    line: int = 0
    function_name: str = ""


@dataclass(frozen=True)
class SourceUnit:
    """One parsed file, reduced to what socket detection needs.

    declarations: top-level value bindings, first binding of a name wins
    imports: local name -> the package or symbol name catalogs are keyed by
        (Go ``import h "net/http"`` gives ``h`` -> ``http``)
    """

    path: str
    language: str
    owner_name: str
    calls: tuple[CallSite, ...] = ()
    declarations: Mapping[str, Expr] = field(default_factory=dict)
    imports: Mapping[str, str] = field(default_factory=dict)
