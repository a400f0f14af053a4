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

"""Value resolver: fill in records whose address argument was not a literal.

Strategies run in a fixed order and the first one that derives a field
wins; partial results are never merged:

1. constant lookup   ``net.Dial("tcp", apiHost)`` with ``const apiHost = "..."``
2. name idioms       ``http.Post(server.URL, ...)``            (egress only)
3. concatenation     ``http.Get(baseURL + "/users")``
4. call idioms       ``http.Get(u.String())``, ``os.Getenv("API_URL")`` (egress only)

Lookups only see top-level declarations of the same file.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional

from sockscope.models.sockets import Confidence, SocketRecord, TrafficDirection
from sockscope.models.syntax import (
    BinaryAdd,
    CallSite,
    Expr,
    MemberAccess,
    NameRef,
    NestedCall,
    StringLiteral,
)
from sockscope.scanner.addresses import apply_address
from sockscope.scanner.catalog import PatternCatalog, PatternDescriptor
from sockscope.scanner.idioms import IdiomMatch, classify_call_idiom, classify_name_idiom
from sockscope.scanner.matcher import address_argument

logger = logging.getLogger(__name__)

CONTINUATION_MARKER = " + ..."


def concat_operands(expr: Expr) -> list[Expr]:
    """Leaves of a ``+`` chain, left to right.

    Walks with an explicit stack; generated code can chain thousands of
    terms.
    """
    operands: list[Expr] = []
    stack = [expr]
    while stack:
        current = stack.pop()
        if isinstance(current, BinaryAdd):
            stack.append(current.right)
            stack.append(current.left)
        else:
            operands.append(current)
    return operands


def constant_value(
    expr: Expr,
    declarations: Mapping[str, Expr],
    _seen: Optional[frozenset[str]] = None,
) -> Optional[str]:
    """Return the string an expression is statically known to hold.

    Follows names through top-level declarations and folds ``+`` of known
    strings. Anything depending on runtime state returns None.
    """
    if isinstance(expr, StringLiteral):
        return expr.value

    if isinstance(expr, NameRef):
        seen = _seen or frozenset()
        if expr.name in seen:
            return None
        bound = declarations.get(expr.name)
        if bound is None:
            return None
        return constant_value(bound, declarations, seen | {expr.name})

    if isinstance(expr, BinaryAdd):
        parts: list[str] = []
        for operand in concat_operands(expr):
            value = constant_value(operand, declarations, _seen)
            if value is None:
                return None
            parts.append(value)
        return "".join(parts)

    return None


def known_prefix(expr: Expr, declarations: Mapping[str, Expr]) -> tuple[str, bool]:
    """Fold a concatenation from the left until the first unknown operand.

    Returns ``(prefix, complete)`` where ``complete`` means the whole
    expression was known.
    """
    parts: list[str] = []
    for operand in concat_operands(expr):
        value = constant_value(operand, declarations)
        if value is None:
            return "".join(parts), False
        parts.append(value)
    return "".join(parts), True


def _apply_idiom(record: SocketRecord, match: IdiomMatch, raw_value: str) -> SocketRecord:
    return record.evolve(
        raw_value=raw_value,
        resolved=True,
        destination_host=match.host,
        destination_port=match.port,
        confidence=match.confidence,
    )


def _resolve_argument(
    record: SocketRecord,
    arg: Expr,
    declarations: Mapping[str, Expr],
    descriptor: PatternDescriptor,
) -> SocketRecord:
    url = descriptor.address_is_url
    egress = record.direction == TrafficDirection.EGRESS
    fallback_raw = record.raw_value or arg.source

    # 1. constant lookup
    if isinstance(arg, NameRef):
        value = constant_value(arg, declarations)
        if value is not None:
            parsed = apply_address(record, value, Confidence.HIGH, url=url)
            if parsed is not None:
                logger.debug("%s: resolved %s via constant", record.pattern_id, arg.name)
                return parsed
            fallback_raw = value

    # 2. name idioms
    if egress and isinstance(arg, (NameRef, MemberAccess)):
        match = classify_name_idiom(arg.source)
        if match is not None:
            logger.debug("%s: %s looks like %s", record.pattern_id, arg.source, match.idiom)
            return _apply_idiom(record, match, arg.source)

    # 3. concatenation
    if isinstance(arg, BinaryAdd):
        prefix, complete = known_prefix(arg, declarations)
        if prefix:
            # the marker tells a concatenation apart from a literal even when fully folded
            raw = prefix + CONTINUATION_MARKER
            confidence = Confidence.HIGH if complete else Confidence.MEDIUM
            parsed = apply_address(record, prefix, confidence, raw_value=raw, url=url)
            if parsed is not None:
                logger.debug("%s: resolved concatenation prefix %r", record.pattern_id, prefix)
                return parsed
            fallback_raw = raw

    # 4. call idioms
    if egress and isinstance(arg, NestedCall):
        callee = arg.callee.source
        first = arg.arguments[0] if arg.arguments else None
        first_literal = first.value if isinstance(first, StringLiteral) else None
        match = classify_call_idiom(callee, first_literal)
        if match is not None:
            logger.debug("%s: call %s looks like %s", record.pattern_id, callee, match.idiom)
            return _apply_idiom(record, match, match.raw_value or f"{callee}()")

    logger.debug("%s at %s:%d left unresolved", record.pattern_id, record.source_file, record.source_line)
    if fallback_raw == record.raw_value:
        return record
    return record.evolve(raw_value=fallback_raw)


def resolve(
    record: SocketRecord,
    call: CallSite,
    declarations: Mapping[str, Expr],
    catalog: PatternCatalog,
) -> SocketRecord:
    """Return the finalized record for ``record``.

    Already-resolved records come back unchanged (the same object), so
    calling this twice is a no-op. An unresolved result is a normal
    outcome, not an error.
    """
    if record.resolved:
        return record

    descriptor = catalog.get(record.pattern_id)
    if descriptor is None:
        return record

    arg = address_argument(call, descriptor)
    if arg is None:
        return record

    return _resolve_argument(record, arg, declarations, descriptor)
