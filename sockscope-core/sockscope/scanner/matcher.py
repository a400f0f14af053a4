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

"""Call-site matcher: call expression + catalog -> preliminary SocketRecord.

Matching is lexical. ``net.Dial`` matches whatever the receiver ``net``
happens to be at the call site, and a local function named like a bare
catalog entry is a false positive. Passing ``imports`` switches to
import-resolved names: the receiver must be an imported package and
aliases are mapped back to the package name.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional

from sockscope.models.sockets import SocketRecord
from sockscope.models.syntax import CallSite, Expr, MemberAccess, NameRef, StringLiteral
from sockscope.scanner.addresses import apply_address
from sockscope.scanner.catalog import PatternCatalog, PatternDescriptor

logger = logging.getLogger(__name__)


def qualified_name(callee: Expr, imports: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return ``name`` or ``receiver.member`` for a callee, else None.

    Deeper selector chains (``a.b.c``) and computed receivers are not
    matched.
    """
    if isinstance(callee, NameRef):
        if imports is None:
            return callee.name
        return imports.get(callee.name)

    if isinstance(callee, MemberAccess) and len(callee.parts) == 2:
        receiver, member = callee.parts
        if imports is not None:
            if receiver not in imports:
                return None
            receiver = imports[receiver]
        return f"{receiver}.{member}"

    return None


def address_argument(call: CallSite, descriptor: PatternDescriptor) -> Optional[Expr]:
    """Return the argument holding the address, or None if the call is too short."""
    if len(call.arguments) <= descriptor.address_index:
        return None
    return call.arguments[descriptor.address_index]


def match_call_site(
    call: CallSite,
    catalog: PatternCatalog,
    *,
    imports: Optional[Mapping[str, str]] = None,
    source_file: str = "",
    owner_name: str = "",
) -> Optional[SocketRecord]:
    """Match one call against ``catalog``.

    Returns None for a call that is not catalogued or supplies too few
    arguments. A string-literal address is parsed on the spot; anything
    else leaves the record unresolved for the resolver.
    """
    name = qualified_name(call.callee, imports)
    if name is None:
        return None

    descriptor = catalog.get(name)
    if descriptor is None:
        return None

    arg = address_argument(call, descriptor)
    if arg is None:
        logger.debug("%s at line %d: too few arguments", name, call.line)
        return None

    raw_value = arg.value if isinstance(arg, StringLiteral) else ""

    record = SocketRecord(
        direction=descriptor.direction,
        protocol=descriptor.protocol,
        pattern_id=name,
        raw_value=raw_value,
        source_file=source_file,
        source_line=call.line,
        owner_name=owner_name,
        function_name=call.function_name,
    )
    logger.debug("Matched %s at %s:%d", name, source_file, call.line)

    if raw_value:
        parsed = apply_address(record, raw_value, url=descriptor.address_is_url)
        if parsed is not None:
            return parsed
    return record
