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

"""Naming idioms that hint at where a non-literal address points.

These heuristics are approximate. They only name a placeholder host
(``localhost``, ``external-service``, ...) and never claim a port.
Tables are checked in order, first match wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from sockscope.models.sockets import Confidence


@dataclass(frozen=True)
class IdiomMatch:
    """A heuristic guess about an address."""

    idiom: str
    host: str
    port: Optional[int] = None
    confidence: Confidence = Confidence.LOW
    raw_value: Optional[str] = None


@dataclass(frozen=True)
class _Idiom:
    name: str
    pattern: re.Pattern
    host: str
    raw_value: Optional[str] = None


# Variable and field names, e.g. server.URL, apiURL, SERVICE_URL
NAME_IDIOMS: tuple[_Idiom, ...] = (
    # httptest.NewServer() binds to the loopback interface on a random port
    _Idiom("test-server", re.compile(r"httptest|server\.url\b|test_?server", re.I), "localhost"),
    _Idiom("loopback", re.compile(r"localhost|127\.0\.0\.1|loopback", re.I), "localhost"),
    _Idiom(
        "external-endpoint",
        re.compile(r"(?:api|service|endpoint).*url|url.*(?:api|service|endpoint)", re.I),
        "external-service",
    ),
)

# Callee names of calls whose result is used as an address
CALL_IDIOMS: tuple[_Idiom, ...] = (
    # url.Parse(...) followed by .String()
    _Idiom("url-to-string", re.compile(r"url.*string", re.I), "parsed-url-host", raw_value="parsed-url"),
    _Idiom("url-getter", re.compile(r"(?:^|[._])(?:get|build|make)\w*url", re.I), "dynamic-url"),
)

# Accessors that read an environment variable; the variable name is then
# classified like any other name.
ENV_ACCESSORS = frozenset({
    "os.Getenv",
    "os.LookupEnv",
    "os.getenv",
    "os.environ.get",
    "environ.get",
})


def _first_match(table: tuple[_Idiom, ...], text: str) -> Optional[IdiomMatch]:
    for idiom in table:
        if idiom.pattern.search(text):
            return IdiomMatch(idiom=idiom.name, host=idiom.host, raw_value=idiom.raw_value)
    return None


def classify_name_idiom(name: str) -> Optional[IdiomMatch]:
    """Classify a variable or dotted field name, e.g. ``server.URL``."""
    if not name:
        return None
    return _first_match(NAME_IDIOMS, name)


def classify_call_idiom(callee: str, first_literal: Optional[str] = None) -> Optional[IdiomMatch]:
    """Classify a call whose return value is passed as an address.

    ``first_literal`` is the call's first argument when it is a string
    literal; for environment accessors it names the variable being read.
    """
    if not callee:
        return None
    if callee in ENV_ACCESSORS:
        if first_literal is None:
            return None
        match = classify_name_idiom(first_literal)
        if match is None:
            return None
        return IdiomMatch(
            idiom=f"env:{match.idiom}",
            host=match.host,
            raw_value=f"{callee}({first_literal!r})",
        )
    return _first_match(CALL_IDIOMS, callee)
