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

"""Pattern catalog: which calls open sockets and where their address lives.

A catalog maps a qualified call name, exactly as written at the call site
(``net.Dial``, ``requests.get``, ``urlopen``), to a PatternDescriptor.
Catalogs are immutable values. Callers that need more patterns build a
new catalog with ``extend()`` or ``load_catalog_file()`` and pass it in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml
from pydantic import BaseModel, Field, ValidationError

from sockscope.exceptions import CatalogError, UnsupportedLanguageError
from sockscope.models.sockets import Protocol, TrafficDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternDescriptor:
    """How to read one catalogued call.

    address_index: position of the argument holding the address or URL
    address_is_url: the argument is a URL rather than host:port
    """

    direction: TrafficDirection
    protocol: Protocol
    address_index: int = 0
    address_is_url: bool = False


def _ingress(protocol: Protocol, index: int = 0) -> PatternDescriptor:
    return PatternDescriptor(TrafficDirection.INGRESS, protocol, index)


def _egress(protocol: Protocol, index: int = 0, url: bool = False) -> PatternDescriptor:
    return PatternDescriptor(TrafficDirection.EGRESS, protocol, index, url)


class PatternCatalog(Mapping[str, PatternDescriptor]):
    """Read-only, exact-match mapping of qualified call names to descriptors."""

    def __init__(self, entries: Iterable[tuple[str, PatternDescriptor]], name: str = "custom") -> None:
        table: dict[str, PatternDescriptor] = {}
        for key, descriptor in entries:
            if key in table:
                raise CatalogError(f"Duplicate catalog entry in {name}: {key}")
            table[key] = descriptor
        self._table = MappingProxyType(table)
        self.name = name

    def __getitem__(self, key: str) -> PatternDescriptor:
        return self._table[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"PatternCatalog(name={self.name!r}, entries={len(self)})"

    def extend(
        self,
        entries: Mapping[str, PatternDescriptor] | Iterable[tuple[str, PatternDescriptor]],
        name: str | None = None,
    ) -> PatternCatalog:
        """Return a new catalog with ``entries`` added.

        Extension entries may override built-in ones. The receiver is left
        untouched.
        """
        items = entries.items() if isinstance(entries, Mapping) else entries
        merged = dict(self._table)
        for key, descriptor in items:
            if key in merged:
                logger.debug("Catalog %s: overriding %s", self.name, key)
            merged[key] = descriptor
        return PatternCatalog(merged.items(), name=name or self.name)


GO_CATALOG = PatternCatalog(
    [
        # Listeners
        ("net.Listen", _ingress(Protocol.TCP, 1)),
        ("net.ListenTCP", _ingress(Protocol.TCP, 1)),
        ("net.ListenUDP", _ingress(Protocol.UDP, 1)),
        ("net.ListenUnix", _ingress(Protocol.UNIX, 1)),
        ("net.ListenPacket", _ingress(Protocol.UDP, 1)),
        ("tls.Listen", _ingress(Protocol.TCP, 1)),
        ("http.ListenAndServe", _ingress(Protocol.HTTP, 0)),
        ("http.ListenAndServeTLS", _ingress(Protocol.HTTPS, 0)),
        # Outbound connections
        ("net.Dial", _egress(Protocol.TCP, 1)),
        ("net.DialTCP", _egress(Protocol.TCP, 2)),
        ("net.DialUDP", _egress(Protocol.UDP, 2)),
        ("net.DialTimeout", _egress(Protocol.TCP, 1)),
        ("tls.Dial", _egress(Protocol.TCP, 1)),
        ("http.Get", _egress(Protocol.HTTP, 0, url=True)),
        ("http.Head", _egress(Protocol.HTTP, 0, url=True)),
        ("http.Post", _egress(Protocol.HTTP, 0, url=True)),
        ("http.PostForm", _egress(Protocol.HTTP, 0, url=True)),
        ("http.NewRequest", _egress(Protocol.HTTP, 1, url=True)),
        ("http.NewRequestWithContext", _egress(Protocol.HTTP, 2, url=True)),
        ("grpc.Dial", _egress(Protocol.GRPC, 0)),
        ("grpc.NewClient", _egress(Protocol.GRPC, 0)),
    ],
    name="go",
)

_PY_HTTP_VERBS = ("get", "post", "put", "patch", "delete", "head", "options")

PYTHON_CATALOG = PatternCatalog(
    [
        *((f"requests.{verb}", _egress(Protocol.HTTP, 0, url=True)) for verb in _PY_HTTP_VERBS),
        ("requests.request", _egress(Protocol.HTTP, 1, url=True)),
        *((f"httpx.{verb}", _egress(Protocol.HTTP, 0, url=True)) for verb in _PY_HTTP_VERBS),
        ("httpx.request", _egress(Protocol.HTTP, 1, url=True)),
        ("urlopen", _egress(Protocol.HTTP, 0, url=True)),
        ("socket.create_connection", _egress(Protocol.TCP, 0)),
        ("grpc.insecure_channel", _egress(Protocol.GRPC, 0)),
        ("grpc.secure_channel", _egress(Protocol.GRPC, 0)),
        ("server.add_insecure_port", _ingress(Protocol.GRPC, 0)),
        ("server.add_secure_port", _ingress(Protocol.GRPC, 0)),
        ("socketserver.TCPServer", _ingress(Protocol.TCP, 0)),
        ("socketserver.ThreadingTCPServer", _ingress(Protocol.TCP, 0)),
        ("socketserver.UDPServer", _ingress(Protocol.UDP, 0)),
        ("HTTPServer", _ingress(Protocol.HTTP, 0)),
        ("ThreadingHTTPServer", _ingress(Protocol.HTTP, 0)),
    ],
    name="python",
)

BUILTIN_CATALOGS: dict[str, PatternCatalog] = {
    "go": GO_CATALOG,
    "python": PYTHON_CATALOG,
}


def catalog_for_language(language: str) -> PatternCatalog:
    """Return the built-in catalog for ``language`` ("go" or "python")."""
    try:
        return BUILTIN_CATALOGS[language]
    except KeyError:
        raise UnsupportedLanguageError(
            f"No pattern catalog for language {language!r} "
            f"(available: {', '.join(sorted(BUILTIN_CATALOGS))})"
        ) from None


# ── Catalog extension files ───────────────────────────────────────


class CatalogEntry(BaseModel):
    """One pattern as written in a catalog extension file."""

    name: str = Field(min_length=1)
    direction: TrafficDirection
    protocol: Protocol
    address_index: int = Field(default=0, ge=0)
    address_is_url: bool = False
    language: str | None = None

    def to_descriptor(self) -> PatternDescriptor:
        return PatternDescriptor(
            direction=self.direction,
            protocol=self.protocol,
            address_index=self.address_index,
            address_is_url=self.address_is_url,
        )


def load_catalog_entries(path: str | Path) -> list[CatalogEntry]:
    """Load and validate the ``patterns`` list of a YAML catalog file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise CatalogError(f"Cannot read catalog file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in catalog file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("patterns", []), list):
        raise CatalogError(f"{path}: expected a mapping with a 'patterns' list")

    entries = []
    for index, raw in enumerate(data.get("patterns", [])):
        try:
            entries.append(CatalogEntry.model_validate(raw))
        except ValidationError as e:
            raise CatalogError(f"{path}: pattern #{index + 1} is invalid: {e}") from e
    return entries


def load_catalog_file(
    path: str | Path,
    base: PatternCatalog | None = None,
    language: str | None = None,
) -> PatternCatalog:
    """Extend ``base`` (or an empty catalog) with the patterns in ``path``.

    Entries that declare a ``language`` other than ``language`` are
    skipped, so one extension file can serve several dialects.
    """
    entries = load_catalog_entries(path)
    selected = [
        (entry.name, entry.to_descriptor())
        for entry in entries
        if entry.language is None or language is None or entry.language == language
    ]
    logger.info("Loaded %d pattern(s) from %s", len(selected), path)
    if base is None:
        return PatternCatalog(selected, name=Path(path).stem)
    return base.extend(selected)
