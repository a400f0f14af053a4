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

"""Address and URL parsing shared by the matcher and the resolver.

Two parsers, both pure:

- parse_bind_address(":8080")            -> interface 0.0.0.0, port 8080
- parse_endpoint("https://a.example/x")  -> host a.example, port 443

``apply_address`` is the only place a parsed address is written into a
record, so a literal seen by the matcher and a constant found by the
resolver always produce identical fields.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sockscope.models.sockets import (
    HTTP_FAMILY,
    Confidence,
    Protocol,
    SocketRecord,
    TrafficDirection,
)

logger = logging.getLogger(__name__)

ANY_INTERFACE = "0.0.0.0"

_PORT_RE = re.compile(r"[0-9]+")

# scheme prefix -> (protocol, default port)
_WEB_SCHEMES: dict[str, tuple[Protocol, int]] = {
    "https://": (Protocol.HTTPS, 443),
    "http://": (Protocol.HTTP, 80),
}

# gRPC name-resolver targets: dns:///host:port, dns://server/host:port, xds:///name
_RESOLVER_TARGET_RE = re.compile(r"(?:dns|passthrough|xds):(?://[^/]*/|//)?", re.IGNORECASE)


@dataclass(frozen=True)
class BindAddress:
    interface: str
    port: Optional[int] = None


@dataclass(frozen=True)
class Endpoint:
    host: Optional[str]
    port: Optional[int] = None
    scheme: Optional[Protocol] = None


def parse_port(text: str) -> Optional[int]:
    """Return ``text`` as a port number if it is all ASCII digits."""
    if _PORT_RE.fullmatch(text):
        return int(text)
    return None


def split_host_port(text: str) -> tuple[str, Optional[str]]:
    """Split ``host:port`` on the last ``:``.

    A bracketed IPv6 host keeps its colons and only a ``:port`` after the
    closing ``]`` counts. The port text is None when no port separator
    follows the host.
    """
    if text.startswith("["):
        end = text.find("]")
        if end > 0:
            host, rest = text[: end + 1], text[end + 1:]
            if rest.startswith(":"):
                return host, rest[1:]
            return host, None

    host, sep, port_text = text.rpartition(":")
    if not sep:
        return text, None
    return host, port_text


def parse_bind_address(text: str) -> Optional[BindAddress]:
    """Parse a listen address such as ``:8080``, ``127.0.0.1:80`` or ``[::]:50051``.

    A missing host means every interface. Strings without a ``:`` carry
    no usable fields and yield None, except a bracketed IPv6 host which
    still names the interface.
    """
    if text.startswith(":"):
        port = parse_port(text[1:])
        if port is not None:
            return BindAddress(interface=ANY_INTERFACE, port=port)

    host, port_text = split_host_port(text)
    if port_text is None:
        if host.startswith("[") and host.endswith("]"):
            return BindAddress(interface=host)
        return None
    return BindAddress(interface=host or ANY_INTERFACE, port=parse_port(port_text))


def _strip_scheme(text: str) -> tuple[str, Optional[Protocol], Optional[int]]:
    for prefix, (protocol, default_port) in _WEB_SCHEMES.items():
        if text.startswith(prefix):
            return text[len(prefix):], protocol, default_port
    return _strip_other_scheme(text), None, None


def _strip_other_scheme(text: str) -> str:
    # Other schemes (grpc://, tcp://) carry no default port
    scheme_end = text.find("://")
    if scheme_end > 0 and text[:scheme_end].isalnum():
        return text[scheme_end + 3:]
    return text


def _strip_target_scheme(text: str) -> str:
    """Drop a gRPC resolver prefix; the authority of ``dns://server/`` is the DNS server."""
    m = _RESOLVER_TARGET_RE.match(text)
    if m is not None:
        return text[m.end():]
    return _strip_other_scheme(text)


def parse_endpoint(text: str, url: bool = True) -> Optional[Endpoint]:
    """Parse an outbound address: a URL or plain ``host:port``.

    ``http://`` and ``https://`` supply default ports 80 and 443, which an
    explicit port in the string overrides. Without a scheme the port is
    only known when written out. With ``url=False`` the string is a dial
    target: no web scheme is looked for, but a gRPC resolver prefix such
    as ``dns:///`` is dropped.
    """
    if url:
        remainder, scheme, default_port = _strip_scheme(text)
    else:
        remainder, scheme, default_port = _strip_target_scheme(text), None, None
    segment = remainder.split("/", 1)[0]
    # userinfo is not part of the destination
    segment = segment.rpartition("@")[2]
    if not segment:
        return None

    host, port_text = split_host_port(segment)
    if port_text is None:
        endpoint = Endpoint(host=host, port=default_port, scheme=scheme)
    else:
        endpoint = Endpoint(host=host or None, port=parse_port(port_text), scheme=scheme)

    if endpoint.host is None and endpoint.port is None:
        return None
    return endpoint


def apply_address(
    record: SocketRecord,
    text: str,
    confidence: Confidence = Confidence.HIGH,
    raw_value: Optional[str] = None,
    url: bool = True,
) -> Optional[SocketRecord]:
    """Parse ``text`` for ``record``'s direction and return the filled-in copy.

    ``url`` comes from the pattern descriptor and only matters for egress.
    Returns None when the parser derives no field; the caller decides what
    an unresolved record should look like.
    """
    raw = text if raw_value is None else raw_value

    if record.direction == TrafficDirection.INGRESS:
        bind = parse_bind_address(text)
        if bind is None:
            return None
        return record.evolve(
            raw_value=raw,
            resolved=True,
            listen_interface=bind.interface,
            listen_port=bind.port,
            confidence=confidence,
        )

    endpoint = parse_endpoint(text, url=url)
    if endpoint is None:
        return None
    protocol = record.protocol
    if endpoint.scheme is not None and protocol in HTTP_FAMILY and protocol != endpoint.scheme:
        logger.debug("%s: protocol %s -> %s", record.pattern_id, protocol.value, endpoint.scheme.value)
        protocol = endpoint.scheme
    return record.evolve(
        raw_value=raw,
        resolved=True,
        protocol=protocol,
        destination_host=endpoint.host,
        destination_port=endpoint.port,
        confidence=confidence,
    )
