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

"""Pydantic models for detected sockets and the per-run analysis result."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class TrafficDirection(str, Enum):
    """Which side of a connection the call site creates."""

    INGRESS = "ingress"
    EGRESS = "egress"


class Protocol(str, Enum):
    """Transport or application protocol of a socket."""

    TCP = "tcp"
    UDP = "udp"
    UNIX = "unix"
    HTTP = "http"
    HTTPS = "https"
    GRPC = "grpc"


# Protocols whose tag may be corrected by a URL scheme found in the address
HTTP_FAMILY = frozenset({Protocol.HTTP, Protocol.HTTPS})


class Confidence(str, Enum):
    """How much the structured fields of a record can be trusted.

    high: taken from a string literal or a top-level constant
    medium: parsed from the known prefix of a concatenation
    low: guessed from a variable or function naming idiom
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_INGRESS_FIELDS = ("listen_port", "listen_interface")
_EGRESS_FIELDS = ("destination_host", "destination_port")


class SocketRecord(BaseModel):
    """One call site that creates a listener or an outbound connection.

    Records are frozen. The matcher creates them, the resolver may
    produce one finalized copy, and nothing touches them afterwards.
    """

    model_config = ConfigDict(frozen=True)

    direction: TrafficDirection
    protocol: Protocol
    pattern_id: str
    raw_value: str = ""
    resolved: bool = False

    # ingress only
    listen_port: Optional[int] = None
    listen_interface: Optional[str] = None

    # egress only
    destination_host: Optional[str] = None
    destination_port: Optional[int] = None

    source_file: str = ""
    source_line: int = 0
    owner_name: str = ""
    function_name: str = ""
    confidence: Optional[Confidence] = None

    @model_validator(mode="after")
    def _check_direction_fields(self) -> SocketRecord:
        foreign = _EGRESS_FIELDS if self.direction == TrafficDirection.INGRESS else _INGRESS_FIELDS
        populated = [name for name in foreign if getattr(self, name) is not None]
        if populated:
            raise ValueError(
                f"{self.direction.value} record cannot carry {', '.join(populated)}"
            )
        if self.resolved != self.has_structured_fields():
            raise ValueError("resolved must be set exactly when a structured field is populated")
        return self

    def has_structured_fields(self) -> bool:
        """Return True if any host/port/interface field is populated."""
        return any(
            getattr(self, name) is not None for name in _INGRESS_FIELDS + _EGRESS_FIELDS
        )

    @property
    def is_ingress(self) -> bool:
        return self.direction == TrafficDirection.INGRESS

    def evolve(self, **changes: object) -> SocketRecord:
        """Return a validated copy with ``changes`` applied.

        ``model_copy(update=...)`` skips validation, so the field invariants
        are re-checked by building a fresh instance.
        """
        data = self.model_dump()
        data.update(changes)
        return type(self)(**data)


class SkippedFile(BaseModel):
    """A file left out of the run under the skip error policy."""

    path: str
    reason: str


class AnalysisResult(BaseModel):
    """All records of one run, in discovery order.

    The counts are derived from ``records`` on every read, so they can
    never drift from the sequence even if a caller filters it.
    """

    owner_name: str = ""
    records: list[SocketRecord] = Field(default_factory=list)
    skipped_files: list[SkippedFile] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_count(self) -> int:
        return len(self.records)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ingress_count(self) -> int:
        return sum(1 for r in self.records if r.direction == TrafficDirection.INGRESS)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def egress_count(self) -> int:
        return sum(1 for r in self.records if r.direction == TrafficDirection.EGRESS)
