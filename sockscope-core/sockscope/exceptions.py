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

"""Exceptions raised by sockscope.

A call that matches no pattern, or an address nobody can resolve, is a
normal outcome and never raises. These classes cover the failure modes
that must stop (or be explicitly skipped by) the caller.
"""

from __future__ import annotations


class SockscopeError(Exception):
    """Base class for all sockscope errors."""


class MalformedSourceError(SockscopeError):
    """A source file could not be parsed into a usable syntax tree.

    Attributes:
        path: The file that failed
        reason: Parser message, suitable for showing to a user
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class UnsupportedLanguageError(SockscopeError):
    """No front end or catalog exists for the requested language or file."""


class CatalogError(SockscopeError):
    """A pattern catalog, or a catalog extension file, is invalid."""


class ConfigError(SockscopeError):
    """The scan configuration file or options are invalid."""


class ExportError(SockscopeError):
    """Results could not be rendered in the requested format."""


class AnalysisTimeout(SockscopeError):
    """The run deadline passed before every file was analysed.

    Attributes:
        completed: Number of files whose records were aggregated
        pending: Number of files cancelled or discarded
    """

    def __init__(self, completed: int, pending: int) -> None:
        super().__init__(
            f"Deadline exceeded after {completed} file(s); {pending} file(s) not analysed"
        )
        self.completed = completed
        self.pending = pending
