"""Shared error types for voicebank loading and score synthesis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ConfigError(ValueError):
    """Raised when a timing or prefix table yields no usable entries."""

    source: str
    detail: str = "no_entries"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error_type": "ConfigError",
            "source": self.source,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        return f"{self.detail}: source={self.source}"


@dataclass
class RequestError(ValueError):
    """Raised when a synthesis request cannot be rendered at all."""

    detail: str
    field: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error_type": "RequestError", "detail": self.detail}
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __str__(self) -> str:
        if self.field is not None:
            return f"{self.detail}: field={self.field}"
        return self.detail


@dataclass
class NoteRenderError(Exception):
    """Base for failures that skip a single note without aborting the score."""

    alias: str
    detail: str
    note_index: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "alias": self.alias,
            "detail": self.detail,
        }
        if self.note_index is not None:
            payload["note_index"] = int(self.note_index)
        return payload

    def __str__(self) -> str:
        return f"{self.detail}: alias={self.alias!r} note={self.note_index}"


@dataclass
class AliasNotFoundError(NoteRenderError, LookupError):
    """Resolved alias has no timing entry."""


@dataclass
class FeatureMissingError(NoteRenderError, LookupError):
    """Timing entry references a sample absent from the feature cache."""

    filename: str = ""

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["filename"] = self.filename
        return payload


@dataclass
class FlagParseError(NoteRenderError, ValueError):
    """Note flag string could not be parsed."""

    flags: str = ""

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["flags"] = self.flags
        return payload
