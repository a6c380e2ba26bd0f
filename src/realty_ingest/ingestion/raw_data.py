"""
Raw source payloads.

A fetcher hands its parser exactly one of four payload kinds. Parsers unwrap
the kind they expect; unwrapping the wrong kind raises PayloadTypeError.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Union

from src.realty_ingest.errors import PayloadTypeError


class PayloadKind(str, Enum):
    FILE = "file"
    BYTES = "bytes"
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class RawData:
    """
    Tagged payload produced by a source fetcher.

    Build instances with the from_* constructors rather than directly.
    """

    kind: PayloadKind
    payload: Any

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RawData":
        return cls(PayloadKind.FILE, Path(path))

    @classmethod
    def from_bytes(cls, data: bytes) -> "RawData":
        return cls(PayloadKind.BYTES, bytes(data))

    @classmethod
    def from_json(cls, value: Any) -> "RawData":
        return cls(PayloadKind.JSON, value)

    @classmethod
    def from_csv(cls, text: str) -> "RawData":
        return cls(PayloadKind.CSV, text)

    def _expect(self, kind: PayloadKind) -> Any:
        if self.kind is not kind:
            raise PayloadTypeError(f"Expected {kind.value} payload, got {self.kind.value}")
        return self.payload

    def as_file_path(self) -> Path:
        return self._expect(PayloadKind.FILE)

    def as_bytes(self) -> bytes:
        return self._expect(PayloadKind.BYTES)

    def as_json(self) -> Any:
        return self._expect(PayloadKind.JSON)

    def as_csv(self) -> str:
        return self._expect(PayloadKind.CSV)

    def __repr__(self) -> str:
        if self.kind is PayloadKind.BYTES:
            return f"RawData(bytes, {len(self.payload)} bytes)"
        if self.kind is PayloadKind.CSV:
            return f"RawData(csv, {len(self.payload)} chars)"
        return f"RawData({self.kind.value}, {self.payload!r})"
