"""Core data records passed between extraction, checking and reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .package import Package


@dataclass(frozen=True)
class SourceLocation:
    """Position inside a source file: 1-based line, 0-based column."""

    line: int
    column: int

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "column": self.column}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceLocation":
        return cls(line=int(data["line"]), column=int(data["column"]))


class ViolationType(str, Enum):
    DEPENDENCY = "dependency"
    PRIVACY = "privacy"


@dataclass(frozen=True)
class UnresolvedReference:
    """A constant name found in a file, not yet mapped to its definition."""

    constant_name: str
    namespace_path: List[str]
    relative_path: str
    source_location: SourceLocation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constant_name": self.constant_name,
            "namespace_path": list(self.namespace_path),
            "relative_path": self.relative_path,
            "source_location": self.source_location.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnresolvedReference":
        return cls(
            constant_name=data["constant_name"],
            namespace_path=list(data["namespace_path"]),
            relative_path=data["relative_path"],
            source_location=SourceLocation.from_dict(data["source_location"]),
        )


@dataclass(frozen=True)
class ConstantContext:
    """A resolved constant: its full name, defining file and owning package."""

    name: str
    location: str
    package: "Package"

    @property
    def is_public(self) -> bool:
        return self.package.is_public_path(self.location)


@dataclass(frozen=True)
class Reference:
    """A reference from a file in ``package`` to a constant of another package."""

    package: "Package"
    relative_path: str
    constant: ConstantContext
    source_location: SourceLocation


@dataclass
class Offense:
    """A reportable problem in a single file."""

    file: str
    message: str
    location: Optional[SourceLocation] = None

    def to_text(self) -> str:
        if self.location is None:
            return f"{self.file}\n{self.message}"
        return f"{self.file}:{self.location.line}:{self.location.column}\n{self.message}"


@dataclass
class ReferenceOffense(Offense):
    """An offense produced by a checker for a cross-package reference."""

    reference: Optional[Reference] = field(default=None)
    violation_type: Optional[ViolationType] = field(default=None)

    @classmethod
    def build(cls, reference: Reference, violation_type: ViolationType, message: str) -> "ReferenceOffense":
        return cls(
            file=reference.relative_path,
            message=message,
            location=reference.source_location,
            reference=reference,
            violation_type=violation_type,
        )
