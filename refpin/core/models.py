"""
Reference data models.

Core models for resolved references, lookup outcomes and run results.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

# =============================================================================
# Enums
# =============================================================================


class ReferenceType(str, Enum):
    """Kind of referenced artifact."""

    ACTION = "action"
    CONTAINER = "container"


class LookupStatus(Enum):
    """Outcome of a single git reference lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


# =============================================================================
# Entity Models
# =============================================================================


class EntityRef(BaseModel, frozen=True):
    """A resolved or listed reference."""

    name: str = Field(description="Normalized artifact name, e.g. 'actions/checkout'")
    ref: str = Field(description="Resolved SHA/digest, or the original tag when listing")
    type: ReferenceType = Field(description="Artifact kind")
    tag: str = Field(default="", description="Original mutable tag or branch")
    prefix: str = Field(default="", description="Leading syntax recovered from the line")

    def pinned(self) -> str:
        """Render as 'name@ref # tag'."""
        if self.tag:
            return f"{self.name}@{self.ref} # {self.tag}"
        return f"{self.name}@{self.ref}"

    def with_prefix(self, prefix: str) -> EntityRef:
        """Return a copy with prefix prepended to the current one."""
        return self.model_copy(update={"prefix": prefix + self.prefix})


class RefLookup(BaseModel, frozen=True):
    """Result of looking up a git ref on the source-control host."""

    status: LookupStatus
    sha: str = ""
    object_type: str = ""
    detail: str = ""

    @classmethod
    def found(cls, sha: str, object_type: str) -> RefLookup:
        return cls(status=LookupStatus.FOUND, sha=sha, object_type=object_type)

    @classmethod
    def not_found(cls) -> RefLookup:
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def malformed(cls, detail: str) -> RefLookup:
        return cls(status=LookupStatus.MALFORMED, detail=detail)

    @property
    def is_found(self) -> bool:
        return self.status == LookupStatus.FOUND


class Descriptor(BaseModel, frozen=True):
    """Manifest descriptor returned by a registry."""

    media_type: str = ""
    digest: str
    size: int = 0


# =============================================================================
# Result Models
# =============================================================================


class ReplaceResult(BaseModel):
    """Result of rewriting every file below a path."""

    processed: list[str] = Field(default_factory=list)
    modified: dict[str, str] = Field(default_factory=dict)
    encodings: dict[str, str] = Field(default_factory=dict)


class ListResult(BaseModel):
    """Result of listing references below a path."""

    processed: list[str] = Field(default_factory=list)
    entities: list[EntityRef] = Field(default_factory=list)
