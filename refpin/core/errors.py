"""
Error taxonomy for reference resolution.

All errors carry a code from the RP-XXX-NNN taxonomy.
Error domains:
- RP-SKIP-*: Reference intentionally left untouched
- RP-REF-*: Malformed reference or platform
- RP-RES-*: Reference could not be resolved
- RP-NET-*: Transport or response failures
- RP-CFG-*: Configuration errors
"""

from __future__ import annotations

from typing import Any


class RefpinError(Exception):
    """Base class for all refpin errors."""

    code = "RP-GEN-001"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# =============================================================================
# Skip
# =============================================================================


class ReferenceSkippedError(RefpinError):
    """The reference must be left exactly as found. Not a failure."""

    code = "RP-SKIP-001"


# =============================================================================
# Malformed input
# =============================================================================


class MalformedReferenceError(RefpinError):
    """The reference text cannot be understood."""

    code = "RP-REF-001"


class InvalidActionError(MalformedReferenceError):
    """Action name is not of the form owner/repo[/path]."""

    code = "RP-REF-002"


class InvalidActionReferenceError(MalformedReferenceError):
    """Action reference does not have exactly one '@'."""

    code = "RP-REF-003"


class InvalidImageReferenceError(MalformedReferenceError):
    """Container image reference cannot be parsed."""

    code = "RP-REF-004"


class InvalidPlatformError(MalformedReferenceError):
    """Platform is not of the form os/arch."""

    code = "RP-REF-005"


class InvalidDockerfileLineError(MalformedReferenceError):
    """Matched Dockerfile text is not a FROM instruction with an image."""

    code = "RP-REF-006"


# =============================================================================
# Not found
# =============================================================================


class UnresolvableReferenceError(RefpinError):
    """Action reference is neither a tag nor a branch."""

    code = "RP-RES-001"


class ImageNotFoundError(RefpinError):
    """Registry has no manifest for the image reference."""

    code = "RP-RES-002"


# =============================================================================
# Transport
# =============================================================================


class RemoteLookupError(RefpinError):
    """Request to a lookup service failed."""

    code = "RP-NET-001"


class MalformedResponseError(RemoteLookupError):
    """Lookup service answered with an unexpected payload."""

    code = "RP-NET-002"


class OperationCancelledError(RefpinError):
    """Caller cancelled the run."""

    code = "RP-NET-003"


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(RefpinError):
    """Configuration file cannot be loaded."""

    code = "RP-CFG-001"


# =============================================================================
# Error Codes Registry
# =============================================================================

ERROR_CODES: dict[str, str] = {
    "RP-GEN-001": "Unspecified refpin error",
    # Skips
    "RP-SKIP-001": "Reference skipped (local, excluded or already pinned)",
    # Malformed
    "RP-REF-001": "Malformed reference",
    "RP-REF-002": "Invalid action name",
    "RP-REF-003": "Invalid action reference",
    "RP-REF-004": "Invalid container image reference",
    "RP-REF-005": "Platform must be in the format os/arch",
    "RP-REF-006": "Invalid Dockerfile FROM line",
    # Not found
    "RP-RES-001": "Action reference is not a tag nor branch",
    "RP-RES-002": "Container image manifest not found",
    # Transport
    "RP-NET-001": "Lookup request failed",
    "RP-NET-002": "Lookup response could not be decoded",
    "RP-NET-003": "Operation cancelled",
    # Config
    "RP-CFG-001": "Configuration file could not be loaded",
}


def get_error_description(code: str) -> str | None:
    """Get the description for an error code."""
    return ERROR_CODES.get(code)
