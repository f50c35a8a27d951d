"""TVDI exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class TVDIError(Exception):
    """Base exception for all TVDI errors.

    All TVDI exceptions use a three-part message pattern providing
    structured error context for developers.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise TVDIError(
        ...     what="Operation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        """Initialize with structured error context.

        Args:
            what: Description of what failed.
            cause: Likely cause of the failure.
            fix: Suggested action to resolve the issue.
        """
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts.

        Returns:
            Formatted message with optional Cause and Fix lines.
        """
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class InputValidationError(TVDIError):
    """Raised when required inputs are missing or inconsistent.

    Covers absent NDVI/LST fields, region or scale, and NDVI/LST
    sequences of unequal length. Raised before any computation starts.

    Example:
        >>> raise InputValidationError(
        ...     what="Invalid TVDI inputs",
        ...     cause="NDVI field must not be None",
        ...     fix="Provide an NDVI raster",
        ... )
    """


class InsufficientDataError(TVDIError):
    """Raised when the wet or dry edge cannot be estimated.

    Happens when no NDVI interval holds two or more distinct LST values,
    or the aggregated edge mask is empty inside the region.

    Example:
        >>> raise InsufficientDataError(
        ...     what="Dry edge is empty",
        ...     cause="No NDVI interval produced dry-edge pixels",
        ...     fix="Use a larger region or a scene with more LST contrast",
        ... )
    """


class RasterError(TVDIError):
    """Raised for raster substrate failures.

    Grid mismatches between fields, pixel budgets exceeded during a
    reduction, invalid geometries and unreadable raster files.

    Example:
        >>> raise RasterError(
        ...     what="Fields are not aligned",
        ...     cause="Shapes (10, 10) and (20, 20) differ",
        ...     fix="Reproject both fields onto a common grid",
        ... )
    """
