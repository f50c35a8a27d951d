"""Configuration for TVDI computations.

A frozen ``Config`` snapshot is passed to (or resolved by) every entry
point, so later ``configure()`` calls never affect work in progress.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger("tvdi")

_DEFAULT_MAX_PIXELS = 1_000_000_000


class Config(BaseModel):
    """Computation settings.

    Immutable pydantic model. The NDVI/LST interval layout and the 2% /
    98% edge percentiles are part of the algorithm and are not exposed
    here.

    Args:
        target_crs: CRS the NDVI field is reprojected to before
            processing. ``None`` keeps the NDVI field's own CRS.
        max_pixels: Upper bound on region pixels per reduction.
        denominator_epsilon: TVDI pixels whose denominator magnitude is
            at or below this value are masked.

    Example:
        >>> cfg = Config(target_crs="EPSG:4326", max_pixels=10_000_000)
        >>> cfg.denominator_epsilon
        1e-09
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    target_crs: str | None = None
    max_pixels: int = _DEFAULT_MAX_PIXELS
    denominator_epsilon: float = 1e-9

    @field_validator("target_crs")
    @classmethod
    def _validate_crs(cls, v: str | None) -> str | None:
        """Ensure CRS matches EPSG format."""
        if v is None:
            return None
        if not re.match(r"^EPSG:\d+$", v):
            msg = "target_crs must match 'EPSG:<number>' format"
            raise ValueError(msg)
        return v

    @field_validator("max_pixels")
    @classmethod
    def _validate_max_pixels(cls, v: int) -> int:
        """Ensure the pixel budget is positive."""
        if v <= 0:
            msg = "max_pixels must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("denominator_epsilon")
    @classmethod
    def _validate_epsilon(cls, v: float) -> float:
        """Ensure the denominator tolerance is non-negative."""
        if v < 0:
            msg = "denominator_epsilon must not be negative"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``target_crs``,
            ``max_pixels``, ``denominator_epsilon``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(target_crs="EPSG:4326", max_pixels=50_000_000)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)
    logger.debug("Default configuration updated: %s", _default_config)


def get_default_config() -> Config:
    """Return the current module-level default configuration.

    Returns:
        The active ``Config`` instance.
    """
    return _default_config
