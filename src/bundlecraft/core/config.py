"""Assembly configuration — explicit config > env > defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bundlecraft.core.errors import ConfigError

if TYPE_CHECKING:
    from bundlecraft.config import Settings

# Jaccard token overlap a hint needs to reach before it counts as a match
DEFAULT_SIMILARITY_THRESHOLD = 0.5

# Shorter side of a substring match must be at least this many characters
DEFAULT_MIN_CONTAINMENT_LENGTH = 3


@dataclass(frozen=True)
class AssemblyConfig:
    """Tunable knobs for one assembly run.

    Environment variables:
    - BUNDLECRAFT_SIMILARITY_THRESHOLD: token-overlap threshold in (0, 1]
    - BUNDLECRAFT_MIN_CONTAINMENT_LENGTH: minimum substring length
    - BUNDLECRAFT_SCORER: registered matcher scorer name
    """

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    min_containment_length: int = DEFAULT_MIN_CONTAINMENT_LENGTH
    scorer: str = "default"

    def __post_init__(self):
        if not 0.0 < self.similarity_threshold <= 1.0:
            raise ConfigError(
                f"similarity_threshold must be in (0, 1], got {self.similarity_threshold}"
            )
        if self.min_containment_length < 1:
            raise ConfigError(
                f"min_containment_length must be positive, got {self.min_containment_length}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> AssemblyConfig:
        """Create AssemblyConfig from a dict, applying env var overrides.

        Config precedence: explicit dict values > env vars > class defaults.
        """
        values: dict = {}

        env_threshold = os.environ.get("BUNDLECRAFT_SIMILARITY_THRESHOLD")
        if env_threshold:
            values["similarity_threshold"] = _parse_env(
                "BUNDLECRAFT_SIMILARITY_THRESHOLD", env_threshold, float
            )
        env_length = os.environ.get("BUNDLECRAFT_MIN_CONTAINMENT_LENGTH")
        if env_length:
            values["min_containment_length"] = _parse_env(
                "BUNDLECRAFT_MIN_CONTAINMENT_LENGTH", env_length, int
            )
        env_scorer = os.environ.get("BUNDLECRAFT_SCORER")
        if env_scorer:
            values["scorer"] = env_scorer

        for key in ("similarity_threshold", "min_containment_length", "scorer"):
            if key in data and data[key] is not None:
                values[key] = data[key]

        return cls(**values)

    @classmethod
    def from_settings(cls, settings: Settings) -> AssemblyConfig:
        return cls(
            similarity_threshold=settings.similarity_threshold,
            min_containment_length=settings.min_containment_length,
            scorer=settings.scorer,
        )

    def to_dict(self) -> dict:
        return {
            "similarity_threshold": self.similarity_threshold,
            "min_containment_length": self.min_containment_length,
            "scorer": self.scorer,
        }


def _parse_env(name: str, raw: str, cast):
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e
