"""Configuration management for rnamaps.

Settings come from defaults or from a YAML file whose top-level sections
mirror the classes below. Unknown sections or keys are rejected.

Example:
    >>> from rnamaps.config import Config
    >>> config = Config.load("rnamaps.yaml")
    >>> config.significance.bin_size
    10

A configuration file looks like::

    window:
      exon_reach: 50
      intron_reach: 300
    significance:
      bin_size: 10
      alpha: 0.01
    matching:
      cutpoints: [0.0, 0.25, 0.5, 0.75, 1.0]
      seed: 0
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import attrs
import yaml

# =============================================================================
# Default Configuration Values
# =============================================================================

# Splice-site window defaults
DEFAULT_EXON_REACH = 50
DEFAULT_INTRON_REACH = 300

# Binned significance defaults
DEFAULT_BIN_SIZE = 10
DEFAULT_ALPHA = 0.01

# Control matching defaults
DEFAULT_CUTPOINTS = (0.0, 0.25, 0.5, 0.75, 1.0)
DEFAULT_SEED = 0

# =============================================================================
# Validators
# =============================================================================


def _non_negative(instance: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 0:
        raise ValueError(f"{attribute.name} must be >= 0, got {value}")


def _positive(instance: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 1:
        raise ValueError(f"{attribute.name} must be >= 1, got {value}")


def _probability(instance: Any, attribute: attrs.Attribute, value: float) -> None:
    if not 0 < value <= 1:
        raise ValueError(f"{attribute.name} must be within (0, 1], got {value}")


def _cutpoints(instance: Any, attribute: attrs.Attribute, value: tuple[float, ...]) -> None:
    if len(value) < 2:
        raise ValueError(f"{attribute.name} needs at least two values")
    if any(p < 0 or p > 1 for p in value):
        raise ValueError(f"{attribute.name} must lie within [0, 1], got {list(value)}")
    if list(value) != sorted(value):
        raise ValueError(f"{attribute.name} must be sorted, got {list(value)}")


def _float_tuple(value: Any) -> tuple[float, ...]:
    return tuple(float(v) for v in value)


# =============================================================================
# Configuration Classes
# =============================================================================


@attrs.define
class WindowConfig:
    """Configuration for splice-site windows.

    Attributes:
        exon_reach: Exonic bases read beyond the anchor nucleotide.
        intron_reach: Intronic bases read beyond the anchor nucleotide.
    """

    exon_reach: int = attrs.field(default=DEFAULT_EXON_REACH, validator=_non_negative)
    intron_reach: int = attrs.field(default=DEFAULT_INTRON_REACH, validator=_non_negative)

    @property
    def width(self) -> int:
        """Window length in positions."""
        return self.exon_reach + self.intron_reach + 1


@attrs.define
class SignificanceConfig:
    """Configuration for the binned significance test.

    Attributes:
        bin_size: Columns per sliding bin.
        alpha: Adjusted p-value threshold.
    """

    bin_size: int = attrs.field(default=DEFAULT_BIN_SIZE, validator=_positive)
    alpha: float = attrs.field(default=DEFAULT_ALPHA, validator=_probability)


@attrs.define
class MatchingConfig:
    """Configuration for quantile matching of controls.

    Attributes:
        cutpoints: Ordered quantile probabilities bounding the bins.
        seed: Root seed for control sampling.
    """

    cutpoints: tuple[float, ...] = attrs.field(
        default=DEFAULT_CUTPOINTS, converter=_float_tuple, validator=_cutpoints
    )
    seed: int = DEFAULT_SEED


@attrs.define
class Config:
    """Main configuration container for rnamaps.

    Attributes:
        window: Splice-site window configuration.
        significance: Binned test configuration.
        matching: Control matching configuration.
    """

    window: WindowConfig = attrs.Factory(WindowConfig)
    significance: SignificanceConfig = attrs.Factory(SignificanceConfig)
    matching: MatchingConfig = attrs.Factory(MatchingConfig)

    def __attrs_post_init__(self) -> None:
        if self.significance.bin_size > self.window.width:
            raise ValueError(
                f"bin_size ({self.significance.bin_size}) exceeds the window "
                f"width ({self.window.width})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build configuration from nested dictionaries.

        Raises:
            ValueError: If a section or key is unknown or a value is invalid.
        """
        sections = {
            "window": WindowConfig,
            "significance": SignificanceConfig,
            "matching": MatchingConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name) or {}
            allowed = {a.name for a in attrs.fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ValueError(f"Unknown keys in [{name}]: {sorted(bad)}")
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path | str | None = None) -> Config:
        """Load configuration from file.

        Args:
            path: Path to a YAML configuration file.
                  If None, returns default configuration.

        Returns:
            Loaded configuration object.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            ValueError: If configuration file is invalid.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration.
        """
        data = attrs.asdict(self)
        data["matching"]["cutpoints"] = list(self.matching.cutpoints)
        return data

    def save(self, path: Path | str) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save configuration file.
        """
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
