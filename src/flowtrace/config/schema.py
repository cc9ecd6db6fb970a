"""
Pydantic models for flowtrace configuration files.

This module defines the configuration schema for the flowtrace CLI using
Pydantic v2. It validates TOML configuration files and provides type-safe
access to configuration values.

The configuration hierarchy:
- FlowtraceConfig (flowtrace.toml): network source, optional diversions,
  global settings and an optional gauges file
- GageFileConfig (gauges.toml): named gauges located on network segments
"""

import logging
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from flowtrace.core.distance import MeasureFrom, OutletPolicy
from flowtrace.core.output_writer import OutputFormat

from .defaults import (
    DEFAULT_DIVERSION_FROM_FIELD,
    DEFAULT_DIVERSION_TO_FIELD,
    DEFAULT_FROM_NODE_FIELD,
    DEFAULT_GAGE_NAME,
    DEFAULT_ID_FIELD,
    DEFAULT_LENGTH_FIELD,
    DEFAULT_MAX_FAILS,
    DEFAULT_MEASURE_FROM,
    DEFAULT_OUTLET_POLICY,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_TERMINAL_VALUES,
    DEFAULT_TO_FIELD,
    DEFAULT_TO_NODE_FIELD,
    DEFAULT_TOPOLOGY,
    DEFAULT_UP_FIELDS,
)

logger = logging.getLogger(__name__)


class TopologyFormat(str, Enum):
    """How the network table encodes flow direction."""

    TO_ID = "to_id"
    UPSTREAM_COLUMNS = "upstream_columns"
    NODES = "nodes"


def _strip_required(v: str, name: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{name} cannot be empty")
    return v.strip()


class NetworkConfig(BaseModel):
    """
    Location and layout of the segment table.

    Only the fields relevant to the chosen topology format are read.
    """

    path: str = Field(..., description="Path to the flowline table (GeoPackage, Shapefile, GeoJSON or CSV)")
    layer: str | None = Field(default=None, description="Layer name for multi-layer sources")
    topology: TopologyFormat = Field(default=TopologyFormat(DEFAULT_TOPOLOGY), description="Topology encoding")
    id_field: str = Field(default=DEFAULT_ID_FIELD, description="Segment identifier field")
    to_field: str = Field(default=DEFAULT_TO_FIELD, description="Downstream identifier field (to_id topology)")
    length_field: str = Field(default=DEFAULT_LENGTH_FIELD, description="Segment length field")
    order_field: str | None = Field(default=None, description="Mainstem ordering attribute, e.g. drainage area")
    up_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_UP_FIELDS),
        description="Upstream id fields (upstream_columns topology)",
    )
    from_node_field: str = Field(default=DEFAULT_FROM_NODE_FIELD, description="From-node field (nodes topology)")
    to_node_field: str = Field(default=DEFAULT_TO_NODE_FIELD, description="To-node field (nodes topology)")
    terminal_values: list[int | str] = Field(
        default_factory=lambda: list(DEFAULT_TERMINAL_VALUES),
        description="Downstream id values meaning 'no downstream segment'",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure the network path is not empty."""
        return _strip_required(v, "Network path")

    @field_validator("id_field", "to_field", "length_field", "from_node_field", "to_node_field")
    @classmethod
    def validate_field_name(cls, v: str) -> str:
        """Ensure field names are not empty."""
        return _strip_required(v, "Field name")

    @model_validator(mode="after")
    def validate_up_fields(self) -> "NetworkConfig":
        """upstream_columns topology needs at least one upstream field."""
        if self.topology is TopologyFormat.UPSTREAM_COLUMNS and not self.up_fields:
            raise ValueError("up_fields must list at least one column for upstream_columns topology")
        return self


class DiversionsConfig(BaseModel):
    """Optional edge table with diversion (alternate downstream) connections."""

    path: str = Field(..., description="Path to the diversion edge table")
    from_field: str = Field(default=DEFAULT_DIVERSION_FROM_FIELD, description="Upstream segment id field")
    to_field: str = Field(default=DEFAULT_DIVERSION_TO_FIELD, description="Diverted-to segment id field")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure the diversions path is not empty."""
        return _strip_required(v, "Diversions path")


class SettingsConfig(BaseModel):
    """
    Global settings for network queries.

    These settings apply to every command unless overridden on the command line.
    """

    output_dir: str = Field(default=DEFAULT_OUTPUT_DIR, description="Base directory for all outputs")
    outlet_policy: OutletPolicy = Field(
        default=OutletPolicy(DEFAULT_OUTLET_POLICY),
        description="strict: single outlet required; per_component: measure each network separately",
    )
    measure_from: MeasureFrom = Field(
        default=MeasureFrom(DEFAULT_MEASURE_FROM),
        description="upstream: include each segment's own length; downstream: outlet distance is 0",
    )
    output_format: OutputFormat = Field(
        default=OutputFormat(DEFAULT_OUTPUT_FORMAT), description="File format for segment subsets"
    )
    validate_graph: bool = Field(default=True, description="Reject cyclic networks when loading")
    max_fails: int | None = Field(default=DEFAULT_MAX_FAILS, description="Stop a batch after N failures")

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        """Validate output directory path is not empty."""
        return _strip_required(v, "output_dir")

    @field_validator("max_fails")
    @classmethod
    def validate_max_fails(cls, v: int | None) -> int | None:
        """Ensure max_fails is positive if provided."""
        if v is not None and v <= 0:
            raise ValueError(f"max_fails must be positive, got {v}")
        return v


class GageConfig(BaseModel):
    """A stream gauge already matched to the segment it sits on."""

    gage_id: str = Field(..., description="Unique gauge identifier")
    segment_id: int | str = Field(..., description="Identifier of the segment the gauge sits on")
    gage_name: str = Field(default=DEFAULT_GAGE_NAME, description="Human-readable gauge name")

    @field_validator("gage_id")
    @classmethod
    def validate_gage_id(cls, v: str) -> str:
        """Ensure gage_id is not empty."""
        return _strip_required(v, "gage_id")

    @field_validator("gage_name")
    @classmethod
    def validate_gage_name(cls, v: str) -> str:
        """Normalize gage_name by stripping whitespace."""
        return v.strip()


class GageFileConfig(BaseModel):
    """Root model for a gauges TOML file."""

    gages: list[GageConfig] = Field(..., description="List of gauges")

    @model_validator(mode="after")
    def validate_unique_gage_ids(self) -> "GageFileConfig":
        """Ensure all gage_ids are unique."""
        gage_ids = [gage.gage_id for gage in self.gages]
        duplicates = sorted(gid for gid in set(gage_ids) if gage_ids.count(gid) > 1)

        if duplicates:
            raise ValueError(f"Duplicate gage_ids found in gauges file: {duplicates}")

        return self


class FlowtraceConfig(BaseModel):
    """
    Root configuration for the flowtrace CLI, loaded from flowtrace.toml.
    """

    network: NetworkConfig = Field(..., description="Segment table source")
    diversions: DiversionsConfig | None = Field(default=None, description="Optional diversion edges")
    settings: SettingsConfig = Field(default_factory=SettingsConfig, description="Global settings")
    gages: str | None = Field(default=None, description="Optional path to a gauges TOML file")


def _resolve(path: str, base_dir: Path) -> str:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(config_path: Path) -> FlowtraceConfig:
    """
    Load and validate a flowtrace configuration file.

    Relative paths (network table, diversions table, gauges file) are resolved
    against the directory of the configuration file.

    Args:
        config_path: Path to the configuration TOML file (flowtrace.toml)

    Returns:
        Validated FlowtraceConfig instance with resolved paths

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the TOML file is malformed
        pydantic.ValidationError: If the configuration is invalid

    Example:
        >>> config = load_config(Path("flowtrace.toml"))
        >>> print(config.network.id_field)
        COMID
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in configuration file: {e}") from e

    config = FlowtraceConfig.model_validate(data)

    config_dir = config_path.parent
    config.network.path = _resolve(config.network.path, config_dir)
    logger.debug(f"Resolved network path: {config.network.path}")
    if config.diversions is not None:
        config.diversions.path = _resolve(config.diversions.path, config_dir)
    if config.gages is not None:
        config.gages = _resolve(config.gages, config_dir)

    logger.info(f"Successfully loaded configuration ({config.network.topology.value} topology)")

    return config


def load_gages(gages_path: Path) -> list[GageConfig]:
    """
    Load and validate a gauges file.

    Args:
        gages_path: Path to the gauges TOML file

    Returns:
        List of validated GageConfig instances

    Raises:
        FileNotFoundError: If the gauges file doesn't exist
        ValueError: If the TOML file is malformed
        pydantic.ValidationError: If the configuration is invalid
    """
    gages_path = Path(gages_path)
    if not gages_path.exists():
        raise FileNotFoundError(f"Gauges file not found: {gages_path}")

    logger.info(f"Loading gauges from: {gages_path}")

    try:
        with gages_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in gauges file: {e}") from e

    gages_config = GageFileConfig.model_validate(data)

    logger.info(f"Successfully loaded {len(gages_config.gages)} gauge(s)")

    return gages_config.gages
