"""
Configuration management for the flowtrace CLI.

This module provides Pydantic-based configuration schemas for validating
and loading TOML configuration files used by the flowtrace CLI.

Key exports:
- FlowtraceConfig: Root configuration from flowtrace.toml
- NetworkConfig: Where the segment table lives and how to read its topology
- GageConfig: A named gauge located on a segment
- load_config(): Load and validate the root configuration
- load_gages(): Load and validate gauges from a gauges file
"""

from .defaults import (
    DEFAULT_ID_FIELD,
    DEFAULT_LENGTH_FIELD,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TO_FIELD,
    ENV_LOG_FILE,
)
from .schema import (
    DiversionsConfig,
    FlowtraceConfig,
    GageConfig,
    GageFileConfig,
    NetworkConfig,
    SettingsConfig,
    TopologyFormat,
    load_config,
    load_gages,
)

__all__ = [
    # Main models
    "FlowtraceConfig",
    "NetworkConfig",
    "DiversionsConfig",
    "SettingsConfig",
    "GageConfig",
    "GageFileConfig",
    "TopologyFormat",
    # Loaders
    "load_config",
    "load_gages",
    # Defaults
    "DEFAULT_ID_FIELD",
    "DEFAULT_LENGTH_FIELD",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_TO_FIELD",
    # Environment variable
    "ENV_LOG_FILE",
]
