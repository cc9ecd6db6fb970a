"""
Default values and environment variables for flowtrace configuration.

This module centralizes all default values, environment variable names,
and field names used throughout the flowtrace CLI.
"""

# Environment variable name
ENV_LOG_FILE = "FLOWTRACE_LOG_FILE"

# Default settings
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_MAX_FAILS = None  # unlimited
DEFAULT_OUTLET_POLICY = "strict"
DEFAULT_MEASURE_FROM = "upstream"
DEFAULT_OUTPUT_FORMAT = "gpkg"

# Default network table fields (NHDPlus naming)
DEFAULT_TOPOLOGY = "to_id"
DEFAULT_ID_FIELD = "COMID"
DEFAULT_TO_FIELD = "toCOMID"
DEFAULT_LENGTH_FIELD = "LENGTHKM"
DEFAULT_FROM_NODE_FIELD = "FromNode"
DEFAULT_TO_NODE_FIELD = "ToNode"
DEFAULT_TERMINAL_VALUES = [0]

# MERIT-Hydro upstream columns
DEFAULT_UP_FIELDS = ["up1", "up2", "up3", "up4"]

# Diversion edge table fields (NHDPlus PlusFlow naming)
DEFAULT_DIVERSION_FROM_FIELD = "FROMCOMID"
DEFAULT_DIVERSION_TO_FIELD = "TOCOMID"

# Default gauge field
DEFAULT_GAGE_NAME = ""
