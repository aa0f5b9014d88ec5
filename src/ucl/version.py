"""
Central version constants for the UCL runtime.
"""

__version__ = "0.4.0"

# Version of the JSON action schema (independent of the runtime version)
SCHEMA_VERSION = "1.0.0"
