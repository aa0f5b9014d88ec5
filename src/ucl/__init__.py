"""
UCL (Universal Causal Language) runtime package.
"""

from .version import __version__, SCHEMA_VERSION  # noqa: F401

__all__ = [
    "ir",
    "schema",
    "validator",
    "errors",
    "runtime",
    "substrates",
    "coordinator",
    "__version__",
    "SCHEMA_VERSION",
]
