"""
Run-level error types.

Persistence failures live with the record stream (storage.records.PersistenceError).
"""


class ConfigurationError(ValueError):
    """Invalid parameter or parameter combination; raised before any search starts."""


class SimulatorError(RuntimeError):
    """External simulator failed or did not produce output in time."""
