import os
from typing import Optional

_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off', '')


def parse_bool(value, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    raise ValueError(f"Invalid boolean value for '{name}': {value!r}")


class Environment:
    resource_to_telemetry_variable = 'METRICS_RESOURCE_TO_TELEMETRY_ENABLED'
    interval_variable = 'METRICS_INTERVAL'

    resource_to_telemetry_enabled: Optional[bool] = None
    export_interval_millis: Optional[float] = None

    @classmethod
    def initialize(cls):
        enabled = os.environ.get(cls.resource_to_telemetry_variable)
        cls.resource_to_telemetry_enabled = None if enabled is None else \
            parse_bool(enabled, cls.resource_to_telemetry_variable)

        # METRICS_INTERVAL is in seconds
        interval = os.environ.get(cls.interval_variable)
        cls.export_interval_millis = None if interval is None else float(interval) * 1000

    @classmethod
    def _clear(cls):
        """
        Should only be called from tests!
        """
        cls.resource_to_telemetry_enabled = None
        cls.export_interval_millis = None
