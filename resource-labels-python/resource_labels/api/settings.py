from dataclasses import dataclass
from typing import Any, Mapping

from resource_labels.api.helpers.environment import Environment, parse_bool


@dataclass(frozen=True)
class ResourceToTelemetrySettings:
    """
    Configuration for converting resource attributes to metric labels.

    :param enabled: when True, resource attributes are added as labels to every exported datapoint
    """
    enabled: bool = False

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'ResourceToTelemetrySettings':
        unknown = set(config) - {'enabled'}
        if unknown:
            raise ValueError(f"Unknown resource_to_telemetry setting(s): {', '.join(sorted(unknown))}")
        return cls(enabled=parse_bool(config.get('enabled', False), 'enabled'))

    @classmethod
    def from_environment(cls) -> 'ResourceToTelemetrySettings':
        """
        Reads settings from `METRICS_RESOURCE_TO_TELEMETRY_ENABLED`.  Disabled when the variable isn't set.
        """
        Environment.initialize()
        return cls(enabled=bool(Environment.resource_to_telemetry_enabled))


def default_resource_to_telemetry_settings() -> ResourceToTelemetrySettings:
    return ResourceToTelemetrySettings(enabled=False)
