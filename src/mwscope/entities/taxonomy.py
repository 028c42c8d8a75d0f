"""Static entity-type tables.

Pure lookups over immutable data built once at import. No I/O.
"""

from __future__ import annotations

from types import MappingProxyType

HOST = "HOST"
HOST_GROUP = "HOST_GROUP"
PROCESS_GROUP = "PROCESS_GROUP"
PROCESS_GROUP_INSTANCE = "PROCESS_GROUP_INSTANCE"
SERVICE = "SERVICE"
SERVICE_INSTANCE = "SERVICE_INSTANCE"
APPLICATION = "APPLICATION"
SYNTHETIC_TEST = "SYNTHETIC_TEST"
HTTP_CHECK = "HTTP_CHECK"

# Types whose filters may fan out into related resources
UNDERLYING_CAPABLE_TYPES: frozenset[str] = frozenset({HOST, HOST_GROUP, PROCESS_GROUP, SERVICE})

# A criteria-only filter has no type of its own; the selector grammar needs one.
CRITERIA_FALLBACK_TYPES: tuple[str, ...] = (
    HOST,
    SERVICE,
    PROCESS_GROUP,
    APPLICATION,
    SYNTHETIC_TEST,
    HTTP_CHECK,
)

# Same idea for filters already persisted on a window, which only ever
# carried the four core types.
PERSISTED_FALLBACK_TYPES: tuple[str, ...] = (HOST, SERVICE, PROCESS_GROUP, APPLICATION)

DEFAULT_ENTITY_TYPES: MappingProxyType[str, str] = MappingProxyType(
    {
        APPLICATION: "Web application",
        "AWS_LAMBDA_FUNCTION": "AWS Lambda function",
        "CLOUD_APPLICATION": "Kubernetes workload",
        "CLOUD_APPLICATION_NAMESPACE": "Kubernetes namespace",
        "CUSTOM_DEVICE": "Custom device",
        HOST: "Host",
        HOST_GROUP: "Host group",
        HTTP_CHECK: "HTTP monitor",
        "KUBERNETES_CLUSTER": "Kubernetes cluster",
        "MOBILE_APPLICATION": "Mobile application",
        PROCESS_GROUP: "Process group",
        PROCESS_GROUP_INSTANCE: "Process",
        SERVICE: "Service",
        SYNTHETIC_TEST: "Browser monitor",
    }
)


def is_underlying_capable(entity_type: str) -> bool:
    return entity_type in UNDERLYING_CAPABLE_TYPES


def humanize_type(entity_type: str) -> str:
    """Title-case a raw type id, e.g. ``PROCESS_GROUP`` → ``Process Group``."""
    return " ".join(word.capitalize() for word in entity_type.split("_") if word)


def entity_type_label(entity_type: str, labels: dict[str, str] | MappingProxyType[str, str] | None = None) -> str:
    """Display label for an entity type; the raw value when unknown."""
    table = DEFAULT_ENTITY_TYPES if labels is None else labels
    return table.get(entity_type, entity_type)


def default_type_options() -> list[tuple[str, str]]:
    """Static ``(value, label)`` catalogue, sorted by label."""
    return sorted(DEFAULT_ENTITY_TYPES.items(), key=lambda item: item[1].lower())
