# src/spanline/trace/resource.py
"""Resource: static identity of the process producing telemetry."""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from spanline.contracts.config.defaults import INTERNAL_DEFAULTS

SERVICE_NAME = "service.name"
SERVICE_VERSION = "service.version"
DEPLOYMENT_ENVIRONMENT = "deployment.environment"


class Resource(Mapping[str, Any]):
    """Immutable mapping of resource attributes.

    Set once at process start and shared by every span and instrument the
    process creates.

    Example:
        >>> resource = Resource.create({"service.name": "todo-app", "service.version": "1.0.0"})
        >>> resource["service.name"]
        'todo-app'
    """

    __slots__ = ("_attributes",)

    def __init__(self, attributes: Mapping[str, Any] | None = None) -> None:
        self._attributes: Mapping[str, Any] = MappingProxyType(dict(attributes or {}))

    @classmethod
    def create(cls, attributes: Mapping[str, Any] | None = None) -> "Resource":
        """Build a Resource, filling service.name when it is missing."""
        merged = {SERVICE_NAME: INTERNAL_DEFAULTS["resource"]["service_name"]}
        merged.update(attributes or {})
        return cls(merged)

    @classmethod
    def empty(cls) -> "Resource":
        return _EMPTY_RESOURCE

    def merge(self, other: "Resource") -> "Resource":
        """Return a new Resource holding both attribute sets; other wins on conflicts."""
        merged = dict(self._attributes)
        merged.update(other)
        return Resource(merged)

    @property
    def attributes(self) -> Mapping[str, Any]:
        return self._attributes

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            return dict(self._attributes) == dict(other._attributes)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, repr(v)) for k, v in self._attributes.items())))

    def __repr__(self) -> str:
        return f"Resource({dict(self._attributes)!r})"


_EMPTY_RESOURCE = Resource()
