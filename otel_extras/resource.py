"""Resources: immutable sets of attributes describing a telemetry producer."""

from __future__ import annotations

import abc
from collections.abc import Iterable, Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Union

Scalar = Union[str, bool, int, float]
AttributeValue = Union[Scalar, tuple]

__all__ = ["Resource", "ResourceDetector", "AttributeValue"]


def _normalize(value: object) -> AttributeValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return tuple(value)
    raise TypeError(f"unsupported attribute value type: {type(value).__name__}")


class Resource:
    """An immutable collection of key/value attributes with an optional schema URL.

    Iterating a resource yields ``(key, value)`` pairs in insertion order.
    When the same key is given twice, the later value wins.
    """

    __slots__ = ("_attributes", "_schema_url")

    def __init__(
        self,
        attributes: Mapping[str, object] | Iterable[tuple[str, object]] | None = None,
        schema_url: str | None = None,
    ) -> None:
        items = attributes.items() if isinstance(attributes, Mapping) else (attributes or ())
        data: dict[str, AttributeValue] = {}
        for key, value in items:
            data[str(key)] = _normalize(value)
        self._attributes = MappingProxyType(data)
        self._schema_url = schema_url or None

    @classmethod
    def empty(cls) -> Resource:
        """Return a resource with no attributes."""
        return cls()

    @property
    def attributes(self) -> Mapping[str, AttributeValue]:
        """A read-only view of the attributes."""
        return self._attributes

    @property
    def schema_url(self) -> str | None:
        return self._schema_url

    def get(self, key: str) -> AttributeValue | None:
        """Return the value stored under ``key``, or ``None``."""
        return self._attributes.get(key)

    def __len__(self) -> int:
        return len(self._attributes)

    def __iter__(self) -> Iterator[tuple[str, AttributeValue]]:
        return iter(self._attributes.items())

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return (
            dict(self._attributes) == dict(other._attributes)
            and self._schema_url == other._schema_url
        )

    def __hash__(self) -> int:
        return hash((frozenset(self._attributes.items()), self._schema_url))

    def __repr__(self) -> str:
        return f"Resource({dict(self._attributes)!r}, schema_url={self._schema_url!r})"

    def merge(self, other: Resource) -> Resource:
        """Combine two resources; values from ``other`` take precedence.

        The schema URL is kept when only one side has it or both agree,
        and dropped when they conflict.
        """
        combined = {**self._attributes, **other._attributes}
        if self._schema_url is None:
            schema_url = other._schema_url
        elif other._schema_url is None or other._schema_url == self._schema_url:
            schema_url = self._schema_url
        else:
            schema_url = None
        return Resource(combined, schema_url)


class ResourceDetector(abc.ABC):
    """Something that discovers attributes of the running environment."""

    @abc.abstractmethod
    def detect(self) -> Resource:
        """Return a resource describing what was detected."""