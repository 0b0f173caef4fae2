"""
Typed query filters.

Predicates are plain callables that receive an EntityFilterProxy over the
storage model and return a FilterExpression built from comparison operators:

    repo.get_many(lambda e: (e.region == "emea") & (e.age >= 18))

Attribute access on the proxy is checked against the storage model's fields and
rendered by wire name, so renaming a property breaks loudly instead of silently
querying a missing column.
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Type, Union
from cosmos_repository.exceptions.handler import InvalidFilterExpressionException
from .entities import INT32_MAX, INT32_MIN, StorageEntity, unwrap_optional

# Table system property names for the metadata fields that can be filtered on
_SYSTEM_PROPERTIES = {"timestamp": "Timestamp"}


def format_literal(value: Any) -> str:
    """Render a Python value as an OData literal."""
    if value is None:
        return "null"
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return str(value)
        return f"{value}L"
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidFilterExpressionException(f"Cannot use {value!r} in a table filter")
        return repr(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        text = value.strftime("%Y-%m-%dT%H:%M:%S")
        if value.microsecond:
            text += f".{value.microsecond:06d}"
        return f"datetime'{text}Z'"
    if isinstance(value, uuid.UUID):
        return f"guid'{value}'"
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    raise InvalidFilterExpressionException(
        f"Cannot use a value of type {type(value).__name__} in a table filter"
    )


def equality_filter(property_name: str, value: Any) -> str:
    return f"{property_name} eq {format_literal(value)}"


class FilterExpression:
    def __init__(self, text: str):
        self.text = text

    def __and__(self, other: "FilterExpression") -> "FilterExpression":
        return FilterExpression(f"({self.text}) and ({_as_expression(other).text})")

    def __or__(self, other: "FilterExpression") -> "FilterExpression":
        return FilterExpression(f"({self.text}) or ({_as_expression(other).text})")

    def __invert__(self) -> "FilterExpression":
        return FilterExpression(f"not ({self.text})")

    def __bool__(self):
        # `a and b` would silently keep only one side
        raise TypeError("Combine filter expressions with &, | and ~ instead of and, or, not")

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"FilterExpression({self.text!r})"


class FilterField:
    """One storage property inside a predicate."""

    def __init__(self, name: str, wire_name: str, annotation: Any):
        self.name = name
        self.wire_name = wire_name
        self.annotation = annotation

    def _compare(self, operator: str, value: Any) -> FilterExpression:
        return FilterExpression(f"{self.wire_name} {operator} {format_literal(value)}")

    def __eq__(self, value):
        return self._compare("eq", value)

    def __ne__(self, value):
        return self._compare("ne", value)

    def __lt__(self, value):
        return self._compare("lt", value)

    def __le__(self, value):
        return self._compare("le", value)

    def __gt__(self, value):
        return self._compare("gt", value)

    def __ge__(self, value):
        return self._compare("ge", value)

    # Boolean properties can be combined directly: e.is_active & (e.age > 18)
    def __and__(self, other):
        return _as_expression(self) & other

    def __or__(self, other):
        return _as_expression(self) | other

    def __invert__(self):
        return ~_as_expression(self)

    __hash__ = None

    def __bool__(self):
        raise TypeError(f"Compare {self.name} explicitly, e.g. e.{self.name} == value")

    def __repr__(self) -> str:
        return f"FilterField({self.name!r} -> {self.wire_name!r})"


def _as_expression(value: Any) -> FilterExpression:
    if isinstance(value, FilterExpression):
        return value
    if isinstance(value, FilterField) and unwrap_optional(value.annotation) is bool:
        return value == True  # noqa: E712
    raise InvalidFilterExpressionException(f"{value!r} is not a filter expression")


class EntityFilterProxy:
    """Stands in for a storage entity inside predicates and property selectors."""

    def __init__(self, storage_model: Type[StorageEntity]):
        self._storage_model = storage_model

    def __getattr__(self, name: str) -> FilterField:
        if name.startswith("__"):
            raise AttributeError(name)
        fields = self._storage_model.model_fields
        if name in _SYSTEM_PROPERTIES:
            return FilterField(name, _SYSTEM_PROPERTIES[name], fields[name].annotation)
        if name not in fields or name in self._storage_model.METADATA_FIELDS:
            raise InvalidFilterExpressionException(
                f"{self._storage_model.__name__} has no queryable property {name!r}"
            )
        return FilterField(name, self._storage_model.wire_name(name), fields[name].annotation)


Predicate = Callable[[EntityFilterProxy], Any]


def compile_filter(query: Union[str, Predicate], storage_model: Type[StorageEntity]) -> Optional[str]:
    """
    Turn a raw filter string or a predicate into OData filter text.

    Returns None when the predicate matches every entity (returns True).
    """
    if isinstance(query, str):
        return query
    result = query(EntityFilterProxy(storage_model))
    if result is True:
        return None
    return _as_expression(result).text


def property_name(selector: Callable[[EntityFilterProxy], Any], storage_model: Type[StorageEntity]) -> str:
    """Wire name of the property a selector such as `lambda e: e.email` points at."""
    result = selector(EntityFilterProxy(storage_model))
    if not isinstance(result, FilterField):
        raise InvalidFilterExpressionException(
            f"Selector {selector!r} must return a storage property, not {type(result).__name__}"
        )
    return result.wire_name
