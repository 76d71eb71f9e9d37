"""Shared helpers for schema discovery, value conversion and batch fan-out."""

import asyncio
import collections.abc
import types
from datetime import datetime, timezone
from typing import (
    Annotated,
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
    get_args,
    get_origin,
)
from uuid import UUID

from .exceptions import MappingError

T = TypeVar("T")
R = TypeVar("R")

_SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence)


# ------------------------------------------------------------------
# Type introspection
# ------------------------------------------------------------------


def unwrap_optional(tp: Any) -> Any:
    """Strip ``Optional[...]`` / ``X | None`` from a type annotation.

    Unions of more than one non-None member are returned unchanged.
    """
    origin = get_origin(tp)
    if origin is Annotated:
        return unwrap_optional(get_args(tp)[0])
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return unwrap_optional(args[0])
    return tp


def allows_none(tp: Any) -> bool:
    """Return True if ``None`` is a valid value for the annotation."""
    if tp is None or tp is type(None) or tp is Any:
        return True
    origin = get_origin(tp)
    if origin is Annotated:
        return allows_none(get_args(tp)[0])
    if origin is Union or origin is types.UnionType:
        return any(allows_none(a) for a in get_args(tp))
    return False


def sequence_element_type(tp: Any) -> Optional[Any]:
    """Return the element type of ``list[T]``-like annotations, else None.

    ``str`` and ``bytes`` are not treated as sequences.
    """
    tp = unwrap_optional(tp)
    origin = get_origin(tp)
    if origin not in _SEQUENCE_ORIGINS:
        return None
    args = get_args(tp)
    if not args:
        return None
    if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
        return None
    return unwrap_optional(args[0])


def type_name(tp: Any) -> str:
    tp = unwrap_optional(tp)
    if get_origin(tp) is not None:
        return repr(tp).replace("typing.", "")
    return getattr(tp, "__name__", repr(tp))


# ------------------------------------------------------------------
# Value conversion
# ------------------------------------------------------------------


def _element_kind(value: Any) -> type:
    # bool is a subclass of int; keep them apart
    if isinstance(value, bool):
        return bool
    if isinstance(value, (int, float)):
        return float if isinstance(value, float) else int
    return type(value)


def ensure_homogeneous(values: Sequence[Any], property_name: str) -> None:
    """Raise MappingError when a list mixes element types.

    ints mixed with floats are accepted, as they share a numeric storage type.
    """
    kinds = {_element_kind(v) for v in values if v is not None}
    if kinds <= {int, float}:
        return
    if len(kinds) > 1:
        raise MappingError(
            "List contains mixed element types",
            property_name=property_name,
            element_types=sorted(k.__name__ for k in kinds),
        )


def to_storage_value(value: Any, property_name: str, naive_datetimes_as_utc: bool = False) -> Any:
    """Convert a record attribute value into a JSON-compatible native value.

    Args:
        value: Record attribute value
        property_name: Used in error details
        naive_datetimes_as_utc: Write naive datetimes with a UTC offset, for
            backends whose date fields require one
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if naive_datetimes_as_utc and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        ensure_homogeneous(value, property_name)
        return [to_storage_value(v, property_name, naive_datetimes_as_utc) for v in value]
    return value


def _convert_scalar(value: Any, target: Any, property_name: str) -> Any:
    if target is Any or not isinstance(target, type):
        return value
    if target is bool:
        if isinstance(value, bool):
            return value
    elif target is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif target is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif target is str:
        if isinstance(value, str):
            return value
    elif target is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError as e:
                raise MappingError(
                    "Stored value is not an ISO-8601 timestamp", property_name=property_name, value=value
                ) from e
    elif target is UUID:
        if isinstance(value, UUID):
            return value
        if isinstance(value, str):
            try:
                return UUID(value)
            except ValueError as e:
                raise MappingError("Stored value is not a UUID", property_name=property_name, value=value) from e
    else:
        return value
    raise MappingError(
        "Stored value does not match the declared property type",
        property_name=property_name,
        expected=target.__name__,
        actual=type(value).__name__,
    )


def convert_from_storage(value: Any, target_type: Any, property_name: str) -> Any:
    """Convert a native value into the declared record attribute type.

    Width checks (e.g. ``Int32``) are left to record validation; this function
    only rejects values whose kind cannot be the declared type.

    Raises:
        MappingError: If the value or any list element has the wrong kind
    """
    if value is None:
        return None
    element_type = sequence_element_type(target_type)
    if element_type is not None:
        if not isinstance(value, (list, tuple)):
            raise MappingError(
                "Stored value is not a list",
                property_name=property_name,
                actual=type(value).__name__,
            )
        ensure_homogeneous(value, property_name)
        return [_convert_scalar(v, element_type, property_name) for v in value]
    return _convert_scalar(value, unwrap_optional(target_type), property_name)


# ------------------------------------------------------------------
# Batch fan-out
# ------------------------------------------------------------------


async def gather_bounded(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    max_concurrency: int,
) -> List[R]:
    """Run ``func`` over ``items`` with at most ``max_concurrency`` in flight.

    Results come back in input order. The first failure cancels every sibling
    still pending and is re-raised; cancelling the caller cancels them all.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _run(item: T) -> R:
        async with semaphore:
            return await func(item)

    tasks = [asyncio.ensure_future(_run(item)) for item in items]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
