"""Tests for utility functions."""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

import pytest

from crossrecord.exceptions import MappingError
from crossrecord.schema import Int32
from crossrecord.utils import (
    convert_from_storage,
    ensure_homogeneous,
    gather_bounded,
    sequence_element_type,
    to_storage_value,
    unwrap_optional,
)


class TestTypeIntrospection:
    """Tests for unwrap_optional and sequence_element_type."""

    def test_unwrap_optional(self):
        assert unwrap_optional(Optional[int]) is int
        assert unwrap_optional(int | None) is int
        assert unwrap_optional(str) is str

    def test_unwrap_annotated(self):
        assert unwrap_optional(Int32) is int
        assert unwrap_optional(Optional[Int32]) is int

    def test_wide_union_unchanged(self):
        tp = int | str
        assert unwrap_optional(tp) == tp

    def test_sequence_element_type(self):
        assert sequence_element_type(List[float]) is float
        assert sequence_element_type(list[str]) is str
        assert sequence_element_type(Optional[List[int]]) is int
        assert sequence_element_type(Sequence[float]) is float
        assert sequence_element_type(Tuple[float, ...]) is float

    def test_non_sequences(self):
        assert sequence_element_type(str) is None
        assert sequence_element_type(Tuple[float, int]) is None
        assert sequence_element_type(dict[str, int]) is None


class TestToStorageValue:
    def test_datetime_to_iso(self):
        value = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert to_storage_value(value, "published") == "2024-05-01T12:30:00+00:00"

    def test_uuid_to_str(self):
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert to_storage_value(value, "ref") == "12345678-1234-5678-1234-567812345678"

    def test_list_passthrough(self):
        assert to_storage_value(["a", "b"], "tags") == ["a", "b"]

    def test_mixed_list_rejected(self):
        with pytest.raises(MappingError, match="mixed element types"):
            to_storage_value(["a", 1], "tags")


class TestEnsureHomogeneous:
    def test_int_and_float_mix_allowed(self):
        ensure_homogeneous([1, 2.5, 3], "scores")

    def test_bool_and_int_are_distinct(self):
        with pytest.raises(MappingError):
            ensure_homogeneous([True, 1], "flags")

    def test_nulls_ignored(self):
        ensure_homogeneous(["a", None, "b"], "tags")


class TestConvertFromStorage:
    """Native values are converted strictly into the declared type."""

    def test_none_passthrough(self):
        assert convert_from_storage(None, Optional[int], "views") is None

    def test_int_promoted_to_float(self):
        result = convert_from_storage(3, float, "rating")
        assert result == 3.0
        assert isinstance(result, float)

    def test_float_not_narrowed_to_int(self):
        with pytest.raises(MappingError, match="does not match"):
            convert_from_storage(3.5, int, "views")

    def test_bool_not_accepted_as_int(self):
        with pytest.raises(MappingError):
            convert_from_storage(True, int, "views")

    def test_str_to_datetime(self):
        result = convert_from_storage("2024-05-01T12:30:00+00:00", Optional[datetime], "published")
        assert result == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    def test_bad_datetime(self):
        with pytest.raises(MappingError, match="ISO-8601"):
            convert_from_storage("yesterday", datetime, "published")

    def test_str_to_uuid(self):
        result = convert_from_storage("12345678-1234-5678-1234-567812345678", UUID, "ref")
        assert result == UUID("12345678-1234-5678-1234-567812345678")

    def test_list_of_floats_from_ints(self):
        assert convert_from_storage([1, 0.5], List[float], "embedding") == [1.0, 0.5]

    def test_list_expected(self):
        with pytest.raises(MappingError, match="not a list"):
            convert_from_storage("a,b", List[str], "tags")

    def test_mixed_list(self):
        with pytest.raises(MappingError, match="mixed element types"):
            convert_from_storage(["a", 2], List[str], "tags")

    def test_uniform_list_of_wrong_type(self):
        with pytest.raises(MappingError, match="does not match"):
            convert_from_storage([1, 2], List[str], "tags")


class TestGatherBounded:
    """Bounded fan-out keeps input order and cancels siblings on failure."""

    @pytest.mark.asyncio
    async def test_preserves_order(self):
        async def work(i):
            await asyncio.sleep(0.01 * (3 - i))
            return i * 10

        assert await gather_bounded(work, [0, 1, 2], 3) == [0, 10, 20]

    @pytest.mark.asyncio
    async def test_empty(self):
        async def work(i):
            return i

        assert await gather_bounded(work, [], 5) == []

    @pytest.mark.asyncio
    async def test_respects_limit(self):
        in_flight = 0
        peak = 0

        async def work(i):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return i

        await gather_bounded(work, range(10), 3)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failure_cancels_pending(self):
        finished = []

        async def work(i):
            if i == 0:
                await asyncio.sleep(0)
                raise ValueError("boom")
            await asyncio.sleep(1)
            finished.append(i)

        with pytest.raises(ValueError, match="boom"):
            await gather_bounded(work, [0, 1, 2], 3)
        assert finished == []
