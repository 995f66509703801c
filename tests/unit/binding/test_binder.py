from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import NewType, Optional
from uuid import UUID

import pytest

from query_binder.binding.binder import QueryBinder, bind, normalize_query, try_bind
from query_binder.binding.converters import Int32
from query_binder.binding.errors import BindingFailed, NotBindableType
from query_binder.binding.registry import ConverterRegistry
from query_binder.binding.schema import query_field, query_model
from query_binder.binding.types import BindResult
from query_binder.core.config import BinderSettings


class ItemStatus(Enum):
    Active = "active"
    Archived = "archived"


@query_model
class PageQuery:
    page: Int32 = query_field(default=0)
    page_size: Int32 = query_field("pageSize", default=20)
    search: Optional[str] = query_field()
    sort_by: Optional[str] = query_field("sort")
    is_ascending: bool = query_field("isAscending", default=True)


@query_model
class SimpleQuery:
    page: int = query_field()
    search: str = query_field()


@query_model
class ProductQuery:
    ids: list[int] = query_field("id")
    statuses: tuple[ItemStatus, ...] = query_field("status", default=(ItemStatus.Active,))
    owner: Optional[UUID] = None
    min_price: Optional[Decimal] = query_field("minPrice")
    created: Optional[date] = None
    opens_at: Optional[time] = query_field("opensAt")
    labels: list[str] = query_field(default=["new"])


@query_model
@dataclass(frozen=True, slots=True)
class FrozenQuery:
    limit: int = 50
    tags: frozenset[str] = field(default_factory=frozenset)


class Point:
    def __init__(self, x: int, y: int) -> None:
        self.x, self.y = x, y

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Point) and (other.x, other.y) == (self.x, self.y)


@query_model
class GeoQuery:
    near: Optional[Point] = None


@dataclass
class NotAQueryModel:
    page: int = 0


## -- the pagination scenarios

def test_page_query_defaults_and_overrides() -> None:
    """Absent fields take their query default (or zero), present ones convert."""
    result = try_bind(PageQuery, {"pageSize": "10", "sort": "name"})

    assert result.success
    assert result.errors == {}
    q = result.value
    assert q.page == 0
    assert q.page_size == 10
    assert q.search is None
    assert q.sort_by == "name"
    assert q.is_ascending is True


def test_page_query_bad_page_size_keeps_zero_not_default() -> None:
    """A failed field is left at its zero value, other fields still default normally."""
    result = try_bind(PageQuery, {"pageSize": "ten"})

    assert not result.success
    assert result.errors == {"pageSize": "Expected integer."}
    q = result.value
    assert q.page_size == 0
    assert q.page == 0
    assert q.is_ascending is True
    assert q.search is None

    with pytest.raises(BindingFailed) as e:
        bind(PageQuery, {"pageSize": "ten"})
    assert e.value.errors == {"pageSize": "Expected integer."}


def test_partial_failure_does_not_abort() -> None:
    result = try_bind(SimpleQuery, {"page": "abc", "search": "shoes"})
    assert result.errors.keys() == {"page"}
    assert result.value.page == 0
    assert result.value.search == "shoes"


def test_partial_failure_with_missing_other_field() -> None:
    result = try_bind(SimpleQuery, {"page": "abc"})
    assert list(result.errors) == ["page"]
    assert result.value.page == 0
    assert result.value.search == ""


def test_every_failing_field_is_reported() -> None:
    result = try_bind(PageQuery, {"page": "x", "pageSize": "y", "isAscending": "maybe"})
    assert result.errors == {
        "page": "Expected integer.",
        "pageSize": "Expected integer.",
        "isAscending": "Expected boolean.",
    }
    assert result.value.is_ascending is False


## -- lookup rules

def test_lookup_is_case_insensitive() -> None:
    q = bind(PageQuery, {"PAGESIZE": "5", "Sort": "price", "isascending": "FALSE"})
    assert (q.page_size, q.sort_by, q.is_ascending) == (5, "price", False)


@pytest.mark.parametrize("blank", ["", "   ", None, []])
def test_blank_values_count_as_absent(blank: object) -> None:
    q = bind(PageQuery, {"pageSize": blank, "search": blank})  # type: ignore[dict-item]
    assert q.page_size == 20
    assert q.search is None


def test_unknown_parameters_are_ignored() -> None:
    q = bind(PageQuery, {"utm_source": "mail", "page": "3"})
    assert q.page == 3


def test_multi_valued_parameters() -> None:
    """`parse_qs` style lists are joined, so repeated keys feed sequence fields."""
    q = bind(ProductQuery, {"id": ["1", "2"], "ID": "3"})
    assert q.ids == [1, 2, 3]

    # a scalar field with several values sees them joined, which is not an integer
    result = try_bind(PageQuery, {"page": ["1", "2"]})
    assert result.errors == {"page": "Expected integer."}


def test_normalize_query() -> None:
    assert normalize_query({"A": "1", "a": ["2", "3"], "b": None, "c": []}) == {
        "a": "1,2,3",
        "b": None,
        "c": None,
    }


## -- sequences

def test_sequence_from_comma_list() -> None:
    assert bind(ProductQuery, {"id": "1,2,3"}).ids == [1, 2, 3]
    assert bind(ProductQuery, {"id": "1, 2 ,3"}).ids == [1, 2, 3]


def test_empty_sequence_value_is_absent() -> None:
    q = bind(ProductQuery, {"id": "", "status": " "})
    assert q.ids == []
    assert q.statuses == (ItemStatus.Active,)


def test_sequence_element_error() -> None:
    result = try_bind(ProductQuery, {"id": "1,two,3", "status": "active,bogus"})
    assert result.errors == {
        "id": "Invalid item 'two' at position 1: Expected integer.",
        "status": "Invalid item 'bogus' at position 1: Expected one of: Active,Archived.",
    }
    # zero, not a partial list, and not the query default either
    assert result.value.ids == []
    assert result.value.statuses == ()


def test_enum_sequence_is_case_insensitive() -> None:
    q = bind(ProductQuery, {"status": "ARCHIVED,active"})
    assert q.statuses == (ItemStatus.Archived, ItemStatus.Active)


def test_query_default_is_copied_per_bind() -> None:
    a = bind(ProductQuery, {})
    a.labels.append("mutated")
    b = bind(ProductQuery, {})
    assert b.labels == ["new"]


## -- other scalar shapes

def test_nullable_scalars() -> None:
    q = bind(
        ProductQuery,
        {
            "owner": "12345678-1234-5678-1234-567812345678",
            "minPrice": "9.99",
            "created": "2026-02-19",
            "opensAt": "09:30",
        },
    )
    assert q.owner == UUID("12345678-1234-5678-1234-567812345678")
    assert q.min_price == Decimal("9.99")
    assert q.created == date(2026, 2, 19)
    assert q.opens_at == time(9, 30)


def test_frozen_slotted_records_are_supported() -> None:
    q = bind(FrozenQuery, {"limit": "10", "tags": "a,b"})
    assert q == FrozenQuery(limit=10, tags=frozenset({"a", "b"}))

    result = try_bind(FrozenQuery, {"limit": "lots"})
    assert result.value.limit == 50     # the record's own dataclass default is its zero


## -- custom types

def test_custom_type_without_converter_is_an_error(strict_settings: BinderSettings) -> None:
    result = QueryBinder(registry=ConverterRegistry(), settings=strict_settings).try_bind(GeoQuery, {"near": "1;2"})
    assert result.errors == {"near": "No converter registered for Point."}
    assert result.value.near is None


def test_custom_type_lenient_passes_raw_through(lenient_settings: BinderSettings) -> None:
    result = QueryBinder(registry=ConverterRegistry(), settings=lenient_settings).try_bind(GeoQuery, {"near": "1;2"})
    assert result.success
    assert result.value.near == "1;2"


def test_custom_type_with_converter(strict_settings: BinderSettings) -> None:
    registry = ConverterRegistry()
    registry.register(Point, lambda raw: Point(*(int(p) for p in raw.split(";"))))
    binder = QueryBinder(registry=registry, settings=strict_settings)

    assert binder.bind(GeoQuery, {"near": "1;2"}).near == Point(1, 2)
    assert binder.try_bind(GeoQuery, {"near": "1;b"}).errors == {"near": "Invalid Point."}


## -- entry points

def test_not_bindable_type_raises_from_both_entry_points() -> None:
    with pytest.raises(NotBindableType):
        try_bind(NotAQueryModel, {"page": "1"})
    with pytest.raises(NotBindableType):
        bind(NotAQueryModel, {"page": "1"})


def test_bind_result_unpacks() -> None:
    value, errors, ok = try_bind(PageQuery, {"page": "2"})
    assert isinstance(value, PageQuery)
    assert errors == {}
    assert ok is True
    assert isinstance(try_bind(PageQuery, {}), BindResult)


def test_binding_failed_problem_details() -> None:
    with pytest.raises(BindingFailed) as e:
        bind(PageQuery, {"page": "x", "isAscending": "nope"})
    body = e.value.to_problem_details()
    assert body["status"] == 400
    assert body["title"] == "Invalid query parameters."
    assert body["errors"] == {"page": "Expected integer.", "isAscending": "Expected boolean."}
    assert str(e.value) == "Invalid query parameters. (isAscending, page)"


def test_custom_sequence_delimiter() -> None:
    q = bind(ProductQuery, {"id": "1|2"}, settings=BinderSettings(sequence_delimiter="|"))
    assert q.ids == [1, 2]


def test_repeated_values_join_with_the_configured_delimiter() -> None:
    """`?id=1&id=2` binds the same as `?id=1|2` when `|` is the delimiter."""
    settings = BinderSettings(sequence_delimiter="|")
    result = try_bind(ProductQuery, {"id": ["1", "2"], "ID": "3"}, settings=settings)
    assert result.errors == {}
    assert result.value.ids == [1, 2, 3]
    assert normalize_query({"a": ["x", "y"]}, "|") == {"a": "x|y"}


def test_overlong_integer_is_a_field_error() -> None:
    """A huge digit run fails its own field only, the rest of the record still binds."""
    value, errors, success = try_bind(SimpleQuery, {"page": "9" * 5000, "search": "shoes"})
    assert not success
    assert errors == {"page": "Expected long."}
    assert value.page == 0
    assert value.search == "shoes"


class Currency:
    def __init__(self, code: str) -> None:
        self.code = code


@query_model
class PriceQuery:
    currency: Optional[Currency] = None
    page: int = 0


def test_failing_custom_converter_is_a_field_error() -> None:
    known = {"usd": Currency("USD")}
    registry = ConverterRegistry()
    registry.register(Currency, lambda raw: known[raw.lower()])

    result = QueryBinder(registry=registry).try_bind(PriceQuery, {"currency": "xyz", "page": "3"})
    assert result.errors == {"currency": "Invalid Currency."}
    assert result.value.currency is None
    assert result.value.page == 3


UserId = NewType("UserId", int)


@query_model
class UserQuery:
    user: Optional[UserId] = None
    followers: list[UserId] = query_field("follower")


def test_newtype_fields_bind_as_their_base_type() -> None:
    q = bind(UserQuery, {"user": "7", "follower": ["1", "2"]})
    assert q.user == 7
    assert q.followers == [1, 2]
