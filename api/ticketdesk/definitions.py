"""
Filter definitions: the transient, request-scoped shape of a ticket filter.

A definition is parsed permissively from JSON (missing or unknown fields are kept
so the validator can point at them by index). Condition values are turned into a
tagged ConditionValue (Scalar, ValueList, DateRange) once field and operator are
known; a value whose shape does not match yields None and the condition is unusable.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

LOGIC_AND = "AND"
LOGIC_OR = "OR"
ORDER_ASC = "ASC"
ORDER_DESC = "DESC"

DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_ORDER = ORDER_DESC


@dataclass(frozen=True)
class FilterCondition:
    field: Optional[str]
    operator: Optional[str]
    value: Any = None


@dataclass(frozen=True)
class FilterGroup:
    logic: str = LOGIC_AND
    conditions: Tuple[FilterCondition, ...] = ()


@dataclass(frozen=True)
class SortSpec:
    field: str = DEFAULT_SORT_FIELD
    order: str = DEFAULT_SORT_ORDER


@dataclass(frozen=True)
class FilterDefinition:
    groups: Tuple[FilterGroup, ...] = ()
    sort: SortSpec = field(default_factory=SortSpec)

    @property
    def condition_count(self) -> int:
        return sum(len(g.conditions) for g in self.groups)

    def with_sort(self, sort_field: Optional[str], sort_order: Optional[str]) -> "FilterDefinition":
        return FilterDefinition(
            groups=self.groups,
            sort=SortSpec(field=sort_field or DEFAULT_SORT_FIELD, order=sort_order or DEFAULT_SORT_ORDER),
        )


# --- Tagged condition values ---
@dataclass(frozen=True)
class Scalar:
    value: Union[str, int]


@dataclass(frozen=True)
class ValueList:
    values: Tuple[Union[str, int], ...]


@dataclass(frozen=True)
class DateRange:
    """Open, half-open or closed range over a timestamp column (naive UTC bounds)."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    end_exclusive: bool = False
    start_exclusive: bool = False


ConditionValue = Union[Scalar, ValueList, DateRange]


# --- Parsing ---
def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def definition_from_dict(data: Any) -> FilterDefinition:
    """
    Build a FilterDefinition from a decoded JSON payload.

    Never raises: non-dict groups become empty groups and non-dict conditions
    become field-less conditions, so positions are preserved for validation.
    """
    if not isinstance(data, dict):
        return FilterDefinition()

    groups: List[FilterGroup] = []
    raw_groups = data.get("groups")
    if isinstance(raw_groups, list):
        for raw_group in raw_groups:
            if not isinstance(raw_group, dict):
                groups.append(FilterGroup())
                continue
            logic = (_clean_str(raw_group.get("logic")) or LOGIC_AND).upper()
            if logic not in (LOGIC_AND, LOGIC_OR):
                logic = LOGIC_AND
            conditions: List[FilterCondition] = []
            raw_conditions = raw_group.get("conditions")
            if isinstance(raw_conditions, list):
                for raw in raw_conditions:
                    if not isinstance(raw, dict):
                        conditions.append(FilterCondition(field=None, operator=None))
                        continue
                    operator = _clean_str(raw.get("operator"))
                    conditions.append(FilterCondition(
                        field=_clean_str(raw.get("field")),
                        operator=operator.lower() if operator else None,
                        value=raw.get("value"),
                    ))
            groups.append(FilterGroup(logic=logic, conditions=tuple(conditions)))

    sort = SortSpec()
    raw_sort = data.get("sort")
    if isinstance(raw_sort, dict):
        sort = SortSpec(
            field=_clean_str(raw_sort.get("field")) or DEFAULT_SORT_FIELD,
            order=_clean_str(raw_sort.get("order")) or DEFAULT_SORT_ORDER,
        )

    return FilterDefinition(groups=tuple(groups), sort=sort)


def definition_to_dict(definition: FilterDefinition) -> Dict[str, Any]:
    return {
        "groups": [
            {
                "logic": g.logic,
                "conditions": [
                    {"field": c.field, "operator": c.operator, "value": c.value}
                    for c in g.conditions
                ],
            }
            for g in definition.groups
        ],
        "sort": {"field": definition.sort.field, "order": definition.sort.order},
    }


# --- Value coercion (field class + operator decide the shape) ---
def parse_timestamp(raw: Any) -> Optional[Tuple[datetime, bool]]:
    """
    Parse a date or ISO timestamp.

    Returns:
        (naive UTC datetime, is_date_only) or None when unparseable.
    """
    value = _clean_str(raw)
    if value is None:
        return None
    if len(value) == 10:
        try:
            return datetime.strptime(value, "%Y-%m-%d"), True
        except ValueError:
            return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt, False


def _upper_bound(parsed: Tuple[datetime, bool]) -> Tuple[datetime, bool]:
    dt, date_only = parsed
    if date_only:
        # Whole end day is included: compare with < next midnight
        return dt + timedelta(days=1), True
    return dt, False


# Relative date values, resolved against a reference day at compile time
RELATIVE_DATES = ("today", "yesterday", "this_week", "last_week", "this_month", "last_month", "this_year")


def relative_day_range(name: str, today: date) -> Optional[Tuple[date, Optional[date]]]:
    """Resolve a relative date name to (first, last) days; last None means open-ended."""
    if name == "today":
        return today, today
    if name == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if name == "this_week":
        return today - timedelta(days=today.weekday()), None
    if name == "last_week":
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)
    if name == "this_month":
        start = today.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return start, next_month - timedelta(days=1)
    if name == "last_month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if name == "this_year":
        return today.replace(month=1, day=1), today.replace(month=12, day=31)
    return None


def _relative_range(raw: Any, today: Optional[date]) -> Optional[DateRange]:
    name = _clean_str(raw)
    if name is None:
        return None
    resolved = relative_day_range(name.lower(), today or datetime.utcnow().date())
    if resolved is None:
        return None
    first, last = resolved
    start = datetime.combine(first, time.min)
    if last is None:
        return DateRange(start=start)
    return DateRange(start=start, end=datetime.combine(last + timedelta(days=1), time.min), end_exclusive=True)


def _coerce_scalar(raw: Any, identity: bool) -> Optional[Union[str, int]]:
    if isinstance(raw, bool) or raw is None:
        return None
    if identity:
        if isinstance(raw, int):
            return raw if raw > 0 else None
        text = _clean_str(raw)
        if text is not None and text.isdigit() and int(text) > 0:
            return int(text)
        return None
    if isinstance(raw, int):
        return str(raw)
    return _clean_str(raw)


def coerce_value(
    field_class: str,
    operator: str,
    raw: Any,
    today: Optional[date] = None,
) -> Optional[ConditionValue]:
    """
    Decide the tagged value for a condition, or None when the shape does not fit.

    after/before exclude the named instant; a date-only value excludes the whole day.
    between includes both ends. relative resolves against `today` (UTC today if None).
    """
    identity = field_class == "identity"

    if operator in ("exists", "not_exists"):
        return ValueList(values=())

    if operator in ("equals", "not_equals"):
        if isinstance(raw, (list, tuple, dict)):
            return None
        scalar = _coerce_scalar(raw, identity)
        return Scalar(scalar) if scalar is not None else None

    if operator in ("in", "not_in"):
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        values: List[Union[str, int]] = []
        for item in items:
            scalar = _coerce_scalar(item, identity)
            if scalar is not None and scalar not in values:
                values.append(scalar)
        return ValueList(values=tuple(values)) if values else None

    if operator == "contains":
        text = _clean_str(raw)
        return Scalar(text) if text is not None else None

    if operator == "after":
        parsed = parse_timestamp(raw)
        if parsed is None:
            return None
        dt, date_only = parsed
        if date_only:
            return DateRange(start=dt + timedelta(days=1))
        return DateRange(start=dt, start_exclusive=True)

    if operator == "before":
        parsed = parse_timestamp(raw)
        if parsed is None:
            return None
        return DateRange(end=parsed[0], end_exclusive=True)

    if operator == "relative":
        return _relative_range(raw, today)

    if operator == "between":
        if not isinstance(raw, (list, tuple)) or len(raw) != 2:
            return None
        start = parse_timestamp(raw[0])
        end = parse_timestamp(raw[1])
        if start is None or end is None or start[0] > end[0]:
            return None
        end_dt, exclusive = _upper_bound(end)
        return DateRange(start=start[0], end=end_dt, end_exclusive=exclusive)

    return None
