"""
Filter compiler: turns a FilterDefinition into a pure ExecutionPlan.

The plan is a tree of atomic predicates combined with AND/OR, plus an optional
free-text term and a sort spec. Compilation is permissive:
- empty groups and unusable conditions are dropped, never reported
- text_search conditions are lifted into the plan-level free-text term (first wins)
- conditions whose operator is not allowed for their field are dropped
- groups are OR'd together; a single surviving group is not wrapped

The plan performs no I/O, so preview and apply compile identical plans.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union
import itertools
import re

from .definitions import (
    LOGIC_AND,
    LOGIC_OR,
    ORDER_ASC,
    ORDER_DESC,
    DEFAULT_SORT_FIELD,
    RELATIVE_DATES,
    ConditionValue,
    FilterCondition,
    FilterDefinition,
    FilterGroup,
    Scalar,
    SortSpec,
    ValueList,
    coerce_value,
)
from .taxonomy import TaxonomyProvider, SINGLE_SELECT, TEXT


@dataclass(frozen=True)
class Predicate:
    """Atomic test on one ticket attribute."""
    field: str
    operator: str
    value: ConditionValue


@dataclass(frozen=True)
class BoolExpr:
    logic: str
    children: Tuple[Union[Predicate, "BoolExpr"], ...]


PlanNode = Union[Predicate, BoolExpr]


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Compiled, side-effect free form of a filter definition.

    Attributes:
        predicate: Predicate tree, or None when nothing restricts attributes.
        free_text: Case-insensitive substring searched in title and body.
        sort: Normalized sort spec (ties are always broken by ticket id ascending).
        match_none: True when the input had conditions but none of them was usable.
    """
    predicate: Optional[PlanNode] = None
    free_text: Optional[str] = None
    sort: SortSpec = field(default_factory=SortSpec)
    match_none: bool = False


SORT_FIELDS = ("created_at", "modified_at", "title", "status", "priority", "category", "assignee", "reporter")

SORT_ALIASES = {
    "date": "created_at",
    "created_date": "created_at",
    "modified": "modified_at",
    "modified_date": "modified_at",
    "author": "reporter",
}


def resolve_sort(sort_field: Optional[str], sort_order: Optional[str]) -> SortSpec:
    """
    Normalize a requested sort.

    Unknown fields fall back to created date, descending (whatever order was asked for);
    orders other than ASC/DESC become DESC.
    """
    name = (sort_field or "").strip().lower()
    name = SORT_ALIASES.get(name, name)
    if name not in SORT_FIELDS:
        return SortSpec(field=DEFAULT_SORT_FIELD, order=ORDER_DESC)
    order = (sort_order or "").strip().upper()
    if order not in (ORDER_ASC, ORDER_DESC):
        order = ORDER_DESC
    return SortSpec(field=name, order=order)


class FilterCompiler:
    """Compiles filter definitions to execution plans"""

    def __init__(self, taxonomy: Optional[TaxonomyProvider] = None):
        self.taxonomy = taxonomy or TaxonomyProvider()

    def compile(self, definition: FilterDefinition, today: Optional[date] = None) -> ExecutionPlan:
        """
        Compile a definition.

        Args:
            definition: Parsed filter definition (may contain unusable conditions)
            today: Reference day for relative dates (defaults to today, UTC)

        Returns:
            ExecutionPlan; never raises.

        Example definition (as JSON):
            {
              "groups": [
                {"logic": "AND", "conditions": [
                  {"field": "status", "operator": "equals", "value": "open"},
                  {"field": "priority", "operator": "in", "value": ["high", "urgent"]}
                ]}
              ],
              "sort": {"field": "created_at", "order": "DESC"}
            }
        """
        today = today or datetime.utcnow().date()
        free_text: Optional[str] = None
        group_nodes: List[PlanNode] = []

        for group in definition.groups:
            nodes: List[PlanNode] = []
            for condition in group.conditions:
                if condition.field == "text_search":
                    term = self._compile_text(condition)
                    if term is not None and free_text is None:
                        free_text = term
                    continue
                node = self._compile_condition(condition, today)
                if node is not None:
                    nodes.append(node)

            compiled_group = self._combine(group.logic, nodes)
            if compiled_group is not None:
                group_nodes.append(compiled_group)

        predicate = self._combine(LOGIC_OR, group_nodes)

        # Conditions were given but none survived: match nothing rather than everything
        match_none = definition.condition_count > 0 and predicate is None and free_text is None

        return ExecutionPlan(
            predicate=predicate,
            free_text=free_text,
            sort=resolve_sort(definition.sort.field, definition.sort.order),
            match_none=match_none,
        )

    @staticmethod
    def _combine(logic: str, nodes: List[PlanNode]) -> Optional[PlanNode]:
        if not nodes:
            return None
        if len(nodes) == 1:
            return nodes[0]
        return BoolExpr(logic=logic, children=tuple(nodes))

    def _operator_for(self, condition: FilterCondition) -> Optional[str]:
        if condition.operator:
            return condition.operator
        if self.taxonomy.field_class(condition.field) == TEXT:
            return "contains"
        return "equals"

    def _compile_text(self, condition: FilterCondition) -> Optional[str]:
        operator = self._operator_for(condition)
        if not self.taxonomy.allows(condition.field, operator):
            return None
        value = coerce_value(TEXT, operator, condition.value)
        if not isinstance(value, Scalar):
            return None
        return str(value.value)

    def _compile_condition(self, condition: FilterCondition, today: date) -> Optional[Predicate]:
        field_class = self.taxonomy.field_class(condition.field)
        if field_class is None:
            return None
        operator = self._operator_for(condition)
        if not self.taxonomy.allows(condition.field, operator):
            return None
        value = coerce_value(field_class, operator, condition.value, today)
        if value is None:
            return None
        if field_class == SINGLE_SELECT:
            value = self._normalize_options(condition.field, value)
        return Predicate(field=condition.field, operator=operator, value=value)

    def _normalize_options(self, field_name: str, value: ConditionValue) -> ConditionValue:
        if isinstance(value, Scalar):
            return Scalar(self.taxonomy.resolve_slug(field_name, str(value.value)))
        if isinstance(value, ValueList):
            slugs: List[str] = []
            for item in value.values:
                slug = self.taxonomy.resolve_slug(field_name, str(item))
                if slug not in slugs:
                    slugs.append(slug)
            return ValueList(values=tuple(slugs))
        return value


# --- Legacy queue filter configuration ---
_SEARCH_STRIP = re.compile(r"[<>{}\[\]]")


def _legacy_date_condition(config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    operator = config.get("operator")
    if not operator:
        return None
    start = config.get("start")
    end = config.get("end")
    if operator == "between":
        if not start or not end:
            return None
        return {"field": "created_date", "operator": "between", "value": [start, end]}
    if operator in ("before", "after"):
        if not start:
            return None
        return {"field": "created_date", "operator": operator, "value": start}
    if operator in RELATIVE_DATES:
        return {"field": "created_date", "operator": "relative", "value": operator}
    return None


def legacy_config_to_definition(
    config: Dict[str, Any],
    actor_id: Optional[int] = None,
    members_of: Optional[Callable[[int], Iterable[int]]] = None,
    sort_field: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> FilterDefinition:
    """
    Convert a flat queue-filter configuration to a filter definition.

    Args:
        config: e.g. {"status": ["open"], "priority": ["high"], "assignee_type": "me",
                "date_created": {"operator": "this_week"}, "search_phrase": "printer"}
        actor_id: Resolves assignee_type "me"
        members_of: Resolves organization_ids to member user ids; without it the key is ignored
        sort_field: Optional sort field
        sort_order: Optional sort order

    Returns:
        FilterDefinition. Status and category lists expand into one AND group per
        combination, since those fields only take equals.
    """
    shared: List[Dict[str, Any]] = []

    priorities = config.get("priority")
    if isinstance(priorities, list) and priorities:
        shared.append({"field": "priority", "operator": "in", "value": list(priorities)})

    assignee_type = config.get("assignee_type")
    if assignee_type == "me" and actor_id:
        shared.append({"field": "assignee", "operator": "equals", "value": actor_id})
    elif assignee_type == "specific":
        ids = config.get("assignee_ids")
        if isinstance(ids, list) and ids:
            shared.append({"field": "assignee", "operator": "in", "value": list(ids)})
    elif assignee_type == "unassigned":
        shared.append({"field": "assignee", "operator": "not_exists", "value": None})

    reporters = config.get("reporter_ids")
    if isinstance(reporters, list) and reporters:
        shared.append({"field": "reporter", "operator": "in", "value": list(reporters)})

    # Reporter within the listed organizations; ANDed with reporter_ids when both are given
    org_ids = config.get("organization_ids")
    if isinstance(org_ids, list) and org_ids and members_of is not None:
        member_ids: List[int] = []
        for org_id in org_ids:
            for user_id in members_of(org_id):
                if user_id not in member_ids:
                    member_ids.append(user_id)
        if member_ids:
            shared.append({"field": "reporter", "operator": "in", "value": sorted(member_ids)})

    date_config = config.get("date_created")
    if isinstance(date_config, dict):
        date_condition = _legacy_date_condition(date_config)
        if date_condition:
            shared.append(date_condition)

    phrase = config.get("search_phrase")
    if isinstance(phrase, str) and phrase.strip():
        cleaned = _SEARCH_STRIP.sub("", phrase).strip()
        if cleaned:
            shared.append({"field": "text_search", "operator": "contains", "value": cleaned})

    def _options(key: str) -> List[Optional[str]]:
        values = config.get(key)
        if isinstance(values, list) and values:
            return list(values)
        return [None]

    groups = []
    for status, category in itertools.product(_options("status"), _options("category")):
        conditions = list(shared)
        if status is not None:
            conditions.insert(0, {"field": "status", "operator": "equals", "value": status})
        if category is not None:
            conditions.append({"field": "category", "operator": "equals", "value": category})
        if conditions:
            groups.append(FilterGroup(
                logic=LOGIC_AND,
                conditions=tuple(FilterCondition(c["field"], c["operator"], c["value"]) for c in conditions),
            ))

    sort = SortSpec(field=sort_field or DEFAULT_SORT_FIELD, order=sort_order or ORDER_DESC)
    return FilterDefinition(groups=tuple(groups), sort=sort)
