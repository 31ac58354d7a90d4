"""
Attribute store adapter: runs execution plans against the tickets table.

Translates the plan's predicate tree into SQLAlchemy expressions (the way the
filter DSL used to be applied directly to queries), intersects with the
visibility scope and applies sort + id tie-break + offset/limit.
"""

from typing import Any, Iterable, List, Set, Tuple
from sqlalchemy import and_, or_, func, false, select
from sqlalchemy.orm import Session, selectinload

from .definitions import DateRange, Scalar, ValueList, ORDER_ASC
from .filters import BoolExpr, ExecutionPlan, PlanNode, Predicate
from .models import Ticket, TicketTag
from .visibility import RestrictedTo, VisibilityScope


class TicketStore:
    """SQLAlchemy-backed ticket attribute store"""

    # Map plan field names to SQLAlchemy column objects
    FIELD_MAP = {
        "status": Ticket.status,
        "priority": Ticket.priority,
        "category": Ticket.category,
        "assignee": Ticket.assignee_id,
        "reporter": Ticket.reporter_id,
        "created_date": Ticket.created_at,
        "modified_date": Ticket.modified_at,
    }

    SORT_MAP = {
        "created_at": Ticket.created_at,
        "modified_at": Ticket.modified_at,
        "title": Ticket.title,
        "status": Ticket.status,
        "priority": Ticket.priority,
        "category": Ticket.category,
        "assignee": Ticket.assignee_id,
        "reporter": Ticket.reporter_id,
    }

    def __init__(self, db: Session):
        self.db = db

    # --- plan execution ---
    def query(self, plan: ExecutionPlan, scope: VisibilityScope, offset: int, limit: int) -> Tuple[List[int], int]:
        """
        Run a plan.

        Returns:
            (ticket ids for the requested window in plan order, total matching count)
        """
        total = self.count(plan, scope)
        if total == 0:
            return [], 0

        sort_col = self.SORT_MAP.get(plan.sort.field, Ticket.created_at)
        sort_expr = sort_col.asc() if plan.sort.order == ORDER_ASC else sort_col.desc()

        q = self._filtered(self.db.query(Ticket.id), plan, scope)
        rows = q.order_by(sort_expr, Ticket.id.asc()).offset(offset).limit(limit).all()
        return [r[0] for r in rows], total

    def count(self, plan: ExecutionPlan, scope: VisibilityScope) -> int:
        """Identifier-only, unpaginated count of matching tickets."""
        q = self._filtered(self.db.query(func.count(Ticket.id)), plan, scope)
        return int(q.scalar() or 0)

    def _filtered(self, q, plan: ExecutionPlan, scope: VisibilityScope):
        if plan.match_none:
            return q.filter(false())
        if isinstance(scope, RestrictedTo):
            q = q.filter(Ticket.id.in_(sorted(scope.ticket_ids)))
        if plan.predicate is not None:
            q = q.filter(self._compile_node(plan.predicate))
        if plan.free_text:
            term = plan.free_text.lower()
            q = q.filter(or_(
                func.lower(Ticket.title).contains(term, autoescape=True),
                func.lower(func.coalesce(Ticket.body, "")).contains(term, autoescape=True),
            ))
        return q

    def _compile_node(self, node: PlanNode) -> Any:
        if isinstance(node, BoolExpr):
            children = [self._compile_node(child) for child in node.children]
            return and_(*children) if node.logic == "AND" else or_(*children)
        return self._compile_predicate(node)

    def _compile_predicate(self, predicate: Predicate) -> Any:
        """
        Compile one atomic predicate to a SQLAlchemy expression.

        Tags live in their own table, so set membership there is a subquery on ticket ids.
        """
        op = predicate.operator
        value = predicate.value

        if predicate.field == "tags":
            tagged = select(TicketTag.ticket_id).where(TicketTag.tag.in_(list(value.values)))
            if op == "in":
                return Ticket.id.in_(tagged)
            return ~Ticket.id.in_(tagged)

        column = self.FIELD_MAP[predicate.field]

        if isinstance(value, DateRange):
            clauses = []
            if value.start is not None:
                clauses.append(column > value.start if value.start_exclusive else column >= value.start)
            if value.end is not None:
                clauses.append(column < value.end if value.end_exclusive else column <= value.end)
            return and_(*clauses)

        if op == "equals" and isinstance(value, Scalar):
            return column == value.value

        elif op == "not_equals" and isinstance(value, Scalar):
            return column != value.value

        elif op == "in" and isinstance(value, ValueList):
            return column.in_(list(value.values))

        elif op == "not_in" and isinstance(value, ValueList):
            return column.notin_(list(value.values))

        elif op == "exists":
            return column.isnot(None)

        elif op == "not_exists":
            return column.is_(None)

        # Compiled plans never carry other shapes
        raise ValueError(f"Unsupported predicate: {predicate.field} {op}")

    # --- record access ---
    def fetch(self, ids: List[int]) -> List[Ticket]:
        """Load full ticket records, returned in the order of `ids`."""
        if not ids:
            return []
        rows = (
            self.db.query(Ticket)
            .options(selectinload(Ticket.tags))
            .filter(Ticket.id.in_(ids))
            .all()
        )
        by_id = {t.id: t for t in rows}
        return [by_id[i] for i in ids if i in by_id]

    def ids_touching(self, user_ids: Iterable[int]) -> Set[int]:
        """Ids of tickets created by or assigned to any of the given users."""
        people = [u for u in user_ids if u is not None]
        if not people:
            return set()
        rows = self.db.query(Ticket.id).filter(or_(
            Ticket.created_by.in_(people),
            Ticket.assignee_id.in_(people),
        )).all()
        return {r[0] for r in rows}
