"""
End-to-end scenarios through the filter service
"""

from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from ticketdesk.definitions import definition_from_dict
from ticketdesk.errors import NotFoundError
from ticketdesk.executor import PageSpec
from ticketdesk.filter_service import FilterService
from ticketdesk.taxonomy import TaxonomyProvider


def service_for(db):
    return FilterService(db, TaxonomyProvider())


def definition(*groups, sort=None):
    data = {"groups": [{"logic": logic, "conditions": conds} for logic, conds in groups]}
    if sort:
        data["sort"] = sort
    return definition_from_dict(data)


def test_open_high_or_unassigned(db, make_user, make_ticket):
    u = make_user()
    t1 = make_ticket(status="open", priority="high", assignee=u, created_by=u)
    t2 = make_ticket(status="open", priority="low", created_by=u)
    make_ticket(status="closed", priority="high", assignee=u, created_by=u)
    d = definition(
        ("AND", [
            {"field": "status", "operator": "equals", "value": "open"},
            {"field": "priority", "operator": "equals", "value": "high"},
        ]),
        ("AND", [{"field": "assignee", "operator": "not_exists"}]),
    )
    service = service_for(db)

    assert service.preview(u, d).count == 2
    result = service.apply(u, d, PageSpec())
    assert {t.id for t in result.items} == {t1.id, t2.id}
    assert result.total == 2


def test_disallowed_operator_previews_the_rest(db, make_user, make_ticket):
    u = make_user()
    make_ticket(priority="high", created_by=u)
    make_ticket(priority="low", created_by=u)
    d = definition(("AND", [
        {"field": "status", "operator": "between", "value": ["2025-01-01", "2025-12-31"]},
        {"field": "priority", "operator": "equals", "value": "high"},
    ]))
    assert service_for(db).preview(u, d).count == 1


def test_own_only_actor_with_no_tickets_gets_zero(db, make_user, make_org, make_ticket):
    u = make_user()
    colleague = make_user()
    make_org(members=[u, colleague])
    make_ticket(created_by=colleague)

    service = service_for(db)
    assert service.preview(u, definition()).count == 0
    assert service.apply(u, definition(), PageSpec()).items == []


def test_text_search_is_anded_with_groups(db, make_user, make_ticket):
    u = make_user()
    hit = make_ticket(title="Printer offline", status="open", created_by=u)
    make_ticket(title="Printer offline", status="closed", created_by=u)
    make_ticket(title="VPN", status="open", created_by=u)
    d = definition(
        ("AND", [{"field": "status", "operator": "equals", "value": "open"}]),
        ("AND", [{"field": "text_search", "operator": "contains", "value": "printer"}]),
    )
    assert [t.id for t in service_for(db).apply(u, d).items] == [hit.id]


def test_apply_saved_filter_uses_saved_sort(db, make_user, make_ticket):
    u = make_user()
    for title in ("b", "a", "c"):
        make_ticket(title=title, created_by=u)
    service = service_for(db)
    row = service.save(u, definition(("AND", [{"field": "status", "operator": "equals", "value": "open"}])),
                       {"name": "By title", "sort_field": "title", "sort_order": "ASC"})

    assert [t.title for t in service.apply(u, row.id).items] == ["a", "b", "c"]


def test_apply_unreadable_saved_filter(db, make_user):
    owner = make_user()
    stranger = make_user()
    service = service_for(db)
    row = service.save(owner, definition(("AND", [{"field": "status", "value": "open"}])), {"name": "Mine"})
    with pytest.raises(NotFoundError):
        service.apply(stranger, row.id)


def test_store_failure_degrades_to_error(db, make_user):
    u = make_user(is_admin=True)
    service = service_for(db)
    failure = OperationalError("SELECT", {}, Exception("database is gone"))
    with mock.patch.object(service.tickets, "count", side_effect=failure):
        result = service.preview(u, definition())
    assert result.count == 0
    assert result.error
    assert "database is gone" not in result.error

    with mock.patch.object(service.tickets, "query", side_effect=failure):
        page = service.apply(u, definition())
    assert page.items == []
    assert page.error


def test_save_update_existing(db, make_user):
    u = make_user()
    service = service_for(db)
    row = service.save(u, definition(("AND", [{"field": "status", "value": "open"}])), {"name": "First"})
    updated = service.save(u, None, {"name": "Second"}, filter_id=row.id)
    assert updated.id == row.id
    assert updated.name == "Second"
