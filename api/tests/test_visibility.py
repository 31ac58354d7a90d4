"""
Tests for ticket visibility scopes
"""

from ticketdesk.access import AccessControl
from ticketdesk.ticket_store import TicketStore
from ticketdesk.visibility import RestrictedTo, Unrestricted, VisibilityResolver


def resolver(db):
    return VisibilityResolver(AccessControl(db), TicketStore(db))


def test_admin_is_unrestricted(db, make_user):
    admin = make_user(is_admin=True)
    assert resolver(db).resolve(admin) == Unrestricted()


def test_unknown_actor_sees_nothing(db):
    assert resolver(db).resolve(None) == RestrictedTo(frozenset())


def test_user_without_org_sees_own_and_assigned(db, make_user, make_ticket):
    u = make_user()
    other = make_user()
    created = make_ticket(created_by=u)
    assigned = make_ticket(created_by=other, assignee=u)
    make_ticket(created_by=other)

    assert resolver(db).resolve(u) == RestrictedTo(frozenset({created.id, assigned.id}))


def test_own_only_policy_ignores_colleagues(db, make_user, make_org, make_ticket):
    u = make_user()
    colleague = make_user()
    make_org(members=[u, colleague], settings={"ticket_visibility": "own"})
    mine = make_ticket(created_by=u)
    make_ticket(created_by=colleague)

    assert resolver(db).resolve(u) == RestrictedTo(frozenset({mine.id}))


def test_own_only_with_no_tickets_is_empty_not_unrestricted(db, make_user, make_org, make_ticket):
    u = make_user()
    colleague = make_user()
    make_org(members=[u, colleague])
    make_ticket(created_by=colleague)

    scope = resolver(db).resolve(u)
    assert scope == RestrictedTo(frozenset())
    assert scope.is_empty


def test_org_wide_policy_covers_members(db, make_user, make_org, make_ticket):
    u = make_user()
    colleague = make_user()
    outsider = make_user()
    make_org(members=[u, colleague], settings={"ticket_visibility": "organization"})
    by_colleague = make_ticket(created_by=colleague)
    to_colleague = make_ticket(created_by=outsider, assignee=colleague)
    make_ticket(created_by=outsider)

    assert resolver(db).resolve(u) == RestrictedTo(frozenset({by_colleague.id, to_colleague.id}))


def test_org_wide_policy_includes_shared_organizations(db, make_user, make_org, make_ticket):
    u = make_user()
    partner = make_user()
    partner_org = make_org(members=[partner], name="Partner")
    make_org(members=[u], settings={"ticket_visibility": "organization", "shared_organization_ids": [partner_org.id]})
    t = make_ticket(created_by=partner)

    assert resolver(db).resolve(u) == RestrictedTo(frozenset({t.id}))


def test_all_policy_is_unrestricted(db, make_user, make_org):
    u = make_user()
    make_org(members=[u], settings={"ticket_visibility": "all"})
    assert resolver(db).resolve(u) == Unrestricted()


def test_unreadable_settings_fall_back_to_own(db, make_user, make_org, make_ticket):
    u = make_user()
    colleague = make_user()
    org = make_org(members=[u, colleague])
    org.settings_json = "{not json"
    db.commit()
    make_ticket(created_by=colleague)

    assert resolver(db).resolve(u) == RestrictedTo(frozenset())
