"""
Visibility scopes and the resolver that computes them for an actor.

    elevated actor                      -> Unrestricted
    no organization / policy "own"      -> tickets created by or assigned to the actor
    policy "organization"               -> tickets created by or assigned to any member
                                           (of the actor's organization and any shared ones)
    policy "all"                        -> Unrestricted

RestrictedTo(frozenset()) means "visible to nothing", which is not Unrestricted.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional, Union

from .access import AccessControl, ALL, ORG_WIDE
from .models import User


@dataclass(frozen=True)
class Unrestricted:
    pass


@dataclass(frozen=True)
class RestrictedTo:
    ticket_ids: FrozenSet[int]

    @property
    def is_empty(self) -> bool:
        return not self.ticket_ids


VisibilityScope = Union[Unrestricted, RestrictedTo]

UNRESTRICTED = Unrestricted()
NOTHING = RestrictedTo(frozenset())


class VisibilityResolver:
    """
    Resolves the visibility scope for an actor.

    Resolution reads membership and policy at call time and is never cached here;
    callers may reuse the scope for the rest of one request.
    """

    def __init__(self, access: AccessControl, tickets):
        self.access = access
        self.tickets = tickets

    def resolve(self, actor: Optional[User]) -> VisibilityScope:
        if actor is None or not actor.is_active:
            return NOTHING

        if self.access.is_elevated(actor):
            return UNRESTRICTED

        org = self.access.organization_of(actor)
        if org is None:
            return RestrictedTo(frozenset(self.tickets.ids_touching({actor.id})))

        policy = self.access.organization_policy(org)
        if policy.ticket_visibility == ALL:
            return UNRESTRICTED

        if policy.ticket_visibility == ORG_WIDE:
            people = set(self.access.members_of(org.id))
            for shared_id in policy.shared_organization_ids:
                people |= self.access.members_of(shared_id)
            people.add(actor.id)
            return RestrictedTo(frozenset(self.tickets.ids_touching(people)))

        return RestrictedTo(frozenset(self.tickets.ids_touching({actor.id})))
