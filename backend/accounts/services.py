"""
Actor resolution service layer.

Responsibilities:
- Turn an authenticated Django user into the Actor the lifecycle engine works with
- Resolve signatory user ids into (id, display name) pairs for document rosters
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from django.contrib.auth import get_user_model

from .models import UserProfile

logger = logging.getLogger(__name__)

ROLE_OFFICE = 'office'
ROLE_CLIENT = 'client'


@dataclass(frozen=True)
class Actor:
    """The user performing a lifecycle operation, as seen by the engine."""
    user_id: int
    name: str
    role: str
    client_ids: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_office(self) -> bool:
        return self.role == ROLE_OFFICE

    def owns_client(self, client_id) -> bool:
        return client_id in self.client_ids


def display_name(user) -> str:
    """Full name when set, username otherwise."""
    full_name = user.get_full_name().strip() if hasattr(user, 'get_full_name') else ''
    return full_name or user.get_username()


def actor_for_user(user) -> Actor:
    """
    Build an Actor from a Django user.

    Users without a portal profile are treated as client users with no
    tenants, so they can neither read nor act on any document. Superusers
    without a profile act as office staff.
    """
    try:
        profile = user.portal_profile
    except UserProfile.DoesNotExist:
        profile = None

    if profile is not None:
        role = ROLE_OFFICE if profile.is_office else ROLE_CLIENT
        client_ids = tuple(int(c) for c in (profile.client_ids or []))
    elif user.is_superuser:
        role = ROLE_OFFICE
        client_ids = ()
    else:
        logger.warning(f"User {user.pk} has no portal profile; treating as tenant-less client")
        role = ROLE_CLIENT
        client_ids = ()

    return Actor(user_id=user.pk, name=display_name(user), role=role, client_ids=client_ids)


def resolve_signatories(user_ids: Iterable) -> Tuple[List[Tuple[int, str]], List[int]]:
    """
    Resolve signatory ids to (user_id, name) pairs.

    Returns:
        tuple: (resolved pairs in request order without duplicates, unknown ids)
    """
    requested = []
    for raw in user_ids or []:
        user_id = int(raw)
        if user_id not in requested:
            requested.append(user_id)

    users = get_user_model().objects.in_bulk(requested)
    resolved = [(user_id, display_name(users[user_id])) for user_id in requested if user_id in users]
    unknown = [user_id for user_id in requested if user_id not in users]
    return resolved, unknown
