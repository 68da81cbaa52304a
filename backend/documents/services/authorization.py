"""
Centralized capability checks for lifecycle operations.

Every lifecycle operation calls `authorize` exactly once, after the document
has been resolved and before any guard is evaluated. Views never re-derive
role checks on their own.
"""

import logging

from ..exceptions import Forbidden

logger = logging.getLogger(__name__)


# Actions
VIEW = 'view'
REQUEST = 'request'
SEND_FROM_OFFICE = 'send_from_office'
QUICK_SEND = 'quick_send'
SUBMIT_FROM_TEMPLATE = 'submit_from_template'
APPROVE_STEP = 'approve_step'
SUBMIT_NEXT_STEP = 'submit_next_step'
SIGN = 'sign'
SET_STATUS = 'set_status'
ANALYZE = 'analyze'
MANAGE_WEBHOOKS = 'manage_webhooks'

# Only office staff may perform these
OFFICE_ONLY_ACTIONS = frozenset({
    SEND_FROM_OFFICE,
    QUICK_SEND,
    APPROVE_STEP,
    SET_STATUS,
    MANAGE_WEBHOOKS,
})

# Client users may perform these for the tenants they own
TENANT_ACTIONS = frozenset({
    VIEW,
    REQUEST,
    SUBMIT_FROM_TEMPLATE,
    SUBMIT_NEXT_STEP,
    ANALYZE,
})


def is_allowed(actor, action, document=None, client_id=None) -> bool:
    """
    Decide whether `actor` may perform `action`.

    Args:
        actor: accounts.services.Actor
        action: one of the action constants above
        document: Document the action targets, if any
        client_id: tenant the action targets when no document exists yet

    Returns:
        bool
    """
    if action == SIGN:
        # Pending/signed status is a guard (InvalidState), not a capability
        if actor.is_office or document is None:
            return True
        if actor.owns_client(document.client_id):
            return True
        return any(s.user_id == actor.user_id for s in document.required_signatories.all())

    if action in OFFICE_ONLY_ACTIONS:
        return actor.is_office

    if action in TENANT_ACTIONS:
        if actor.is_office:
            return True
        target = document.client_id if document is not None else client_id
        if target is None:
            # Tenant-wide actions without a target (e.g. analyze) only need a tenant
            return bool(actor.client_ids)
        return actor.owns_client(target)

    logger.warning(f"Unknown action '{action}' denied for user {actor.user_id}")
    return False


def authorize(actor, action, document=None, client_id=None):
    """
    Raise Forbidden unless `actor` may perform `action`.

    Raises:
        Forbidden: actor lacks the role or tenant ownership
    """
    if not is_allowed(actor, action, document=document, client_id=client_id):
        document_id = document.pk if document is not None else None
        raise Forbidden(
            f"User {actor.user_id} is not allowed to {action.replace('_', ' ')}",
            document_id=document_id,
        )
