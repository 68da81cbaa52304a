"""
Document store service layer.

Responsibilities:
- Create document aggregates (document + roster + first audit entry) atomically
- Load aggregates by id, by tenant and by update cursor
- Apply transitions as one locked read-modify-write that also appends the
  audit entry, and publish the resulting lifecycle event after commit

The store is the only writer of RequiredSignatory, Signature and AuditEntry
rows. Transition rules live in the callers' mutators; the store only refuses
to persist a status outside the enumeration.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from ..exceptions import InvalidState, NotFound
from ..models import AuditEntry, Document, DocumentStatus, RequiredSignatory, Signature
from .hashing import HashingService
from .notifications import DOCUMENT_CREATED, STATUS_CHANGED, LifecycleEvent, get_notification_sink, publish_safely
from .token_utils import generate_signature_token

logger = logging.getLogger(__name__)


CURSOR_FIELDS = ('upload_date', 'updated_at')


@dataclass
class Mutation:
    """
    What a transition changes, as returned by a mutator.

    Attributes:
        action: Audit text appended with the change
        event_type: Lifecycle event published after commit
        fields: Document attribute -> new value
        signatory_updates: roster user_id -> new status
        signature: Signature attributes (signer_id, signer_name, audit_trail)
            to append, or None
        timestamp: time of the change when the caller already showed it
            somewhere (a stamped signature block); defaults to now
    """
    action: str
    event_type: str = STATUS_CHANGED
    fields: Dict[str, Any] = field(default_factory=dict)
    signatory_updates: Dict[int, str] = field(default_factory=dict)
    signature: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None


class DocumentStore:
    """Persistence of document aggregates."""

    def __init__(self, sink=None):
        self._sink = sink

    @property
    def sink(self):
        return self._sink if self._sink is not None else get_notification_sink()

    # ----------------------------
    # Reads
    # ----------------------------

    @staticmethod
    def _aggregate_queryset():
        return Document.objects.prefetch_related('required_signatories', 'signatures', 'audit_log')

    def get_by_id(self, document_id) -> Document:
        """
        Load a document aggregate.

        Raises:
            NotFound: no document with this id
        """
        try:
            return self._aggregate_queryset().get(pk=document_id)
        except (Document.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Document {document_id} not found", document_id=document_id)

    def list_for_actor(self, actor, client_id=None):
        """
        Documents visible to `actor`, newest first.

        Office users see every tenant; client users only their own. The
        optional `client_id` narrows either view to one tenant. File content
        is deferred; size and hash are columns.
        """
        queryset = self._aggregate_queryset().defer('file_content')
        if not actor.is_office:
            queryset = queryset.filter(client_id__in=actor.client_ids)
        if client_id is not None:
            queryset = queryset.filter(client_id=client_id)
        return queryset.order_by('-upload_date', '-id')

    def list_updated_since(self, actor, cursor, field_name='upload_date'):
        """
        Documents visible to `actor` whose `field_name` is strictly after `cursor`.

        Args:
            actor: accounts.services.Actor
            cursor: aware datetime
            field_name: 'upload_date' or 'updated_at'
        """
        if field_name not in CURSOR_FIELDS:
            raise ValueError(f"Unsupported cursor field '{field_name}'")
        return self.list_for_actor(actor).filter(
            **{f'{field_name}__gt': cursor}
        ).order_by(f'-{field_name}', '-id')

    # ----------------------------
    # Writes
    # ----------------------------

    def create(self, fields: Dict[str, Any], actor_name: str, action: str,
               signatories: Iterable[Tuple[int, str]] = (), event_type: str = DOCUMENT_CREATED) -> Document:
        """
        Insert a document with its roster and first audit entry.

        Args:
            fields: Document attributes
            actor_name: display name written to the audit entry
            action: audit text
            signatories: (user_id, name) pairs forming the roster
            event_type: lifecycle event published after commit

        Returns:
            Document: the fresh aggregate
        """
        with transaction.atomic():
            now = timezone.now()
            document = Document(**fields)
            document.upload_date = now
            self._sync_file_metadata(document)
            self._validate(document)
            document.save()

            RequiredSignatory.objects.bulk_create([
                RequiredSignatory(document=document, user_id=user_id, name=name)
                for user_id, name in signatories
            ])
            AuditEntry.objects.create(document=document, user=actor_name, date=now, action=action)

            event = LifecycleEvent(
                event_type=event_type,
                document_id=document.pk,
                client_id=document.client_id,
                document_name=document.name,
                old_status=None,
                new_status=document.status,
                actor=actor_name,
                action=action,
                timestamp=now,
            )
            self._publish_on_commit(event)

        logger.info(f"Document {document.pk} created for client {document.client_id} with status {document.status}")
        return self.get_by_id(document.pk)

    def apply_transition(self, document_id, mutator: Callable[[Document], Mutation], actor_name: str) -> Document:
        """
        Run `mutator` against the locked aggregate and persist its Mutation.

        The mutator sees the current row under `select_for_update()` and must
        raise (typically InvalidState) when its guard fails; nothing is
        written in that case. Field changes, roster updates, the signature
        record and the audit entry land in one transaction.

        Raises:
            NotFound: no document with this id
            InvalidState: the mutator rejected the transition, or it would
                persist an unknown status
        """
        with transaction.atomic():
            try:
                document = (
                    Document.objects.select_for_update()
                    .prefetch_related('required_signatories', 'signatures', 'audit_log')
                    .get(pk=document_id)
                )
            except (Document.DoesNotExist, ValueError, TypeError):
                raise NotFound(f"Document {document_id} not found", document_id=document_id)

            old_status = document.status
            mutation = mutator(document)
            now = self.next_timestamp(document, mutation.timestamp)

            for name, value in mutation.fields.items():
                setattr(document, name, value)
            if 'file_content' in mutation.fields:
                self._sync_file_metadata(document)
            self._validate(document)
            document.save()

            for user_id, status in mutation.signatory_updates.items():
                updated = RequiredSignatory.objects.filter(document=document, user_id=user_id).update(status=status)
                if updated != 1:
                    raise InvalidState(
                        f"User {user_id} is not a required signatory of document {document.pk}",
                        document_id=document.pk,
                    )

            if mutation.signature is not None:
                signature = Signature(
                    document=document,
                    signed_at=now,
                    signature_id=generate_signature_token(),
                    **mutation.signature
                )
                signature.event_hash = HashingService.compute_signature_hash(signature)
                signature.save()

            AuditEntry.objects.create(document=document, user=actor_name, date=now, action=mutation.action)

            event = LifecycleEvent(
                event_type=mutation.event_type,
                document_id=document.pk,
                client_id=document.client_id,
                document_name=document.name,
                old_status=old_status,
                new_status=document.status,
                actor=actor_name,
                action=mutation.action,
                timestamp=now,
            )
            self._publish_on_commit(event)

        logger.info(f"Document {document.pk}: {old_status} -> {document.status} ({mutation.event_type})")
        return self.get_by_id(document.pk)

    # ----------------------------
    # Helpers
    # ----------------------------

    @staticmethod
    def _sync_file_metadata(document):
        if document.file_content is None:
            document.file_size = None
            document.file_sha256 = ''
        else:
            document.file_size = len(document.file_content)
            document.file_sha256 = HashingService.compute_bytes_sha256(document.file_content)

    @staticmethod
    def _validate(document):
        if document.status not in DocumentStatus.values:
            raise InvalidState(f"Unknown status '{document.status}'", document_id=document.pk)
        try:
            document.clean()
        except ValidationError as e:
            raise InvalidState('; '.join(e.messages), document_id=document.pk)

    @staticmethod
    def next_timestamp(document, requested=None):
        """`requested` (default now), raised so audit and signature timestamps never go backwards."""
        now = requested or timezone.now()
        latest = [
            document.audit_log.aggregate(latest=Max('date'))['latest'],
            document.signatures.aggregate(latest=Max('signed_at'))['latest'],
        ]
        for value in latest:
            if value is not None and value > now:
                now = value
        return now

    def _publish_on_commit(self, event):
        sink = self.sink
        transaction.on_commit(lambda: publish_safely(sink, event))


# Singleton instance
_document_store = None


def get_document_store() -> DocumentStore:
    """Get singleton instance of document store."""
    global _document_store
    if _document_store is None:
        _document_store = DocumentStore()
    return _document_store
