"""
Signature coordinator service layer.

Responsibilities:
- Check that a signer is a pending entry of the document's roster
- Invoke the signing primitive exactly once, outside any transaction
- Commit roster update, signature record, new file content, completion
  status and audit entry as one transition
"""

import logging
from dataclasses import dataclass

from django.utils import timezone

from ..exceptions import DependencyFailure, InvalidState
from ..models import Document, DocumentStatus, RequiredSignatory
from .authorization import SIGN, authorize
from .document_store import Mutation, get_document_store
from .hashing import HashingService
from .notifications import SIGNATURE_CREATED
from .pdf_signing import SigningError, get_signature_stamper

logger = logging.getLogger(__name__)


SIGNED_ACTION = 'Documento assinado digitalmente.'


@dataclass
class SignatureResult:
    document: Document
    now_complete: bool


class SignatureCoordinator:
    """Tracks per-signatory completion and hands bytes to the signing primitive."""

    def __init__(self, store=None, stamper=None):
        self.store = store or get_document_store()
        self.stamper = stamper or get_signature_stamper()

    def record_signature(self, document_id, signer, signature_metadata=None) -> SignatureResult:
        """
        Sign `document_id` as `signer`.

        The block is stamped on the file as it was loaded. If another
        transition committed in the meantime (typically a co-signer's
        signature) nothing is written and the signer is asked to sign again;
        the primitive is never invoked twice for one call.

        Args:
            document_id: Document primary key
            signer: accounts.services.Actor
            signature_metadata: capture context (ip address, user agent) kept
                in the signature's audit trail

        Returns:
            SignatureResult: fresh aggregate and whether every entry is signed

        Raises:
            NotFound: unknown document
            Forbidden: signer may not act on this document
            InvalidState: wrong status, signer not pending, no file, or the
                document changed while the block was being stamped
            DependencyFailure: the signing primitive failed
        """
        document = self.store.get_by_id(document_id)
        authorize(signer, SIGN, document)
        self.check_can_sign(document, signer.user_id)

        if not document.has_file:
            raise InvalidState(f"Document {document.pk} has no file to sign", document_id=document.pk)

        source_bytes = bytes(document.file_content)
        source_hash = HashingService.compute_bytes_sha256(source_bytes)
        # The instant printed in the block is the one recorded on the signature
        timestamp = self.store.next_timestamp(document)

        # The primitive may be slow; no transaction is open here
        try:
            signed_bytes = self.stamper.append_signature_block(
                source_bytes,
                signer.name,
                timezone.localtime(timestamp),
                slot=len(document.signatures.all()),
            )
        except SigningError as e:
            logger.error(f"Signing primitive failed for document {document.pk}: {e}")
            raise DependencyFailure(
                f"Could not sign document {document.pk}: {e}",
                document_id=document.pk,
                dependency='signing',
            ) from e

        audit_trail = {
            **(signature_metadata or {}),
            'document_sha256_before': source_hash,
            'document_sha256_after': HashingService.compute_bytes_sha256(signed_bytes),
        }

        def mutator(locked):
            self.check_can_sign(locked, signer.user_id)
            changed = (
                HashingService.compute_bytes_sha256(locked.file_content) != source_hash
                or self.store.next_timestamp(locked, timestamp) != timestamp
            )
            if changed:
                raise InvalidState(
                    f"Document {locked.pk} changed while it was being signed; reload and sign again",
                    document_id=locked.pk,
                )

            others_pending = [
                entry for entry in locked.required_signatories.all()
                if entry.status == RequiredSignatory.STATUS_PENDING and entry.user_id != signer.user_id
            ]
            fields = {'file_content': signed_bytes}
            if not others_pending:
                fields['status'] = DocumentStatus.CONCLUIDO

            return Mutation(
                action=SIGNED_ACTION,
                event_type=SIGNATURE_CREATED,
                fields=fields,
                signatory_updates={signer.user_id: RequiredSignatory.STATUS_SIGNED},
                signature={
                    'signer_id': signer.user_id,
                    'signer_name': signer.name,
                    'audit_trail': audit_trail,
                },
                timestamp=timestamp,
            )

        document = self.store.apply_transition(document_id, mutator, signer.name)
        now_complete = all(
            entry.status == RequiredSignatory.STATUS_SIGNED
            for entry in document.required_signatories.all()
        )
        logger.info(f"User {signer.user_id} signed document {document.pk} (complete={now_complete})")
        return SignatureResult(document=document, now_complete=now_complete)

    @staticmethod
    def check_can_sign(document, user_id):
        """Raise InvalidState unless `user_id` may sign `document` now."""
        if document.status != DocumentStatus.AGUARDANDO_ASSINATURA:
            raise InvalidState(
                f"Document {document.pk} is not awaiting signatures (status: {document.status})",
                document_id=document.pk,
            )
        entry = next(
            (s for s in document.required_signatories.all() if s.user_id == user_id),
            None
        )
        if entry is None:
            raise InvalidState(
                f"User {user_id} is not a required signatory of document {document.pk}",
                document_id=document.pk,
            )
        if entry.status == RequiredSignatory.STATUS_SIGNED:
            raise InvalidState(
                f"User {user_id} has already signed document {document.pk}",
                document_id=document.pk,
            )


# Singleton instance
_signature_coordinator = None


def get_signature_coordinator() -> SignatureCoordinator:
    """Get singleton instance of signature coordinator."""
    global _signature_coordinator
    if _signature_coordinator is None:
        _signature_coordinator = SignatureCoordinator()
    return _signature_coordinator
