"""
Signature coordinator tests: multi-signatory completion, guard failures,
primitive failures, the stale-document check between stamping and commit
and the signing time shared by the stamped block and the record.
"""

from datetime import timedelta
from io import BytesIO
from unittest.mock import Mock

import pytest
from django.utils import timezone
from PyPDF2 import PdfReader

from documents.exceptions import DependencyFailure, Forbidden, InvalidState
from documents.models import AuditEntry, Document, DocumentStatus, RequiredSignatory, Signature
from documents.services.hashing import HashingService
from documents.services.lifecycle import AttachedFile, DocumentLifecycleService
from documents.services.notifications import SIGNATURE_CREATED
from documents.services.pdf_signing import PdfSignatureStamper, SigningError
from documents.services.signature_service import SIGNED_ACTION, SignatureCoordinator

from .helpers import CLIENT_ID


@pytest.fixture
def contract(lifecycle, office, client_user, partner_user, pdf_file):
    """Office contract awaiting signatures from Carlos and Beatriz."""
    return lifecycle.send_from_office(
        office, CLIENT_ID, 'Contrato social', pdf_file, [client_user.pk, partner_user.pk]
    )


def roster(document):
    return {s.user_id: s.status for s in document.required_signatories.all()}


def snapshot(document_id):
    """Everything a failed signing attempt must leave untouched."""
    document = Document.objects.get(pk=document_id)
    return (
        document.status,
        HashingService.compute_bytes_sha256(document.file_content),
        roster(document),
        document.signatures.count(),
        document.audit_log.count(),
    )


@pytest.mark.django_db
class TestMultiSignatory:
    def test_document_completes_when_every_signatory_signed(self, lifecycle, client, partner, contract, pdf_bytes):
        first = lifecycle.sign(client, contract.pk, {'ip_address': '10.0.0.1'})

        assert not first.now_complete
        assert first.document.status == DocumentStatus.AGUARDANDO_ASSINATURA
        assert roster(first.document) == {
            client.user_id: RequiredSignatory.STATUS_SIGNED,
            partner.user_id: RequiredSignatory.STATUS_PENDING,
        }
        assert bytes(first.document.file_content) != pdf_bytes

        second = lifecycle.sign(partner, contract.pk)

        assert second.now_complete
        document = second.document
        assert document.status == DocumentStatus.CONCLUIDO
        assert set(roster(document).values()) == {RequiredSignatory.STATUS_SIGNED}
        assert [s.signer_name for s in document.signatures.all()] == ['Carlos Cliente', 'Beatriz Sócia']
        assert [entry.action for entry in document.audit_log.all()] == [
            'Documento enviado pelo escritório.',
            SIGNED_ACTION,
            SIGNED_ACTION,
        ]

    def test_signature_record(self, lifecycle, client, contract, pdf_bytes):
        document = lifecycle.sign(client, contract.pk, {'ip_address': '10.0.0.1', 'user_agent': 'pytest'}).document

        signature = document.signatures.get()
        assert signature.signer_id == client.user_id
        assert signature.signature_id.startswith('SIG-')
        assert signature.audit_trail['ip_address'] == '10.0.0.1'
        assert signature.audit_trail['document_sha256_before'] == HashingService.compute_bytes_sha256(pdf_bytes)
        assert signature.audit_trail['document_sha256_after'] == HashingService.compute_bytes_sha256(document.file_content)
        assert signature.signed_at == document.audit_log.last().date

    def test_signature_hash_detects_tampering(self, lifecycle, client, contract):
        lifecycle.sign(client, contract.pk)

        signature = Signature.objects.get(document_id=contract.pk)
        assert HashingService.is_signature_valid(signature)

        signature.signer_name = 'Outra Pessoa'
        assert not HashingService.is_signature_valid(signature)

    def test_stamped_file_stays_a_readable_pdf(self, lifecycle, client, partner, contract):
        lifecycle.sign(client, contract.pk)
        document = lifecycle.sign(partner, contract.pk).document

        reader = PdfReader(BytesIO(bytes(document.file_content)))
        assert len(reader.pages) == 1

    def test_signature_created_event(self, lifecycle, client, contract, sink, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            lifecycle.sign(client, contract.pk)

        assert [e.event_type for e in sink.events] == [SIGNATURE_CREATED]
        assert not sink.events[0].completed

    def test_completing_signature_event_is_marked_completed(self, lifecycle, client, partner, contract, sink,
                                                            django_capture_on_commit_callbacks):
        lifecycle.sign(client, contract.pk)
        with django_capture_on_commit_callbacks(execute=True):
            lifecycle.sign(partner, contract.pk)

        assert sink.events[-1].completed


@pytest.mark.django_db
class TestSigningGuards:
    def test_double_signature_is_refused(self, lifecycle, client, contract):
        lifecycle.sign(client, contract.pk)
        before = snapshot(contract.pk)

        with pytest.raises(InvalidState):
            lifecycle.sign(client, contract.pk)

        assert snapshot(contract.pk) == before

    def test_user_outside_roster_is_refused(self, lifecycle, office, contract):
        before = snapshot(contract.pk)

        with pytest.raises(InvalidState):
            lifecycle.sign(office, contract.pk)

        assert snapshot(contract.pk) == before

    def test_outsider_is_forbidden(self, lifecycle, outsider, contract):
        before = snapshot(contract.pk)

        with pytest.raises(Forbidden):
            lifecycle.sign(outsider, contract.pk)

        assert snapshot(contract.pk) == before

    def test_document_not_awaiting_signatures(self, lifecycle, office, client, pdf_file):
        document = lifecycle.send_from_office(office, CLIENT_ID, 'Guia', pdf_file)

        with pytest.raises(InvalidState):
            lifecycle.sign(client, document.pk)

    def test_completed_document_cannot_be_signed_again(self, lifecycle, client, partner, contract):
        lifecycle.sign(client, contract.pk)
        lifecycle.sign(partner, contract.pk)

        with pytest.raises(InvalidState):
            lifecycle.sign(partner, contract.pk)


@pytest.mark.django_db
class TestSigningPrimitiveFailures:
    def test_primitive_failure_writes_nothing(self, store, client, contract):
        stamper = Mock()
        stamper.append_signature_block.side_effect = SigningError('overlay failed')
        lifecycle = DocumentLifecycleService(store=store, coordinator=SignatureCoordinator(store=store, stamper=stamper))
        before = snapshot(contract.pk)

        with pytest.raises(DependencyFailure) as exc_info:
            lifecycle.sign(client, contract.pk)

        assert exc_info.value.dependency == 'signing'
        assert snapshot(contract.pk) == before

    def test_unreadable_file_is_a_dependency_failure(self, lifecycle, office, client_user, client):
        not_a_pdf = AttachedFile(name='planilha.xlsx', type='application/vnd.ms-excel', content=b'not a pdf at all')
        document = lifecycle.send_from_office(office, CLIENT_ID, 'Planilha', not_a_pdf, [client_user.pk])

        with pytest.raises(DependencyFailure):
            lifecycle.sign(client, document.pk)

        assert roster(Document.objects.get(pk=document.pk)) == {client_user.pk: RequiredSignatory.STATUS_PENDING}

    def test_file_changed_while_stamping_is_refused(self, store, client, contract):
        def stamp_while_someone_else_commits(pdf_bytes, signer_name, timestamp, slot=0):
            Document.objects.filter(pk=contract.pk).update(file_content=b'%PDF-1.4 replaced')
            return b'%PDF-1.4 stamped'

        stamper = Mock()
        stamper.append_signature_block.side_effect = stamp_while_someone_else_commits
        lifecycle = DocumentLifecycleService(store=store, coordinator=SignatureCoordinator(store=store, stamper=stamper))

        with pytest.raises(InvalidState):
            lifecycle.sign(client, contract.pk)

        document = Document.objects.get(pk=contract.pk)
        assert bytes(document.file_content) == b'%PDF-1.4 replaced'
        assert roster(document)[client.user_id] == RequiredSignatory.STATUS_PENDING
        assert document.signatures.count() == 0
        assert document.audit_log.count() == 1

    def test_slot_grows_with_each_signature(self, store, client, partner, contract):
        stamper = Mock()
        stamper.append_signature_block.side_effect = lambda pdf_bytes, name, timestamp, slot=0: pdf_bytes + b'\n%signed'
        lifecycle = DocumentLifecycleService(store=store, coordinator=SignatureCoordinator(store=store, stamper=stamper))

        lifecycle.sign(client, contract.pk)
        lifecycle.sign(partner, contract.pk)

        slots = [call.kwargs['slot'] for call in stamper.append_signature_block.call_args_list]
        signers = [call.args[1] for call in stamper.append_signature_block.call_args_list]
        assert slots == [0, 1]
        assert signers == ['Carlos Cliente', 'Beatriz Sócia']


@pytest.mark.django_db
class TestSignatureTime:
    def wrapped_lifecycle(self, store, stamper):
        return DocumentLifecycleService(store=store, coordinator=SignatureCoordinator(store=store, stamper=stamper))

    def test_stamped_time_is_the_recorded_time(self, store, client, contract):
        stamper = Mock(wraps=PdfSignatureStamper())
        lifecycle = self.wrapped_lifecycle(store, stamper)

        document = lifecycle.sign(client, contract.pk).document

        stamped_at = stamper.append_signature_block.call_args.args[2]
        signature = document.signatures.get()
        entry = document.audit_log.get(action=SIGNED_ACTION)
        assert signature.signed_at == stamped_at
        assert entry.date == stamped_at

    def test_stamped_time_never_precedes_existing_entries(self, store, client, contract):
        ahead = timezone.now() + timedelta(minutes=5)
        AuditEntry.objects.create(document_id=contract.pk, user='Sistema', date=ahead, action='Lembrete enviado.')
        stamper = Mock(wraps=PdfSignatureStamper())
        lifecycle = self.wrapped_lifecycle(store, stamper)

        document = lifecycle.sign(client, contract.pk).document

        stamped_at = stamper.append_signature_block.call_args.args[2]
        assert stamped_at == ahead
        assert document.signatures.get().signed_at == ahead

    def test_entry_committed_while_stamping_is_refused(self, store, client, contract):
        real = PdfSignatureStamper()

        def stamp_while_someone_else_commits(pdf_bytes, signer_name, timestamp, slot=0):
            AuditEntry.objects.create(
                document_id=contract.pk,
                user='Sistema',
                date=timestamp + timedelta(seconds=1),
                action='Lembrete enviado.',
            )
            return real.append_signature_block(pdf_bytes, signer_name, timestamp, slot=slot)

        stamper = Mock()
        stamper.append_signature_block.side_effect = stamp_while_someone_else_commits
        lifecycle = self.wrapped_lifecycle(store, stamper)

        with pytest.raises(InvalidState):
            lifecycle.sign(client, contract.pk)

        document = Document.objects.get(pk=contract.pk)
        assert stamper.append_signature_block.call_count == 1
        assert roster(document)[client.user_id] == RequiredSignatory.STATUS_PENDING
        assert document.signatures.count() == 0

    def test_record_hash_ignores_display_timezone(self, lifecycle, client, contract):
        lifecycle.sign(client, contract.pk)

        signature = Signature.objects.get(document_id=contract.pk)
        signature.signed_at = timezone.localtime(signature.signed_at)
        assert HashingService.is_signature_valid(signature)
