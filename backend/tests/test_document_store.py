"""
Document store tests: aggregate creation, locked transitions, audit log
ordering and after-commit publication.
"""

from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from documents.exceptions import InvalidState, NotFound
from documents.models import AuditEntry, Document, DocumentStatus, RequiredSignatory
from documents.services.document_store import DocumentStore, Mutation
from documents.services.hashing import HashingService
from documents.services.notifications import DOCUMENT_CREATED, STEP_APPROVED

from .helpers import CLIENT_ID, OTHER_CLIENT_ID, FailingSink


def document_fields(client_id=CLIENT_ID, status=DocumentStatus.RECEBIDO, **extra):
    return {
        'client_id': client_id,
        'name': 'Balancete',
        'source': Document.SOURCE_OFFICE,
        'uploaded_by': 'Ana Contadora',
        'status': status,
        **extra,
    }


def revise(locked):
    return Mutation(action='Revisado.', fields={'status': DocumentStatus.REVISADO})


@pytest.mark.django_db
class TestCreate:
    def test_creates_roster_and_first_audit_entry(self, store, partner_user):
        document = store.create(
            document_fields(status=DocumentStatus.AGUARDANDO_ASSINATURA),
            'Ana Contadora',
            'Documento enviado pelo escritório.',
            signatories=[(partner_user.pk, 'Beatriz Sócia')],
        )

        roster = list(document.required_signatories.all())
        assert [(s.user_id, s.status) for s in roster] == [(partner_user.pk, RequiredSignatory.STATUS_PENDING)]
        entries = list(document.audit_log.all())
        assert len(entries) == 1
        assert entries[0].user == 'Ana Contadora'
        assert entries[0].date == document.upload_date

    def test_unknown_status_is_refused(self, store):
        with pytest.raises(InvalidState):
            store.create(document_fields(status='Arquivado'), 'Ana Contadora', 'Criado.')
        assert Document.objects.count() == 0
        assert AuditEntry.objects.count() == 0

    def test_event_is_published_after_commit(self, store, sink, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.event_type == DOCUMENT_CREATED
        assert event.document_id == document.pk
        assert event.old_status is None
        assert event.new_status == DocumentStatus.RECEBIDO

    def test_nothing_is_published_before_commit(self, store, sink):
        store.create(document_fields(), 'Ana Contadora', 'Criado.')
        assert sink.events == []


@pytest.mark.django_db
class TestReads:
    def test_get_by_id_unknown(self, store):
        with pytest.raises(NotFound):
            store.get_by_id(999999)

    def test_get_by_id_malformed(self, store):
        with pytest.raises(NotFound):
            store.get_by_id('abc')

    def test_client_users_only_see_their_tenants(self, store, office, client):
        own = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        store.create(document_fields(client_id=OTHER_CLIENT_ID), 'Ana Contadora', 'Criado.')

        assert [d.pk for d in store.list_for_actor(client)] == [own.pk]
        assert store.list_for_actor(office).count() == 2
        assert store.list_for_actor(office, client_id=OTHER_CLIENT_ID).count() == 1

    def test_list_is_newest_first(self, store, office):
        first = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        second = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        Document.objects.filter(pk=first.pk).update(upload_date=timezone.now() - timedelta(days=1))

        assert [d.pk for d in store.list_for_actor(office)] == [second.pk, first.pk]

    def test_updated_since_is_strictly_after_cursor(self, store, office):
        now = timezone.now()
        old = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        new = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        Document.objects.filter(pk=old.pk).update(upload_date=now - timedelta(hours=2))
        Document.objects.filter(pk=new.pk).update(upload_date=now - timedelta(minutes=5))

        cursor = now - timedelta(hours=1)
        assert [d.pk for d in store.list_updated_since(office, cursor)] == [new.pk]

        exact = now - timedelta(minutes=5)
        assert list(store.list_updated_since(office, exact)) == []

    def test_updated_since_by_updated_at(self, store, office):
        now = timezone.now()
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        Document.objects.filter(pk=document.pk).update(
            upload_date=now - timedelta(days=3),
            updated_at=now - timedelta(minutes=1),
        )

        cursor = now - timedelta(hours=1)
        assert list(store.list_updated_since(office, cursor, 'upload_date')) == []
        assert [d.pk for d in store.list_updated_since(office, cursor, 'updated_at')] == [document.pk]

    def test_updated_since_rejects_other_fields(self, store, office):
        with pytest.raises(ValueError):
            store.list_updated_since(office, timezone.now(), 'status')


@pytest.mark.django_db
class TestApplyTransition:
    def test_applies_fields_and_appends_one_audit_entry(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        updated = store.apply_transition(document.pk, revise, 'Ana Contadora')

        assert updated.status == DocumentStatus.REVISADO
        actions = [entry.action for entry in updated.audit_log.all()]
        assert actions == ['Criado.', 'Revisado.']

    def test_rejecting_mutator_writes_nothing(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        def reject(locked):
            raise InvalidState('not now', document_id=locked.pk)

        with pytest.raises(InvalidState):
            store.apply_transition(document.pk, reject, 'Ana Contadora')

        document.refresh_from_db()
        assert document.status == DocumentStatus.RECEBIDO
        assert document.audit_log.count() == 1

    def test_unknown_document(self, store):
        with pytest.raises(NotFound):
            store.apply_transition(999999, revise, 'Ana Contadora')

    def test_unknown_status_is_refused(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        with pytest.raises(InvalidState):
            store.apply_transition(
                document.pk,
                lambda locked: Mutation(action='?', fields={'status': 'Arquivado'}),
                'Ana Contadora',
            )

        document.refresh_from_db()
        assert document.status == DocumentStatus.RECEBIDO
        assert document.audit_log.count() == 1

    def test_step_beyond_total_is_refused(self, store):
        document = store.create(
            document_fields(
                status=DocumentStatus.PENDENTE_ETAPA_2,
                workflow_current_step=1,
                workflow_total_steps=2,
            ),
            'Carlos Cliente',
            'Criado.',
        )

        with pytest.raises(InvalidState):
            store.apply_transition(
                document.pk,
                lambda locked: Mutation(action='?', fields={'workflow_current_step': 3}),
                'Carlos Cliente',
            )

    def test_roster_update_for_non_member_rolls_back(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        def mutator(locked):
            return Mutation(
                action='?',
                fields={'status': DocumentStatus.CONCLUIDO},
                signatory_updates={424242: RequiredSignatory.STATUS_SIGNED},
            )

        with pytest.raises(InvalidState):
            store.apply_transition(document.pk, mutator, 'Ana Contadora')

        document.refresh_from_db()
        assert document.status == DocumentStatus.RECEBIDO
        assert document.audit_log.count() == 1

    def test_audit_timestamps_never_go_backwards(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        future = timezone.now() + timedelta(hours=1)
        AuditEntry.objects.create(document_id=document.pk, user='Ana Contadora', date=future, action='Ajuste.')

        updated = store.apply_transition(document.pk, revise, 'Ana Contadora')

        dates = [entry.date for entry in updated.audit_log.all()]
        assert dates == sorted(dates)
        assert dates[-1] >= future

    def test_event_carries_old_and_new_status(self, store, sink, django_capture_on_commit_callbacks):
        document = store.create(document_fields(status=DocumentStatus.AGUARDANDO_APROVACAO), 'Carlos Cliente', 'Criado.')

        with django_capture_on_commit_callbacks(execute=True):
            store.apply_transition(
                document.pk,
                lambda locked: Mutation(
                    action='Etapa 1 aprovada.',
                    event_type=STEP_APPROVED,
                    fields={'status': DocumentStatus.PENDENTE_ETAPA_2},
                ),
                'Ana Contadora',
            )

        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.event_type == STEP_APPROVED
        assert (event.old_status, event.new_status) == (
            DocumentStatus.AGUARDANDO_APROVACAO,
            DocumentStatus.PENDENTE_ETAPA_2,
        )
        assert event.actor == 'Ana Contadora'

    def test_sink_failure_keeps_committed_transition(self, django_capture_on_commit_callbacks):
        store = DocumentStore(sink=FailingSink())

        with django_capture_on_commit_callbacks(execute=True):
            document = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        with django_capture_on_commit_callbacks(execute=True):
            store.apply_transition(document.pk, revise, 'Ana Contadora')

        document.refresh_from_db()
        assert document.status == DocumentStatus.REVISADO
        assert document.audit_log.count() == 2


@pytest.mark.django_db
class TestFileMetadata:
    def test_create_records_size_and_hash(self, store, pdf_bytes):
        document = store.create(document_fields(file_content=pdf_bytes), 'Ana Contadora', 'Criado.')

        assert document.file_size == len(pdf_bytes)
        assert document.file_sha256 == HashingService.compute_bytes_sha256(pdf_bytes)

    def test_no_file_means_no_metadata(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')

        assert document.file_size is None
        assert document.file_sha256 == ''

    def test_replacing_the_file_updates_metadata(self, store, pdf_bytes):
        document = store.create(document_fields(file_content=pdf_bytes), 'Ana Contadora', 'Criado.')
        replaced = b'%PDF-1.4 segunda via'

        document = store.apply_transition(
            document.pk,
            lambda locked: Mutation(action='Arquivo substituído.', fields={'file_content': replaced}),
            'Ana Contadora',
        )

        assert document.file_size == len(replaced)
        assert document.file_sha256 == HashingService.compute_bytes_sha256(replaced)

    def test_listings_do_not_load_file_content(self, store, office, pdf_bytes):
        store.create(document_fields(file_content=pdf_bytes), 'Ana Contadora', 'Criado.')

        [listed] = store.list_for_actor(office)
        [updated] = store.list_updated_since(office, timezone.now() - timedelta(hours=1))

        assert 'file_content' in listed.get_deferred_fields()
        assert 'file_content' in updated.get_deferred_fields()
        assert listed.file_size == len(pdf_bytes)


@pytest.mark.django_db
class TestAuditEntryImmutability:
    def test_entries_cannot_be_changed(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        entry = document.audit_log.get()
        entry.action = 'Outra coisa.'
        with pytest.raises(ValidationError):
            entry.save()

    def test_entries_cannot_be_deleted(self, store):
        document = store.create(document_fields(), 'Ana Contadora', 'Criado.')
        with pytest.raises(ValidationError):
            document.audit_log.get().delete()
