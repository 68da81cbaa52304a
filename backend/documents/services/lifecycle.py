"""
Document lifecycle engine.

Responsibilities:
- Create documents through the four entry points (request, office send,
  quick send, template submission) in the right initial state
- Validate and apply approve-step, submit-next-step, sign and explicit
  status transitions
- Enforce actor eligibility through `authorize`, once per operation

Every operation follows the same order: resolve the document (NotFound),
authorize the actor (Forbidden), then check the guard on the locked row
(InvalidState). Nothing is written unless all three pass.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from accounts.services import resolve_signatories
from templates.registry import TemplateRegistry

from ..exceptions import InvalidState, NotFound
from ..models import Document, DocumentStatus, RequiredSignatory
from . import authorization
from .authorization import authorize
from .document_store import Mutation, get_document_store
from .notifications import STATUS_CHANGED, STEP_APPROVED, STEP_SUBMITTED
from .signature_service import SignatureCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttachedFile:
    """A decoded file attachment."""
    name: str
    type: str
    content: bytes

    def as_fields(self):
        return {
            'file_name': self.name,
            'file_type': self.type,
            'file_content': self.content,
        }


class DocumentLifecycleService:
    """State machine over document aggregates."""

    def __init__(self, store=None, coordinator=None):
        self.store = store or get_document_store()
        self.coordinator = coordinator or SignatureCoordinator(store=self.store)

    # ----------------------------
    # Entry points
    # ----------------------------

    def request_document(self, actor, client_id, request_text, description='', name=None,
                         file: Optional[AttachedFile] = None):
        """
        Create an ad-hoc request, or a simple submission when a file comes with it.

        Status is Pendente without a file and Recebido with one.
        """
        authorize(actor, authorization.REQUEST, client_id=client_id)

        fields = {
            'client_id': client_id,
            'name': (name or request_text)[:255],
            'description': description or '',
            'request_text': request_text,
            'doc_type': 'Outro',
            'source': self._source_for(actor),
            'uploaded_by': actor.name,
            'status': DocumentStatus.RECEBIDO if file else DocumentStatus.PENDENTE,
        }
        if file:
            fields.update(file.as_fields())

        return self.store.create(fields, actor.name, 'Documento solicitado/criado.')

    def send_from_office(self, actor, client_id, name, file: AttachedFile, signatory_ids=()):
        """
        Office sends a file to a client, optionally naming required signatories.

        Status is AguardandoAssinatura when the roster is non-empty,
        Recebido otherwise. Every signatory id must resolve to a user.
        """
        authorize(actor, authorization.SEND_FROM_OFFICE, client_id=client_id)

        if not file:
            raise InvalidState("A file is required to send a document")

        signatories, unknown = resolve_signatories(signatory_ids)
        if unknown:
            raise InvalidState(f"Unknown signatory user id(s): {', '.join(str(u) for u in unknown)}")

        fields = {
            'client_id': client_id,
            'name': name,
            'doc_type': 'PDF',
            'source': Document.SOURCE_OFFICE,
            'uploaded_by': actor.name,
            'status': DocumentStatus.AGUARDANDO_ASSINATURA if signatories else DocumentStatus.RECEBIDO,
            **file.as_fields(),
        }

        return self.store.create(
            fields,
            actor.name,
            'Documento enviado pelo escritório.',
            signatories=signatories,
        )

    def quick_send(self, actor, client_id, name, file: AttachedFile, description='', ai_analysis=None):
        """
        Office files a scanned document on behalf of a client.

        The document counts as client-sourced and is created as Recebido.
        Extraction suggestions, if any, are stored for display only.
        """
        authorize(actor, authorization.QUICK_SEND, client_id=client_id)

        if not file:
            raise InvalidState("A file is required for a quick send")

        fields = {
            'client_id': client_id,
            'name': name,
            'description': description or '',
            'doc_type': 'PDF',
            'source': Document.SOURCE_CLIENT,
            'uploaded_by': actor.name,
            'status': DocumentStatus.RECEBIDO,
            'ai_analysis': ai_analysis,
            **file.as_fields(),
        }

        return self.store.create(fields, actor.name, 'Documento enviado via "Envio Rápido".')

    def submit_from_template(self, actor, client_id, template_id, form_data=None,
                             file: Optional[AttachedFile] = None):
        """
        Client submits a template form (step 1 of a multi-step template).

        Multi-step templates start in AguardandoAprovacao with
        workflow {1, N}; single-step ones are Recebido right away.

        Raises:
            NotFound: unknown template
            InvalidState: the template requires a file and none was given
        """
        template = TemplateRegistry.get_template(template_id)
        if template is None:
            raise NotFound(f"Template '{template_id}' not found")

        authorize(actor, authorization.SUBMIT_FROM_TEMPLATE, client_id=client_id)

        if template.requires_file and not file:
            raise InvalidState(f"Template '{template.id}' requires a file attachment")

        fields = {
            'client_id': client_id,
            'name': template.name,
            'doc_type': 'Formulario',
            'template_id': template.id,
            'source': Document.SOURCE_CLIENT,
            'uploaded_by': actor.name,
            'form_data': dict(form_data or {}),
        }
        if file:
            fields.update(file.as_fields())

        if template.is_multi_step:
            fields['status'] = DocumentStatus.AGUARDANDO_APROVACAO
            fields['workflow_current_step'] = 1
            fields['workflow_total_steps'] = template.total_steps
            action = f'Etapa 1 do documento "{template.name}" enviada pelo cliente.'
        else:
            fields['status'] = DocumentStatus.RECEBIDO
            action = f'Documento "{template.name}" enviado pelo cliente.'

        return self.store.create(fields, actor.name, action)

    # ----------------------------
    # Transitions
    # ----------------------------

    def approve_step(self, actor, document_id):
        """Office approves the current step: AguardandoAprovacao -> PendenteEtapa2."""
        document = self.store.get_by_id(document_id)
        authorize(actor, authorization.APPROVE_STEP, document)

        def mutator(locked):
            self._require_status(locked, DocumentStatus.AGUARDANDO_APROVACAO, 'approve a step')
            step = locked.workflow_current_step or 1
            return Mutation(
                action=f'Etapa {step} aprovada.',
                event_type=STEP_APPROVED,
                fields={'status': DocumentStatus.PENDENTE_ETAPA_2},
            )

        return self.store.apply_transition(document_id, mutator, actor.name)

    def submit_next_step(self, actor, document_id, form_data=None, file: Optional[AttachedFile] = None):
        """
        Client submits the next workflow step.

        The step counter advances by one; reaching the total completes the
        sequence and the document becomes Recebido, otherwise it stays
        PendenteEtapa2. Form data is merged over the stored map and the file
        is replaced when a new one is given.
        """
        document = self.store.get_by_id(document_id)
        authorize(actor, authorization.SUBMIT_NEXT_STEP, document)

        def mutator(locked):
            self._require_status(locked, DocumentStatus.PENDENTE_ETAPA_2, 'submit the next step')
            if locked.workflow_total_steps is None:
                raise InvalidState(f"Document {locked.pk} has no workflow", document_id=locked.pk)
            if locked.workflow_complete:
                raise InvalidState(f"Document {locked.pk} workflow is already complete", document_id=locked.pk)

            next_step = locked.workflow_current_step + 1
            fields = {
                'workflow_current_step': next_step,
                'form_data': {**(locked.form_data or {}), **(form_data or {})},
                'status': (
                    DocumentStatus.RECEBIDO if next_step >= locked.workflow_total_steps
                    else DocumentStatus.PENDENTE_ETAPA_2
                ),
            }
            if file:
                fields.update(file.as_fields())

            template = TemplateRegistry.get_template(locked.template_id)
            template_name = template.name if template else locked.name
            return Mutation(
                action=f'Etapa {next_step} do documento "{template_name}" enviada.',
                event_type=STEP_SUBMITTED,
                fields=fields,
            )

        return self.store.apply_transition(document_id, mutator, actor.name)

    def sign(self, actor, document_id, signature_metadata=None):
        """A pending signatory signs; see SignatureCoordinator.record_signature."""
        return self.coordinator.record_signature(document_id, actor, signature_metadata)

    def set_status(self, actor, document_id, status):
        """
        Office override to any enumerated status from any non-terminal one.

        No source -> target table applies. Concluido is refused while roster
        entries are still pending, so a roster-bearing document is complete
        only when everyone signed.
        """
        document = self.store.get_by_id(document_id)
        authorize(actor, authorization.SET_STATUS, document)

        if status not in DocumentStatus.values:
            raise InvalidState(f"Unknown status '{status}'", document_id=document.pk)

        def mutator(locked):
            if locked.is_terminal:
                raise InvalidState(
                    f"Document {locked.pk} is {locked.status} and can no longer change",
                    document_id=locked.pk,
                )
            if status == DocumentStatus.CONCLUIDO:
                pending = [
                    entry.name for entry in locked.required_signatories.all()
                    if entry.status == RequiredSignatory.STATUS_PENDING
                ]
                if pending:
                    raise InvalidState(
                        f"Document {locked.pk} still awaits signatures from: {', '.join(pending)}",
                        document_id=locked.pk,
                    )
            return Mutation(
                action=f'Status alterado para "{status}"',
                event_type=STATUS_CHANGED,
                fields={'status': status},
            )

        return self.store.apply_transition(document_id, mutator, actor.name)

    # ----------------------------
    # Helpers
    # ----------------------------

    @staticmethod
    def _source_for(actor):
        return Document.SOURCE_OFFICE if actor.is_office else Document.SOURCE_CLIENT

    @staticmethod
    def _require_status(document, expected, what):
        if document.status != expected:
            raise InvalidState(
                f"Cannot {what} for document {document.pk} in status {document.status}",
                document_id=document.pk,
            )


# Singleton instance
_lifecycle_service = None


def get_lifecycle_service() -> DocumentLifecycleService:
    """Get singleton instance of lifecycle service."""
    global _lifecycle_service
    if _lifecycle_service is None:
        _lifecycle_service = DocumentLifecycleService()
    return _lifecycle_service
