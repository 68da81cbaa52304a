import logging

from django.http import HttpResponse
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from accounts.services import actor_for_user
from .models import Webhook, WebhookEvent
from .serializers import (
    AnalyzeSerializer,
    DocumentListQuerySerializer,
    DocumentRequestSerializer,
    DocumentSerializer,
    NextStepSerializer,
    QuickSendSerializer,
    SendFromOfficeSerializer,
    StatusUpdateSerializer,
    TemplateSubmissionSerializer,
    UpdatesQuerySerializer,
    WebhookDeliveryLogSerializer,
    WebhookEventSerializer,
    WebhookSerializer,
)
from .services import authorization
from .services.authorization import authorize
from .services.document_store import get_document_store
from .services.extraction import get_extraction_service, get_extraction_session_store
from .services.lifecycle import get_lifecycle_service
from .services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 1000


class ActorMixin:
    """Resolve the lifecycle Actor of the authenticated user once per request."""

    @property
    def actor(self):
        if not hasattr(self, '_actor'):
            self._actor = actor_for_user(self.request.user)
        return self._actor


class DocumentViewSet(ActorMixin, viewsets.GenericViewSet):
    """
    Document lifecycle endpoints.

    Every write answers with the full updated aggregate (roster, signatures
    and audit log included). Lifecycle errors are turned into responses by
    the project's exception handler.
    """
    serializer_class = DocumentSerializer
    pagination_class = StandardResultsSetPagination

    @property
    def store(self):
        return get_document_store()

    @property
    def lifecycle(self):
        return get_lifecycle_service()

    def _respond(self, document, status_code=status.HTTP_200_OK):
        return Response(DocumentSerializer(document, context={'request': self.request}).data, status=status_code)

    def _validated(self, serializer_class, data):
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    # ----------------------------
    # Reads
    # ----------------------------

    def list(self, request):
        """List documents visible to the user, optionally for one client."""
        query = self._validated(DocumentListQuerySerializer, request.query_params)
        documents = self.store.list_for_actor(self.actor, client_id=query.get('client_id'))
        page = self.paginate_queryset(documents)
        if page is not None:
            serializer = DocumentSerializer(page, many=True, context={'request': request})
            return self.get_paginated_response(serializer.data)
        return Response(DocumentSerializer(documents, many=True, context={'request': request}).data)

    def retrieve(self, request, pk=None):
        """Get one document aggregate."""
        document = self.store.get_by_id(pk)
        authorize(self.actor, authorization.VIEW, document)
        return self._respond(document)

    @action(detail=False, methods=['get'])
    def updates(self, request):
        """Documents created (or updated) after the `since` cursor."""
        query = self._validated(UpdatesQuerySerializer, request.query_params)
        documents = self.store.list_updated_since(self.actor, query['since'], query['field'])
        page = self.paginate_queryset(documents)
        if page is not None:
            return self.get_paginated_response(DocumentSerializer(page, many=True, context={'request': request}).data)
        return Response(DocumentSerializer(documents, many=True, context={'request': request}).data)

    @action(detail=True, methods=['get'])
    def download(self, request, pk=None):
        """Serve the current file content."""
        document = self.store.get_by_id(pk)
        authorize(self.actor, authorization.VIEW, document)
        if not document.has_file:
            return Response({'error': 'Document has no file'}, status=status.HTTP_404_NOT_FOUND)

        filename = document.file_name or f"document_{document.pk}"
        response = HttpResponse(bytes(document.file_content), content_type=document.file_type or 'application/octet-stream')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

    # ----------------------------
    # Entry points
    # ----------------------------

    @action(detail=False, methods=['post'], url_path='request')
    def request_document(self, request):
        """Client or office requests a document (optionally already attaching it)."""
        data = self._validated(DocumentRequestSerializer, request.data)
        document = self.lifecycle.request_document(
            self.actor,
            client_id=data['client_id'],
            request_text=data['request_text'],
            description=data.get('description', ''),
            name=data.get('name') or None,
            file=data.get('file'),
        )
        return self._respond(document, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='send-from-admin')
    def send_from_admin(self, request):
        """Office sends a file, optionally requiring signatures."""
        data = self._validated(SendFromOfficeSerializer, request.data)
        document = self.lifecycle.send_from_office(
            self.actor,
            client_id=data['client_id'],
            name=data['name'],
            file=data['file'],
            signatory_ids=data['signatory_ids'],
        )
        return self._respond(document, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='quick-send')
    def quick_send(self, request):
        """Office files a scanned client document, attaching the user's last analysis."""
        data = self._validated(QuickSendSerializer, request.data)
        sessions = get_extraction_session_store()
        ai_analysis = sessions.get(self.actor.user_id) if data['attach_analysis'] else None
        document = self.lifecycle.quick_send(
            self.actor,
            client_id=data['client_id'],
            name=data['name'],
            file=data['file'],
            description=data.get('description', ''),
            ai_analysis=ai_analysis,
        )
        if ai_analysis is not None:
            sessions.pop(self.actor.user_id)
        return self._respond(document, status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='from-template')
    def from_template(self, request):
        """Client submits a template form (first step of multi-step templates)."""
        data = self._validated(TemplateSubmissionSerializer, request.data)
        document = self.lifecycle.submit_from_template(
            self.actor,
            client_id=data['client_id'],
            template_id=data['template_id'],
            form_data=data.get('form_data'),
            file=data.get('file'),
        )
        return self._respond(document, status.HTTP_201_CREATED)

    # ----------------------------
    # Transitions
    # ----------------------------

    def next_step(self, request, pk=None):
        """Client submits the next workflow step."""
        data = self._validated(NextStepSerializer, request.data)
        document = self.lifecycle.submit_next_step(
            self.actor,
            pk,
            form_data=data.get('form_data'),
            file=data.get('file'),
        )
        return self._respond(document)

    @action(detail=True, methods=['put'], url_path='approve-step')
    def approve_step(self, request, pk=None):
        """Office approves the current workflow step."""
        return self._respond(self.lifecycle.approve_step(self.actor, pk))

    @action(detail=True, methods=['put'])
    def sign(self, request, pk=None):
        """The requesting user signs the document."""
        metadata = {
            'ip_address': request.META.get('REMOTE_ADDR'),
            'user_agent': request.META.get('HTTP_USER_AGENT', ''),
        }
        result = self.lifecycle.sign(self.actor, pk, signature_metadata=metadata)
        return self._respond(result.document)

    @action(detail=True, methods=['put'], url_path='status')
    def set_status(self, request, pk=None):
        """Office override of the document status."""
        data = self._validated(StatusUpdateSerializer, request.data)
        return self._respond(self.lifecycle.set_status(self.actor, pk, data['status']))

    # ----------------------------
    # Extraction
    # ----------------------------

    @action(detail=False, methods=['post'])
    def analyze(self, request):
        """
        Ask the extraction service for suggestions about a file.

        The answer is remembered for the user so the next quick send can
        attach it.
        """
        authorize(self.actor, authorization.ANALYZE)
        data = self._validated(AnalyzeSerializer, request.data)

        attached = data['file']
        analysis = get_extraction_service().analyze(
            attached.content,
            attached.type,
            hints={'description': data.get('description', '')},
        )
        get_extraction_session_store().save(self.actor.user_id, analysis)
        return Response(analysis)


class WebhookViewSet(ActorMixin, viewsets.ModelViewSet):
    """Office management of webhook registrations."""
    queryset = Webhook.objects.all()
    serializer_class = WebhookSerializer
    pagination_class = StandardResultsSetPagination

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        authorize(self.actor, authorization.MANAGE_WEBHOOKS)

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """Delivery history of one webhook."""
        webhook = self.get_object()
        events = webhook.webhook_events.prefetch_related('delivery_logs')
        page = self.paginate_queryset(events)
        if page is not None:
            return self.get_paginated_response(WebhookEventSerializer(page, many=True).data)
        return Response(WebhookEventSerializer(events, many=True).data)

    @action(detail=True, methods=['post'])
    def test(self, request, pk=None):
        """Send a test event to this webhook only."""
        webhook = self.get_object()
        if not webhook.is_active:
            return Response({'error': 'Webhook is inactive'}, status=status.HTTP_400_BAD_REQUEST)

        event = WebhookEvent.objects.create(
            webhook=webhook,
            event_type=webhook.subscribed_events[0] if webhook.subscribed_events else 'document.created',
            payload={'test': True, 'message': 'Webhook test event'},
            status='pending'
        )
        # Single attempt, no retry scheduling
        WebhookService.deliver_event(event, retry_attempt=WebhookService.MAX_RETRIES)
        event.refresh_from_db()
        return Response(WebhookEventSerializer(event).data)

    @action(detail=True, methods=['post'])
    def retry(self, request, pk=None):
        """Retry the webhook's failed events."""
        webhook = self.get_object()
        failed = list(webhook.webhook_events.filter(status='failed'))
        for event in failed:
            event.status = 'pending'
            event.save(update_fields=['status'])
            WebhookService.deliver_event(event, retry_attempt=WebhookService.MAX_RETRIES)
        return Response({'retried': len(failed)})


class WebhookEventViewSet(ActorMixin, viewsets.ReadOnlyModelViewSet):
    """Read-only audit trail of fired webhook events."""
    queryset = WebhookEvent.objects.select_related('webhook').prefetch_related('delivery_logs')
    serializer_class = WebhookEventSerializer
    pagination_class = StandardResultsSetPagination

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        authorize(self.actor, authorization.MANAGE_WEBHOOKS)

    @action(detail=True, methods=['get'])
    def logs(self, request, pk=None):
        """Per-attempt delivery logs of one event."""
        event = self.get_object()
        return Response(WebhookDeliveryLogSerializer(event.delivery_logs.all(), many=True).data)
