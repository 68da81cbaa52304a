"""
backend/documents/urls.py

"""

# ----------------------------
# Django imports
# ----------------------------
from django.urls import path

# ----------------------------
# Local view imports
# ----------------------------
from .views import (
    DocumentViewSet,
    WebhookViewSet,
    WebhookEventViewSet
)

# App namespace for reverse() lookups
app_name = 'documents'

# ----------------------------
# Primary document routes
# ----------------------------
urlpatterns = [
    path('', DocumentViewSet.as_view({
        'get': 'list'
    }), name='document-list'),
    # Documents visible to the user (office: every client, optionally ?client_id=;
    # client users: their own companies only). Paginated.

    path('updates/', DocumentViewSet.as_view({
        'get': 'updates'
    }), name='document-updates'),
    # Incremental sync: documents whose upload_date (or ?field=updated_at) is
    # strictly after ?since=<iso timestamp>, newest first.

    path('request/', DocumentViewSet.as_view({
        'post': 'request_document'
    }), name='document-request'),
    # Ad-hoc request. Without a file the document waits as Pendente; with one
    # it is Recebido right away.

    path('send-from-admin/', DocumentViewSet.as_view({
        'post': 'send_from_admin'
    }), name='document-send-from-admin'),
    # Office sends a file to a client. Naming signatories puts the document in
    # AguardandoAssinatura with a fixed roster.

    path('quick-send/', DocumentViewSet.as_view({
        'post': 'quick_send'
    }), name='document-quick-send'),
    # Office files a scanned client document; the user's latest extraction
    # result is attached as ai_analysis.

    path('from-template/', DocumentViewSet.as_view({
        'post': 'from_template'
    }), name='document-from-template'),
    # Client submits a template form. Multi-step templates start in
    # AguardandoAprovacao with workflow {1, N}.

    path('analyze/', DocumentViewSet.as_view({
        'post': 'analyze'
    }), name='document-analyze'),
    # Extraction suggestions (name, classification, date, total) for a file.
    # Suggestions are untrusted and never drive transitions.

    path('<int:pk>/', DocumentViewSet.as_view({
        'get': 'retrieve'
    }), name='document-detail'),
    # Full aggregate: roster, signatures and audit log included.

    path('<int:pk>/download/', DocumentViewSet.as_view({
        'get': 'download'
    }), name='document-download'),
    # Current file bytes (signed copy once signatures were collected).

    path('<int:pk>/from-template/', DocumentViewSet.as_view({
        'put': 'next_step'
    }), name='document-next-step'),
    # Client submits the next workflow step (form data merged, file replaced).

    path('<int:pk>/approve-step/', DocumentViewSet.as_view({
        'put': 'approve_step'
    }), name='document-approve-step'),
    # Office approves the pending step: AguardandoAprovacao -> PendenteEtapa2.

    path('<int:pk>/sign/', DocumentViewSet.as_view({
        'put': 'sign'
    }), name='document-sign'),
    # A pending signatory signs. The signature block is stamped on the PDF and
    # the document becomes Concluido once the whole roster signed.

    path('<int:pk>/status/', DocumentViewSet.as_view({
        'put': 'set_status'
    }), name='document-status'),
    # Office override to any status from a non-terminal one. Always audit-logged.
]

# ----------------------------
# Webhook routes (office only)
# ----------------------------
webhook_list = WebhookViewSet.as_view({'get': 'list', 'post': 'create'})
webhook_detail = WebhookViewSet.as_view({'get': 'retrieve', 'patch': 'partial_update', 'delete': 'destroy'})

urlpatterns += [
    path('webhooks/', webhook_list, name='webhook-list'),
    # Register an endpoint for lifecycle events; the signing secret is generated.

    path('webhooks/<int:pk>/', webhook_detail, name='webhook-detail'),

    path('webhooks/<int:pk>/events/', WebhookViewSet.as_view({'get': 'events'}), name='webhook-events'),
    # Queued events of one endpoint with their delivery attempts.

    path('webhooks/<int:pk>/test/', WebhookViewSet.as_view({'post': 'test'}), name='webhook-test'),
    # One delivery attempt of a synthetic event, no retries.

    path('webhooks/<int:pk>/retry/', WebhookViewSet.as_view({'post': 'retry'}), name='webhook-retry'),
    # Re-attempt every failed event of the endpoint once.

    path('webhook-events/', WebhookEventViewSet.as_view({'get': 'list'}), name='webhook-event-list'),
    path('webhook-events/<int:pk>/', WebhookEventViewSet.as_view({'get': 'retrieve'}), name='webhook-event-detail'),
    path('webhook-events/<int:pk>/logs/', WebhookEventViewSet.as_view({'get': 'logs'}), name='webhook-event-logs'),
]
