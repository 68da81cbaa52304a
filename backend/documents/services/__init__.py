from .hashing import HashingService
from .token_utils import generate_secure_token, generate_signature_token
from .authorization import authorize, is_allowed
from .notifications import LifecycleEvent, NotificationSink, WebhookNotificationSink, get_notification_sink
from .document_store import DocumentStore, Mutation, get_document_store
from .pdf_signing import PdfSignatureStamper, SigningError, get_signature_stamper
from .signature_service import SignatureCoordinator, SignatureResult, get_signature_coordinator
from .lifecycle import AttachedFile, DocumentLifecycleService, get_lifecycle_service
from .extraction import (
    ExtractionService,
    ExtractionSessionStore,
    GeminiExtractionService,
    get_extraction_service,
    get_extraction_session_store,
)
from .webhook_service import WebhookService

__all__ = [
    'HashingService',
    'generate_secure_token',
    'generate_signature_token',
    'authorize',
    'is_allowed',
    'LifecycleEvent',
    'NotificationSink',
    'WebhookNotificationSink',
    'get_notification_sink',
    'DocumentStore',
    'Mutation',
    'get_document_store',
    'PdfSignatureStamper',
    'SigningError',
    'get_signature_stamper',
    'SignatureCoordinator',
    'SignatureResult',
    'get_signature_coordinator',
    'AttachedFile',
    'DocumentLifecycleService',
    'get_lifecycle_service',
    'ExtractionService',
    'ExtractionSessionStore',
    'GeminiExtractionService',
    'get_extraction_service',
    'get_extraction_session_store',
    'WebhookService',
]
