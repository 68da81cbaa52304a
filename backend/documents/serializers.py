import base64
import binascii

from rest_framework import serializers

from templates.registry import TemplateRegistry
from .models import (
    AuditEntry, Document, DocumentStatus, RequiredSignatory, Signature,
    Webhook, WebhookEvent, WebhookDeliveryLog
)
from .services.document_store import CURSOR_FIELDS
from .services.hashing import HashingService
from .services.lifecycle import AttachedFile
from .services.token_utils import generate_secure_token


# ----------------------------
# Document aggregate (output)
# ----------------------------

class RequiredSignatorySerializer(serializers.ModelSerializer):
    class Meta:
        model = RequiredSignatory
        fields = ['id', 'user_id', 'name', 'status']
        read_only_fields = fields


class SignatureSerializer(serializers.ModelSerializer):
    """A completed signing event with its tamper check."""
    is_verified = serializers.SerializerMethodField()

    class Meta:
        model = Signature
        fields = [
            'id', 'signer_id', 'signer_name', 'signed_at',
            'signature_id', 'audit_trail', 'event_hash', 'is_verified'
        ]
        read_only_fields = fields

    def get_is_verified(self, obj):
        """None for records written without a hash, otherwise whether it still matches."""
        if not obj.event_hash:
            return None
        return HashingService.is_signature_valid(obj)


class AuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEntry
        fields = ['id', 'user', 'date', 'action']
        read_only_fields = fields


class DocumentSerializer(serializers.ModelSerializer):
    """
    Full document aggregate: scalar fields plus roster, signatures and audit log.

    Storage columns are folded back into `file` and `workflow` objects.
    """
    file = serializers.SerializerMethodField()
    workflow = serializers.ReadOnlyField()
    required_signatories = RequiredSignatorySerializer(many=True, read_only=True)
    signatures = SignatureSerializer(many=True, read_only=True)
    audit_log = AuditEntrySerializer(many=True, read_only=True)
    missing_fields = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            'id', 'client_id', 'doc_type', 'template_id', 'name', 'description',
            'request_text', 'source', 'uploaded_by', 'upload_date', 'updated_at',
            'status', 'workflow', 'file', 'form_data', 'ai_analysis',
            'required_signatories', 'signatures', 'audit_log', 'missing_fields',
        ]
        read_only_fields = fields

    def get_file(self, obj):
        """File metadata; content is served by the download endpoint."""
        if not obj.file_size:
            return None
        return {
            'name': obj.file_name,
            'type': obj.file_type,
            'size': obj.file_size,
            'sha256': obj.file_sha256,
        }

    def get_missing_fields(self, obj):
        """Required template fields still blank in form_data (display only)."""
        template = TemplateRegistry.get_template(obj.template_id)
        if template is None:
            return []
        return template.missing_required_fields(obj.form_data)


# ----------------------------
# Inputs
# ----------------------------

class FilePayloadSerializer(serializers.Serializer):
    """
    A file sent inline as {name, type, content}.

    `content` is base64, optionally wrapped in a `data:<type>;base64,` URL.
    Validates into an AttachedFile.
    """
    name = serializers.CharField(max_length=255)
    type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    content = serializers.CharField()

    def validate(self, data):
        content = data['content']
        media_type = data.get('type') or ''

        if content.startswith('data:'):
            header, _, content = content.partition(',')
            if not media_type:
                media_type = header[len('data:'):].split(';')[0]

        try:
            raw = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            raise serializers.ValidationError({'content': 'Content must be base64 encoded'})
        if not raw:
            raise serializers.ValidationError({'content': 'File is empty'})

        return AttachedFile(
            name=data['name'],
            type=media_type or 'application/octet-stream',
            content=raw,
        )


class DocumentRequestSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1)
    request_text = serializers.CharField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    file = FilePayloadSerializer(required=False, allow_null=True)


class SendFromOfficeSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=255)
    file = FilePayloadSerializer()
    signatory_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list
    )


class QuickSendSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    file = FilePayloadSerializer()
    attach_analysis = serializers.BooleanField(required=False, default=True)


class TemplateSubmissionSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1)
    template_id = serializers.CharField(max_length=100)
    form_data = serializers.DictField(required=False, default=dict)
    file = FilePayloadSerializer(required=False, allow_null=True)


class NextStepSerializer(serializers.Serializer):
    form_data = serializers.DictField(required=False, default=dict)
    file = FilePayloadSerializer(required=False, allow_null=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DocumentStatus.choices)


class UpdatesQuerySerializer(serializers.Serializer):
    since = serializers.DateTimeField()
    field = serializers.ChoiceField(choices=CURSOR_FIELDS, required=False, default='upload_date')


class DocumentListQuerySerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1, required=False)


class AnalyzeSerializer(serializers.Serializer):
    file = FilePayloadSerializer()
    description = serializers.CharField(required=False, allow_blank=True, default='')


# ----------------------------
# Webhooks
# ----------------------------

class WebhookDeliveryLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = WebhookDeliveryLog
        fields = ['id', 'status_code', 'response_body', 'error_message', 'duration_ms', 'created_at']
        read_only_fields = fields


class WebhookEventSerializer(serializers.ModelSerializer):
    """A queued lifecycle event and every attempt made to deliver it."""
    delivery_logs = WebhookDeliveryLogSerializer(many=True, read_only=True)

    class Meta:
        model = WebhookEvent
        fields = [
            'id', 'webhook', 'event_type', 'payload', 'status', 'attempt_count',
            'last_error', 'created_at', 'delivered_at', 'next_retry_at', 'delivery_logs',
        ]
        read_only_fields = fields


class WebhookSerializer(serializers.ModelSerializer):
    """
    Webhook registration.

    The signing secret is generated on creation and returned read-only, so
    the receiving system can verify X-Webhook-Signature.
    """
    event_labels = serializers.SerializerMethodField()
    success_rate = serializers.SerializerMethodField()

    class Meta:
        model = Webhook
        fields = [
            'id', 'url', 'subscribed_events', 'event_labels', 'client_id', 'secret', 'is_active',
            'created_at', 'updated_at', 'last_triggered_at',
            'total_deliveries', 'successful_deliveries', 'failed_deliveries', 'success_rate',
        ]
        read_only_fields = [
            'id', 'secret', 'created_at', 'updated_at', 'last_triggered_at',
            'total_deliveries', 'successful_deliveries', 'failed_deliveries',
        ]

    def validate_subscribed_events(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError('Subscribe to at least one event')
        known = dict(Webhook.EVENTS)
        unknown = [event for event in value if event not in known]
        if unknown:
            raise serializers.ValidationError(f"Unknown event(s): {', '.join(map(str, unknown))}")
        return value

    def get_event_labels(self, obj):
        labels = dict(Webhook.EVENTS)
        return [labels.get(event, event) for event in obj.subscribed_events or []]

    def get_success_rate(self, obj):
        """Percentage of finished events that were delivered, None before the first one."""
        if not obj.total_deliveries:
            return None
        return round(100 * obj.successful_deliveries / obj.total_deliveries, 2)

    def create(self, validated_data):
        validated_data['secret'] = generate_secure_token(32)
        return super().create(validated_data)
