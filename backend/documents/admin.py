from django.contrib import admin
from .models import (
    Document, RequiredSignatory, Signature, AuditEntry,
    Webhook, WebhookEvent, WebhookDeliveryLog
)


class ReadOnlyInline(admin.TabularInline):
    """Owned collections are written by the lifecycle engine only."""
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class RequiredSignatoryInline(ReadOnlyInline):
    model = RequiredSignatory
    fields = ('user_id', 'name', 'status')
    readonly_fields = fields


class SignatureInline(ReadOnlyInline):
    model = Signature
    fields = ('signer_name', 'signed_at', 'signature_id', 'event_hash')
    readonly_fields = fields


class AuditEntryInline(ReadOnlyInline):
    model = AuditEntry
    fields = ('date', 'user', 'action')
    readonly_fields = fields


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ('name', 'client_id', 'status', 'source', 'uploaded_by', 'upload_date')
    list_filter = ('status', 'source', 'doc_type', 'upload_date')
    search_fields = ('name', 'description', 'uploaded_by')
    inlines = [RequiredSignatoryInline, SignatureInline, AuditEntryInline]
    # Status only changes through the lifecycle engine
    readonly_fields = (
        'client_id', 'doc_type', 'template_id', 'source', 'uploaded_by',
        'upload_date', 'updated_at', 'status', 'workflow_current_step',
        'workflow_total_steps', 'file_name', 'file_type', 'file_size', 'file_sha256',
        'form_data', 'ai_analysis',
    )
    fieldsets = (
        ('Document Info', {
            'fields': ('name', 'description', 'request_text', 'client_id', 'doc_type', 'template_id')
        }),
        ('Status', {
            'fields': ('status', 'workflow_current_step', 'workflow_total_steps')
        }),
        ('Payload', {
            'fields': ('file_name', 'file_type', 'file_size', 'file_sha256', 'form_data', 'ai_analysis'),
            'classes': ('collapse',)
        }),
        ('Metadata', {
            'fields': ('source', 'uploaded_by', 'upload_date', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).defer('file_content')


@admin.register(Webhook)
class WebhookAdmin(admin.ModelAdmin):
    list_display = ('url', 'client_id', 'is_active', 'total_deliveries', 'failed_deliveries', 'last_triggered_at')
    list_filter = ('is_active',)
    search_fields = ('url',)
    readonly_fields = ('secret', 'created_at', 'updated_at', 'last_triggered_at',
                       'total_deliveries', 'successful_deliveries', 'failed_deliveries')


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ('event_type', 'webhook', 'status', 'attempt_count', 'created_at')
    list_filter = ('event_type', 'status')
    readonly_fields = ('created_at', 'delivered_at', 'next_retry_at')


@admin.register(WebhookDeliveryLog)
class WebhookDeliveryLogAdmin(admin.ModelAdmin):
    list_display = ('event', 'status_code', 'duration_ms', 'created_at')
    readonly_fields = ('created_at',)
