from django.db import models
from django.core.exceptions import ValidationError
from django.utils import timezone


class DocumentStatus(models.TextChoices):
    PENDENTE = 'Pendente', 'Pendente'
    RECEBIDO = 'Recebido', 'Recebido'
    REVISADO = 'Revisado', 'Revisado'
    AGUARDANDO_APROVACAO = 'AguardandoAprovacao', 'Aguardando aprovação'
    PENDENTE_ETAPA_2 = 'PendenteEtapa2', 'Pendente etapa 2'
    AGUARDANDO_ASSINATURA = 'AguardandoAssinatura', 'Aguardando assinatura'
    CONCLUIDO = 'Concluido', 'Concluído'


TERMINAL_STATUSES = (DocumentStatus.CONCLUIDO,)


class Document(models.Model):
    """
    Document is a unit of exchange between the office and a client company.
    Its status is only ever changed through the lifecycle engine.
    """
    TYPE_CHOICES = [
        ('PDF', 'PDF'),
        ('Excel', 'Excel'),
        ('XML', 'XML'),
        ('Outro', 'Outro'),
        ('Formulario', 'Formulário'),
    ]
    SOURCE_CLIENT = 'client'
    SOURCE_OFFICE = 'office'
    SOURCE_CHOICES = [
        (SOURCE_CLIENT, 'Client'),
        (SOURCE_OFFICE, 'Office'),
    ]

    client_id = models.PositiveIntegerField(db_index=True, help_text="Owning client company")
    doc_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='Outro')
    template_id = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    request_text = models.TextField(blank=True)

    source = models.CharField(max_length=10, choices=SOURCE_CHOICES)
    uploaded_by = models.CharField(max_length=255, help_text="Display name of the creator")
    upload_date = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    status = models.CharField(
        max_length=30,
        choices=DocumentStatus.choices,
        default=DocumentStatus.PENDENTE
    )
    workflow_current_step = models.PositiveSmallIntegerField(null=True, blank=True)
    workflow_total_steps = models.PositiveSmallIntegerField(null=True, blank=True)

    # Attached file, kept in the row so replacing it is part of the transition's transaction
    file_name = models.CharField(max_length=255, blank=True)
    file_type = models.CharField(max_length=100, blank=True)
    file_content = models.BinaryField(null=True, blank=True)
    # Written with file_content so listings never load the blob
    file_size = models.PositiveIntegerField(null=True, blank=True)
    file_sha256 = models.CharField(max_length=64, blank=True)

    form_data = models.JSONField(null=True, blank=True)
    ai_analysis = models.JSONField(
        null=True,
        blank=True,
        help_text="Untrusted extraction suggestions, kept for display only"
    )

    class Meta:
        ordering = ['-upload_date']
        indexes = [
            models.Index(fields=['client_id', 'upload_date'], name='doc_client_upload_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.status})"

    @property
    def workflow(self):
        """Workflow progress as {currentStep, totalSteps}, or None for single-step documents."""
        if self.workflow_total_steps is None:
            return None
        return {
            'currentStep': self.workflow_current_step,
            'totalSteps': self.workflow_total_steps,
        }

    @property
    def workflow_complete(self):
        if self.workflow_total_steps is None:
            return False
        return self.workflow_current_step >= self.workflow_total_steps

    @property
    def has_file(self):
        return self.file_content is not None and len(self.file_content) > 0

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def clean(self):
        if self.status not in DocumentStatus.values:
            raise ValidationError({'status': f"Unknown status '{self.status}'"})
        if self.workflow_total_steps is not None:
            if self.workflow_current_step is None or self.workflow_current_step > self.workflow_total_steps:
                raise ValidationError({'workflow_current_step': 'Current step exceeds total steps'})


class RequiredSignatory(models.Model):
    """
    RequiredSignatory is one entry of a document's roster: a user whose
    signature is mandated. Entries are fixed when the document is sent;
    only the status changes afterwards.
    """
    STATUS_PENDING = 'pending'
    STATUS_SIGNED = 'signed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SIGNED, 'Signed'),
    ]

    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='required_signatories'
    )
    user_id = models.PositiveIntegerField(db_index=True)
    name = models.CharField(max_length=255, help_text="Denormalized display name")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)

    class Meta:
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'user_id'],
                name='unique_signatory_per_document'
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.status}) - {self.document_id}"


class Signature(models.Model):
    """
    Signature records each completed signing event.
    Stores capture context for audit trail and verification.
    """
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='signatures'
    )
    signer_id = models.PositiveIntegerField()
    signer_name = models.CharField(max_length=255)
    signed_at = models.DateTimeField()
    signature_id = models.CharField(max_length=64, unique=True, db_index=True)
    audit_trail = models.JSONField(
        default=dict,
        blank=True,
        help_text="Capture context (ip address, user agent, document hashes)"
    )
    event_hash = models.CharField(
        max_length=64,
        blank=True,
        help_text="SHA256 hash of this signature record for tamper detection"
    )

    class Meta:
        ordering = ['signed_at', 'id']

    def __str__(self):
        return f"{self.signer_name} signed {self.document_id} on {self.signed_at}"


class AuditEntry(models.Model):
    """
    AuditEntry records one lifecycle event of a document.
    Entries are append-only: they cannot be changed or deleted once written.
    """
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='audit_log'
    )
    user = models.CharField(max_length=255, help_text="Display name of the acting user")
    date = models.DateTimeField()
    action = models.TextField()

    class Meta:
        ordering = ['date', 'id']
        verbose_name_plural = 'audit entries'

    def __str__(self):
        return f"[{self.date}] {self.user}: {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Audit entries are immutable')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Audit entries cannot be deleted')


class Webhook(models.Model):
    """
    Webhook registration for external systems to listen to lifecycle events.
    """
    EVENTS = [
        ('document.created', 'Document Created'),
        ('document.status_changed', 'Status Changed'),
        ('document.step_approved', 'Workflow Step Approved'),
        ('document.step_submitted', 'Workflow Step Submitted'),
        ('document.signature_created', 'Signature Created'),
        ('document.completed', 'Document Completed'),
    ]

    url = models.URLField(
        help_text="Endpoint that receives lifecycle event POSTs"
    )
    subscribed_events = models.JSONField(
        default=list,
        help_text="Lifecycle event types delivered to this endpoint"
    )
    client_id = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Only receive events of this client company (all clients when empty)"
    )
    secret = models.CharField(
        max_length=255,
        unique=True,
        help_text="HMAC-SHA256 key of the X-Webhook-Signature header"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive webhooks receive nothing"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_triggered_at = models.DateTimeField(null=True, blank=True)

    total_deliveries = models.PositiveIntegerField(default=0)
    successful_deliveries = models.PositiveIntegerField(default=0)
    failed_deliveries = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='webhook_active_created_idx'),
        ]

    def __str__(self):
        return f"{self.url} (client {self.client_id or '*'})"

    def accepts(self, event_type, client_id):
        """Whether this webhook should receive `event_type` for `client_id`."""
        if not self.is_active or event_type not in (self.subscribed_events or []):
            return False
        return self.client_id is None or self.client_id == client_id


class WebhookEvent(models.Model):
    """
    One lifecycle event queued for one webhook, with its delivery state.
    """
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('delivered', 'Delivered'),
        ('failed', 'Failed'),
        ('retrying', 'Retrying'),
    ]

    webhook = models.ForeignKey(
        Webhook,
        on_delete=models.CASCADE,
        related_name='webhook_events'
    )
    event_type = models.CharField(
        max_length=50,
        choices=Webhook.EVENTS,
        help_text="Lifecycle event type"
    )
    payload = models.JSONField(
        help_text="Lifecycle event payload, without delivery metadata"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending'
    )
    attempt_count = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    next_retry_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['webhook', 'status', 'created_at'], name='whevent_webhook_status_idx'),
            models.Index(fields=['event_type', 'created_at'], name='whevent_type_created_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} #{self.pk} [{self.status}]"


class WebhookDeliveryLog(models.Model):
    """
    One delivery attempt: the HTTP answer or the transport error.
    """
    event = models.ForeignKey(
        WebhookEvent,
        on_delete=models.CASCADE,
        related_name='delivery_logs'
    )
    status_code = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(blank=True)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    duration_ms = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Round-trip time of the POST"
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['event', 'created_at'], name='whlog_event_created_idx'),
        ]

    def __str__(self):
        return f"Attempt on event {self.event_id}: {self.status_code or self.error_message}"
