from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('client_id', models.PositiveIntegerField(db_index=True, help_text='Owning client company')),
                ('doc_type', models.CharField(choices=[('PDF', 'PDF'), ('Excel', 'Excel'), ('XML', 'XML'), ('Outro', 'Outro'), ('Formulario', 'Formulário')], default='Outro', max_length=20)),
                ('template_id', models.CharField(blank=True, max_length=100)),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('request_text', models.TextField(blank=True)),
                ('source', models.CharField(choices=[('client', 'Client'), ('office', 'Office')], max_length=10)),
                ('uploaded_by', models.CharField(help_text='Display name of the creator', max_length=255)),
                ('upload_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True)),
                ('status', models.CharField(choices=[('Pendente', 'Pendente'), ('Recebido', 'Recebido'), ('Revisado', 'Revisado'), ('AguardandoAprovacao', 'Aguardando aprovação'), ('PendenteEtapa2', 'Pendente etapa 2'), ('AguardandoAssinatura', 'Aguardando assinatura'), ('Concluido', 'Concluído')], default='Pendente', max_length=30)),
                ('workflow_current_step', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('workflow_total_steps', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('file_name', models.CharField(blank=True, max_length=255)),
                ('file_type', models.CharField(blank=True, max_length=100)),
                ('file_content', models.BinaryField(blank=True, null=True)),
                ('form_data', models.JSONField(blank=True, null=True)),
                ('ai_analysis', models.JSONField(blank=True, help_text='Untrusted extraction suggestions, kept for display only', null=True)),
            ],
            options={
                'ordering': ['-upload_date'],
                'indexes': [models.Index(fields=['client_id', 'upload_date'], name='doc_client_upload_idx')],
            },
        ),
        migrations.CreateModel(
            name='RequiredSignatory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.PositiveIntegerField(db_index=True)),
                ('name', models.CharField(help_text='Denormalized display name', max_length=255)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('signed', 'Signed')], default='pending', max_length=10)),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='required_signatories', to='documents.document')),
            ],
            options={
                'ordering': ['id'],
                'constraints': [models.UniqueConstraint(fields=('document', 'user_id'), name='unique_signatory_per_document')],
            },
        ),
        migrations.CreateModel(
            name='Signature',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('signer_id', models.PositiveIntegerField()),
                ('signer_name', models.CharField(max_length=255)),
                ('signed_at', models.DateTimeField()),
                ('signature_id', models.CharField(db_index=True, max_length=64, unique=True)),
                ('audit_trail', models.JSONField(blank=True, default=dict, help_text='Capture context (ip address, user agent, document hashes)')),
                ('event_hash', models.CharField(blank=True, help_text='SHA256 hash of this signature record for tamper detection', max_length=64)),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='signatures', to='documents.document')),
            ],
            options={
                'ordering': ['signed_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user', models.CharField(help_text='Display name of the acting user', max_length=255)),
                ('date', models.DateTimeField()),
                ('action', models.TextField()),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_log', to='documents.document')),
            ],
            options={
                'ordering': ['date', 'id'],
                'verbose_name_plural': 'audit entries',
            },
        ),
        migrations.CreateModel(
            name='Webhook',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('url', models.URLField(help_text='Endpoint that receives lifecycle event POSTs')),
                ('subscribed_events', models.JSONField(default=list, help_text="Lifecycle event types delivered to this endpoint")),
                ('client_id', models.PositiveIntegerField(blank=True, help_text='Only receive events of this client company (all clients when empty)', null=True)),
                ('secret', models.CharField(help_text='HMAC-SHA256 key of the X-Webhook-Signature header', max_length=255, unique=True)),
                ('is_active', models.BooleanField(default=True, help_text='Inactive webhooks receive nothing')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_triggered_at', models.DateTimeField(blank=True, null=True)),
                ('total_deliveries', models.PositiveIntegerField(default=0)),
                ('successful_deliveries', models.PositiveIntegerField(default=0)),
                ('failed_deliveries', models.PositiveIntegerField(default=0)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['is_active', 'created_at'], name='webhook_active_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='WebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('document.created', 'Document Created'), ('document.status_changed', 'Status Changed'), ('document.step_approved', 'Workflow Step Approved'), ('document.step_submitted', 'Workflow Step Submitted'), ('document.signature_created', 'Signature Created'), ('document.completed', 'Document Completed')], help_text="Lifecycle event type", max_length=50)),
                ('payload', models.JSONField(help_text='Lifecycle event payload, without delivery metadata')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('delivered', 'Delivered'), ('failed', 'Failed'), ('retrying', 'Retrying')], default='pending', max_length=20)),
                ('attempt_count', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('next_retry_at', models.DateTimeField(blank=True, null=True)),
                ('webhook', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='webhook_events', to='documents.webhook')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['webhook', 'status', 'created_at'], name='whevent_webhook_status_idx'),
                    models.Index(fields=['event_type', 'created_at'], name='whevent_type_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WebhookDeliveryLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status_code', models.PositiveIntegerField(blank=True, null=True)),
                ('response_body', models.TextField(blank=True)),
                ('error_message', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('duration_ms', models.PositiveIntegerField(blank=True, help_text='Round-trip time of the POST', null=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='delivery_logs', to='documents.webhookevent')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['event', 'created_at'], name='whlog_event_created_idx')],
            },
        ),
    ]
