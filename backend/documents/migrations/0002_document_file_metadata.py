import hashlib

from django.db import migrations, models


def fill_file_metadata(apps, schema_editor):
    Document = apps.get_model('documents', 'Document')
    for document in Document.objects.exclude(file_content=None).iterator():
        content = bytes(document.file_content)
        document.file_size = len(content)
        document.file_sha256 = hashlib.sha256(content).hexdigest()
        document.save(update_fields=['file_size', 'file_sha256'])


class Migration(migrations.Migration):

    dependencies = [
        ('documents', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='document',
            name='file_size',
            field=models.PositiveIntegerField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name='document',
            name='file_sha256',
            field=models.CharField(blank=True, max_length=64),
        ),
        migrations.RunPython(fill_file_metadata, migrations.RunPython.noop),
    ]
