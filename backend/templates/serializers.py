"""
backend/templates/serializers.py

Purpose:
- Represent catalog templates in API responses.

Design notes:
- Templates are static dataclasses, so these are plain read-only
  serializers rather than ModelSerializers.
- The list payload omits field definitions to stay small; the detail
  payload carries everything a client form needs.
"""

# ----------------------------
# DRF imports
# ----------------------------
from rest_framework import serializers


class TemplateFieldSerializer(serializers.Serializer):
    """A single form field (label, type, options, owning step)."""
    id = serializers.CharField()
    label = serializers.CharField()
    type = serializers.CharField()
    required = serializers.BooleanField()
    options = serializers.ListField(child=serializers.CharField())
    description = serializers.CharField(allow_blank=True)
    step = serializers.IntegerField(allow_null=True)


class FileConfigSerializer(serializers.Serializer):
    acceptedTypes = serializers.CharField(source='accepted_types')
    isRequired = serializers.BooleanField(source='is_required')


class TemplateStepSerializer(serializers.Serializer):
    title = serializers.CharField()


class TemplateListSerializer(serializers.Serializer):
    """Lightweight template summary for pickers."""
    id = serializers.CharField()
    name = serializers.CharField()
    category = serializers.CharField()
    total_steps = serializers.IntegerField()
    requires_file = serializers.BooleanField()


class TemplateSerializer(TemplateListSerializer):
    """
    Full template representation.

    What:
    - Fields, optional steps and optional attachment rules.

    Why:
    - The client form is rendered entirely from this payload.
    """
    fields = TemplateFieldSerializer(many=True)
    steps = TemplateStepSerializer(many=True, allow_null=True)
    fileConfig = FileConfigSerializer(source='file_config', allow_null=True)
