from rest_framework import viewsets
from rest_framework.response import Response

from documents.exceptions import NotFound
from .registry import TemplateRegistry
from .serializers import TemplateSerializer, TemplateListSerializer


class TemplateViewSet(viewsets.ViewSet):
    """Read-only access to the template catalog."""

    def list(self, request):
        """List every template in the catalog."""
        serializer = TemplateListSerializer(TemplateRegistry.all(), many=True)
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        """Get one template with its fields, steps and file rules."""
        template = TemplateRegistry.get_template(pk)
        if template is None:
            raise NotFound(f"Template '{pk}' not found")
        return Response(TemplateSerializer(template).data)
