"""
backend/templates/urls.py

"""

# ----------------------------
# Django imports
# ----------------------------
from django.urls import path

# ----------------------------
# Local view imports
# ----------------------------
from .views import TemplateViewSet

# App namespace for reverse() and URL resolution
app_name = 'templates'

# ----------------------------
# Template routes
# ----------------------------
urlpatterns = [
    path('', TemplateViewSet.as_view({
        'get': 'list'
    }), name='template-list'),
    # List the catalog of document kinds clients can submit.

    path('<slug:pk>/', TemplateViewSet.as_view({
        'get': 'retrieve'
    }), name='template-detail'),
    # Retrieve one template's fields, steps and attachment rules so the
    # client form can be rendered and the step count is known up front.
]
