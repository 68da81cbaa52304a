"""
URL configuration for the accounting portal project.
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/templates/', include('templates.urls')),
    path('api/documents/', include('documents.urls')),
]
