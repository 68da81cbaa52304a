"""
backend/accounts/models.py

Purpose:
- Attach portal-specific identity data to Django users: the portal role and the
  client companies (tenants) the user may act for.

Design intent:
- Authentication itself stays with django.contrib.auth. This profile only
  answers "is this user office staff?" and "which tenants does it belong to?".
"""

from django.conf import settings
from django.db import models


class UserProfile(models.Model):
    """
    Portal role and tenant membership for a Django user.

    Office users (AdminGeral, AdminLimitado) work across every client.
    Client users (Cliente) only see and act on documents of their own
    client companies.
    """
    ROLE_ADMIN_GERAL = 'AdminGeral'
    ROLE_ADMIN_LIMITADO = 'AdminLimitado'
    ROLE_CLIENTE = 'Cliente'

    ROLE_CHOICES = [
        (ROLE_ADMIN_GERAL, 'Administrador geral'),
        (ROLE_ADMIN_LIMITADO, 'Administrador limitado'),
        (ROLE_CLIENTE, 'Cliente'),
    ]

    OFFICE_ROLES = (ROLE_ADMIN_GERAL, ROLE_ADMIN_LIMITADO)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='portal_profile'
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CLIENTE)
    client_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Client company ids this user may act for"
    )

    class Meta:
        ordering = ['user_id']

    def __str__(self):
        return f"{self.user} ({self.role})"

    @property
    def is_office(self):
        return self.role in self.OFFICE_ROLES
