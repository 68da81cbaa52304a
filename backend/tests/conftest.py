"""
Shared fixtures: portal users with profiles, their actors, real PDFs and a
lifecycle service wired to a recording notification sink.
"""

import pytest
from rest_framework.test import APIClient

from accounts.models import UserProfile
from accounts.services import actor_for_user
from documents.services.document_store import DocumentStore
from documents.services.lifecycle import AttachedFile, DocumentLifecycleService

from .helpers import CLIENT_ID, OTHER_CLIENT_ID, RecordingSink, create_portal_user, make_pdf


# ----------------------------
# Users and actors
# ----------------------------

@pytest.fixture
def office_user(db):
    return create_portal_user('ana', UserProfile.ROLE_ADMIN_GERAL, first_name='Ana', last_name='Contadora')


@pytest.fixture
def client_user(db):
    return create_portal_user('carlos', UserProfile.ROLE_CLIENTE, [CLIENT_ID], 'Carlos', 'Cliente')


@pytest.fixture
def partner_user(db):
    return create_portal_user('beatriz', UserProfile.ROLE_CLIENTE, [CLIENT_ID], 'Beatriz', 'Sócia')


@pytest.fixture
def outsider_user(db):
    return create_portal_user('otavio', UserProfile.ROLE_CLIENTE, [OTHER_CLIENT_ID], 'Otávio', 'Outro')


@pytest.fixture
def office(office_user):
    return actor_for_user(office_user)


@pytest.fixture
def client(client_user):
    return actor_for_user(client_user)


@pytest.fixture
def partner(partner_user):
    return actor_for_user(partner_user)


@pytest.fixture
def outsider(outsider_user):
    return actor_for_user(outsider_user)


# ----------------------------
# Files
# ----------------------------

@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def pdf_file(pdf_bytes):
    return AttachedFile(name='contrato.pdf', type='application/pdf', content=pdf_bytes)


# ----------------------------
# Services
# ----------------------------

@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store(sink):
    return DocumentStore(sink=sink)


@pytest.fixture
def lifecycle(store):
    return DocumentLifecycleService(store=store)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    """Extraction sessions live in the cache; keep tests independent."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()
