"""
Capability checks per role and tenant.
"""

import pytest

from accounts.models import UserProfile
from accounts.services import ROLE_CLIENT, ROLE_OFFICE, Actor, actor_for_user, resolve_signatories
from documents.exceptions import Forbidden
from documents.models import Document
from documents.services import authorization
from documents.services.authorization import authorize, is_allowed

from .helpers import CLIENT_ID, OTHER_CLIENT_ID, create_portal_user


OFFICE = Actor(user_id=1, name='Ana Contadora', role=ROLE_OFFICE)
OWNER = Actor(user_id=2, name='Carlos Cliente', role=ROLE_CLIENT, client_ids=(CLIENT_ID,))
STRANGER = Actor(user_id=3, name='Otávio Outro', role=ROLE_CLIENT, client_ids=(OTHER_CLIENT_ID,))
NO_TENANT = Actor(user_id=4, name='Sem Empresa', role=ROLE_CLIENT)


class TestOfficeOnlyActions:
    @pytest.mark.parametrize('action', sorted(authorization.OFFICE_ONLY_ACTIONS))
    def test_office_is_allowed(self, action):
        assert is_allowed(OFFICE, action, client_id=CLIENT_ID)

    @pytest.mark.parametrize('action', sorted(authorization.OFFICE_ONLY_ACTIONS))
    def test_client_is_denied_even_for_own_tenant(self, action):
        assert not is_allowed(OWNER, action, client_id=CLIENT_ID)


class TestTenantActions:
    @pytest.mark.parametrize('action', sorted(authorization.TENANT_ACTIONS))
    def test_owner_is_allowed(self, action):
        assert is_allowed(OWNER, action, client_id=CLIENT_ID)

    @pytest.mark.parametrize('action', sorted(authorization.TENANT_ACTIONS))
    def test_stranger_is_denied(self, action):
        assert not is_allowed(STRANGER, action, client_id=CLIENT_ID)

    def test_document_tenant_wins_over_client_id(self):
        document = Document(client_id=OTHER_CLIENT_ID)
        assert not is_allowed(OWNER, authorization.VIEW, document=document, client_id=CLIENT_ID)

    def test_untargeted_action_needs_a_tenant(self):
        assert is_allowed(OWNER, authorization.ANALYZE)
        assert not is_allowed(NO_TENANT, authorization.ANALYZE)

    def test_unknown_action_is_denied(self):
        assert not is_allowed(OFFICE, 'delete_everything')

    def test_authorize_raises_forbidden(self):
        with pytest.raises(Forbidden):
            authorize(STRANGER, authorization.REQUEST, client_id=CLIENT_ID)


@pytest.mark.django_db
class TestActorResolution:
    def test_office_profile(self, office_user):
        actor = actor_for_user(office_user)
        assert actor.is_office
        assert actor.name == 'Ana Contadora'

    def test_limited_admin_is_office(self):
        user = create_portal_user('lia', UserProfile.ROLE_ADMIN_LIMITADO)
        assert actor_for_user(user).is_office

    def test_client_profile(self, client_user):
        actor = actor_for_user(client_user)
        assert not actor.is_office
        assert actor.client_ids == (CLIENT_ID,)
        assert actor.owns_client(CLIENT_ID)

    def test_user_without_profile_has_no_tenant(self, django_user_model):
        user = django_user_model.objects.create_user(username='semperfil', password='x')
        actor = actor_for_user(user)
        assert not actor.is_office
        assert actor.client_ids == ()
        assert actor.name == 'semperfil'

    def test_resolve_signatories(self, client_user, partner_user):
        resolved, unknown = resolve_signatories([partner_user.pk, client_user.pk, partner_user.pk, 999999])
        assert resolved == [(partner_user.pk, 'Beatriz Sócia'), (client_user.pk, 'Carlos Cliente')]
        assert unknown == [999999]
