from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeDirectory, exchange_sp
from tenantprov.core import constants as c
from tenantprov.core import provisioning_service as ps
from tenantprov.core.errors import PermissionNotFoundError
from tenantprov.core.models import Application, AppRole, PermissionScope, ServicePrincipal


def test_resolve_delegated_scope_by_value(directory):
    resolved = ps.resolve_delegated_permission_id(directory, c.EXCHANGE_APP_ID, c.EWS_SCOPE_VALUE)
    assert resolved.id == "S1"
    assert resolved.type == "Scope"
    assert resolved.resource.id == "exo-sp"
    assert directory.called("list_service_principals_by_app_id") == [
        ("list_service_principals_by_app_id", c.EXCHANGE_APP_ID)
    ]


def test_resolve_app_role_by_display_name(directory):
    resolved = ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)
    assert resolved.id == "R1"
    assert resolved.type == "Role"
    assert resolved.as_resource_access().to_graph() == {"id": "R1", "type": "Role"}


def test_missing_scope_raises_instead_of_returning_none():
    directory = FakeDirectory(sps=[exchange_sp(scopes=[PermissionScope(id="x", value="Mail.Read")])])
    with pytest.raises(PermissionNotFoundError) as exc:
        ps.resolve_delegated_permission_id(directory, c.EXCHANGE_APP_ID, c.EWS_SCOPE_VALUE)
    assert exc.value.value == c.EWS_SCOPE_VALUE
    assert exc.value.code == "permission_not_found"


def test_missing_role_raises():
    directory = FakeDirectory(sps=[exchange_sp(roles=[AppRole(id="x", value="Mail.Send")])])
    with pytest.raises(PermissionNotFoundError):
        ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)


def test_matching_value_with_empty_id_is_not_resolved():
    directory = FakeDirectory(sps=[exchange_sp(roles=[AppRole(id="", value=c.FULL_ACCESS_ROLE_VALUE)])])
    with pytest.raises(PermissionNotFoundError):
        ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)


def test_missing_resource_service_principal_raises():
    directory = FakeDirectory(sps=[])
    with pytest.raises(PermissionNotFoundError):
        ps.resolve_delegated_permission_id(directory, c.EXCHANGE_APP_ID, c.EWS_SCOPE_VALUE)
    with pytest.raises(PermissionNotFoundError):
        ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)


def test_required_resource_access_bundles_scope_and_role(directory):
    scope = ps.resolve_delegated_permission_id(directory, c.EXCHANGE_APP_ID, c.EWS_SCOPE_VALUE)
    role = ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)
    rra = ps.build_required_resource_access(c.EXCHANGE_APP_ID, scope, role)
    assert rra.to_graph() == {
        "resourceAppId": c.EXCHANGE_APP_ID,
        "resourceAccess": [{"id": "S1", "type": "Scope"}, {"id": "R1", "type": "Role"}],
    }


def test_find_application_by_display_name(directory):
    assert ps.find_application_by_display_name(directory, "MigrationWiz") is None
    directory.apps.append(Application(id="obj-9", app_id="app-9", display_name="MigrationWiz"))
    found = ps.find_application_by_display_name(directory, "MigrationWiz")
    assert found.app_id == "app-9"
    assert directory.mutations == []


def test_ensure_service_principal_creates_once(directory):
    sp, created = ps.ensure_service_principal(directory, "app-1")
    assert created is True
    again, created_again = ps.ensure_service_principal(directory, "app-1")
    assert created_again is False
    assert again.id == sp.id
    assert len(directory.called("create_service_principal")) == 1


def test_ensure_service_principal_reuses_existing():
    directory = FakeDirectory(sps=[exchange_sp(), ServicePrincipal(id="sp-existing", app_id="app-1")])
    sp, created = ps.ensure_service_principal(directory, "app-1")
    assert (sp.id, created) == ("sp-existing", False)
    assert directory.mutations == []


def test_grant_is_tenant_wide(directory):
    grant = ps.grant_delegated_permission(directory, "sp-1", "exo-sp", c.EWS_SCOPE_VALUE)
    assert grant.consent_type == "AllPrincipals"
    assert (grant.client_id, grant.resource_id, grant.scope) == ("sp-1", "exo-sp", c.EWS_SCOPE_VALUE)


def test_assign_app_role_is_self_referential(directory):
    assignment = ps.assign_app_role(directory, "sp-1", "sp-1", "R1", "exo-sp")
    request = directory.called("create_app_role_assignment")[0][1]
    assert request.service_principal_id == request.principal_id == "sp-1"
    assert assignment.app_role_id == "R1"


@pytest.mark.parametrize(
    "start,expected",
    [
        (datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc), datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)),
        (datetime(2024, 2, 29, 8, 0, tzinfo=timezone.utc), datetime(2025, 2, 28, 8, 0, tzinfo=timezone.utc)),
        (datetime(2023, 6, 1, 8, 0, tzinfo=timezone.utc), datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)),
    ],
)
def test_add_years_keeps_calendar_date(start, expected):
    assert ps.add_years(start) == expected


def test_credential_window_is_one_year():
    before = datetime.now(timezone.utc).replace(microsecond=0)
    start, end = ps.credential_window()
    after = datetime.now(timezone.utc)
    assert before <= start <= after <= end
    assert end - start in (timedelta(days=365), timedelta(days=366))
    assert start.microsecond == 0


def test_issue_password_credential_returns_secret(directory):
    start, end = ps.credential_window(datetime(2026, 10, 17, 9, 30, 15, 123456, tzinfo=timezone.utc))
    cred = ps.issue_password_credential(directory, "obj-1", start, end, "MigrationWiz secret")
    assert cred.secret_text
    assert cred.start_date_time == datetime(2026, 10, 17, 9, 30, 15, tzinfo=timezone.utc)
    assert cred.end_date_time == datetime(2027, 10, 17, 9, 30, 15, tzinfo=timezone.utc)
