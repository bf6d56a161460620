from __future__ import annotations

import itertools
from typing import List

import pytest

from tenantprov.app import event_bus
from tenantprov.core import constants as c
from tenantprov.core.auth import Session
from tenantprov.core.errors import RemoteOperationError
from tenantprov.core.models import (
    Application,
    AppRole,
    AppRoleAssignment,
    PasswordCredential,
    PermissionGrant,
    PermissionScope,
    ServicePrincipal,
)
from tenantprov.http.errors import ServerError

MUTATING = {
    "create_application",
    "delete_application",
    "create_service_principal",
    "create_oauth2_permission_grant",
    "create_app_role_assignment",
    "add_password_credential",
}


def exchange_sp(scopes=None, roles=None) -> ServicePrincipal:
    return ServicePrincipal(
        id="exo-sp",
        app_id=c.EXCHANGE_APP_ID,
        display_name=c.EXCHANGE_DISPLAY_NAME,
        oauth2_permission_scopes=(
            scopes
            if scopes is not None
            else [
                PermissionScope(id="other-scope", value="Mail.Read"),
                PermissionScope(id="S1", value=c.EWS_SCOPE_VALUE),
            ]
        ),
        app_roles=(
            roles
            if roles is not None
            else [
                AppRole(id="other-role", value="Mail.Send"),
                AppRole(id="R1", value=c.FULL_ACCESS_ROLE_VALUE),
            ]
        ),
    )


class FakeDirectory:
    """In-memory stand-in for DirectoryClient that records every call."""

    def __init__(self, *, apps=None, sps=None, fail_on=()):
        self.apps: List[Application] = list(apps or [])
        self.sps: List[ServicePrincipal] = list(sps if sps is not None else [exchange_sp()])
        self.grants: List[PermissionGrant] = []
        self.assignments: List[AppRoleAssignment] = []
        self.credentials: List[PasswordCredential] = []
        self.calls: list = []
        self.fail_on = set(fail_on)
        self.closed = False
        self._ids = itertools.count(1)

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail_on:
            raise RemoteOperationError(
                name, ServerError(500, f"https://graph.example/{name}", "Server error")
            )

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING]

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def close(self):
        self.closed = True

    def list_applications(self, *, display_name):
        self._record("list_applications", display_name)
        return [a for a in self.apps if a.display_name == display_name]

    def create_application(self, request):
        request.validate()
        self._record("create_application", request)
        n = next(self._ids)
        app = Application(
            id=f"obj-{n}",
            app_id=f"app-{n}",
            display_name=request.display_name,
            required_resource_access=list(request.required_resource_access),
        )
        self.apps.append(app)
        return app

    def delete_application(self, object_id):
        self._record("delete_application", object_id)
        self.apps = [a for a in self.apps if a.id != object_id]

    def list_service_principals_by_app_id(self, app_id):
        self._record("list_service_principals_by_app_id", app_id)
        return [sp for sp in self.sps if sp.app_id == app_id]

    def list_service_principals_by_display_name(self, display_name):
        self._record("list_service_principals_by_display_name", display_name)
        return [sp for sp in self.sps if sp.display_name == display_name]

    def create_service_principal(self, app_id):
        self._record("create_service_principal", app_id)
        sp = ServicePrincipal(id=f"sp-{next(self._ids)}", app_id=app_id)
        self.sps.append(sp)
        return sp

    def create_oauth2_permission_grant(self, request):
        request.validate()
        self._record("create_oauth2_permission_grant", request)
        grant = PermissionGrant(
            id=f"grant-{next(self._ids)}",
            client_id=request.client_id,
            consent_type=request.consent_type,
            resource_id=request.resource_id,
            scope=request.scope,
        )
        self.grants.append(grant)
        return grant

    def create_app_role_assignment(self, request):
        request.validate()
        self._record("create_app_role_assignment", request)
        assignment = AppRoleAssignment(
            id=f"assign-{next(self._ids)}",
            principal_id=request.principal_id,
            resource_id=request.resource_id,
            app_role_id=request.app_role_id,
        )
        self.assignments.append(assignment)
        return assignment

    def add_password_credential(self, request):
        request.validate()
        self._record("add_password_credential", request)
        cred = PasswordCredential(
            key_id=f"key-{next(self._ids)}",
            display_name=request.display_name,
            start_date_time=request.start_date_time,
            end_date_time=request.end_date_time,
            secret_text="s3cr3t~value",
        )
        self.credentials.append(cred)
        return cred


class FakeMsalApp:
    def __init__(self, accounts=None, fail=False):
        self.accounts = list(accounts or [{"username": "admin@contoso.com"}])
        self.fail = fail

    def get_accounts(self):
        if self.fail:
            raise RuntimeError("token cache locked")
        return list(self.accounts)

    def remove_account(self, account):
        self.accounts.remove(account)


class RecordingSink:
    def __init__(self):
        self.results = []

    def emit(self, result):
        self.results.append(result)


class QuietLogger:
    def __init__(self):
        self.lines = []

    def debug(self, msg):
        self.lines.append(("debug", msg))

    def info(self, msg):
        self.lines.append(("info", msg))

    def warning(self, msg):
        self.lines.append(("warning", msg))

    def error(self, msg):
        self.lines.append(("error", msg))


def make_session(msal_app=None) -> Session:
    return Session(
        tenant_id="tenant-1",
        display_name="Contoso",
        domain_hint="contoso.com",
        token="tok",
        username="admin@contoso.com",
        scopes=list(c.AUTH_SCOPES),
        msal_app=msal_app if msal_app is not None else FakeMsalApp(),
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("TENANTPROV_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TENANTPROV_SETTINGS", str(tmp_path / "appsettings.json"))
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def quiet_logger():
    return QuietLogger()
