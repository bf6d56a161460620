from __future__ import annotations
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from tenantprov.core.constants import CONSENT_ALL_PRINCIPALS, SECRET_VALIDITY_YEARS
from tenantprov.core.directory_service import DirectoryClient
from tenantprov.core.errors import PermissionNotFoundError
from tenantprov.core.models import (
    Application, AppRoleAssignment, AppRoleAssignmentRequest, CreateApplicationRequest,
    PasswordCredential, PasswordCredentialRequest, PermissionGrant, PermissionGrantRequest,
    RequiredResourceAccess, ResolvedPermission, ServicePrincipal,
)


def add_years(start: datetime, years: int = SECRET_VALIDITY_YEARS) -> datetime:
    """Same calendar date `years` later; Feb 29 falls back to Feb 28."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def credential_window(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    start = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    return start, add_years(start)


def find_application_by_display_name(directory: DirectoryClient, name: str) -> Optional[Application]:
    apps = directory.list_applications(display_name=name)
    return apps[0] if apps else None


def _single_sp(matches: List[ServicePrincipal], resource: str, value: str, kind: str) -> ServicePrincipal:
    if not matches:
        raise PermissionNotFoundError(resource, value, kind)
    return matches[0]


def resolve_delegated_permission_id(
    directory: DirectoryClient, resource_app_id: str, scope_value: str
) -> ResolvedPermission:
    """
    Look up a delegated scope on the resource service principal (by appId).
    Raises PermissionNotFoundError instead of handing back an empty id.
    """
    sp = _single_sp(directory.list_service_principals_by_app_id(resource_app_id),
                    resource_app_id, scope_value, "Delegated scope")
    for scope in sp.oauth2_permission_scopes:
        if scope.value == scope_value and scope.id:
            return ResolvedPermission(id=scope.id, value=scope.value, type="Scope", resource=sp)
    raise PermissionNotFoundError(sp.display_name or resource_app_id, scope_value, "Delegated scope")


def resolve_app_role_id(directory: DirectoryClient, display_name: str, role_value: str) -> ResolvedPermission:
    """Same as resolve_delegated_permission_id, but for an app role on a service principal found by display name."""
    sp = _single_sp(directory.list_service_principals_by_display_name(display_name),
                    display_name, role_value, "App role")
    for role in sp.app_roles:
        if role.value == role_value and role.id:
            return ResolvedPermission(id=role.id, value=role.value, type="Role", resource=sp)
    raise PermissionNotFoundError(display_name, role_value, "App role")


def build_required_resource_access(resource_app_id: str, *permissions: ResolvedPermission) -> RequiredResourceAccess:
    return RequiredResourceAccess(
        resource_app_id=resource_app_id,
        resource_access=[p.as_resource_access() for p in permissions],
    )


def create_application(directory: DirectoryClient, request: CreateApplicationRequest) -> Application:
    # Not atomic with the duplicate check: two concurrent runs can both pass it.
    return directory.create_application(request)


def ensure_service_principal(directory: DirectoryClient, app_id: str) -> Tuple[ServicePrincipal, bool]:
    """Return (service principal, created). Reuses an existing one for the appId."""
    existing = directory.list_service_principals_by_app_id(app_id)
    if existing:
        return existing[0], False
    return directory.create_service_principal(app_id), True


def grant_delegated_permission(
    directory: DirectoryClient, client_sp_id: str, resource_sp_id: str, scope_value: str
) -> PermissionGrant:
    """Tenant-wide admin consent: every user can use the scope without an individual prompt."""
    return directory.create_oauth2_permission_grant(PermissionGrantRequest(
        client_id=client_sp_id,
        resource_id=resource_sp_id,
        scope=scope_value,
        consent_type=CONSENT_ALL_PRINCIPALS,
    ))


def assign_app_role(
    directory: DirectoryClient, service_principal_id: str, principal_id: str, app_role_id: str, resource_sp_id: str
) -> AppRoleAssignment:
    return directory.create_app_role_assignment(AppRoleAssignmentRequest(
        service_principal_id=service_principal_id,
        principal_id=principal_id,
        app_role_id=app_role_id,
        resource_id=resource_sp_id,
    ))


def issue_password_credential(
    directory: DirectoryClient, application_id: str, start: datetime, end: datetime, label: str
) -> PasswordCredential:
    """The secret text is only ever returned here; Graph will not show it again."""
    return directory.add_password_credential(PasswordCredentialRequest(
        application_id=application_id,
        start_date_time=start,
        end_date_time=end,
        display_name=label,
    ))
