# src/tenantprov/core/directory_service.py
from __future__ import annotations
from typing import Any, Callable, Dict, List, TypeVar

from tenantprov.core.graph_client import GraphClient
from tenantprov.core.errors import RemoteOperationError
from tenantprov.core.models import (
    Application, AppRoleAssignment, AppRoleAssignmentRequest, CreateApplicationRequest,
    PasswordCredential, PasswordCredentialRequest, PermissionGrant, PermissionGrantRequest,
    ServicePrincipal, parse_graph_datetime,
)
from tenantprov.http.errors import HttpError

T = TypeVar("T")

_APP_SELECT = "id,appId,displayName,requiredResourceAccess"
_SP_SELECT = "id,appId,displayName,appRoles,oauth2PermissionScopes"


def odata_quote(value: str) -> str:
    """OData string literal: single quotes are escaped by doubling them."""
    return "'" + value.replace("'", "''") + "'"


class DirectoryClient:
    """
    The slice of Microsoft Graph the provisioning run needs.
    Every failed call surfaces as RemoteOperationError naming the operation.
    """
    def __init__(self, graph: GraphClient):
        self._graph = graph

    def close(self) -> None:
        self._graph.close()

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except HttpError as e:
            raise RemoteOperationError(operation, e) from e
        except ValueError as e:
            # 2xx with a body that is not JSON (proxy pages, truncated replies)
            raise RemoteOperationError(operation, e) from e

    # ---------- applications ----------
    def list_applications(self, *, display_name: str) -> List[Application]:
        params = {"$filter": f"displayName eq {odata_quote(display_name)}", "$select": _APP_SELECT}
        items = self._call("application.list",
                           lambda: list(self._graph.get_paged_values("/v1.0/applications", params=params)))
        return [Application.from_graph(x) for x in items]

    def create_application(self, request: CreateApplicationRequest) -> Application:
        request.validate()
        res = self._call("application.create",
                         lambda: self._graph.post_json("/v1.0/applications", json=request.to_graph()))
        return Application.from_graph(res)

    def delete_application(self, object_id: str) -> None:
        self._call("application.delete", lambda: self._graph.delete(f"/v1.0/applications/{object_id}"))

    def add_password_credential(self, request: PasswordCredentialRequest) -> PasswordCredential:
        request.validate()
        res = self._call(
            "application.addPassword",
            lambda: self._graph.post_json(f"/v1.0/applications/{request.application_id}/addPassword",
                                          json=request.to_graph()),
        )
        return PasswordCredential(
            key_id=res.get("keyId", ""),
            display_name=res.get("displayName") or request.display_name,
            start_date_time=parse_graph_datetime(res.get("startDateTime")) or request.start_date_time,
            end_date_time=parse_graph_datetime(res.get("endDateTime")) or request.end_date_time,
            secret_text=res.get("secretText", ""),
        )

    # ---------- service principals ----------
    def _list_service_principals(self, flt: str) -> List[ServicePrincipal]:
        params: Dict[str, Any] = {"$filter": flt, "$select": _SP_SELECT}
        items = self._call("servicePrincipal.list",
                           lambda: list(self._graph.get_paged_values("/v1.0/servicePrincipals", params=params)))
        return [ServicePrincipal.from_graph(x) for x in items]

    def list_service_principals_by_app_id(self, app_id: str) -> List[ServicePrincipal]:
        return self._list_service_principals(f"appId eq {odata_quote(app_id)}")

    def list_service_principals_by_display_name(self, display_name: str) -> List[ServicePrincipal]:
        return self._list_service_principals(f"displayName eq {odata_quote(display_name)}")

    def create_service_principal(self, app_id: str) -> ServicePrincipal:
        res = self._call("servicePrincipal.create",
                         lambda: self._graph.post_json("/v1.0/servicePrincipals", json={"appId": app_id}))
        return ServicePrincipal.from_graph(res)

    # ---------- consent ----------
    def create_oauth2_permission_grant(self, request: PermissionGrantRequest) -> PermissionGrant:
        request.validate()
        res = self._call("oauth2PermissionGrant.create",
                         lambda: self._graph.post_json("/v1.0/oauth2PermissionGrants", json=request.to_graph()))
        return PermissionGrant.from_graph(res)

    def create_app_role_assignment(self, request: AppRoleAssignmentRequest) -> AppRoleAssignment:
        request.validate()
        res = self._call(
            "appRoleAssignment.create",
            lambda: self._graph.post_json(
                f"/v1.0/servicePrincipals/{request.service_principal_id}/appRoleAssignments",
                json=request.to_graph(),
            ),
        )
        return AppRoleAssignment.from_graph(res)
