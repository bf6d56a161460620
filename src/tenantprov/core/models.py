from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from tenantprov.core.errors import ValidationError

AccessType = Literal["Scope", "Role"]

_FRACTION = re.compile(r"\.(\d+)")

def to_graph_datetime(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def parse_graph_datetime(value: Optional[str]) -> Optional[datetime]:
    """Graph emits up to 7 fractional digits and a trailing Z; datetime wants at most 6."""
    if not value:
        return None
    txt = value.strip().replace("Z", "+00:00")
    txt = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), txt, count=1)
    dt = datetime.fromisoformat(txt)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

def _require(obj: Any, *names: str) -> None:
    missing = [n for n in names if not getattr(obj, n, None)]
    if missing:
        raise ValidationError(f"{type(obj).__name__}: missing {', '.join(missing)}")


# ---------- remote entities ----------

@dataclass
class ResourceAccess:
    id: str
    type: AccessType

    def to_graph(self) -> Dict[str, str]:
        return {"id": self.id, "type": self.type}

@dataclass
class RequiredResourceAccess:
    resource_app_id: str
    resource_access: List[ResourceAccess] = field(default_factory=list)

    def to_graph(self) -> Dict[str, Any]:
        return {
            "resourceAppId": self.resource_app_id,
            "resourceAccess": [ra.to_graph() for ra in self.resource_access],
        }

    @classmethod
    def from_graph(cls, d: Dict[str, Any]) -> "RequiredResourceAccess":
        return cls(
            resource_app_id=d.get("resourceAppId", ""),
            resource_access=[ResourceAccess(id=x.get("id", ""), type=x.get("type", ""))
                             for x in d.get("resourceAccess") or []],
        )

@dataclass
class Application:
    id: str
    app_id: str
    display_name: str
    required_resource_access: List[RequiredResourceAccess] = field(default_factory=list)

    @classmethod
    def from_graph(cls, d: Dict[str, Any]) -> "Application":
        return cls(
            id=d.get("id", ""),
            app_id=d.get("appId", ""),
            display_name=d.get("displayName", ""),
            required_resource_access=[RequiredResourceAccess.from_graph(x)
                                      for x in d.get("requiredResourceAccess") or []],
        )

@dataclass
class PermissionScope:
    id: str
    value: str
    is_enabled: bool = True

@dataclass
class AppRole:
    id: str
    value: str
    is_enabled: bool = True

@dataclass
class ServicePrincipal:
    id: str
    app_id: str
    display_name: str = ""
    oauth2_permission_scopes: List[PermissionScope] = field(default_factory=list)
    app_roles: List[AppRole] = field(default_factory=list)

    @classmethod
    def from_graph(cls, d: Dict[str, Any]) -> "ServicePrincipal":
        return cls(
            id=d.get("id", ""),
            app_id=d.get("appId", ""),
            display_name=d.get("displayName", ""),
            oauth2_permission_scopes=[
                PermissionScope(id=s.get("id", ""), value=s.get("value", ""), is_enabled=s.get("isEnabled", True))
                for s in d.get("oauth2PermissionScopes") or []
            ],
            app_roles=[
                AppRole(id=r.get("id", ""), value=r.get("value", ""), is_enabled=r.get("isEnabled", True))
                for r in d.get("appRoles") or []
            ],
        )

@dataclass
class ResolvedPermission:
    """A permission id found on a resource service principal."""
    id: str
    value: str
    type: AccessType
    resource: ServicePrincipal

    def as_resource_access(self) -> ResourceAccess:
        return ResourceAccess(id=self.id, type=self.type)

@dataclass
class PermissionGrant:
    id: str
    client_id: str
    consent_type: str
    resource_id: str
    scope: str

    @classmethod
    def from_graph(cls, d: Dict[str, Any]) -> "PermissionGrant":
        return cls(
            id=d.get("id", ""),
            client_id=d.get("clientId", ""),
            consent_type=d.get("consentType", ""),
            resource_id=d.get("resourceId", ""),
            scope=d.get("scope", ""),
        )

@dataclass
class AppRoleAssignment:
    id: str
    principal_id: str
    resource_id: str
    app_role_id: str

    @classmethod
    def from_graph(cls, d: Dict[str, Any]) -> "AppRoleAssignment":
        return cls(
            id=d.get("id", ""),
            principal_id=d.get("principalId", ""),
            resource_id=d.get("resourceId", ""),
            app_role_id=d.get("appRoleId", ""),
        )

@dataclass
class PasswordCredential:
    key_id: str
    display_name: str
    start_date_time: datetime
    end_date_time: datetime
    secret_text: str = field(default="", repr=False)


# ---------- request structs (validated before the call) ----------

@dataclass
class CreateApplicationRequest:
    display_name: str
    required_resource_access: List[RequiredResourceAccess]
    sign_in_audience: str = "AzureADMyOrg"

    def validate(self) -> None:
        _require(self, "display_name", "required_resource_access")
        for rra in self.required_resource_access:
            if not rra.resource_app_id or not rra.resource_access:
                raise ValidationError("CreateApplicationRequest: empty requiredResourceAccess entry")
            for ra in rra.resource_access:
                if not ra.id:
                    raise ValidationError(f"CreateApplicationRequest: {ra.type} without an id")
                if ra.type not in ("Scope", "Role"):
                    raise ValidationError(f"CreateApplicationRequest: unknown access type {ra.type!r}")

    def to_graph(self) -> Dict[str, Any]:
        return {
            "displayName": self.display_name,
            "signInAudience": self.sign_in_audience,
            "requiredResourceAccess": [r.to_graph() for r in self.required_resource_access],
        }

@dataclass
class PermissionGrantRequest:
    client_id: str
    resource_id: str
    scope: str
    consent_type: str = "AllPrincipals"

    def validate(self) -> None:
        _require(self, "client_id", "resource_id", "scope", "consent_type")

    def to_graph(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "consentType": self.consent_type,
            "resourceId": self.resource_id,
            "scope": self.scope,
        }

@dataclass
class AppRoleAssignmentRequest:
    service_principal_id: str
    principal_id: str
    app_role_id: str
    resource_id: str

    def validate(self) -> None:
        _require(self, "service_principal_id", "principal_id", "app_role_id", "resource_id")

    def to_graph(self) -> Dict[str, Any]:
        return {
            "principalId": self.principal_id,
            "resourceId": self.resource_id,
            "appRoleId": self.app_role_id,
        }

@dataclass
class PasswordCredentialRequest:
    application_id: str
    start_date_time: datetime
    end_date_time: datetime
    display_name: str

    def validate(self) -> None:
        _require(self, "application_id", "display_name", "start_date_time", "end_date_time")
        if self.end_date_time <= self.start_date_time:
            raise ValidationError("PasswordCredentialRequest: end must be after start")

    def to_graph(self) -> Dict[str, Any]:
        return {
            "passwordCredential": {
                "displayName": self.display_name,
                "startDateTime": to_graph_datetime(self.start_date_time),
                "endDateTime": to_graph_datetime(self.end_date_time),
            }
        }
