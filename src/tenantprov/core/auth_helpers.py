from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List
import msal
import requests

# Reuse the same error classes from core.auth
from tenantprov.core.auth import (
    AuthError, InvalidTenantId, InvalidClientId, NetworkError, ConsentRequired,
    SignInCancelled
)
from tenantprov.core.constants import GRAPH, LOGIN
from tenantprov.http.client import HttpClient
from tenantprov.http.errors import HttpError

def build_authority(tenant: str) -> str:
    return f"{LOGIN}/{tenant}"

def build_public_app(client_id: str, authority: str) -> msal.PublicClientApplication:
    try:
        return msal.PublicClientApplication(client_id, authority=authority)
    except requests.exceptions.RequestException as ex:
        raise NetworkError(str(ex))
    except ValueError as ex:
        # msal validates the authority while discovering the tenant
        raise InvalidTenantId(str(ex))

def _map_msal_error(res: dict) -> AuthError:
    err = res.get("error") or ""
    d = res.get("error_description") or err or "Unknown error"
    if err in ("access_denied", "authorization_declined", "expired_token") or "AADSTS50058" in d:
        return SignInCancelled(d)
    if "AADSTS700016" in d:  # invalid client id
        return InvalidClientId("Invalid client ID or app not found.")
    if "invalid_tenant" in d or "AADSTS90002" in d:
        return InvalidTenantId("Invalid tenant ID or tenant not found.")
    if "AADSTS65001" in d or "consent_required" in d:
        return ConsentRequired("Admin consent required.")
    return AuthError(d)

def msal_acquire_token_delegated(
    app: msal.PublicClientApplication,
    scopes: List[str],
    *,
    use_device_code: bool = False,
    prompt: Callable[[str], None] = print,
) -> dict:
    """Interactive browser sign-in, or device code when no browser is available."""
    try:
        if use_device_code:
            flow = app.initiate_device_flow(scopes=scopes)
            if "user_code" not in flow:
                raise _map_msal_error(flow)
            prompt(flow["message"])
            res = app.acquire_token_by_device_flow(flow)
        else:
            res = app.acquire_token_interactive(scopes=scopes, prompt="select_account")
    except requests.exceptions.RequestException as ex:
        raise NetworkError(str(ex))
    except AuthError:
        raise
    except Exception as ex:
        raise AuthError(str(ex))

    if "access_token" not in res:
        raise _map_msal_error(res)

    return res

@dataclass
class OrgInfo:
    tenant_id: str
    display_name: str
    domain_hint: str

def graph_get_org(token: str, logger=None) -> OrgInfo:
    http = HttpClient(base_url=GRAPH, timeout=10.0, max_retries=2, logger=logger)
    try:
        data = http.get_json(
            "/v1.0/organization",
            headers={"Authorization": f"Bearer {token}"},
            params={"$select": "id,displayName,verifiedDomains"},
        )
    except HttpError as ex:
        raise AuthError(str(ex))
    finally:
        http.close()
    org = (data.get("value") or [{}])[0]
    name = org.get("displayName") or "Unknown Tenant"
    domains = org.get("verifiedDomains") or []
    default = next((d for d in domains if d.get("isDefault")), domains[0] if domains else None)
    domain_hint = default["name"] if default else ""
    return OrgInfo(tenant_id=org.get("id") or "", display_name=name, domain_hint=domain_hint)
