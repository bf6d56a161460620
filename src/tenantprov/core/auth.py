from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from tenantprov.core.constants import AUTH_SCOPES, PUBLIC_CLIENT_ID

class AuthError(Exception):
    code = "auth_error"; hint = "Unknown error."
    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if hint: self.hint = hint

class InvalidTenantId(AuthError):
    code = "invalid_tenant_id"; hint = "Tenant ID invalid or unreachable."
class InvalidClientId(AuthError):
    code = "invalid_client_id"; hint = "Client ID invalid."
class NetworkError(AuthError):
    code = "network_error"; hint = "Network or timeout issue."
class ConsentRequired(AuthError):
    code = "consent_required"; hint = "Admin consent required for Graph permissions."
class SignInCancelled(AuthError):
    code = "sign_in_cancelled"; hint = "Sign-in was cancelled or timed out."

@dataclass
class Session:
    """Authenticated Graph session. Passed explicitly to everything that talks to Graph."""
    tenant_id: str
    display_name: str
    domain_hint: str
    token: str
    username: str = ""
    scopes: List[str] = field(default_factory=list)
    msal_app: Any = field(default=None, repr=False, compare=False)

    def token_provider(self) -> str:
        return self.token

def connect(
    scopes: Optional[List[str]] = None,
    *,
    tenant: str = "organizations",
    client_id: str = PUBLIC_CLIENT_ID,
    use_device_code: bool = False,
    prompt: Callable[[str], None] = print,
    logger=None,
) -> Session:
    scopes = list(scopes or AUTH_SCOPES)
    tenant = (tenant or "").strip() or "organizations"
    client_id = (client_id or "").strip()
    if not client_id: raise InvalidClientId("Client ID required.")

    # helpers do the heavy lifting
    from tenantprov.core.auth_helpers import (
        build_authority, build_public_app, msal_acquire_token_delegated, graph_get_org
    )

    app = build_public_app(client_id, build_authority(tenant))
    res = msal_acquire_token_delegated(app, scopes, use_device_code=use_device_code, prompt=prompt)
    token = res["access_token"]
    claims = res.get("id_token_claims") or {}

    try:
        org = graph_get_org(token, logger=logger)
        tenant_id, display, domain = org.tenant_id or claims.get("tid", ""), org.display_name, org.domain_hint
    except AuthError:
        tenant_id, display, domain = claims.get("tid", ""), "Unknown Tenant", ""

    username = claims.get("preferred_username", "")
    print(f"[auth] Signed in as {username or 'unknown user'} to tenant {tenant_id or tenant}")

    return Session(
        tenant_id=tenant_id,
        display_name=display,
        domain_hint=domain,
        token=token,
        username=username,
        scopes=scopes,
        msal_app=app,
    )

def disconnect(session: Session) -> None:
    """Forget the signed-in accounts so the token cache holds nothing after the run."""
    app = session.msal_app
    if app is not None:
        for account in app.get_accounts():
            app.remove_account(account)
    session.token = ""
