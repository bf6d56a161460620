from __future__ import annotations
import pathlib
import time
from typing import Any, Dict, Optional, TYPE_CHECKING

from tenantprov.core.cache import read_json, records_dir, write_json_atomic
from tenantprov.core.models import to_graph_datetime

if TYPE_CHECKING:
    from tenantprov.app.provisioner import ProvisionResult

def record_path(tenant_id: str, app_id: str) -> pathlib.Path:
    return records_dir(tenant_id) / f"{app_id}.json"

def write_provision_record(result: "ProvisionResult") -> pathlib.Path:
    """
    Persist what was created, for later cleanup or audit.
    The secret text is never written; only its key id and validity window.
    """
    cred = result.credential
    out: Dict[str, Any] = {
        "written_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "tenant_id": result.tenant_id,
        "display_name": result.display_name,
        "app_id": result.app_id,
        "object_id": result.object_id,
        "service_principal_id": result.service_principal_id,
        "service_principal_created": result.service_principal_created,
        "permission_grant_id": result.permission_grant_id,
        "app_role_assignment_id": result.app_role_assignment_id,
        "secret": {
            "key_id": cred.key_id,
            "display_name": cred.display_name,
            "start": to_graph_datetime(cred.start_date_time),
            "end": to_graph_datetime(cred.end_date_time),
        },
    }
    path = record_path(result.tenant_id, result.app_id)
    write_json_atomic(path, out)
    return path

def read_provision_record(tenant_id: str, app_id: str) -> Optional[Dict[str, Any]]:
    return read_json(record_path(tenant_id, app_id))
