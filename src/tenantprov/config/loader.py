import json, os, pathlib

SETTINGS_PATH = pathlib.Path("config/appsettings.json")

def load_appsettings(path: pathlib.Path | None = None) -> dict:
    if path is None:
        env = os.environ.get("TENANTPROV_SETTINGS")
        path = pathlib.Path(env) if env else SETTINGS_PATH
    p = pathlib.Path(path)
    if not p.exists():
        return {}
    try:
        text = p.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
    except (OSError, ValueError):
        # malformed JSON → fall back to defaults
        return {}
    return data if isinstance(data, dict) else {}

def get_http_config(settings: dict | None = None):
    cfg = (settings if settings is not None else load_appsettings()).get("http", {})
    return {
        "timeout_seconds": int(cfg.get("timeout_seconds", 30)),
        "max_retries": int(cfg.get("max_retries", 4)),
    }

def get_provisioning_config(settings: dict | None = None):
    """
    Defaults for the provisioning run. Keys absent from appsettings.json keep
    the built-in values; CLI flags are applied on top by the caller.
    """
    from tenantprov.core import constants as c

    cfg = (settings if settings is not None else load_appsettings()).get("provisioning", {})
    return {
        "app_display_name": str(cfg.get("app_display_name") or c.APP_DISPLAY_NAME),
        "secret_label": str(cfg.get("secret_label") or c.SECRET_LABEL),
        "tenant": str(cfg.get("tenant") or "organizations"),
        "client_id": str(cfg.get("client_id") or c.PUBLIC_CLIENT_ID),
        "rollback_on_failure": _as_bool(cfg.get("rollback_on_failure", False)),
    }

def _as_bool(value) -> bool:
    # the string "false" stays false
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return False
