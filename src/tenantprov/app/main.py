# src/tenantprov/app/main.py
from __future__ import annotations
import argparse
from typing import List, Optional

from tenantprov.app import event_bus
from tenantprov.app.output import ClipboardSink, ConsoleLogger, ConsoleSink, MultiSink
from tenantprov.app.provisioner import STEP_TOPIC, ProvisionSettings, Provisioner
from tenantprov.config.loader import get_provisioning_config
from tenantprov.core.auth import AuthError
from tenantprov.core.errors import ProvisioningError

_STEP_LABELS = {
    "connect": "Signing in",
    "check_duplicate": "Checking for an existing application",
    "resolve_permissions": "Resolving Exchange Online permission ids",
    "create_application": "Creating application",
    "ensure_service_principal": "Ensuring service principal",
    "grant_consent": "Granting tenant-wide admin consent",
    "issue_secret": "Issuing client secret",
    "rollback": "Rolling back",
}

def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tenantprov",
        description="Register the MigrationWiz application with EWS permissions, admin consent and a one-year secret.",
    )
    p.add_argument("--tenant", help="tenant id or domain to sign in to (default: organizations)")
    p.add_argument("--app-name", dest="app_display_name", help="display name of the application to create")
    p.add_argument("--client-id", help="public client used for sign-in")
    p.add_argument("--device-code", action="store_true", help="sign in with a device code instead of a browser")
    p.add_argument("--no-clipboard", action="store_true", help="do not copy the secret to the clipboard")
    p.add_argument("--no-record", action="store_true", help="do not write the provisioning record file")
    p.add_argument("--rollback-on-failure", action="store_true", default=None,
                   help="delete the new application if a later step fails")
    p.add_argument("-v", "--verbose", action="store_true", help="trace HTTP calls")
    return p.parse_args(argv)

def _print_progress(payload):
    label = _STEP_LABELS.get(payload.get("step"))
    if label and payload.get("status") == "started":
        print(f"[provision] {label}...")

def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    log = ConsoleLogger("provision", verbose=args.verbose)

    settings = ProvisionSettings.from_config(
        get_provisioning_config(),
        tenant=args.tenant,
        app_display_name=args.app_display_name,
        client_id=args.client_id,
        use_device_code=args.device_code,
        rollback_on_failure=args.rollback_on_failure,
        write_record=not args.no_record,
    )
    sinks = [ConsoleSink()]
    if not args.no_clipboard:
        sinks.append(ClipboardSink(ConsoleLogger("clipboard")))

    event_bus.subscribe(STEP_TOPIC, _print_progress)
    try:
        Provisioner(settings, MultiSink(sinks), logger=log).run()
    except AuthError as e:
        log.error(f"sign-in failed [{e.code}]: {e}")
        log.info(f"hint: {e.hint}")
        return 1
    except ProvisioningError as e:
        log.error(f"[{e.code}] {e}")
        log.info(f"hint: {e.hint}")
        return 1
    finally:
        event_bus.unsubscribe(STEP_TOPIC, _print_progress)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
