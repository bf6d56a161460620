# src/tenantprov/app/provisioner.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional

from tenantprov.app import event_bus
from tenantprov.app.output import ConsoleLogger, OutputSink
from tenantprov.core import auth as core_auth
from tenantprov.core import constants as c
from tenantprov.core import provisioning_service as ps
from tenantprov.core.directory_service import DirectoryClient
from tenantprov.core.errors import (
    DuplicateApplicationError, ProvisioningError, RemoteOperationError, ValidationError
)
from tenantprov.core.graph_client import GraphClient
from tenantprov.core.models import CreateApplicationRequest, PasswordCredential
from tenantprov.core.records import read_provision_record, write_provision_record

STEP_TOPIC = "provision.step"


@dataclass
class ProvisionResult:
    tenant_id: str
    display_name: str
    app_id: str
    object_id: str
    service_principal_id: str
    service_principal_created: bool
    permission_grant_id: str
    app_role_assignment_id: str
    credential: PasswordCredential


@dataclass
class ProvisionSettings:
    app_display_name: str = c.APP_DISPLAY_NAME
    secret_label: str = c.SECRET_LABEL
    tenant: str = "organizations"
    client_id: str = c.PUBLIC_CLIENT_ID
    use_device_code: bool = False
    rollback_on_failure: bool = False
    write_record: bool = True
    scopes: Optional[List[str]] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], **overrides) -> "ProvisionSettings":
        known = {k: v for k, v in cfg.items() if k in cls.__dataclass_fields__}
        known.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**known)


def _default_directory(session: core_auth.Session, logger) -> DirectoryClient:
    return DirectoryClient(GraphClient(session.token_provider, logger=logger))


class Provisioner:
    """
    One provisioning run: sign in, check, resolve, create, consent, issue a secret, sign out.
    Every remote mutation commits on its own; there is no transaction around the run.
    """
    def __init__(
        self,
        settings: ProvisionSettings,
        sink: OutputSink,
        *,
        connect: Callable[..., core_auth.Session] = core_auth.connect,
        directory_factory: Callable[[core_auth.Session, Any], DirectoryClient] = _default_directory,
        clock: Callable[[], datetime] | None = None,
        logger=None,
    ):
        self.settings = settings
        self.sink = sink
        self._connect = connect
        self._directory_factory = directory_factory
        self._clock = clock
        self.log = logger or ConsoleLogger()

    def _step(self, step: str, status: str, **data):
        payload = {"step": step, "status": status}
        payload.update(data)
        event_bus.publish(STEP_TOPIC, payload)

    # === pipeline ===
    def run(self) -> ProvisionResult:
        s = self.settings
        self._step("connect", "started", tenant=s.tenant)
        session = self._connect(
            s.scopes or c.AUTH_SCOPES,
            tenant=s.tenant,
            client_id=s.client_id,
            use_device_code=s.use_device_code,
            logger=self.log,
        )
        self._step("connect", "done", tenant_id=session.tenant_id, user=session.username)
        directory = None
        try:
            directory = self._directory_factory(session, self.log)
            return self._provision(session, directory)
        finally:
            self.teardown(session, directory)

    def _provision(self, session: core_auth.Session, directory: DirectoryClient) -> ProvisionResult:
        name = self.settings.app_display_name

        self._step("check_duplicate", "started", display_name=name)
        existing = ps.find_application_by_display_name(directory, name)
        if existing:
            self._report_previous_run(session.tenant_id, existing.app_id)
            raise DuplicateApplicationError(name, existing.app_id, existing.id)
        self._step("check_duplicate", "done")

        # Both ids must resolve before anything is created
        self._step("resolve_permissions", "started")
        scope = ps.resolve_delegated_permission_id(directory, c.EXCHANGE_APP_ID, c.EWS_SCOPE_VALUE)
        role = ps.resolve_app_role_id(directory, c.EXCHANGE_DISPLAY_NAME, c.FULL_ACCESS_ROLE_VALUE)
        self._step("resolve_permissions", "done", scope_id=scope.id, role_id=role.id)

        self._step("create_application", "started")
        app = ps.create_application(directory, CreateApplicationRequest(
            display_name=name,
            required_resource_access=[ps.build_required_resource_access(c.EXCHANGE_APP_ID, scope, role)],
        ))
        if not app.id or not app.app_id:
            raise ValidationError("Graph returned an application without id/appId.")
        self._step("create_application", "done", app_id=app.app_id, object_id=app.id)

        try:
            return self._finish(session, directory, app, scope, role)
        except ProvisioningError as e:
            self._handle_partial(directory, app.id, e)
            raise

    def _finish(self, session, directory, app, scope, role) -> ProvisionResult:
        self._step("ensure_service_principal", "started")
        sp, created = ps.ensure_service_principal(directory, app.app_id)
        if not sp.id:
            raise ValidationError("Graph returned a service principal without an id.")
        self._step("ensure_service_principal", "done", service_principal_id=sp.id, created=created)

        self._step("grant_consent", "started")
        grant = ps.grant_delegated_permission(directory, sp.id, scope.resource.id, scope.value)
        assignment = ps.assign_app_role(directory, sp.id, sp.id, role.id, role.resource.id)
        self._step("grant_consent", "done", grant_id=grant.id, assignment_id=assignment.id)

        self._step("issue_secret", "started")
        start, end = ps.credential_window(self._clock() if self._clock else None)
        cred = ps.issue_password_credential(directory, app.id, start, end, self.settings.secret_label)
        if not cred.secret_text:
            raise ValidationError("Graph did not return the secret text.")
        self._step("issue_secret", "done", key_id=cred.key_id, end=end.isoformat())

        result = ProvisionResult(
            tenant_id=session.tenant_id,
            display_name=app.display_name or self.settings.app_display_name,
            app_id=app.app_id,
            object_id=app.id,
            service_principal_id=sp.id,
            service_principal_created=created,
            permission_grant_id=grant.id,
            app_role_assignment_id=assignment.id,
            credential=cred,
        )
        self.sink.emit(result)
        if self.settings.write_record:
            try:
                path = write_provision_record(result)
                self.log.info(f"Provisioning record written to {path}")
            except OSError as ex:
                self.log.warning(f"could not write provisioning record: {ex}")
        return result

    def _report_previous_run(self, tenant_id: str, app_id: str) -> None:
        try:
            record = read_provision_record(tenant_id, app_id)
        except OSError as ex:
            self.log.debug(f"no provisioning record readable: {ex}")
            return
        if not record:
            return
        secret = record.get("secret") or {}
        self.log.info(
            f"Provisioned by an earlier run on {record.get('written_at', '?')}: "
            f"objectId={record.get('object_id', '?')}, "
            f"servicePrincipalId={record.get('service_principal_id', '?')}, "
            f"secret {secret.get('key_id', '?')} valid until {secret.get('end', '?')}"
        )

    def _handle_partial(self, directory: DirectoryClient, object_id: str, error: ProvisioningError) -> None:
        if self.settings.rollback_on_failure:
            self._step("rollback", "started", object_id=object_id)
            try:
                directory.delete_application(object_id)
                self.log.info(f"Rolled back: deleted application {object_id}")
                self._step("rollback", "done", object_id=object_id)
                return
            except RemoteOperationError as ex:
                self.log.error(f"rollback failed: {ex}")
                self._step("rollback", "failed", object_id=object_id, error=str(ex))

        if isinstance(error, RemoteOperationError) and not error.partial_object_id:
            error.mark_partial(object_id)
        self.log.error(
            f"Application {object_id} is partially provisioned; delete it before re-running."
        )

    def teardown(self, session: core_auth.Session, directory: DirectoryClient | None = None) -> None:
        """Best effort; the provisioning work is already committed either way."""
        if directory is not None:
            try:
                directory.close()
            except Exception as ex:
                self.log.debug(f"teardown ignored (close): {ex!r}")
        try:
            core_auth.disconnect(session)
            self._step("teardown", "done")
        except Exception as ex:
            self.log.debug(f"teardown ignored (sign-out): {ex!r}")
