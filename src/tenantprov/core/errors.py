from __future__ import annotations

from tenantprov.http.errors import HttpError

class ProvisioningError(Exception):
    code = "provisioning_error"; hint = "Provisioning failed."
    def __init__(self, message: str = "", *, hint: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if hint: self.hint = hint

class DuplicateApplicationError(ProvisioningError):
    code = "duplicate_application"
    hint = "An application with this display name already exists. Remove it or pick another name."
    def __init__(self, display_name: str, app_id: str = "", object_id: str = ""):
        super().__init__(f"Application '{display_name}' already exists (appId={app_id or '?'}).")
        self.display_name = display_name
        self.app_id = app_id
        self.object_id = object_id

class PermissionNotFoundError(ProvisioningError):
    code = "permission_not_found"
    hint = "The resource service principal does not expose the requested permission in this tenant."
    def __init__(self, resource: str, value: str, kind: str):
        super().__init__(f"{kind} '{value}' not found on service principal '{resource}'.")
        self.resource = resource
        self.value = value
        self.kind = kind

class ValidationError(ProvisioningError):
    code = "validation_error"; hint = "A request was missing a required field."

class RemoteOperationError(ProvisioningError):
    """A Graph call that creates or changes something failed. Nothing is retried past this point."""
    code = "remote_operation_failed"
    hint = "Check the Graph error above. Objects created earlier in the run are left in place."
    def __init__(self, operation: str, cause: Exception, *, partial_object_id: str = ""):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.status = cause.status if isinstance(cause, HttpError) else None
        self.url = cause.url if isinstance(cause, HttpError) else ""
        self.partial_object_id = ""
        if partial_object_id:
            self.mark_partial(partial_object_id)

    def mark_partial(self, object_id: str) -> None:
        self.partial_object_id = object_id
        self.hint = (
            f"Application object {object_id} was created before the failure. "
            "Delete it before re-running, or the duplicate-name check will stop the next run."
        )
