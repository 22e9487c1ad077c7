"""
Domain exceptions for business logic layer.

These exceptions are used in repositories and services to represent
business logic errors without coupling to FastAPI. Errors raised by the
pipeline and snapshot controllers carry a stable ``code`` and the HTTP
status the API layer should answer with.
"""


class SnaplineError(Exception):
    """Base exception for all Snapline-specific errors."""


class EntityNotFoundError(SnaplineError):
    """A row looked up by primary key does not exist."""


class ValidationError(SnaplineError):
    """Input rejected before any change was made."""


# Controller errors with stable codes
class ControllerError(SnaplineError):
    """Error with a stable machine-readable code and an HTTP status.

    Args:
        message: Human-readable description
        status_code: Overrides the class default status
    """

    code: str = "error"
    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ControllerError, EntityNotFoundError):
    """Referenced pipeline, stage or snapshot is absent."""

    code = "not_found"
    status_code = 404


class InvalidArgumentError(ControllerError, ValidationError):
    """Malformed request, e.g. a stage bound to both or neither target kinds."""

    code = "invalid_request"


class InvalidStageError(ControllerError):
    """Structural violation of the stage graph or a cross-team/application constraint."""

    code = "invalid_stage"


class InvalidNameError(ControllerError):
    """Missing or blank name on a rename."""

    code = "invalid_name"


class InvalidSourceInstanceError(ControllerError):
    """Source instance has no usable snapshot under the stage policy."""

    code = "invalid_source_instance"


class InvalidSourceDeviceError(ControllerError):
    """Source device has no usable snapshot under the stage policy."""

    code = "invalid_source_device"


class InvalidSourceSnapshotError(ControllerError):
    """Caller-supplied snapshot is missing, absent or owned by someone else."""

    code = "invalid_source_snapshot"


class InvalidSourceActionError(ControllerError):
    """Stage action is not supported for this kind of source."""

    code = "invalid_source_action"


class InvalidActionError(ControllerError):
    """Stage action value is not recognised at all."""

    code = "invalid_action"


class DeployInProgressError(ControllerError):
    """Target instance already has an operation in flight."""

    code = "deploy_in_progress"
    status_code = 409


class UnexpectedDeployError(ControllerError):
    """Failure inside a deploy once it started mutating state.

    The original exception is always chained as ``__cause__``.
    """

    code = "unexpected_error"
    status_code = 500


# Snapshot errors
class MissingCredentialSecretError(ControllerError):
    """Snapshot carries encrypted credentials but no secret was supplied."""

    code = "missing_credential_secret"

    def __init__(self) -> None:
        super().__init__("Missing credentialSecret")


class CredentialDecryptionError(ControllerError):
    """Credentials could not be decrypted with the given secret."""

    code = "invalid_credential_secret"

    def __init__(self, message: str = "Failed to decrypt credentials") -> None:
        super().__init__(message)


class InvalidSnapshotOwnerError(ControllerError):
    """Snapshot owner could not be resolved or has the wrong type."""

    code = "invalid_snapshot_owner"


# Entity lookups
class PipelineNotFoundError(NotFoundError):
    """Raised when a pipeline is not found."""

    def __init__(self, pipeline_id: int) -> None:
        super().__init__(f"Pipeline with ID {pipeline_id} not found")


class StageNotFoundError(NotFoundError):
    """Raised when a pipeline stage is not found."""

    def __init__(self, stage_id: int | None) -> None:
        super().__init__(f"Pipeline stage with ID {stage_id} not found")


class SnapshotNotFoundError(NotFoundError):
    """Raised when a snapshot is not found."""

    def __init__(self, snapshot_id: int) -> None:
        super().__init__(f"Snapshot with ID {snapshot_id} not found")


class InstanceNotFoundError(NotFoundError):
    """Raised when an instance is not found."""

    def __init__(self, instance_id: object) -> None:
        super().__init__(f"Instance with ID '{instance_id}' not found")


class DeviceNotFoundError(NotFoundError):
    """Raised when a device is not found."""

    def __init__(self, device_id: int) -> None:
        super().__init__(f"Device with ID {device_id} not found")


# Collaborator errors
class LauncherError(SnaplineError):
    """Raised when an instance launcher call fails."""

    pass


class LauncherConnectionError(LauncherError):
    """Raised when the instance launcher cannot be reached."""

    pass
