"""
Exceptions for Snapline.

Domain exceptions live in :mod:`snapline.exceptions.domain` and are safe to
raise from services and repositories. HTTP exceptions in
:mod:`snapline.exceptions.http` are reserved for routers.
"""

from .domain import (
    ControllerError,
    CredentialDecryptionError,
    DeployInProgressError,
    EntityNotFoundError,
    InvalidActionError,
    InvalidArgumentError,
    InvalidNameError,
    InvalidSnapshotOwnerError,
    InvalidSourceActionError,
    InvalidSourceDeviceError,
    InvalidSourceInstanceError,
    InvalidSourceSnapshotError,
    InvalidStageError,
    MissingCredentialSecretError,
    NotFoundError,
    SnaplineError,
    UnexpectedDeployError,
    ValidationError,
)
from .http import BAD_REQUEST, UNAUTHORIZED, CustomHTTPException

__all__ = [
    "BAD_REQUEST",
    "UNAUTHORIZED",
    "ControllerError",
    "CredentialDecryptionError",
    "CustomHTTPException",
    "DeployInProgressError",
    "EntityNotFoundError",
    "InvalidActionError",
    "InvalidArgumentError",
    "InvalidNameError",
    "InvalidSnapshotOwnerError",
    "InvalidSourceActionError",
    "InvalidSourceDeviceError",
    "InvalidSourceInstanceError",
    "InvalidSourceSnapshotError",
    "InvalidStageError",
    "MissingCredentialSecretError",
    "NotFoundError",
    "SnaplineError",
    "UnexpectedDeployError",
    "ValidationError",
]
