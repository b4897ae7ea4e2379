"""Error taxonomy for provisioning.

Collaborator failures and operator refusals both propagate untouched to the
retry supervisor; nothing below it recovers from them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nextcloud_installer.provisioning.reconciler import ManagedResource


class ProvisioningError(RuntimeError):
    """Base error for any failure that ends a pipeline run."""


class CollaboratorError(ProvisioningError):
    """An external system (package manager, database, web server, CA) failed."""


class PackageInstallError(CollaboratorError):
    pass


class ServiceControlError(CollaboratorError):
    pass


class DatabaseError(CollaboratorError):
    pass


class TransferError(CollaboratorError):
    pass


class ExtractError(CollaboratorError):
    pass


class CertificateError(CollaboratorError):
    pass


class SiteActivationError(CollaboratorError):
    """Web-server module or site activation failed."""


class OwnershipError(CollaboratorError):
    """Ownership or permission bits could not be applied to the deployed tree."""


class DeploymentError(ProvisioningError):
    """The unpacked archive could not be moved into the install directory."""


class OperatorDeclinedAlternative(ProvisioningError):
    """The operator refused every resolution offered for a resource conflict."""

    def __init__(self, resource: ManagedResource, message: str) -> None:
        self.resource = resource
        super().__init__(message)


class OperatorMustChooseDifferentPath(OperatorDeclinedAlternative):
    pass


class OperatorMustChooseDifferentName(OperatorDeclinedAlternative):
    pass


class ResourceStateError(RuntimeError):
    """A managed resource was probed or resolved more than once."""


class PipelineStateError(RuntimeError):
    """A pipeline was asked to leave a terminal state."""


__all__ = [
    "CertificateError",
    "CollaboratorError",
    "DatabaseError",
    "DeploymentError",
    "ExtractError",
    "OperatorDeclinedAlternative",
    "OperatorMustChooseDifferentName",
    "OperatorMustChooseDifferentPath",
    "OwnershipError",
    "PackageInstallError",
    "PipelineStateError",
    "ProvisioningError",
    "ResourceStateError",
    "ServiceControlError",
    "SiteActivationError",
    "TransferError",
]
