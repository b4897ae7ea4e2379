"""
nextcloud-installer provisioning package public API.

File: src/nextcloud_installer/provisioning/__init__.py
Last updated: 2026-10-18

Purpose
- Export the resource reconciler, provisioning pipeline, retry supervisor and the
  collaborator contracts they drive.
"""

from nextcloud_installer.provisioning.collaborators import (
    REQUIRED_COMMANDS,
    Collaborators,
    system_collaborators,
)
from nextcloud_installer.provisioning.errors import (
    CertificateError,
    CollaboratorError,
    DatabaseError,
    DeploymentError,
    ExtractError,
    OperatorDeclinedAlternative,
    OperatorMustChooseDifferentName,
    OperatorMustChooseDifferentPath,
    PackageInstallError,
    PipelineStateError,
    ProvisioningError,
    ResourceStateError,
    ServiceControlError,
    TransferError,
)
from nextcloud_installer.provisioning.pipeline import (
    Failed,
    IdempotencyPolicy,
    PipelineResult,
    PipelineStatus,
    PipelineStep,
    ProvisioningContext,
    ProvisioningPipeline,
    StepOutcome,
    application_pipeline,
    base_stack_pipeline,
    build_application_steps,
    build_base_stack_steps,
)
from nextcloud_installer.provisioning.reconciler import (
    ManagedResource,
    Resolution,
    ResourceKind,
    ResourceReconciler,
)
from nextcloud_installer.provisioning.supervisor import RetrySupervisor

__all__ = [
    "REQUIRED_COMMANDS",
    "CertificateError",
    "CollaboratorError",
    "Collaborators",
    "DatabaseError",
    "DeploymentError",
    "ExtractError",
    "Failed",
    "IdempotencyPolicy",
    "ManagedResource",
    "OperatorDeclinedAlternative",
    "OperatorMustChooseDifferentName",
    "OperatorMustChooseDifferentPath",
    "PackageInstallError",
    "PipelineResult",
    "PipelineStateError",
    "PipelineStatus",
    "PipelineStep",
    "ProvisioningContext",
    "ProvisioningError",
    "ProvisioningPipeline",
    "Resolution",
    "ResourceKind",
    "ResourceReconciler",
    "ResourceStateError",
    "RetrySupervisor",
    "ServiceControlError",
    "StepOutcome",
    "TransferError",
    "application_pipeline",
    "base_stack_pipeline",
    "build_application_steps",
    "build_base_stack_steps",
    "system_collaborators",
]
