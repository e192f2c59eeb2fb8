"""Public API surface for lab_app."""

from lab_app.services import (
    ConfigService,
    DeploymentRequest,
    DeploymentResult,
    DeploymentService,
    DeployStage,
    DoctorCheckGroup,
    DoctorCheckItem,
    DoctorReport,
    DoctorService,
)

__all__ = [
    "ConfigService",
    "DeployStage",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentService",
    "DoctorCheckGroup",
    "DoctorCheckItem",
    "DoctorReport",
    "DoctorService",
]
