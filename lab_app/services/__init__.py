"""Application services used by the CLI."""

from lab_app.services.config_service import ConfigService
from lab_app.services.deploy_service import (
    DeploymentRequest,
    DeploymentResult,
    DeploymentService,
    DeployStage,
)
from lab_app.services.doctor_service import DoctorService
from lab_app.services.doctor_types import DoctorCheckGroup, DoctorCheckItem, DoctorReport

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
