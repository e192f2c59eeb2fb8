from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from lab_app.api import ConfigService, DoctorService
from lab_common.api import configure_logging
from lab_provisioner.api import LabSettings
from lab_ui.tui.protocols import UI


@dataclass
class UIContext:
    """Container for UI services and state, initialized lazily."""
    headless: bool = False
    lab_dir: Optional[Path] = None
    config_path: Optional[Path] = None

    _ui: Optional[UI] = None
    _config_service: Optional[ConfigService] = None

    @property
    def ui(self) -> UI:
        if self._ui is None:
            if self.headless:
                from lab_ui.tui.headless import HeadlessUI
                self._ui = HeadlessUI()
            else:
                from lab_ui.tui.facade import TUI
                self._ui = TUI()
        return self._ui

    @ui.setter
    def ui(self, value: UI):
        self._ui = value

    @property
    def config_service(self) -> ConfigService:
        if self._config_service is None:
            self._config_service = ConfigService()
        return self._config_service

    @config_service.setter
    def config_service(self, value: ConfigService):
        self._config_service = value

    def load_settings(self, **overrides: Any) -> LabSettings:
        """Settings for the selected lab directory, with CLI overrides applied."""
        lab_dir = self.lab_dir or Path.cwd()
        return self.config_service.load(lab_dir, self.config_path, overrides)

    def doctor_service(self, settings: LabSettings) -> DoctorService:
        return DoctorService(settings)


__all__ = ["UIContext", "configure_logging"]
