from __future__ import annotations

import logging

import pytest

from lab_common.config import (
    collect_env_overrides,
    parse_bool_env,
    parse_float_env,
    parse_str_env,
)
from lab_common.logging import configure_logging, phase_logger, run_log
from lab_common.run_info import RunInfo, generate_run_id

pytestmark = [pytest.mark.unit_common]


@pytest.mark.parametrize("raw,expected", [("1", True), ("Yes", True), ("off", False), (None, None)])
def test_parse_bool_env(raw, expected) -> None:
    assert parse_bool_env(raw) is expected


def test_numeric_and_string_parsers() -> None:
    assert parse_float_env("80.5") == 80.5
    assert parse_str_env("  ") is None
    assert parse_str_env(" /opt/vagrant ") == "/opt/vagrant"


def test_collect_env_overrides_skips_unset_values() -> None:
    mapping = {
        "vagrant_path": ("LAB_VAGRANT_PATH", parse_str_env),
        "min_free_disk_gb": ("LAB_MIN_FREE_DISK_GB", parse_float_env),
    }
    overrides = collect_env_overrides(mapping, {"LAB_MIN_FREE_DISK_GB": "40"})
    assert overrides == {"min_free_disk_gb": 40.0}


def test_configure_logging_force_installs_handler(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("LAB_LOG_LEVEL", raising=False)
    log_file = tmp_path / "lab.log"
    root = logging.getLogger()
    saved = list(root.handlers)
    saved_level = root.level
    try:
        configure_logging(level="warning", log_file=str(log_file), json=True, force=True)
        assert root.level == logging.WARNING
        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        phase_logger("lab.test", "preflight").warning("disk low")
        for handler in root.handlers:
            handler.flush()
        assert "disk low" in log_file.read_text()
    finally:
        for handler in list(root.handlers):
            if handler not in saved:
                handler.close()
        root.handlers[:] = saved
        root.setLevel(saved_level)


def test_run_ids_are_unique_and_sortable(tmp_path) -> None:
    first, second = generate_run_id(), generate_run_id()
    assert first != second
    assert first.startswith("run-")
    info = RunInfo(run_id=first, state_dir=tmp_path)
    assert info.log_dir == tmp_path / "logs" / first


def test_run_log_is_detached_after_the_block(tmp_path) -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    previous_level = root.level
    root.setLevel(logging.INFO)
    try:
        with run_log(tmp_path / "logs" / "run-1" / "labctl.log") as path:
            logging.getLogger("lab.test").info("bringing up dc")
        assert '"bringing up dc"' in path.read_text()
        assert root.handlers == before
    finally:
        root.setLevel(previous_level)
