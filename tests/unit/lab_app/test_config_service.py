from __future__ import annotations

from pathlib import Path

import pytest

from lab_app.services.config_service import ConfigService
from lab_common.api import ConfigurationError, HostRole
from lab_provisioner.api import Backend

pytestmark = [pytest.mark.unit_app]


def test_defaults_without_config_file(lab_dir: Path) -> None:
    settings = ConfigService(environ={}).load(lab_dir)
    assert settings.lab_dir == lab_dir.resolve()
    assert settings.vagrant_dir == lab_dir.resolve() / "Vagrant"
    assert settings.state_dir == lab_dir.resolve() / ".labctl"
    assert settings.min_free_disk_gb == 80
    assert settings.required_plugins == ["vagrant-reload"]
    assert settings.address_for(HostRole.WORKSTATION, 3) == "192.168.38.113"
    assert [p.name for p in settings.probes] == ["Splunk", "Fleet", "Microsoft ATA"]


def test_yaml_env_and_overrides_layer_in_order(lab_dir: Path) -> None:
    (lab_dir / "labctl.yaml").write_text(
        "vagrant_path: /from/yaml/vagrant\n"
        "packer_path: /from/yaml/packer\n"
        "min_free_disk_gb: 10\n"
        "boxes_dir: cache/boxes\n"
        "artifact_base_url: https://mirror.example/boxes/\n"
    )
    service = ConfigService(environ={"LAB_PACKER_PATH": "/from/env/packer", "LAB_MIN_FREE_DISK_GB": "20"})
    settings = service.load(lab_dir, overrides={"min_free_disk_gb": 30, "vagrant_path": None})
    assert settings.vagrant_path == "/from/yaml/vagrant"
    assert settings.packer_path == "/from/env/packer"
    assert settings.min_free_disk_gb == 30
    assert settings.boxes_dir == lab_dir.resolve() / "cache" / "boxes"
    assert settings.artifact_base_url == "https://mirror.example/boxes"


def test_explicit_config_path_is_used(lab_dir: Path, tmp_path: Path) -> None:
    config = tmp_path / "custom.yaml"
    config.write_text(
        "artifacts:\n"
        "  windows_10:\n"
        "    build_definition: win10.json\n"
        "    checksums:\n"
        "      virtualbox: ABCDEF\n"
        "guest_steps:\n"
        "  logger: [\"uptime\"]\n"
    )
    settings = ConfigService(environ={}).load(lab_dir, config_path=config)
    assert settings.artifacts["windows_10"].checksums[Backend.VIRTUALBOX] == "abcdef"
    assert settings.artifacts_for({HostRole.DOMAIN_CONTROLLER, HostRole.WORKSTATION}) == {"windows_10"}
    assert settings.guest_steps == {"logger": ["uptime"]}


def test_missing_explicit_config_is_an_error(lab_dir: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigService(environ={}).load(lab_dir, config_path=lab_dir / "nope.yaml")


@pytest.mark.parametrize(
    "content",
    ["unknown_key: 1\n", "artifact_base_url: ftp://boxes\n", "- a\n- b\n", "key: [unclosed\n"],
)
def test_invalid_config_is_a_configuration_error(lab_dir: Path, content: str) -> None:
    (lab_dir / "labctl.yaml").write_text(content)
    with pytest.raises(ConfigurationError):
        ConfigService(environ={}).load(lab_dir)


def test_default_probes_follow_overridden_addresses(lab_dir: Path) -> None:
    (lab_dir / "labctl.yaml").write_text(
        "network_prefix: 10.0.5\n"
        "host_octets:\n"
        "  logger: 15\n"
    )
    settings = ConfigService(environ={}).load(lab_dir)
    assert settings.address_for(HostRole.FORWARDER) == "10.0.5.103"
    assert [p.url for p in settings.probes] == [
        "https://10.0.5.15:8000/en-US/account/login?return_to=%2Fen-US%2F",
        "https://10.0.5.15:8412",
        "https://10.0.5.103",
    ]


def test_probe_without_scheme_is_a_configuration_error(lab_dir: Path) -> None:
    (lab_dir / "labctl.yaml").write_text(
        "probes:\n"
        "  - name: Splunk\n"
        "    url: logger\n"
        "    marker: Splunk\n"
    )
    with pytest.raises(ConfigurationError):
        ConfigService(environ={}).load(lab_dir)
