import json
import textwrap

import pytest

from istio_config_validator import cluster
from istio_config_validator.config import ValidatorSettings, get_settings
from istio_config_validator.main import (
    EXIT_INVALID,
    EXIT_LOAD_ERROR,
    EXIT_OK,
    ValidationReport,
    main,
    render_text,
)
from istio_config_validator.registry import Config, ResourceKind

VALID = textwrap.dedent("""
    apiVersion: networking.istio.io/v1alpha3
    kind: VirtualService
    metadata:
      name: reviews
    spec:
      hosts: [reviews]
      http:
      - route:
        - destination:
            host: reviews
""")

INVALID = textwrap.dedent("""
    apiVersion: networking.istio.io/v1alpha3
    kind: Gateway
    metadata:
      name: gw
      namespace: istio-system
    spec:
      servers: []
""")


@pytest.fixture
def manifests(tmp_path):
    valid = tmp_path / "valid.yaml"
    valid.write_text(VALID, encoding="utf-8")
    invalid = tmp_path / "invalid.yaml"
    invalid.write_text(INVALID, encoding="utf-8")
    return str(valid), str(invalid)


def test_valid_file_exits_zero(manifests, capsys):
    valid, _ = manifests
    assert main(["-f", valid]) == EXIT_OK
    out = capsys.readouterr().out
    assert out.splitlines() == ["OK      VirtualService default/reviews", "1 checked, 0 invalid"]


def test_invalid_file_exits_one(manifests, capsys):
    valid, invalid = manifests
    assert main(["-f", valid, "-f", invalid]) == EXIT_INVALID
    lines = capsys.readouterr().out.splitlines()
    assert lines[1] == f"INVALID Gateway istio-system/gw ({invalid}[0])"
    assert lines[2] == "    - gateway must have at least one server"
    assert lines[-1] == "2 checked, 1 invalid"


def test_json_output(manifests, capsys):
    _, invalid = manifests
    assert main(["-f", invalid, "--output", "json"]) == EXIT_INVALID
    [report] = json.loads(capsys.readouterr().out)
    assert report == {
        "kind": "Gateway",
        "name": "gw",
        "namespace": "istio-system",
        "source": f"{invalid}[0]",
        "valid": False,
        "errors": ["gateway must have at least one server"],
    }


def test_directory_input(manifests, tmp_path, capsys):
    assert main(["-d", str(tmp_path)]) == EXIT_INVALID
    assert capsys.readouterr().out.splitlines()[-1] == "2 checked, 1 invalid"


def test_load_error_exits_two(tmp_path, capsys):
    bad = tmp_path / "bad.yaml"
    bad.write_text("kind: Deployment\nmetadata:\n  name: web\n", encoding="utf-8")
    assert main(["-f", str(bad)]) == EXIT_LOAD_ERROR
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "error:" in captured.err
    assert "unknown config kind 'Deployment'" in captured.err


def test_nothing_to_validate():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 2


def test_settings_file_and_overrides(manifests, tmp_path, capsys):
    valid, _ = manifests
    settings_file = tmp_path / "settings.json"
    ValidatorSettings(output="json", default_namespace="bookinfo").to_file(str(settings_file))

    assert main(["-f", valid, "--settings", str(settings_file)]) == EXIT_OK
    [report] = json.loads(capsys.readouterr().out)
    assert report["namespace"] == "bookinfo"
    assert get_settings().output == "json"

    assert main(["-f", valid, "--settings", str(settings_file), "--output", "text"]) == EXIT_OK
    assert capsys.readouterr().out.startswith("OK      VirtualService bookinfo/reviews")


def test_invalid_settings_file(manifests, tmp_path, capsys):
    valid, _ = manifests
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps({"output": "xml"}), encoding="utf-8")
    assert main(["-f", valid, "--settings", str(settings_file)]) == EXIT_LOAD_ERROR
    assert "invalid settings file" in capsys.readouterr().err


def test_skip_unknown_kinds_from_settings(tmp_path, capsys):
    mixed = tmp_path / "mixed.yaml"
    mixed.write_text("kind: Deployment\nmetadata:\n  name: web\n---\n" + VALID, encoding="utf-8")
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps({"skip_unknown_kinds": True}), encoding="utf-8")
    assert main(["-f", str(mixed), "--settings", str(settings_file)]) == EXIT_OK
    assert capsys.readouterr().out.splitlines()[-1] == "1 checked, 0 invalid"


def test_mesh_and_proxy_config(tmp_path, capsys):
    mesh = tmp_path / "mesh.yaml"
    mesh.write_text("mixerCheckServer: istio-policy:9091\n", encoding="utf-8")
    proxy = tmp_path / "proxy.yaml"
    proxy.write_text("drainDuration: 5s\nparentShutdownDuration: 3s\n", encoding="utf-8")

    assert main(["--mesh-config", str(mesh), "--proxy-config", str(proxy)]) == EXIT_INVALID
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "OK      MeshConfig mesh"
    assert lines[1] == f"INVALID ProxyConfig proxy ({proxy})"
    assert lines[2] == ("    - invalid parent and drain time combination"
                        "parent shutdown time 3s must be greater than drain time 5s")


def test_cluster_load_errors_exit_two(monkeypatch, capsys):
    class FakeSource:
        def __init__(self, kubeconfig=None, context=None):
            self.load_errors = []
            self.context = context

        def list_configs(self, default_namespace="default"):
            self.load_errors.append(("cluster:gateways/default/gw", "boom"))
            return []

    monkeypatch.setattr(cluster, "ClusterSource", FakeSource)
    assert main(["--cluster", "--context", "prod"]) == EXIT_LOAD_ERROR
    assert "1 cluster objects could not be loaded" in capsys.readouterr().err


def test_cluster_configs_are_validated(monkeypatch, capsys):
    class FakeSource:
        def __init__(self, kubeconfig=None, context=None):
            self.load_errors = []

        def list_configs(self, default_namespace="default"):
            return [Config(ResourceKind.RBAC_CONFIG, "default", "", None, "cluster:rbacconfigs//default")]

    monkeypatch.setattr(cluster, "ClusterSource", FakeSource)
    assert main(["--cluster"]) == EXIT_INVALID
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "INVALID RbacConfig default (cluster:rbacconfigs//default)"
    assert lines[1] == "    - cannot cast to RbacConfig"


def test_render_text_without_namespace():
    reports = [ValidationReport(kind="MeshConfig", name="mesh", namespace="", source="mesh.yaml")]
    assert render_text(reports) == "OK      MeshConfig mesh\n1 checked, 0 invalid"


@pytest.mark.parametrize(
    "text, message",
    [
        ("kind: VirtualService\nmetadata:\n  name: r\nspec:\n  hosts: [r]\n  http:\n  - timeout: {seconds: abc}\n",
         "invalid duration"),
        ("kind: VirtualService\nmetadata: oops\nspec:\n  hosts: [r]\n", "metadata must be a mapping"),
    ],
)
def test_malformed_manifest_exits_two(tmp_path, capsys, text, message):
    bad = tmp_path / "bad.yaml"
    bad.write_text(text, encoding="utf-8")
    assert main(["-f", str(bad)]) == EXIT_LOAD_ERROR
    captured = capsys.readouterr()
    assert captured.out == ""
    assert message in captured.err


def test_missing_kubeconfig_exits_two(tmp_path, capsys):
    missing = tmp_path / "missing-kubeconfig"
    assert main(["--cluster", "--kubeconfig", str(missing)]) == EXIT_LOAD_ERROR
    assert "无法加载 kubeconfig" in capsys.readouterr().err
