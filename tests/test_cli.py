import json

import pytest

import cli.main as cli
from conftest import (
    CAP_ID,
    LENDING_MARKET_ID,
    LENDING_MARKET_TYPE,
    PACKAGE_ID,
    USDC,
    make_effects,
)
from engine.actions import ActionKind
from engine.execution import LiveResult, SimulationFailure, SimulationResult
from sui_client.models import DevInspectResults, DryRunResponse

BASE_CONFIG = {
    "package_id": PACKAGE_ID,
    "lending_market_id": LENDING_MARKET_ID,
    "lending_market_type": LENDING_MARKET_TYPE,
}


def _write_json(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "coin_type: 0x2::sui::SUI\namount: 1000\nactions:\n  - type: lend\n    token: 0x2::sui::SUI\n    amount: 1000\n",
        encoding="utf-8",
    )

    config = cli.load_config(path)

    assert config["amount"] == 1000
    assert config["actions"][0]["type"] == "lend"


def test_load_config_empty_yaml_is_empty_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert cli.load_config(path) == {}


@pytest.mark.parametrize(
    ("name", "content"),
    [("config.toml", "a = 1"), ("config.json", "{bad"), ("config.yaml", "- 1\n- 2\n")],
)
def test_load_config_rejects_bad_files(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        cli.load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli.load_config(tmp_path / "missing.json")


def test_build_request_defaults_to_single_supply():
    request = cli.build_request({**BASE_CONFIG, "coin_type": "0x2::sui::SUI", "amount": "5"})

    [action] = request.actions
    assert action.kind is ActionKind.SUPPLY
    assert action.amount == 5
    assert request.amount == 5
    assert request.mode == "simulate"
    assert request.safe_mode is False


def test_build_request_takes_amount_from_supply_action():
    request = cli.build_request(
        {
            **BASE_CONFIG,
            "mode": "live",
            "actions": [{"type": "supply", "token": "0x2::sui::SUI", "amount": 42}],
        }
    )

    assert request.amount == 42
    assert request.mode == "live"


def test_summarize_simulation_result():
    result = SimulationResult(
        inspect=DevInspectResults(effects=make_effects()),
        dry_run=DryRunResponse(effects=make_effects(created=[(CAP_ID, "0x1")])),
    )

    summary = cli.summarize_result(result)

    assert summary["mode"] == "simulate"
    assert summary["dry_run_status"] == "success"
    assert summary["created"] == [CAP_ID]
    assert summary["failure"] is None


def test_run_command_prints_summary(tmp_path, monkeypatch, capsys):
    path = _write_json(tmp_path, {**BASE_CONFIG, "coin_type": "0x2::sui::SUI", "amount": 10})
    seen = {}

    async def fake_run(config, request):
        seen["request"] = request
        return LiveResult(digest="Dig1", effects=make_effects(created=[(CAP_ID, "0x1")]))

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    exit_code = cli.main(["run", "--config", str(path), "--mode", "live", "--safe-mode"])

    assert exit_code == 0
    assert seen["request"].mode == "live"
    assert seen["request"].safe_mode is True
    output = json.loads(capsys.readouterr().out)
    assert output["digest"] == "Dig1"
    assert output["created"] == [CAP_ID]


def test_run_command_failure_result_exit_code(tmp_path, monkeypatch):
    path = _write_json(tmp_path, {**BASE_CONFIG, "amount": 10})

    async def fake_run(config, request):
        return SimulationResult(inspect=None, failure=SimulationFailure("inspect", "boom"))

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    assert cli.main(["run", "--config", str(path)]) == 1


def test_run_command_config_error_exit_code(tmp_path, monkeypatch):
    path = _write_json(tmp_path, {"package_id": "nope", "amount": 10})
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    for name in ("SUI_PACKAGE_ID", "LENDING_MARKET_OBJ", "LENDING_MARKET_TYPE"):
        monkeypatch.delenv(name, raising=False)

    assert cli.main(["run", "--config", str(path)]) == 2


def test_store_key_command(monkeypatch, capsys):
    stored = []
    monkeypatch.setattr(cli, "store_private_key", lambda service, key: stored.append((service, key)))

    exit_code = cli.main(["store-key", "--service-name", "svc", "--private-key", "abc"])

    assert exit_code == 0
    assert stored == [("svc", "abc")]
    assert "svc" in capsys.readouterr().out


def test_build_request_takes_coin_type_from_supply_action():
    request = cli.build_request(
        {
            **BASE_CONFIG,
            "actions": [{"type": "supply", "token": USDC, "amount": 7}],
        }
    )

    assert request.coin_type == USDC
    assert request.amount == 7


def test_summarize_result_rejects_unknown_result_type():
    with pytest.raises(TypeError):
        cli.summarize_result(object())
