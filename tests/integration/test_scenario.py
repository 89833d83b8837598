from __future__ import annotations

import json
from pathlib import Path

import pytest

from dualpool.core.events import ArbitrageExecuted, PoolSeeded, SwapExecuted
from dualpool.integration.scenario import build, load_scenario, main, run, scenario_from_dict
from dualpool.state.pools import PoolId

UNIT = 10**6
DEFAULT_SCENARIO = Path(__file__).resolve().parents[2] / "scenarios" / "default.yaml"


def _scenario_dict(**overrides) -> dict:
    obj = {
        "strategy": {"operator": "operator"},
        "tokens": {"asset_a": "TKA", "asset_b": "TKB"},
        "mint": {"operator": {"TKA": 100_000 * UNIT, "TKB": 100_000 * UNIT}},
        "pools": [
            {"pool": 1, "amount_a": 10_000 * UNIT, "amount_b": 10_000 * UNIT},
            {"pool": 2, "amount_a": 10_000 * UNIT, "amount_b": 10_500 * UNIT},
        ],
        "funding": {"TKB": 1_000 * UNIT},
    }
    obj.update(overrides)
    return obj


def test_default_scenario_runs_end_to_end() -> None:
    report = run(load_scenario(DEFAULT_SCENARIO))

    assert report["opportunity"] == {"exists": True, "spread_bps": 500, "profitable": True}
    assert report["search"]["amount"] == 108 * UNIT
    assert report["search"]["profit"] > 0

    execution = report["execution"]
    assert execution["ok"] is True
    assert execution["amount_in"] == 108 * UNIT
    assert execution["profit"] == report["search"]["profit"]
    assert execution["spread_after_bps"] < execution["spread_before_bps"] == 500

    assert report["balances_before"] == [0, 1_000 * UNIT]
    assert report["balances_after"] == [0, 1_000 * UNIT + execution["profit"]]

    kinds = [e["event"] for e in report["events"]]
    assert kinds.count(PoolSeeded.__name__) == 2
    assert kinds.count(SwapExecuted.__name__) == 2
    assert kinds.count(ArbitrageExecuted.__name__) == 1
    assert report["events"][0]["pool_id"] == 1

    # The whole report must be JSON-serializable.
    json.dumps(report)


def test_dry_run_leaves_pools_untouched() -> None:
    report = run(load_scenario(DEFAULT_SCENARIO), dry_run=True)
    assert report["execution"] is None
    assert report["pools_after"] == report["pools_before"]
    assert report["balances_after"] == report["balances_before"]


def test_amount_override_reports_rejection() -> None:
    report = run(scenario_from_dict(_scenario_dict()), amount=900 * UNIT)
    assert "search" not in report
    assert report["execution"]["ok"] is False
    assert report["execution"]["error"].startswith("ArbitrageUnprofitable")
    assert report["pools_after"] == report["pools_before"]


def test_build_returns_seeded_engine_and_funded_strategy() -> None:
    engine, strategy, events = build(scenario_from_dict(_scenario_dict()))
    assert engine.is_initialized(PoolId.POOL_1) and engine.is_initialized(PoolId.POOL_2)
    assert strategy.get_balances() == (0, 1_000 * UNIT)
    assert engine.ledger.balance_of("TKB", "operator") == 100_000 * UNIT - 20_500 * UNIT - 1_000 * UNIT
    assert len(events.of_type(PoolSeeded)) == 2


@pytest.mark.parametrize(
    "overrides, exc",
    [
        ({"tokens": {"asset_a": "TKA"}}, ValueError),
        ({"pools": []}, ValueError),
        ({"pools": [{"pool": 3, "amount_a": 1, "amount_b": 1}]}, ValueError),
        ({"pools": [{"pool": 1, "amount_a": -1, "amount_b": 1}]}, ValueError),
        ({"funding": {"TKB": "lots"}}, TypeError),
        ({"execute": "yes"}, TypeError),
        ({"strategy": None}, ValueError),
    ],
)
def test_scenario_from_dict_rejects_malformed_input(overrides: dict, exc: type) -> None:
    with pytest.raises(exc):
        scenario_from_dict(_scenario_dict(**overrides))


def test_main_prints_json_report(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([str(DEFAULT_SCENARIO), "--dry-run"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["execution"] is None
    assert report["search"]["amount"] == 108 * UNIT


def test_main_exit_codes(tmp_path: Path) -> None:
    missing = tmp_path / "missing.yaml"
    assert main([str(missing)]) == 1
    assert main([str(DEFAULT_SCENARIO), "--amount", str(2_000 * UNIT)]) == 2
