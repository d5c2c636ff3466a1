import json

from main_run_scenarios import format_result_line, run_suite
from lte_harness.network import RunMetrics

from conftest import FakeRadioStack, handover_notifications


def _write_scenario(directory, name, **cfg):
    cfg.setdefault("numberOfUes", 2)
    cfg.setdefault("simTime", 10)
    cfg.setdefault("enableTrace", False)
    (directory / f"{name}.json").write_text(json.dumps(cfg))


def test_suite_writes_one_line_per_scenario(tmp_path, literal_flow_records):
    scenarios = tmp_path / "scenarios"
    scenarios.mkdir()
    _write_scenario(scenarios, "a3", useA2A4=False)
    _write_scenario(scenarios, "a2a4", useA2A4=True)
    _write_scenario(scenarios, "skipped", simTime=0)
    results = tmp_path / "results.txt"

    def stack_factory():
        return FakeRadioStack(handover_notifications(1.0, 1, 1, 2)
                              + handover_notifications(2.0, 2, 2, 3)
                              + handover_notifications(3.0, 1, 3, 4)
                              + handover_notifications(4.0, 2, 4, 5),
                              literal_flow_records)

    lines = run_suite(str(scenarios), str(results), stack_factory)

    assert results.read_text().splitlines() == lines
    assert lines == [
        "a2a4 0.200000 0.200000 1.000000",
        "a3 0.200000 0.200000 1.000000",
    ]


def test_suite_reports_setup_errors_and_continues(tmp_path):
    scenarios = tmp_path / "scenarios"
    scenarios.mkdir()
    _write_scenario(scenarios, "broken")
    _write_scenario(scenarios, "quiet")
    results = tmp_path / "results.txt"
    stacks = iter([FakeRadioStack(fail_on="configure"), FakeRadioStack()])

    lines = run_suite(str(scenarios), str(results), lambda: next(stacks))

    assert lines == ["broken ERROR", "quiet 0.000000 0.000000 N/A"]


def test_empty_directory(tmp_path):
    assert run_suite(str(tmp_path), str(tmp_path / "results.txt")) == []


def test_format_result_line_without_ratio():
    metrics = RunMetrics(total_downlink_throughput_mbps=1.5, anoh=0.0, optimization_ratio=None)
    assert format_result_line("x", metrics) == "x 1.500000 0.000000 N/A"


def test_invalid_scenario_file_does_not_abort_suite(tmp_path):
    scenarios = tmp_path / "scenarios"
    scenarios.mkdir()
    _write_scenario(scenarios, "bad", minSpeed=200, maxSpeed=100)
    _write_scenario(scenarios, "good")
    results = tmp_path / "results.txt"
    stacks = iter([FakeRadioStack()])

    lines = run_suite(str(scenarios), str(results), lambda: next(stacks))

    assert lines == ["bad ERROR", "good 0.000000 0.000000 N/A"]
    assert results.read_text().splitlines() == lines
