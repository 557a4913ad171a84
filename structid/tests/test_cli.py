import json

from structid.cli.assess import main

SCENARIO_B = ["--x", "x1' = -a*b*x1", "--x", "x2' = x1 - x2", "--y", "y = x2"]


def test_cli_reports_parameters(capsys):
    assert main(SCENARIO_B + ["--seed", "1"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["a: not identifiable", "b: not identifiable"]


def test_cli_checks_functions_as_json(capsys):
    assert main(SCENARIO_B + ["--check", "a*b", "--check", "x1", "--seed", "2", "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"a*b": True, "x1": True}


def test_cli_known_quantities(capsys):
    assert main(SCENARIO_B + ["--check", "a", "--known", "b", "--seed", "3"]) == 0
    assert capsys.readouterr().out.strip() == "a: globally identifiable"


def test_cli_invalid_probability():
    assert main(SCENARIO_B + ["-p", "1.5"]) == 2
