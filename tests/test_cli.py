from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from macrobvar.cli import build_parser, main

yaml = pytest.importorskip("yaml")


def _config_file(tmp_path: Path, **model: object) -> Path:
    rng = np.random.default_rng(0)
    df = pd.DataFrame(
        {
            "date": pd.date_range("2010-01-01", periods=50, freq="QS").strftime("%Y-%m-%d"),
            "a": rng.standard_normal(50),
            "b": rng.standard_normal(50),
        }
    )
    csv_path = tmp_path / "data.csv"
    df.to_csv(csv_path, index=False)

    cfg = {
        "data": {"csv_path": str(csv_path), "date_column": "date", "variables": ["a", "b"]},
        "model": {"p": 1, **model},
        "sampler": {"draws": 20, "burn_in": 0, "seed": 0},
        "forecast": {"horizon": 2},
        "output": {"out_dir": str(tmp_path / "out")},
    }
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return path


def test_parser_has_subcommands() -> None:
    parser = build_parser()
    args = parser.parse_args(["run", "cfg.yml", "--out", "x", "--quiet"])
    assert args.command == "run"
    assert args.out == "x"
    assert args.quiet


def test_cli_validate_and_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg = _config_file(tmp_path)

    assert main(["validate", str(cfg), "--no-color"]) == 0
    captured = capsys.readouterr().out
    assert "Config OK" in captured
    assert "dataset" in captured

    assert main(["run", str(cfg), "--no-color", "--verbose"]) == 0
    captured = capsys.readouterr().out
    assert "Run complete" in captured
    assert (tmp_path / "out" / "forecast_result.npz").exists()


def test_cli_quiet_prints_nothing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg = _config_file(tmp_path, volatility={"enabled": True})
    assert main(["run", str(cfg), "--quiet", "--out", str(tmp_path / "q")]) == 0
    assert capsys.readouterr().out == ""


def test_cli_config_error_exits_with_usage(tmp_path: Path) -> None:
    cfg = _config_file(tmp_path, p=0)
    with pytest.raises(SystemExit) as exc:
        main(["validate", str(cfg), "--quiet"])
    assert exc.value.code == 2
