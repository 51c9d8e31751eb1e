from __future__ import annotations

import argparse
from pathlib import Path
import shutil
import sys
from typing import Any

from .errors import ConfigurationError
from .runner import run_from_config

from . import __version__


def _human_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    units = ["KiB", "MiB", "GiB", "TiB"]
    f = float(n)
    for u in units:
        f /= 1024.0
        if f < 1024.0:
            return f"{f:.1f} {u}"
    return f"{f:.1f} PiB"


def _supports_color(no_color: bool) -> bool:
    if no_color:
        return False
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


class _Reporter:
    def __init__(self, *, color: bool, verbose: bool) -> None:
        self._color = color
        self._verbose = verbose
        self._out_dir: Path | None = None
        self._artifacts: list[dict[str, Any]] = []

    def _c(self, code: str, s: str) -> str:
        if not self._color:
            return s
        return f"\x1b[{code}m{s}\x1b[0m"

    def _b(self, s: str) -> str:
        return self._c("1", s)

    def _dim(self, s: str) -> str:
        return self._c("2", s)

    def _ok(self, s: str) -> str:
        return self._c("32", s)

    def _info(self, s: str) -> str:
        return self._c("36", s)

    def _warn(self, s: str) -> str:
        return self._c("33", s)

    def _rule(self, ch: str) -> str:
        width = shutil.get_terminal_size(fallback=(88, 24)).columns
        return self._dim(ch * min(width, 88))

    def header(self, *, command: str, config: str) -> None:
        print(self._b(f"macrobvar {__version__}"))
        print(self._rule("="))
        print(f"{self._b('Command')}: {command}")
        print(f"{self._b('Config')}:   {config}")
        print(self._rule("="))

    def _print_artifacts(self) -> None:
        if not self._artifacts:
            return
        print(self._b("Artifacts:"))
        out_dir_res = self._out_dir.resolve() if self._out_dir is not None else None
        rows: list[tuple[str, str, str]] = []
        for a in self._artifacts:
            path_s = str(a.get("path", ""))
            display = path_s
            if out_dir_res is not None:
                try:
                    display = str(Path(path_s).resolve().relative_to(out_dir_res))
                except ValueError:
                    display = Path(path_s).name
            rows.append((str(a.get("kind", "")), display, _human_bytes(int(a.get("bytes", 0)))))

        w_kind = max(4, *(len(r[0]) for r in rows))
        w_file = min(max(4, *(len(r[1]) for r in rows)), 64)
        w_size = max(4, *(len(r[2]) for r in rows))

        print(f"  {'KIND'.ljust(w_kind)}  {'FILE'.ljust(w_file)}  {'SIZE'.rjust(w_size)}")
        for kind, file_s, size_s in rows:
            if len(file_s) > w_file:
                file_s = "…" + file_s[-(w_file - 1) :]
            print(f"  {kind.ljust(w_kind)}  {file_s.ljust(w_file)}  {size_s.rjust(w_size)}")

    def _summary(self, payload: dict[str, Any]) -> None:
        kind = str(payload.get("kind"))

        if kind == "dataset":
            vars_s = ",".join([str(v) for v in payload.get("variables", [])])
            start = payload.get("start")
            end = payload.get("end")
            span = ""
            if isinstance(start, str) and isinstance(end, str) and start and end:
                span = f"  span=[{start} .. {end}]"
            print(f"{self._b('  dataset')}: T={payload.get('T')}  N={payload.get('N')}  vars=[{vars_s}]{span}")
        elif kind == "model":
            sv = "on" if payload.get("sv") else "off"
            print(f"{self._b('  model')}:   p={payload.get('p')}  SV={sv}")
        elif kind == "prior":
            print(
                f"{self._b('  prior')}:   minnesota  kappa1={payload.get('kappa1'):g}  "
                f"kappa2={payload.get('kappa2'):g}  nu0={payload.get('nu0'):g}"
            )
        elif kind == "sampler":
            print(
                f"{self._b('  sampler')}: draws={payload.get('draws')}  burn_in={payload.get('burn_in')}  thin={payload.get('thin')}"
            )
        elif kind == "forecast":
            print(
                f"{self._b('  forecast')}: horizon={payload.get('horizon')}  draws={payload.get('draws')}  "
                f"credibility={payload.get('credibility')}  volatility={payload.get('volatility')}"
            )
        elif kind == "output":
            out_dir = payload.get("out_dir")
            if isinstance(out_dir, str):
                self._out_dir = Path(out_dir)
            print(
                f"{self._b('  output')}:  dir={out_dir}  save_fit={payload.get('save_fit')}  save_forecast={payload.get('save_forecast')}"
            )
        elif self._verbose:
            print(f"{self._warn('  summary')}: {kind}={payload}")

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        if event == "stage_start":
            print(f"{self._info('[..]')} {self._b(str(payload.get('name')))}")
        elif event == "stage_end":
            elapsed_s = float(payload.get("elapsed_s", 0.0))
            print(f"{self._ok('[OK]')} {self._b(str(payload.get('name')))} {self._dim(f'({elapsed_s:.3f}s)')}")
        elif event == "gibbs_progress":
            if self._verbose:
                it = int(payload.get("iteration", 0))
                total = int(payload.get("draws", 0))
                kept = int(payload.get("kept", 0))
                print(f"{self._dim('  ->')} sweep {it}/{total}  kept={kept}")
        elif event == "summary":
            self._summary(payload)
        elif event == "artifact":
            self._artifacts.append(payload)
            if self._verbose:
                b = int(payload.get("bytes", 0))
                print(f"{self._dim('  ->')} {payload.get('kind')}: {payload.get('path')} {self._dim(_human_bytes(b))}")
        elif event == "run_end":
            elapsed_s = float(payload.get("elapsed_s", 0.0))
            print(self._rule("-"))
            print(f"{self._ok('Run complete')} {self._dim(f'({elapsed_s:.3f}s total)')}")
            if self._out_dir is not None:
                print(f"{self._b('Outputs')}: {self._out_dir.resolve()}")
            self._print_artifacts()
        elif event == "validate_end":
            elapsed_s = float(payload.get("elapsed_s", 0.0))
            print(self._rule("-"))
            print(f"{self._ok('Validation complete')} {self._dim(f'({elapsed_s:.3f}s total)')}")


def _add_output_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--quiet", action="store_true", help="Suppress console output")
    p.add_argument("--no-color", action="store_true", help="Disable ANSI colors in console output")
    p.add_argument("--verbose", action="store_true", help="Show more detailed progress output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="macrobvar")
    parser.add_argument("--version", action="version", version=f"macrobvar {__version__}")

    sub = parser.add_subparsers(dest="command")

    validate_p = sub.add_parser("validate", help="Validate a YAML config file")
    validate_p.add_argument("config", type=str, help="Path to config.yml")
    _add_output_flags(validate_p)

    run_p = sub.add_parser("run", help="Run fit/forecast from a YAML config file")
    run_p.add_argument("config", type=str, help="Path to config.yml")
    run_p.add_argument(
        "--out",
        type=str,
        default=None,
        help="Override output directory (also copies config.yml there)",
    )
    _add_output_flags(run_p)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    reporter = None
    if not args.quiet:
        reporter = _Reporter(color=_supports_color(bool(args.no_color)), verbose=bool(args.verbose))
        reporter.header(command=f"macrobvar {args.command}", config=str(args.config))

    try:
        if args.command == "validate":
            run_from_config(args.config, validate_only=True, progress=reporter)
            if reporter is not None:
                print(f"{reporter._ok('Config OK')}: {args.config}")
            return 0
        if args.command == "run":
            run_from_config(args.config, out_dir=args.out, validate_only=False, progress=reporter)
            return 0
        raise ValueError(f"unknown command: {args.command}")
    except ConfigurationError as e:
        parser.error(str(e))
        return 2
