#!/usr/bin/env python3
"""
utils/test_run.py — Royalty Ledger  ·  Test Runner
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Usage (run from anywhere; the script switches to the repository root):
  python royalty_ledger/utils/test_run.py                 # full suite
  python royalty_ledger/utils/test_run.py --unit          # unit tests only
  python royalty_ledger/utils/test_run.py --integration   # integration tests only
  python royalty_ledger/utils/test_run.py --coverage      # with coverage report
  python royalty_ledger/utils/test_run.py -x              # stop on first failure
  python royalty_ledger/utils/test_run.py -k "splitter"   # filter by keyword

Requires:  pip install -e ".[test]"
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

for _stream in (sys.stdout, sys.stderr):
    if hasattr(_stream, "reconfigure"):
        try:
            _stream.reconfigure(encoding="utf-8")
        except (ValueError, OSError):
            pass

# ── Dependency guard ──────────────────────────────────────────────────────
try:
    import pytest
    from rich import box
    from rich.console import Console
    from rich.markup import escape
    from rich.panel import Panel
    from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
    from rich.table import Table
    from rich.theme import Theme
except ImportError as e:
    print(f"\n  Missing dependency: {e}")
    print('  Run:  pip install -e ".[test]"\n')
    sys.exit(1)


THEME = Theme({
    "pass":   "bold bright_green",
    "fail":   "bold bright_red",
    "skip":   "bold yellow",
    "muted":  "bright_black",
    "unit":   "cyan",
    "intg":   "magenta",
    "warn":   "yellow",
})

con = Console(theme=THEME, highlight=False)

TESTS_DIR = Path("royalty_ledger") / "tests"


# ═══════════════════════════════════════════════════════════════════════════
#  RESULT COLLECTION
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TResult:
    nodeid: str
    outcome: str
    duration: float
    longrepr: str = ""

    @property
    def tier(self) -> str:
        return "integration" if "/integration/" in self.nodeid else "unit"

    @property
    def module(self) -> str:
        return Path(self.nodeid.split("::")[0]).stem

    @property
    def failed(self) -> bool:
        return self.outcome in ("failed", "error")


@dataclass
class Stats:
    results: list[TResult] = field(default_factory=list)
    elapsed: float = 0.0

    def count(self, outcome: str) -> int:
        if outcome == "failed":
            return sum(1 for r in self.results if r.failed)
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def ok(self) -> bool:
        return bool(self.results) and self.count("failed") == 0


class Collector:
    """pytest plugin: records one TResult per test and advances the progress bar."""

    def __init__(self, progress: Progress, task_id):
        self.results: list[TResult] = []
        self._progress = progress
        self._task_id = task_id

    def pytest_collection_finish(self, session):
        self._progress.update(self._task_id, total=len(session.items))

    def pytest_runtest_logreport(self, report):
        # Setup errors are failures; call is the normal outcome; skips
        # can be reported at setup.
        if report.when == "call" or (report.when == "setup" and report.outcome != "passed"):
            outcome = "error" if report.when == "setup" and report.failed else report.outcome
            self.results.append(TResult(
                nodeid=report.nodeid,
                outcome=outcome,
                duration=report.duration,
                longrepr=str(report.longrepr) if report.failed else "",
            ))
            self._progress.advance(self._task_id)


# ═══════════════════════════════════════════════════════════════════════════
#  RENDERING
# ═══════════════════════════════════════════════════════════════════════════

def render_module_table(st: Stats) -> Table:
    grouped: dict[tuple[str, str], list[TResult]] = defaultdict(list)
    for r in st.results:
        grouped[(r.tier, r.module)].append(r)

    table = Table(box=box.SIMPLE_HEAVY, title="Modules", title_style="bold")
    table.add_column("Tier")
    table.add_column("Module")
    table.add_column("Pass", justify="right", style="pass")
    table.add_column("Fail", justify="right", style="fail")
    table.add_column("Skip", justify="right", style="skip")
    table.add_column("Time", justify="right", style="muted")

    for (tier, module), rows in sorted(grouped.items()):
        style = "unit" if tier == "unit" else "intg"
        table.add_row(
            f"[{style}]{tier}[/]",
            module,
            str(sum(1 for r in rows if r.outcome == "passed")),
            str(sum(1 for r in rows if r.failed)),
            str(sum(1 for r in rows if r.outcome == "skipped")),
            f"{sum(r.duration for r in rows):.2f}s",
        )
    return table


def render_failures(st: Stats) -> None:
    for r in (r for r in st.results if r.failed):
        lines = r.longrepr.strip().splitlines()
        con.print(Panel(
            escape("\n".join(lines[-25:])),
            title=f"[fail]{escape(r.nodeid)}[/]",
            border_style="red",
        ))


def render_verdict(st: Stats, ok: bool) -> None:
    summary = (
        f"[pass]{st.count('passed')} passed[/]  "
        f"[fail]{st.count('failed')} failed[/]  "
        f"[skip]{st.count('skipped')} skipped[/]  "
        f"[muted]in {st.elapsed:.2f}s[/]"
    )
    con.print(Panel(
        summary,
        title="[pass]PASS[/]" if ok else "[fail]FAIL[/]",
        border_style="green" if ok else "red",
    ))


# ═══════════════════════════════════════════════════════════════════════════
#  RUN
# ═══════════════════════════════════════════════════════════════════════════

def run(
        unit_only: bool,
        integration_only: bool,
        fail_fast: bool,
        with_coverage: bool,
        keyword: str,
        extra: list[str],
) -> int:
    if unit_only:
        paths = [str(TESTS_DIR / "unit")]
    elif integration_only:
        paths = [str(TESTS_DIR / "integration")]
    else:
        paths = [str(TESTS_DIR)]

    pytest_args = [*paths, "-q", "-p", "no:terminal", *extra]
    if fail_fast:
        pytest_args.append("-x")
    if keyword:
        pytest_args += ["-k", keyword]
    if with_coverage:
        pytest_args += [
            "--cov=royalty_ledger.app.services",
            "--cov=royalty_ledger.app.schemas",
            "--cov-report=term-missing",
        ]

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]running tests"),
        BarColumn(),
        MofNCompleteColumn(),
        console=con,
        transient=True,
    )
    task_id = progress.add_task("tests", total=None)
    collector = Collector(progress, task_id)

    t0 = time.perf_counter()
    with progress:
        exit_code = pytest.main(pytest_args, plugins=[collector])
    st = Stats(results=collector.results, elapsed=time.perf_counter() - t0)

    con.print(render_module_table(st))
    render_failures(st)

    run_ok = st.ok and exit_code == 0
    render_verdict(st, run_ok)
    return 0 if run_ok else 1


def _cli() -> None:
    ap = argparse.ArgumentParser(
        prog="python royalty_ledger/utils/test_run.py",
        description="Royalty Ledger — test runner",
    )
    ap.add_argument("--unit", action="store_true", help="Unit tests only  (tests/unit/)")
    ap.add_argument("--integration", action="store_true", help="Integration tests only  (tests/integration/)")
    ap.add_argument("--coverage", action="store_true", help="Coverage report  (needs pytest-cov)")
    ap.add_argument("-x", "--fail-fast", action="store_true", help="Stop after first failure")
    ap.add_argument("-k", metavar="EXPR", default="", help="Filter tests by expression  (passed to pytest -k)")
    args, remainder = ap.parse_known_args()

    if args.unit and args.integration:
        con.print("[warn]--unit and --integration are mutually exclusive; running full suite.[/]\n")
        args.unit = args.integration = False

    # Imports are royalty_ledger.app..., so pytest runs from the repository root.
    root = Path(__file__).resolve().parents[2]
    os.chdir(root)

    if not (root / TESTS_DIR).exists():
        con.print(Panel(
            f"[fail]Cannot locate {TESTS_DIR}/ under {root}.[/]",
            title="[fail]Path Error[/]",
            border_style="red",
        ))
        sys.exit(1)

    sys.exit(run(
        unit_only=args.unit,
        integration_only=args.integration,
        fail_fast=args.fail_fast,
        with_coverage=args.coverage,
        keyword=args.k,
        extra=remainder,
    ))


if __name__ == "__main__":
    _cli()
