"""
Shared runner for the script-style tests in testes/.

Each test module keeps plain-assert test_* functions (so pytest collects them)
and a main() that runs them through run() for coloured PASS/FAIL output.
"""
import sys
import traceback
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# ── ANSI colours ──────────────────────────────────────────────────────────────
GREEN  = "\033[92m"
RED    = "\033[91m"
YELLOW = "\033[93m"
RESET  = "\033[0m"

# ── Result tracking ────────────────────────────────────────────────────────────
_results: list[dict] = []


def _pass(name: str, detail: str = "") -> None:
    _results.append({"name": name, "status": "PASS", "detail": detail})
    print(f"  {GREEN}PASS{RESET}  {name}" + (f" - {detail}" if detail else ""))


def _fail(name: str, detail: str = "") -> None:
    _results.append({"name": name, "status": "FAIL", "detail": detail})
    print(f"  {RED}FAIL{RESET}  {name}" + (f" - {detail}" if detail else ""))


def run(*tests) -> None:
    """Run test functions, recording a PASS or FAIL line for each."""
    for test in tests:
        name = test.__name__.removeprefix("test_")
        try:
            test()
        except AssertionError as e:
            _fail(name, str(e) or traceback.format_exc(limit=1).strip().splitlines()[-1])
        except Exception as e:
            _fail(name, f"{type(e).__name__}: {e}")
        else:
            _pass(name)


def section(title: str) -> None:
    print()
    print(f"--- {title} ---")


def summary() -> int:
    """Print totals; returns the process exit code."""
    passed = sum(1 for r in _results if r["status"] == "PASS")
    failed = sum(1 for r in _results if r["status"] == "FAIL")
    total = len(_results)

    print()
    print("=" * 65)
    print(
        f"  Results: {GREEN}{passed} passed{RESET}  "
        f"{RED}{failed} failed{RESET}  "
        f"({total} total)"
    )
    print("=" * 65)
    print()
    return 1 if failed else 0
