#!/usr/bin/env python3
"""Print the field ops readiness report. Exits 0 when the API can serve coaching traffic, 1 otherwise."""
import sys
from pathlib import Path

_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from fieldops.readiness import REQUIRED_CHECKS, is_ready, run_all_checks


def main() -> int:
    checks = run_all_checks()
    ready, summary = is_ready(checks)
    for name, msg in summary.items():
        passed = checks[name][0]
        label = "OK" if passed else ("FAIL" if name in REQUIRED_CHECKS else "WARN")
        print(f"  {name:<10} {label:<5} {msg}")
    print("")
    print("Coaching API: READY" if ready else "Coaching API: NOT READY")
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
