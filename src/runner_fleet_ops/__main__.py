"""Module entrypoint.

Allows:
    python -m runner_fleet_ops collect --log-path ~/actions-runner/_diag
"""

from __future__ import annotations

from runner_fleet_ops.cli import main

if __name__ == "__main__":
    main()
