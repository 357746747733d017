"""Entry point for `python -m opswatch`.

Usage:
    python -m opswatch
    uv run python -m opswatch
"""

from __future__ import annotations

from opswatch.app import run

run()
