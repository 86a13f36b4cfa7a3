"""``enrich``, ``dispatch`` and ``run`` subcommands."""

from __future__ import annotations

import json
import sys

from rapport.core.errors import StoreUnavailable


def run_job(container, command: str) -> None:
    """Run the requested entry point(s) and print counters as JSON."""
    result: dict[str, dict[str, int]] = {}
    try:
        if command in ("enrich", "run"):
            result["enrich"] = container.run_enrich().counters()
        if command in ("dispatch", "run"):
            result["dispatch"] = container.run_dispatch().counters()
    except StoreUnavailable as exc:
        print(f"rapport: error: store unavailable: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(3)
    print(json.dumps(result, indent=2))  # noqa: T201
