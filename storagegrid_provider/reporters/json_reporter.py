"""JSON reporter for structured output.

Writes command results to a file so they can be consumed by scripts
and CI jobs.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from storagegrid_provider.models import CommandOutcome, OutcomeStatus
from storagegrid_provider.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path

    def on_command_start(self, command: str, target: Optional[str]) -> None:
        """No-op for JSON reporter."""
        pass

    def on_command_complete(self, outcome: CommandOutcome) -> None:
        """No-op - data comes from on_run_complete."""
        pass

    def on_run_complete(self, outcomes: list[CommandOutcome]) -> dict:
        """Generate and write the JSON document.

        Returns:
            The generated JSON data as a dictionary
        """
        output = self._generate_output(outcomes)

        if self.output_path:
            self._write_to_file(output)

        return output

    def _generate_output(self, outcomes: list[CommandOutcome]) -> dict:
        results = []
        counts = {status: 0 for status in OutcomeStatus}

        for outcome in outcomes:
            counts[outcome.status] += 1
            entry = {
                "command": outcome.command,
                "target": outcome.target,
                "status": outcome.status.value,
                "data": outcome.data,
                "diagnostics": outcome.diagnostics,
            }
            if outcome.error_message:
                entry["error"] = outcome.error_message
            results.append(entry)

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": results,
            "summary": {
                "total": len(outcomes),
                "ok": counts[OutcomeStatus.OK],
                "differs": counts[OutcomeStatus.DIFFERS],
                "errors": counts[OutcomeStatus.ERROR],
            },
        }

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2, default=str)
