"""
Run log for one pdf2cbz invocation.

ManifestRecorder is the only place that prints progress. It also keeps the
messages and per-PDF outcomes so `--manifest` can dump the whole run as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Dict, List, TextIO

from .utils import UserError, ensure_dir


# Levels echoed to the console at each verbosity; `logs` keeps every level.
_PRINTED_LEVELS = {
    "quiet": {"error"},
    "normal": {"info", "warning", "error"},
    "verbose": {"debug", "info", "warning", "error"},
}


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestRecorder:
    """
    Messages and conversion outcomes for a single run.

    `verbosity` only affects what reaches `console_stream`; the manifest
    always carries the full log, debug lines included.
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    dry_run: bool
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_utc_timestamp)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info") -> None:
        self.logs.append({"timestamp": _utc_timestamp(), "level": level, "message": message})
        self._echo(message, level)

    def _echo(self, message: str, level: str) -> None:
        printed = _PRINTED_LEVELS.get(self.verbosity, _PRINTED_LEVELS["normal"])
        if level not in printed:
            return
        if self.verbosity == "verbose":
            message = f"[{level}] {message}"
        print(message, file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """Record one outcome, e.g. ("convert", "failed", pdf=..., error=...)."""

        self.actions.append(
            {"timestamp": _utc_timestamp(), "action": action, "status": status, **details}
        )

    def action_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self.actions:
            status = entry.get("status", "unknown")
            counts[status] = counts.get(status, 0) + 1
        return counts

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _utc_timestamp(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "action_counts": self.action_counts(),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_manifest(self, path: Path, summary: Dict[str, Any]) -> None:
        """
        Dump the run as JSON at `path`; dry-runs only say where it would go.

        Raises UserError when the file cannot be written. Conversions are
        already finished by then, so only the manifest is lost.
        """

        if self.dry_run:
            self.log(f"[dry-run] Would write manifest to {path}")
            return

        manifest = self.build_manifest(summary)
        try:
            ensure_dir(path.parent, dry_run=False)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(manifest, handle, indent=2, ensure_ascii=True)
        except OSError as exc:
            raise UserError(f"Could not write manifest {path}: {exc}") from exc
        self.log(f"Wrote manifest {path}", level="debug")
