"""
Output formatters for CLI commands (JSON or human-readable)
"""

import json
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Format output in different modes"""

    def __init__(self, mode: str = "human"):
        """
        Initialize formatter

        Args:
            mode: Output mode (human, json)
        """
        self.mode = mode.lower()
        self.console = Console()

    def output_file_list(self, session_id: str, file_list: list[dict[str, Any]]) -> None:
        """Output the recorded files reported for a session"""
        if self.mode == "json":
            self._output_json({"session_id": session_id, "files": file_list})
            return

        if not file_list:
            self.console.print(f"[yellow]No files reported for SID {session_id}[/yellow]")
            return

        table = Table(title=f"Recorded files for SID {session_id}")
        table.add_column("File", style="cyan")
        table.add_column("Track", style="green")
        table.add_column("Download URL", style="blue")

        for entry in file_list:
            name = entry.get("fileName") or entry.get("filename") or ""
            track = entry.get("trackType", "")
            table.add_row(str(name), str(track), "yes" if entry.get("downloadUrl") else "no")

        self.console.print(table)

    def output_missing_settings(self, missing: list[str]) -> None:
        if self.mode == "json":
            self._output_json({"status": "error" if missing else "ok", "missing": missing})
        elif missing:
            self.console.print("[bold red]Missing settings:[/bold red]")
            for name in missing:
                self.console.print(f"  • {name}")
        else:
            self.console.print("[bold green]✓[/bold green] All required settings are present")

    def output_result(self, data: dict[str, Any], message: str) -> None:
        if self.mode == "json":
            self._output_json({"status": "success", **data})
        else:
            self.output_success(message)

    def output_error(self, message: str, details: str = "") -> None:
        """Output error message"""
        if self.mode == "json":
            payload: dict[str, Any] = {"status": "error", "error": message}
            if details:
                payload["details"] = details
            self._output_json(payload)
        else:
            self.console.print(f"[bold red]Error:[/bold red] {message}")
            if details:
                self.console.print(details)

    def output_success(self, message: str) -> None:
        """Output success message"""
        if self.mode == "json":
            self._output_json({"status": "success", "message": message})
        else:
            self.console.print(f"[bold green]✓[/bold green] {message}")

    def _output_json(self, data: Any) -> None:
        print(json.dumps(data, indent=2, default=str))
