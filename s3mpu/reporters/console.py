"""Console reporter using Rich library for formatted CLI output.

Provides colorful, formatted output during an upload including:
- A transfer progress bar fed by per-part byte progress
- Retry and error notices
- A final summary table of the upload
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.rule import Rule
from rich.table import Table

from s3mpu.models import ProgressInfo, UploadResult
from s3mpu.reporters.base import Reporter


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, suppress the progress bar and per-part notices
               (only show the summary)
        total_bytes: Size of the source if known up front (file uploads)
        label: Name shown next to the progress bar
    """

    def __init__(
        self,
        quiet: bool = False,
        total_bytes: Optional[int] = None,
        label: str = "upload",
    ):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = Console(legacy_windows=True)
        self.quiet = quiet
        self.total_bytes = total_bytes
        self.label = label
        self.progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._part_bytes: dict[int, int] = {}

    def on_upload_id(self, upload_id: str) -> None:
        """Prints the upload id and starts the progress bar."""
        self.console.print(Rule(f"[bold cyan]Uploading: {self.label}[/bold cyan]", style="cyan", characters="-"))
        self.console.print(f"  Upload id: [dim]{upload_id}[/dim]")
        if self.quiet:
            return

        self.progress = Progress(
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        )
        self._task = self.progress.add_task(self.label, total=self.total_bytes)
        self.progress.start()

    def on_part_start(self, part_number: int) -> None:
        """Resets the byte count of a part for a new attempt."""
        self._part_bytes[part_number] = 0
        self._refresh()

    def on_part_retry(self, part_number: int, attempt: int) -> None:
        if self.quiet:
            return
        self.console.print(f"  [yellow][RETRY][/yellow] part {part_number} (retry {attempt})")

    def on_part_progress(self, part_number: int, bytes_sent: int, part_size: int) -> None:
        self._part_bytes[part_number] = min(bytes_sent, part_size)
        self._refresh()

    def on_part_uploaded(self, part_number: int) -> None:
        """Currently a no-op; progress is tracked from on_progress."""
        pass

    def on_progress(self, info: ProgressInfo) -> None:
        self._part_bytes[info.part] = info.part_size
        if info.total_percent and self.progress is not None and self._task is not None:
            self.progress.update(self._task, total=info.total_size)
        self._refresh()

    def on_size_exceeded(self, total_size: int) -> None:
        self.console.print(f"  [red][LIMIT][/red] source exceeded the maximum size at {total_size} bytes")

    def on_completing(self, upload_id: str) -> None:
        if self.quiet:
            return
        self.console.print("  Completing multipart upload...")

    def on_complete(self, result: UploadResult) -> None:
        """Stops the progress bar and prints the summary table."""
        self._stop()
        self.console.print()
        self.console.print(f"{self.label}: [bold green]COMPLETE[/bold green]")

        table = Table(
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
            box=box.ASCII,
        )
        table.add_column("Upload id", style="cyan", no_wrap=True)
        table.add_column("Parts", justify="right")
        table.add_column("Bytes", justify="right")
        table.add_column("Retries", justify="right")
        table.add_row(
            result.upload_id,
            str(len(result.parts)),
            str(result.total_written),
            str(result.retries),
        )
        self.console.print(table)

    def on_aborting(self, upload_id: Optional[str]) -> None:
        self._stop()
        self.console.print(f"{self.label}: [bold yellow]ABORTING[/bold yellow]")

    def on_aborted(self, upload_id: Optional[str], error: Optional[Exception]) -> None:
        self._stop()
        self.console.print(f"{self.label}: [bold red]ABORTED[/bold red]")
        if error is not None:
            self.console.print(f"   [dim red]Abort call failed: {error}[/dim red]")

    def on_error(self, error: Exception) -> None:
        self._stop()
        self.console.print(f"  [red][ERROR][/red] {error}")

    def _refresh(self) -> None:
        if self.progress is None or self._task is None:
            return
        self.progress.update(self._task, completed=sum(self._part_bytes.values()))

    def _stop(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None
            self._task = None
