"""JSON reporter for structured output.

Records the session's signals as an event log and writes a summary when
the upload reaches a terminal state. Suitable for CI artifacts and for
post-mortems of aborted uploads.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from s3mpu.models import ProgressInfo, UploadResult
from s3mpu.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Byte-level part progress is not recorded; everything else is.

    Args:
        output_path: Optional file path to write the JSON summary
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self.events: list[dict[str, Any]] = []
        self.upload_id: Optional[str] = None
        self.error: Optional[str] = None
        self.summary: Optional[dict[str, Any]] = None
        self._progress: Optional[ProgressInfo] = None

    def on_upload_id(self, upload_id: str) -> None:
        self.upload_id = upload_id
        self._record("upload_id", upload_id=upload_id)

    def on_part_start(self, part_number: int) -> None:
        self._record("part_start", part=part_number)

    def on_part_retry(self, part_number: int, attempt: int) -> None:
        self._record("part_retry", part=part_number, attempt=attempt)

    def on_part_progress(self, part_number: int, bytes_sent: int, part_size: int) -> None:
        """No-op - too chatty for the event log."""
        pass

    def on_part_uploaded(self, part_number: int) -> None:
        self._record("part_uploaded", part=part_number)

    def on_progress(self, info: ProgressInfo) -> None:
        self._progress = info
        self._record(
            "progress",
            part=info.part,
            part_size=info.part_size,
            total_written=info.total_written,
            total_size=info.total_size,
            total_percent=info.total_percent,
        )

    def on_size_exceeded(self, total_size: int) -> None:
        self._record("size_exceeded", total_size=total_size)

    def on_completing(self, upload_id: str) -> None:
        self._record("completing", upload_id=upload_id)

    def on_complete(self, result: UploadResult) -> None:
        """Writes the summary of a successful upload."""
        self._record("complete", upload_id=result.upload_id)
        self.finish("complete", result.to_dict())

    def on_aborting(self, upload_id: Optional[str]) -> None:
        self._record("aborting", upload_id=upload_id)

    def on_aborted(self, upload_id: Optional[str], error: Optional[Exception]) -> None:
        """Writes the summary of an aborted upload."""
        self._record(
            "aborted",
            upload_id=upload_id,
            abort_error=str(error) if error is not None else None,
        )
        details: dict[str, Any] = {"upload_id": upload_id}
        if self._progress is not None:
            details["total_written"] = self._progress.total_written
            details["total_size"] = self._progress.total_size
        self.finish("aborted", details)

    def on_error(self, error: Exception) -> None:
        self.error = str(error)
        self._record("error", error=str(error), type=type(error).__name__)

    def finish(self, status: str, details: dict[str, Any]) -> dict[str, Any]:
        """Build the summary and write it if an output path is set.

        Returns:
            The summary dictionary
        """
        self.summary = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": status,
            "error": self.error,
            **details,
            "events": self.events,
        }

        if self.output_path:
            self._write_to_file(self.summary)

        return self.summary

    def _record(self, event: str, **data: Any) -> None:
        self.events.append(
            {
                "event": event,
                "time": datetime.now(timezone.utc).isoformat(),
                **data,
            }
        )

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)
