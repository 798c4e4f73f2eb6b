"""Artifact store: page captures and the structured log.json of a run.

Layout of the artifact directory after a run:
    log.json        {"errors": [...], "registrations": [...]}
    error<n>.pdf    capture of the page at the n-th counted error
    error<n>.html   HTML of that page
    success<n>.pdf  capture at the n-th success (seat found, registered)
"""

import shutil
from pathlib import Path

from registerer.logging import get_logger
from registerer.models import ArtifactKind, ArtifactLog, ErrorRecord, RegistrationRecord
from registerer.session import PageCapture
from registerer.timing import timestamp

logger = get_logger(__name__)


class ArtifactStore:
    """Writes captures and appends records to log.json in one directory."""

    LOG_FILE = "log.json"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.log_file = self.directory / self.LOG_FILE

    def initialize(self) -> None:
        """Create the directory, clear prior contents and write an empty log."""
        self.directory.mkdir(parents=True, exist_ok=True)
        for entry in self.directory.iterdir():
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()

        self._write(ArtifactLog())
        logger.info("artifact_store_initialized", directory=str(self.directory))

    def capture_path(self, kind: ArtifactKind, sequence: int, suffix: str = "pdf") -> Path:
        return self.directory / f"{kind}{sequence}.{suffix}"

    def save_capture(
        self, kind: ArtifactKind, sequence: int, capture: PageCapture | None
    ) -> Path | None:
        """Write the PDF of ``capture`` and, for errors, its HTML.

        Returns:
            Path of the HTML snapshot if one was written, else None.
        """
        if capture is None:
            logger.debug("capture_skipped", kind=kind, sequence=sequence, reason="no_page")
            return None

        if capture.pdf is not None:
            self.capture_path(kind, sequence).write_bytes(capture.pdf)

        if kind == "error" and capture.html is not None:
            html_path = self.capture_path(kind, sequence, "html")
            html_path.write_text(capture.html, encoding="utf-8")
            return html_path
        return None

    def append_record(
        self,
        kind: ArtifactKind,
        sequence: int,
        *,
        stack: str | None = None,
        course_id: str | None = None,
        htmlfile: Path | None = None,
    ) -> None:
        """Append one entry to ``errors`` or ``registrations`` in log.json."""
        log = self.read_log()
        filename = str(self.capture_path(kind, sequence))

        if kind == "error":
            log.errors.append(
                ErrorRecord(
                    filename=filename,
                    timestamp=timestamp(),
                    stack=stack or "",
                    htmlfile=str(htmlfile) if htmlfile else None,
                )
            )
        else:
            log.registrations.append(
                RegistrationRecord(
                    filename=filename,
                    timestamp=timestamp(),
                    course_id=course_id or "",
                )
            )

        self._write(log)
        logger.debug("artifact_recorded", kind=kind, sequence=sequence)

    def read_log(self) -> ArtifactLog:
        return ArtifactLog.model_validate_json(self.log_file.read_text(encoding="utf-8"))

    def _write(self, log: ArtifactLog) -> None:
        self.log_file.write_text(
            log.model_dump_json(indent=4, by_alias=True, exclude_none=True),
            encoding="utf-8",
        )
