import json
import logging
import subprocess
from typing import Any, Dict, List

from app.features.audits.exceptions import AuditEngineError

logger = logging.getLogger(__name__)

# extra wall-clock time the process gets on top of the page load timeout
PROCESS_GRACE_SECONDS = 60
STDERR_TAIL_CHARS = 2000


def _tail(text: str, limit: int = STDERR_TAIL_CHARS) -> str:
    text = (text or "").strip()
    return text if len(text) <= limit else "..." + text[-limit:]


class LighthouseCli:
    """
    Runs the Lighthouse CLI against an already running Chrome and returns the
    parsed JSON report (LHR).

    Scoring is entirely Lighthouse's; this class only launches it and checks
    that what came back is a usable report.
    """

    def __init__(self, binary: str = "lighthouse", grace_seconds: int = PROCESS_GRACE_SECONDS):
        self.binary = binary
        self.grace_seconds = grace_seconds

    def build_command(
        self,
        url: str,
        *,
        host: str,
        port: int,
        navigation_timeout: int,
        throttling_method: str,
        form_factor: str,
    ) -> List[str]:
        command = [
            self.binary,
            url,
            f"--hostname={host}",
            f"--port={port}",
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--max-wait-for-load={navigation_timeout}",
            f"--throttling-method={throttling_method}",
        ]
        if form_factor == "desktop":
            command.append("--preset=desktop")
        return command

    def run(
        self,
        url: str,
        *,
        host: str,
        port: int,
        navigation_timeout: int,
        throttling_method: str,
        form_factor: str = "mobile",
    ) -> Dict[str, Any]:
        command = self.build_command(
            url,
            host=host,
            port=port,
            navigation_timeout=navigation_timeout,
            throttling_method=throttling_method,
            form_factor=form_factor,
        )
        timeout_seconds = navigation_timeout / 1000 + self.grace_seconds

        try:
            completed = subprocess.run(  # noqa: S603
                command,
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            raise AuditEngineError(f"Lighthouse timed out after {timeout_seconds:.0f}s") from e
        except OSError as e:
            raise AuditEngineError(f"Lighthouse failed to start: {e}") from e

        if completed.returncode != 0:
            raise AuditEngineError(
                f"Lighthouse exited with status {completed.returncode}: {_tail(completed.stderr)}"
            )

        try:
            report = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise AuditEngineError(f"Lighthouse produced invalid JSON: {e}") from e

        if not isinstance(report, dict) or not isinstance(report.get("audits"), dict):
            raise AuditEngineError("Lighthouse audit failed to produce a valid result object.")

        # navigation problems (DNS, 4xx/5xx document, load timeout) come back as a runtimeError
        runtime_error = report.get("runtimeError")
        if isinstance(runtime_error, dict) and runtime_error.get("code"):
            raise AuditEngineError(
                f"{runtime_error.get('code')}: {runtime_error.get('message') or 'Lighthouse runtime error'}"
            )

        return report
