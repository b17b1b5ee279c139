import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from selenium.common.exceptions import WebDriverException

from app.features.audits.exceptions import AuditEngineError
from app.features.audits.schemas.task import AuditConfig
from app.features.audits.services.lighthouse.engine import LighthouseCli

logger = logging.getLogger(__name__)


@dataclass
class RunnerResult:
    """Raw report on success, or the message of a structured failure."""
    report: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None


class AuditRunner:
    """
    Runs one configuration's audit on the shared browser session.

    Engine failures and timeouts come back as a failed ``RunnerResult``.
    Only a broken browser (``BrowserSessionError`` from ``open_page``)
    escapes, since no later configuration could run either.
    """

    def __init__(self, engine: LighthouseCli, navigation_timeout: int, throttling_method: str):
        self.engine = engine
        self.navigation_timeout = navigation_timeout
        self.throttling_method = throttling_method

    @classmethod
    def from_settings(cls, settings) -> "AuditRunner":
        return cls(
            engine=LighthouseCli(binary=settings.LIGHTHOUSE_BIN),
            navigation_timeout=settings.LIGHTHOUSE_NAVIGATION_TIMEOUT,
            throttling_method=settings.LIGHTHOUSE_THROTTLING_METHOD,
        )

    def run(self, session, url: str, config: AuditConfig) -> RunnerResult:
        with session.open_page():
            try:
                session.emulate_device(config.device)
                host, port = session.control_endpoint
                report = self.engine.run(
                    url,
                    host=host,
                    port=port,
                    navigation_timeout=self.navigation_timeout,
                    throttling_method=self.throttling_method,
                    form_factor=config.device,
                )
            except (AuditEngineError, WebDriverException) as e:
                message = str(e) or "Unknown error during audit"
                logger.error(f"Lighthouse audit failed for {url} ({config}): {message}")
                return RunnerResult(error_message=message)

        return RunnerResult(report=report)
