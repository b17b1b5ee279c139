import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from app.features.audits.exceptions import BrowserSessionError

logger = logging.getLogger(__name__)

# Pixel 5 metrics, matching the engine's default mobile emulation
MOBILE_DEVICE = {
    "width": 393,
    "height": 851,
    "deviceScaleFactor": 2.75,
    "mobile": True,
    "userAgent": (
        "Mozilla/5.0 (Linux; Android 11; Pixel 5) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
    ),
}


class BrowserSession:
    """
    One headless Chrome shared by every configuration of a task run.

    Use as a context manager; leaving the block always quits the driver. The
    audit engine attaches to the same browser through ``control_endpoint``.
    """

    def __init__(self, headless: bool = True, chromedriver_path: Optional[str] = None):
        self.headless = headless
        self.chromedriver_path = chromedriver_path
        self.driver: Optional[webdriver.Chrome] = None

    @classmethod
    def from_settings(cls, settings) -> "BrowserSession":
        return cls(headless=settings.CHROME_HEADLESS, chromedriver_path=settings.CHROMEDRIVER_PATH)

    def build_options(self) -> Options:
        chrome_options = Options()
        if self.headless:
            chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-setuid-sandbox")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--disable-dev-shm-usage")  # /dev/shm is tiny in containers
        return chrome_options

    def launch(self) -> "BrowserSession":
        if self.driver is not None:
            return self

        options = self.build_options()
        try:
            if self.chromedriver_path:
                driver_service = Service(executable_path=self.chromedriver_path)
                self.driver = webdriver.Chrome(service=driver_service, options=options)
            else:
                self.driver = webdriver.Chrome(options=options)
        except WebDriverException as e:
            raise BrowserSessionError(f"Failed to launch browser: {e.msg or e}") from e

        logger.info("Browser session started")
        return self

    def close(self) -> None:
        if self.driver is None:
            return
        try:
            self.driver.quit()
            logger.info("Browser session closed")
        except WebDriverException as e:
            logger.warning(f"Error while closing browser session: {e}")
        finally:
            self.driver = None

    def __enter__(self) -> "BrowserSession":
        return self.launch()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def _require_driver(self) -> webdriver.Chrome:
        if self.driver is None:
            raise BrowserSessionError("Browser session is not running")
        return self.driver

    @property
    def control_endpoint(self) -> Tuple[str, int]:
        """(host, port) of the browser's DevTools endpoint."""
        driver = self._require_driver()
        chrome_caps = driver.capabilities.get("goog:chromeOptions") or {}
        address = chrome_caps.get("debuggerAddress")
        if not address or ":" not in address:
            raise BrowserSessionError("Browser did not expose a DevTools debugger address")

        host, _, port = address.rpartition(":")
        try:
            return host or "localhost", int(port)
        except ValueError as e:
            raise BrowserSessionError(f"Invalid debugger address: {address}") from e

    @contextmanager
    def open_page(self) -> Iterator[str]:
        """
        Open a fresh tab for one configuration and close it on every exit path.

        Failing to open the tab means the browser itself is unusable, which is
        reported as a ``BrowserSessionError``.
        """
        driver = self._require_driver()
        try:
            original_handle = driver.current_window_handle
            driver.switch_to.new_window("tab")
            handle = driver.current_window_handle
        except WebDriverException as e:
            raise BrowserSessionError(f"Failed to open browser page: {e.msg or e}") from e

        try:
            yield handle
        finally:
            try:
                if handle in driver.window_handles:
                    driver.switch_to.window(handle)
                    driver.close()
                driver.switch_to.window(original_handle)
            except WebDriverException as e:
                logger.warning(f"Error while closing browser page {handle}: {e}")

    def emulate_device(self, device: str) -> None:
        driver = self._require_driver()
        if device == "mobile":
            driver.execute_cdp_cmd(
                "Emulation.setDeviceMetricsOverride",
                {
                    "width": MOBILE_DEVICE["width"],
                    "height": MOBILE_DEVICE["height"],
                    "deviceScaleFactor": MOBILE_DEVICE["deviceScaleFactor"],
                    "mobile": MOBILE_DEVICE["mobile"],
                },
            )
            driver.execute_cdp_cmd(
                "Network.setUserAgentOverride", {"userAgent": MOBILE_DEVICE["userAgent"]}
            )
        else:
            driver.execute_cdp_cmd("Emulation.clearDeviceMetricsOverride", {})
