"""
Fgirl.ch browser layer.
Drives a SeleniumBase undetected-Chrome session and exposes page fetching
for listing and profile pages.
"""

import json
import logging
import os
import re
import sys
import time
from pathlib import Path
from typing import Dict, Optional

from seleniumbase import Driver

from crawler.config import CrawlerConfig
from crawler.exceptions import NavigationError
from crawler.extraction import access_denied_record, is_access_denied, parse_phone, parse_profile
from crawler.models import ERROR, STATUS_ERROR, PageResponse, ProfileRecord

logger = logging.getLogger(__name__)


DISMISS_MODALS_JS = """
document.querySelectorAll('.modal.show .close, .modal.show [data-dismiss="modal"]')
    .forEach(function (el) { el.click(); });
document.querySelectorAll('.modal-backdrop').forEach(function (el) { el.remove(); });
document.body.classList.remove('modal-open');
"""

CLEAR_STORAGE_JS = """
try { window.localStorage.clear(); } catch (e) {}
try { window.sessionStorage.clear(); } catch (e) {}
"""

# Same-origin XHR so the site answers with the phone fragment
FETCH_TEXT_JS = """
var done = arguments[arguments.length - 1];
fetch(arguments[0], {
    credentials: 'include',
    headers: {'X-Requested-With': 'XMLHttpRequest', 'Accept': 'text/html, */*; q=0.01'}
}).then(function (r) { return r.text(); }).then(done).catch(function () { done(null); });
"""


class BrowserSession:
    """
    One undetected-Chrome session, owned by a single worker thread.

    Implements the session operations the countermeasures need
    (user agent, extra headers, cookie and storage clearing).
    """

    def __init__(self, config: Optional[CrawlerConfig] = None, name: str = "session"):
        self.config = config or CrawlerConfig()
        self.name = name
        self.driver = None

    def _init_driver(self):
        """Initialize SeleniumBase Driver with UC mode"""
        if self.driver is not None:
            return

        logger.info("%s: initializing browser...", self.name)

        if sys.platform.startswith('linux'):
            # Snap-packaged Chromium breaks the UC driver
            os.environ['SNAP_NAME'] = ''
            os.environ['SNAP'] = ''
            os.environ['SNAP_INSTANCE_NAME'] = ''

        self.driver = Driver(
            uc=True,
            headless=self.config.headless,
            proxy=self.config.proxy_string,
            log_cdp_events=True
        )
        self.driver.set_page_load_timeout(self.config.retry.attempt_timeout)

        try:
            self.driver.get(self.config.base_url)
            time.sleep(self.config.warmup_wait)
        except Exception as e:
            logger.warning("%s: warmup navigation failed: %s", self.name, e)

    def ensure_driver(self):
        """Ensure driver is alive, recreate if needed"""
        if self.driver is None:
            self._init_driver()
            return
        if not self.is_alive():
            logger.warning("%s: browser connection lost, restarting...", self.name)
            self.restart()

    def is_alive(self) -> bool:
        if self.driver is None:
            return False
        try:
            self.driver.current_url
            return True
        except Exception:
            return False

    def restart(self):
        self.close()
        self._init_driver()

    def close(self):
        """Close WebDriver"""
        if self.driver is None:
            return
        try:
            self.driver.quit()
        except Exception as e:
            logger.debug("%s: error closing browser: %s", self.name, e)
        self.driver = None

    # Session operations used by AntiDetection

    def set_user_agent(self, user_agent: str):
        self.ensure_driver()
        self.driver.execute_cdp_cmd("Network.setUserAgentOverride", {"userAgent": user_agent})

    def set_headers(self, headers: Dict[str, str]):
        self.ensure_driver()
        self.driver.execute_cdp_cmd("Network.enable", {})
        self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": headers})

    def clear_cookies_and_storage(self):
        self.ensure_driver()
        self.driver.delete_all_cookies()
        self.driver.execute_script(CLEAR_STORAGE_JS)

    # Page access

    def navigate(self, url: str) -> PageResponse:
        """
        Load a URL and capture the main document response.

        Args:
            url: Page to load

        Returns:
            PageResponse with status and headers when the browser reported them

        Raises:
            NavigationError: On timeout, network failure or a dead session
        """
        self.ensure_driver()
        self._drain_performance_log()

        try:
            self.driver.get(url)
            time.sleep(self.config.page_load_wait)
            content = self.driver.page_source
        except Exception as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e

        status, headers = self._document_response()
        return PageResponse(url=url, status=status, headers=headers, content=content)

    def page_source(self) -> Optional[str]:
        """
        Re-read the current page, e.g. after a challenge wait.

        Raises:
            NavigationError: If the browser no longer answers
        """
        self.ensure_driver()
        try:
            return self.driver.page_source
        except Exception as e:
            raise NavigationError(f"Could not read page source: {e}") from e

    def dismiss_modals(self):
        try:
            self.driver.execute_script(DISMISS_MODALS_JS)
        except Exception as e:
            logger.debug("%s: could not dismiss modals: %s", self.name, e)

    def fetch_text(self, url: str) -> Optional[str]:
        """Fetch a same-origin URL from inside the page, returning the body text."""
        self.ensure_driver()
        self.driver.set_script_timeout(self.config.retry.attempt_timeout)
        return self.driver.execute_async_script(FETCH_TEXT_JS, url)

    def save_debug(self, label: str, content: Optional[str]):
        if not self.config.save_debug or not content:
            return
        debug_dir = Path(self.config.data_dir) / "debug"
        slug = re.sub(r"[^A-Za-z0-9_-]+", "_", label).strip("_")[:80]
        try:
            debug_dir.mkdir(parents=True, exist_ok=True)
            (debug_dir / f"debug_{slug}.html").write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning("%s: could not save debug HTML: %s", self.name, e)

    def _drain_performance_log(self):
        try:
            self.driver.get_log("performance")
        except Exception as e:
            logger.debug("%s: performance log unavailable: %s", self.name, e)

    def _document_response(self):
        """Status and headers of the last document response in the CDP log."""
        status = None
        headers: Dict[str, str] = {}
        try:
            entries = self.driver.get_log("performance")
        except Exception:
            return status, headers

        for entry in entries:
            try:
                message = json.loads(entry["message"])["message"]
            except (KeyError, TypeError, ValueError):
                continue
            if message.get("method") != "Network.responseReceived":
                continue
            params = message.get("params", {})
            if params.get("type") != "Document":
                continue
            response = params.get("response", {})
            status = response.get("status")
            headers = {k.lower(): str(v) for k, v in response.get("headers", {}).items()}

        if status is not None:
            status = int(status)
        return status, headers


class ProfilePageFetcher:
    """Profile page access for the retry loop, bound to one worker's session."""

    def __init__(self, session: BrowserSession):
        self.session = session

    def fetch(self, url: str) -> PageResponse:
        response = self.session.navigate(url)
        self.session.dismiss_modals()
        self.session.save_debug(url, response.content)
        return response

    def reload_content(self) -> Optional[str]:
        return self.session.page_source()

    def extract(self, response: PageResponse) -> ProfileRecord:
        """
        Extract a profile from a fetched page.

        Access-denied pages and extraction failures come back as
        placeholder records so the validity check can reject them.
        """
        url = response.url
        content = response.content or ""
        try:
            if is_access_denied(content):
                logger.warning("Access denied for %s", url)
                return access_denied_record(url)

            phone = ""
            try:
                phone = parse_phone(self.session.fetch_text(f"{url.rstrip('/')}/call/"))
            except Exception as e:
                logger.debug("Phone lookup failed for %s: %s", url, e)

            return parse_profile(content, url, phone=phone)
        except Exception as e:
            logger.error("Error extracting data from %s: %s", url, e)
            return ProfileRecord.placeholder(url, ERROR, STATUS_ERROR)
