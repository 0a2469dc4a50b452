"""
Shared fixtures and in-memory fakes.

Nothing here opens a browser or touches the network: the session and page
fetcher protocols are satisfied by the fakes below.
"""

from typing import Callable, Dict, List, Optional, Union

import pytest

from crawler.config import CrawlerConfig, PacingConfig, RetryConfig
from crawler.exceptions import NavigationError
from crawler.models import PageResponse, ProfileRecord


PADDING = "<!-- " + "lorem ipsum " * 60 + "-->"


def html_page(body: str, title: str = "Profiles") -> str:
    """A full, ordinary HTML page long enough not to look like a block page."""
    return (
        "<!DOCTYPE html><html><head>"
        f"<title>{title}</title></head><body>{body}{PADDING}</body></html>"
    )


CLEAN_PAGE = html_page("<h1>Anna</h1>")
CHALLENGE_PAGE = html_page("<p>Checking your browser before accessing the site.</p>")


def make_profile(url: str, nickname: str = "Anna", **fields) -> ProfileRecord:
    values = dict(
        canton="Geneva",
        city="Geneva",
        category="Girls",
        status="active",
        certified="yes",
        description="Friendly and discreet",
    )
    values.update(fields)
    return ProfileRecord(url=url, nickname=nickname, **values)


class FakeSession:
    """In-memory stand-in for a browser session."""

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception]]] = None, alive: bool = True):
        self.pages = pages or {}
        self.alive = alive
        self.user_agents: List[str] = []
        self.headers: List[Dict[str, str]] = []
        self.clears = 0
        self.closed = False
        self.restarts = 0
        self.navigations: List[str] = []
        self._current: Optional[str] = None

    def set_user_agent(self, user_agent: str):
        self.user_agents.append(user_agent)

    def set_headers(self, headers: Dict[str, str]):
        self.headers.append(headers)

    def clear_cookies_and_storage(self):
        self.clears += 1

    def is_alive(self) -> bool:
        return self.alive

    def restart(self):
        self.restarts += 1
        self.alive = True

    def close(self):
        self.closed = True

    def navigate(self, url: str) -> PageResponse:
        self.navigations.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            raise NavigationError(f"No page for {url}")
        self._current = page
        return PageResponse(url=url, status=200, headers={}, content=page)

    def page_source(self) -> Optional[str]:
        return self._current

    def dismiss_modals(self):
        pass

    def save_debug(self, label: str, content: Optional[str]):
        pass


# (status, content) for a response, or an exception to raise from fetch
Outcome = Union[tuple, Exception]


class ScriptedFetcher:
    """
    Page fetcher that plays back a script of outcomes, one per fetch call.

    The last outcome repeats once the script runs out.
    """

    def __init__(
        self,
        outcomes: List[Outcome],
        record: Optional[Callable[[PageResponse, int], ProfileRecord]] = None,
        reload: Optional[str] = None,
        session: Optional[FakeSession] = None
    ):
        self.session = session or FakeSession()
        self.outcomes = list(outcomes)
        self.record = record
        self.reload = reload
        self.calls = 0
        self.reloads = 0

    def fetch(self, url: str) -> PageResponse:
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        status, content = outcome
        return PageResponse(url=url, status=status, headers={}, content=content)

    def reload_content(self) -> Optional[str]:
        self.reloads += 1
        return self.reload

    def extract(self, response: PageResponse) -> ProfileRecord:
        if self.record is not None:
            return self.record(response, self.calls)
        return make_profile(response.url)


class NoSleep:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture
def no_sleep():
    return NoSleep()


@pytest.fixture
def fast_retry():
    return RetryConfig(
        max_attempts=4,
        base_delay=0.0,
        max_delay=0.0,
        challenge_wait=0.0,
        countermeasure_delay=0.0,
    )


@pytest.fixture
def crawler_config(tmp_path, fast_retry):
    return CrawlerConfig(
        base_url="https://example.test",
        data_dir=str(tmp_path),
        workers=2,
        warmup_wait=0.0,
        page_load_wait=0.0,
        retry=fast_retry,
        pacing=PacingConfig(
            min_delay=0.0,
            max_delay=0.0,
            initial_delay=0.0,
            jitter_percent=0.0,
            cooldown_duration=0.0,
        ),
    )
