"""Announcement sources: the exchange disclosure page and JSON replays.

IdxPageSource drives a headless Chromium through the disclosure listing
for one date and returns every announcement card across all result pages.
JSON helpers save a scraped batch and load it back, so a run can be
replayed offline with `main.py run --input batch.json`.

Error Handling Strategy:
    - A bot/Cloudflare challenge page raises PageSourceError
    - A missing date filter raises PageSourceError
    - Playwright timeouts propagate; the run is aborted as a whole
"""

import json
import logging
from datetime import date
from pathlib import Path

from playwright.async_api import Page, async_playwright

from config import Config
from models.announcement import RawAnnouncement

logger = logging.getLogger(__name__)

# Page structure of the disclosure listing
DATE_INPUT_SELECTOR = 'input[name="date"]'
CARD_SELECTOR = "div.attach-card"
NEXT_PAGE_SELECTOR = 'button[aria-label="Go to next page"]:not([disabled])'

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_CHALLENGE_TITLES = ("just a moment", "attention required", "please wait", "checking")
_CHALLENGE_BODY = ("checking your browser", "verify you are human")
_CHALLENGE_ELEMENTS = (
    'iframe[src*="captcha"], iframe[src*="turnstile"], iframe[src*="challenges.cloudflare"], '
    "#challenge-running, #challenge-stage, .cf-browser-verification, "
    'script[src*="challenges.cloudflare"], script[src*="challenge-platform"]'
)

# Runs inside the page: one record per announcement card
_SCRAPE_CARDS_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((card) => {
    const time = card.querySelector('time');
    const title = card.querySelector('h6');
    const titleLink = card.querySelector('h6 a');
    return {
        time: time ? time.innerText.trim() : '',
        title: title ? title.innerText.trim() : '',
        titleUrl: titleLink ? titleLink.href : '',
        attachments: Array.from(card.querySelectorAll('ul li a')).map((link) => ({
            text: link.innerText.trim(),
            url: link.href,
        })),
    };
})
"""


class PageSourceError(Exception):
    """Raised when the listing cannot be scraped at all."""


def looks_blocked(title: str, body: str) -> bool:
    """Detect a bot-protection interstitial from page title and body text."""
    title = title.lower()
    body = body.lower()
    if any(marker in title for marker in _CHALLENGE_TITLES):
        return True
    return "cloudflare" in body and any(marker in body for marker in _CHALLENGE_BODY)


def parse_cards(records: list[dict]) -> list[RawAnnouncement]:
    """Validate raw card dictionaries into announcements, one per card.

    Cards without a title or attachments are kept so that every card on
    the page gets a verdict.
    """
    announcements = [RawAnnouncement.model_validate(record) for record in records]
    empty = sum(1 for ann in announcements if not ann.title and not ann.attachments)
    if empty:
        logger.info("Cards without title or attachments | count=%d", empty)
    return announcements


class IdxPageSource:
    """Scrape disclosure announcements for a single date.

    Example:
        >>> source = IdxPageSource(config)
        >>> announcements = await source.get_raw_announcements(date(2025, 9, 18))
    """

    def __init__(self, config: Config):
        self.config = config

    @property
    def _timeout_ms(self) -> int:
        return self.config.page_timeout_seconds * 1000

    async def get_raw_announcements(self, day: date) -> list[RawAnnouncement]:
        """Open the listing, filter by `day`, and collect every page.

        Raises:
            PageSourceError: If the page is blocked or the date filter is missing
        """
        async with async_playwright() as p:
            browser = await p.chromium.launch(
                headless=self.config.headless,
                executable_path=self.config.browser_executable or None,
                args=BROWSER_ARGS,
                timeout=self._timeout_ms,
            )
            try:
                page = await browser.new_page(viewport={"width": 1366, "height": 900})
                logger.info("Opening listing | url=%s", self.config.target_url)
                await page.goto(self.config.target_url, wait_until="networkidle", timeout=self._timeout_ms)
                await self._ensure_not_blocked(page)
                await self._select_date(page, day)
                return await self._collect_all_pages(page)
            finally:
                await browser.close()

    async def _ensure_not_blocked(self, page: Page) -> None:
        title = await page.title()
        body = await page.inner_text("body")
        challenge_element = await page.query_selector(_CHALLENGE_ELEMENTS)
        if looks_blocked(title, body) or challenge_element is not None:
            logger.error("Blocked by bot detection | title=%s body=%s", title, body[:300])
            raise PageSourceError(f"Blocked by bot detection (page title: {title!r})")
        logger.debug("No bot challenge detected | title=%s", title)

    async def _select_date(self, page: Page, day: date) -> None:
        date_input = await page.wait_for_selector(DATE_INPUT_SELECTOR, timeout=5000)
        if date_input is None:
            raise PageSourceError("Date filter not found on the listing page")
        stamp = day.isoformat()
        logger.info("Scraping announcements | date=%s", stamp)
        await date_input.click()
        await page.keyboard.type(f"{stamp} ~ {stamp}")
        await page.keyboard.press("Enter")
        await page.wait_for_load_state("networkidle", timeout=self._timeout_ms)

    async def _collect_all_pages(self, page: Page) -> list[RawAnnouncement]:
        announcements: list[RawAnnouncement] = []
        page_number = 1
        while True:
            records = await page.evaluate(_SCRAPE_CARDS_JS, CARD_SELECTOR)
            current = parse_cards(records)
            announcements.extend(current)
            logger.debug("Page scraped | page=%d cards=%d", page_number, len(current))

            next_button = await page.query_selector(NEXT_PAGE_SELECTOR)
            if next_button is None:
                break
            await next_button.click()
            await page.wait_for_load_state("networkidle", timeout=self._timeout_ms)
            page_number += 1

        logger.info("Listing scraped | pages=%d announcements=%d", page_number, len(announcements))
        return announcements


def load_announcements(path: Path) -> list[RawAnnouncement]:
    """Load a JSON array of announcements (as written by save_announcements).

    Raises:
        ValueError: If the file is not a JSON array
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of announcements")
    return [RawAnnouncement.model_validate(item) for item in data]


def save_announcements(path: Path, announcements: list[RawAnnouncement]) -> None:
    """Write announcements as a JSON array using scraper field names."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [ann.model_dump(mode="json", by_alias=True) for ann in announcements]
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Announcements saved | file=%s count=%d", path, len(payload))
