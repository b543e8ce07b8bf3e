"""Heuristic classification of a TestFlight join page.

The page layout is not a stable contract, so every signal here is a
best-effort guess. ``classify`` is a pure function of the HTML so new
selectors or phrases can be added and tested without network access.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from testflight_monitor.errors import ParseError
from testflight_monitor.state import UNKNOWN_APP_NAME, AvailabilityResult

# Tried in order; the first one that yields a non-empty cleaned name wins.
APP_NAME_SELECTORS = (
    ".app-header__title",
    "h1.beta-status__app-title",
    ".beta-status__app-name",
    'h1:-soup-contains("Join the beta")',
    '.beta-status__title:-soup-contains("beta")',
    "title",
)

# Removed from candidate names in this order, first occurrence only.
APP_NAME_BOILERPLATE = (
    "Join the beta -",
    "Beta -",
    "TestFlight -",
    "- TestFlight",
    "Beta",
)

FALLBACK_HEADING_SELECTOR = "h1, h2"
FALLBACK_HEADING_EXCLUDE = ("testflight", "beta")

BETA_FULL_PHRASES = (
    "This beta is full",
    "Beta program is currently full",
    "No longer accepting new testers",
)

JOIN_BUTTON_SELECTORS = (
    'button:-soup-contains("Join the Beta")',
    'button:-soup-contains("Start Testing")',
)


def clean_app_name(text: str) -> str:
    name = (text or "").strip()
    for fragment in APP_NAME_BOILERPLATE:
        name = name.replace(fragment, "", 1)
    return name.strip()


def _parse(html: str) -> BeautifulSoup:
    if not isinstance(html, str):
        raise ParseError(f"expected HTML text, got {type(html).__name__}")
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as e:
        raise ParseError(f"could not parse page: {type(e).__name__}: {e}") from e
    if soup.find() is None:
        raise ParseError("page contains no HTML elements")
    return soup


def extract_app_name(soup: BeautifulSoup) -> str:
    """Best-effort app name, or an empty string when nothing matched."""
    for selector in APP_NAME_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        name = clean_app_name(el.get_text())
        if name:
            return name

    for el in soup.select(FALLBACK_HEADING_SELECTOR):
        text = el.get_text().strip()
        lowered = text.lower()
        if text and not any(word in lowered for word in FALLBACK_HEADING_EXCLUDE):
            return text

    return ""


def is_beta_full(soup: BeautifulSoup) -> bool:
    container = soup.body or soup
    text = container.get_text()
    return any(phrase in text for phrase in BETA_FULL_PHRASES)


def has_join_button(soup: BeautifulSoup) -> bool:
    return any(soup.select_one(selector) is not None for selector in JOIN_BUTTON_SELECTORS)


def classify(html: str) -> AvailabilityResult:
    soup = _parse(html)

    app_name = extract_app_name(soup)
    full = is_beta_full(soup)
    join_button = has_join_button(soup)

    # A join button beats "full" text; no "full" text at all counts as open.
    is_available = join_button or not full

    label = app_name or "the app"
    if is_available:
        message = f"TestFlight for {label} has available slots!"
    else:
        message = f"TestFlight for {label} is currently full."

    return AvailabilityResult(
        is_available=is_available,
        app_name=app_name or UNKNOWN_APP_NAME,
        message=message,
    )
