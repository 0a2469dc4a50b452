"""
HTML field extraction for listing pages and profile pages.
Pure functions over page source, using BeautifulSoup.
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from crawler.models import (
    ACCESS_DENIED,
    STATUS_BLOCKED,
    ListingRecord,
    ProfileRecord,
)

SITE_NAME = "Fgirl.ch"

SWISS_CITIES = (
    "Geneva|Zurich|Basel|Bern|Lausanne|Lucerne|St\\. Gallen|Winterthur|Thun|Fribourg|"
    "Neuchâtel|Schaffhausen|Chur|Aarau|Solothurn|Zug|Bellinzona|Sion|Lugano|Baden|"
    "Wetzikon|Rapperswil|Kreuzlingen"
)

LOCATION_PATTERNS = [
    re.compile(r"in\s+([^,\n\r]+)", re.IGNORECASE),
    re.compile(r"from\s+([^,\n\r]+)", re.IGNORECASE),
    re.compile(rf"\b({SWISS_CITIES})\b", re.IGNORECASE),
]

SERVICE_HINTS = ("Escort", "Massage", "Tantra", "years old", "Natural", "Boobs")

PHONE_PATTERN = re.compile(r"(\+\d+[\s\d]{8,})")


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _strip_icon(text: str) -> str:
    return re.sub(r"^\s*[^\w\s]+\s*", "", text).strip()


# Listing pages

def _card_location(card) -> str:
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(card.get_text(" "))
        if match:
            return match.group(1).strip().rstrip(",.")

    for elem in card.select(".card-text, .text-muted, .small, p, span"):
        text = elem.get_text(" ", strip=True)
        for pattern in LOCATION_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip().rstrip(",.")
    return "N/A"


def parse_listing_cards(html: str, base_url: str) -> List[ListingRecord]:
    """
    Extract (name, location, profile URL) from every profile card.

    Cards without a name or a link are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    records = []

    for card in soup.select(".profile-card"):
        title = card.select_one(".card-title")
        name = _clean(title.get_text()) if title else ""
        if not name:
            continue

        link = card.select_one("a.image-hover") or card.select_one('a[href*="/filles/"]')
        href = link.get("href") if link else None
        if not href:
            continue

        records.append(ListingRecord(
            name=name,
            location=_card_location(card),
            profile_url=urljoin(base_url, href)
        ))

    return records


def parse_total_pages(html: str) -> int:
    """Highest page number linked from the pagination, 0 if none."""
    soup = BeautifulSoup(html, "html.parser")
    max_page = 0

    for link in soup.select('.pagination a[href*="page="]'):
        match = re.search(r"page=(\d+)", link.get("href", ""))
        if match:
            max_page = max(max_page, int(match.group(1)))

    for link in soup.select(".pagination .page-item a"):
        text = link.get_text(strip=True)
        if text.isdigit():
            max_page = max(max_page, int(text))

    return max_page


def parse_total_results(html: str) -> int:
    """Total profile count from the "N results" subtitle, 0 if absent."""
    soup = BeautifulSoup(html, "html.parser")
    subtitle = soup.select_one("p.page-subtitle")
    if not subtitle:
        return 0
    match = re.match(r"^([\d,]+)\s+results?", subtitle.get_text(strip=True), re.IGNORECASE)
    if not match:
        return 0
    return int(match.group(1).replace(",", ""))


# Profile pages

def is_access_denied(html: str) -> bool:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text().lower() if soup.title else ""
    return (
        "accès refusé" in title
        or "access denied" in title
        or "Access denied" in html
        or "Accès refusé" in html
    )


def access_denied_record(url: str) -> ProfileRecord:
    return ProfileRecord.placeholder(url, ACCESS_DENIED, STATUS_BLOCKED)


def _nickname(soup) -> str:
    title = soup.title.get_text() if soup.title else ""
    match = re.match(r"^([^-]+)", title)
    if match and match.group(1).strip() != SITE_NAME:
        return match.group(1).strip()

    name_elem = soup.select_one(".name, .profile-name, h1.name")
    if name_elem:
        name = name_elem.get_text(strip=True)
        if name and name != SITE_NAME:
            return name

    crumb = soup.select_one(".breadcrumb-item.active")
    if crumb:
        text = crumb.get_text(strip=True)
        if text and text != SITE_NAME:
            return text

    return "Unknown"


def _about_details(soup) -> List[str]:
    header = soup.select_one('h2:-soup-contains("About")')
    card = header.find_parent(class_="card") if header else None
    if card is None:
        return []
    return [
        elem.get_text(" ", strip=True)
        for elem in card.select(".row .col-6, .row .col-md-4")
    ]


def parse_profile(html: str, url: str, phone: str = "") -> ProfileRecord:
    """
    Extract every detail field from a profile page.

    Args:
        html: Rendered page source
        url: Profile URL, used as the record key
        phone: Phone number fetched separately, if any

    Returns:
        ProfileRecord (placeholder if access was denied)
    """
    if is_access_denied(html):
        return access_denied_record(url)

    soup = BeautifulSoup(html, "html.parser")

    status = "active"
    pause = soup.select_one(".card-text.font-italic.small.text-white")
    if pause and "On pause" in pause.get_text():
        status = "inactive"

    canton = ""
    city = ""
    for i, crumb in enumerate(soup.select(".breadcrumb-item")):
        text = crumb.get_text(strip=True)
        if not text or text == "Girls" or "Escort" in text or "girls" in text:
            continue
        if i == 1 and not canton:
            canton = text
        elif i == 2 and not city:
            city = text

    location = ""
    marker = soup.select_one(".fa-map-marker-alt")
    if marker and marker.parent:
        location = _clean(re.sub(r".*in\s+", "", marker.parent.get_text(" ", strip=True)))
    if not location:
        section = soup.select_one('h2:-soup-contains("Location")')
        sibling = section.find_next_sibling() if section else None
        if sibling:
            location = _clean(sibling.get_text(" "))
    if not city and location:
        city = location

    certified = "yes" if soup.select_one(
        "button.btn-success.card-badge.badge-certified, .profile-certified-icon, .badge-certified"
    ) else "no"

    visits = ""
    visits_elem = soup.select_one(".text-muted.small.float-right")
    if visits_elem:
        match = re.search(r"([\d,]+)\s*visits", visits_elem.get_text())
        if match:
            visits = match.group(1).replace(",", "")

    likes_elem = soup.select_one("#like-counter")
    likes = likes_elem.get_text(strip=True).replace(",", "") if likes_elem else ""
    followers_elem = soup.select_one("#follow-counter")
    followers = followers_elem.get_text(strip=True).replace(",", "") if followers_elem else ""

    reviews = ""
    reviews_header = soup.select_one('h2:-soup-contains("Reviews")')
    if reviews_header:
        match = re.search(r"Reviews\s*\((\d+)\)", reviews_header.get_text())
        if match:
            reviews = match.group(1)

    description = ""
    for selector in (".description-text", ".card-text"):
        elem = soup.select_one(selector)
        if elem:
            description = _clean(elem.get_text(" "))
            if description:
                break
    if not description:
        meta = soup.find("meta", attrs={"name": "description"})
        if meta and meta.get("content"):
            description = meta["content"].strip()

    details = _about_details(soup)
    about_parts = []
    for text in details:
        text = _clean(text)
        if not text or "visits" in text or len(text) >= 100:
            continue
        detail = _strip_icon(text)
        if len(detail) > 1:
            about_parts.append(detail)
    if about_parts:
        about = " | ".join(about_parts)
    else:
        about = description[:300]
    about = about[:500]

    services = []
    for item in soup.select(".services-list li"):
        service = re.sub(r"^\s*✓\s*", "", item.get_text(strip=True))
        if service:
            services.append(service)
    for text in details:
        if any(hint in text for hint in SERVICE_HINTS):
            detail = _strip_icon(_clean(text))
            if 0 < len(detail) < 50:
                services.append(detail)

    has_links = any(
        a["href"].startswith(("http", "www")) for a in soup.select("a[href]")
    )

    return ProfileRecord(
        url=url,
        canton=canton,
        city=city,
        nickname=_nickname(soup),
        category="Girls",
        phone=phone,
        status=status,
        certified=certified,
        about=about,
        visits=visits,
        services=", ".join(services),
        location=location,
        description=description,
        link=url if has_links else "",
        likes=likes,
        followers=followers,
        reviews=reviews
    )


def _format_swiss_number(digits: str) -> str:
    if digits.startswith("41") and len(digits) >= 11:
        return f"+41 {digits[2:4]} {digits[4:7]} {digits[7:9]} {digits[9:]}"
    return f"+{digits}"


def parse_phone(html: Optional[str]) -> str:
    """Extract a phone number from the profile's call endpoint response."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    phone = ""

    tel = soup.select_one('a[href^="tel:"]')
    if tel:
        phone = tel["href"].replace("tel:", "").strip()

    if not phone:
        for button in soup.select(".btn"):
            match = re.search(r"(\+\d+[\s\d]+)", button.get_text())
            if match:
                phone = match.group(1).strip()
                break

    if not phone:
        whatsapp = soup.select_one('a[href*="wa.me/"]')
        match = re.search(r"wa\.me/(\d+)", whatsapp["href"]) if whatsapp else None
        if match:
            phone = _format_swiss_number(match.group(1))

    if not phone:
        match = PHONE_PATTERN.search(" ".join(p.get_text(" ") for p in soup.select(".d-md-none p")))
        if match:
            phone = match.group(1).strip()

    if not phone:
        match = PHONE_PATTERN.search(html)
        if match:
            phone = match.group(1).strip()

    return _clean(phone)
