"""Tests for HTML field extraction."""

from crawler.extraction import (
    is_access_denied,
    parse_listing_cards,
    parse_phone,
    parse_profile,
    parse_total_pages,
    parse_total_results,
)
from crawler.models import ACCESS_DENIED, STATUS_BLOCKED

from conftest import html_page

BASE_URL = "https://example.test"
PROFILE_URL = "https://example.test/filles/anna-123/"

LISTING_HTML = html_page("""
<p class="page-subtitle">1,234 results</p>
<div class="profile-card">
  <a class="image-hover" href="/filles/anna-123/"><img src="a.jpg"></a>
  <h5 class="card-title">Anna</h5>
  <p class="card-text">Independent in Geneva</p>
</div>
<div class="profile-card">
  <a href="https://example.test/filles/bella-456/">Bella</a>
  <h5 class="card-title"> Bella </h5>
  <p class="card-text">Visiting from Zurich</p>
</div>
<div class="profile-card">
  <a class="image-hover" href="/filles/cleo-789/"></a>
  <h5 class="card-title">Cleo</h5>
  <span class="small">Lausanne</span>
</div>
<div class="profile-card">
  <a class="image-hover" href="/filles/dora-1/"></a>
  <h5 class="card-title">Dora</h5>
</div>
<div class="profile-card">
  <h5 class="card-title">No link</h5>
</div>
<div class="profile-card">
  <a class="image-hover" href="/filles/untitled/"></a>
</div>
<ul class="pagination">
  <li class="page-item"><a href="/filles/?page=2">2</a></li>
  <li class="page-item"><a href="/filles/?page=3">3</a></li>
  <li class="page-item"><a href="/filles/?page=12">Last</a></li>
</ul>
""")

PROFILE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Anna - Escort Geneva | Fgirl.ch</title>
  <meta name="description" content="Meta description">
</head>
<body>
  <ol class="breadcrumb">
    <li class="breadcrumb-item"><a href="/filles/">Girls</a></li>
    <li class="breadcrumb-item"><a href="/geneve/">Geneva</a></li>
    <li class="breadcrumb-item"><a href="/carouge/">Carouge</a></li>
    <li class="breadcrumb-item active">Anna</li>
  </ol>
  <div class="card">
    <p class="card-text font-italic small text-white">On pause until Monday</p>
    <button class="btn btn-success card-badge badge-certified">Certified</button>
    <span><i class="fas fa-map-marker-alt"></i> in Carouge</span>
    <span class="text-muted small float-right">1,234 visits</span>
    <span id="like-counter">56</span>
    <span id="follow-counter">7</span>
  </div>
  <div class="description-text">Lovely   description
  here</div>
  <div class="card">
    <h2>About</h2>
    <div class="row">
      <div class="col-6">&#127874; 25 years old</div>
      <div class="col-6">&#128207; 170 cm</div>
    </div>
  </div>
  <ul class="services-list"><li>✓ Massage</li><li>Dinner date</li></ul>
  <h2>Reviews (3)</h2>
  <a href="https://example.org/my-site">Website</a>
</body>
</html>
"""


class TestListing:

    def test_cards(self):
        cards = parse_listing_cards(LISTING_HTML, BASE_URL)

        assert [(c.name, c.location, c.profile_url) for c in cards] == [
            ("Anna", "Geneva", "https://example.test/filles/anna-123/"),
            ("Bella", "Zurich", "https://example.test/filles/bella-456/"),
            ("Cleo", "Lausanne", "https://example.test/filles/cleo-789/"),
            ("Dora", "N/A", "https://example.test/filles/dora-1/"),
        ]

    def test_total_pages(self):
        assert parse_total_pages(LISTING_HTML) == 12

    def test_total_pages_without_pagination(self):
        assert parse_total_pages(html_page("<p>nothing</p>")) == 0

    def test_total_results(self):
        assert parse_total_results(LISTING_HTML) == 1234

    def test_total_results_missing(self):
        assert parse_total_results(html_page("<p class='page-subtitle'>Escorts</p>")) == 0


class TestProfile:

    def test_all_fields(self):
        record = parse_profile(PROFILE_HTML, PROFILE_URL, phone="+41 79 123 45 67")

        assert record.url == PROFILE_URL
        assert record.nickname == "Anna"
        assert record.canton == "Geneva"
        assert record.city == "Carouge"
        assert record.category == "Girls"
        assert record.phone == "+41 79 123 45 67"
        assert record.status == "inactive"
        assert record.certified == "yes"
        assert record.location == "Carouge"
        assert record.visits == "1234"
        assert record.likes == "56"
        assert record.followers == "7"
        assert record.reviews == "3"
        assert record.description == "Lovely description here"
        assert record.about == "25 years old | 170 cm"
        assert record.services == "Massage, Dinner date, 25 years old"
        assert record.link == PROFILE_URL

    def test_minimal_page_defaults(self):
        html = html_page('<h1 class="name">Bella</h1>', title="Fgirl.ch")

        record = parse_profile(html, PROFILE_URL)

        assert record.nickname == "Bella"
        assert record.status == "active"
        assert record.certified == "no"
        assert record.link == ""
        assert record.services == ""
        assert record.phone == ""

    def test_meta_description_fallback_feeds_about(self):
        html = """<!DOCTYPE html><html><head><title>Cleo - Escort</title>
        <meta name="description" content="Sweet and discreet"></head><body></body></html>"""

        record = parse_profile(html, PROFILE_URL)

        assert record.description == "Sweet and discreet"
        assert record.about == "Sweet and discreet"

    def test_access_denied_page(self):
        html = "<html><head><title>Accès refusé</title></head><body></body></html>"

        assert is_access_denied(html)
        record = parse_profile(html, PROFILE_URL)
        assert record.nickname == ACCESS_DENIED
        assert record.status == STATUS_BLOCKED
        assert record.url == PROFILE_URL

    def test_ordinary_page_is_not_access_denied(self):
        assert not is_access_denied(PROFILE_HTML)


class TestPhone:

    def test_tel_link(self):
        assert parse_phone('<a href="tel:+41791234567">Call</a>') == "+41791234567"

    def test_button_text(self):
        assert parse_phone('<a class="btn btn-primary">+41 79 123 45 67</a>') == "+41 79 123 45 67"

    def test_whatsapp_link_is_formatted(self):
        assert parse_phone('<a href="https://wa.me/41791234567">WhatsApp</a>') == "+41 79 123 45 67"

    def test_free_text_fallback(self):
        assert parse_phone('<div class="d-md-none"><p>Call +41 79 123 45 67 now</p></div>') == "+41 79 123 45 67"

    def test_nothing_found(self):
        assert parse_phone("<p>No phone</p>") == ""
        assert parse_phone(None) == ""
