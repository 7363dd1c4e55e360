"""Tests for the AutoScout24 adapter and the shared HTTP fetcher."""

import pytest
import requests

from vehicle_alerts.config import SourceConfig
from vehicle_alerts.outcomes import ParseIncompleteError, ResourceGoneError, TransientFetchError
from vehicle_alerts.sources import AutoScoutAdapter, HttpFetcher, SourceAdapter


LISTING_PAGE = """
<html><body>
<div class="cl-list">
  <article class="cldt-summary-full-item" data-guid="guid-newest">
    <a href="/ajanlat/volkswagen-golf-guid-newest?cldtidx=1&amp;cldtsrc=listPage">Golf</a>
  </article>
  <article class="cldt-summary-full-item" id="li-abc-123">
    <a href="https://www.autoscout24.hu/ajanlat/opel-astra-abc-123">Astra</a>
  </article>
  <article class="cldt-summary-full-item" data-guid="guid-newest">
    <a href="/ajanlat/volkswagen-golf-guid-newest">Golf again</a>
  </article>
  <article class="cldt-summary-full-item" data-guid="guid-ad">
    <a href="/lst/sponsored">Sponsored</a>
  </article>
</div>
</body></html>
"""

DETAIL_PAGE = """
<html><body>
<div class="cldt-stage">
  <div class="cldt-price"><h2>€ 9 999</h2></div>
  <div class="cldt-price"><h2>€ 8 500,-</h2></div>
  <div class="cldt-stage-primary-keyfact sc-font-l">Kézi</div>
  <div class="cldt-stage-primary-keyfact sc-font-l">Dízel</div>
  <div class="cldt-stage-primary-keyfact sc-font-l">5 ajtó</div>
  <div class="cldt-stage-primary-keyfact sc-font-l">123 456 km</div>
  <div class="cldt-stage-primary-keyfact sc-font-l">05/2015</div>
  <div class="cldt-stage-primary-keyfact sc-font-l">110 kW (150 LE)</div>
  <div class="cldt-stage-vendor-text sc-font-s"><span class="sc-font-bold">Budapest</span></div>
  <div data-item-name="vendor-contact-city">1117 Budapest</div>
</div>
<dl>
  <dt>Márka</dt><dd>Volkswagen</dd>
  <dt>Modell</dt><dd>Golf</dd>
  <dt>Hengerűrtartalom</dt><dd>1 598 cm³</dd>
  <dt>Üzemanyag</dt><dd>Dízel (Particulate Filter)</dd>
  <dt>Váltó típusa</dt><dd>Sebességváltó</dd>
</dl>
</body></html>
"""


@pytest.fixture
def source_config():
    return SourceConfig(base_url="https://www.autoscout24.hu", request_delay=0.0)


@pytest.fixture
def adapter(source_config):
    return AutoScoutAdapter(source_config, fetcher=HttpFetcher(source_config, FakeSession()))


class FakeSession:
    """requests.Session stand-in answering from a url -> (status, body) map."""

    def __init__(self, responses=None):
        self.headers = {}
        self.responses = responses or {}
        self.closed = False

    def get(self, url, **kwargs):
        answer = self.responses[url]
        if isinstance(answer, Exception):
            raise answer
        status_code, body = answer
        response = requests.Response()
        response.status_code = status_code
        response.url = url
        response.encoding = "utf-8"
        response._content = body.encode("utf-8")
        return response

    def close(self):
        self.closed = True


class TestListingPage:
    def test_pairs_are_oldest_first_and_deduplicated(self, adapter):
        pairs = adapter.parse_listing_page(LISTING_PAGE)

        assert pairs == [
            ("abc-123", "https://www.autoscout24.hu/ajanlat/opel-astra-abc-123"),
            ("guid-newest", "https://www.autoscout24.hu/ajanlat/volkswagen-golf-guid-newest"),
        ]

    def test_empty_page(self, adapter):
        assert adapter.parse_listing_page("<html><body></body></html>") == []


class TestDetailPage:
    def test_all_fields(self, adapter):
        detail = adapter.parse_detail(DETAIL_PAGE)

        assert detail.make == "Volkswagen"
        assert detail.model == "Golf"
        assert detail.age_years == 2015
        assert detail.price == 8500
        assert detail.mileage == 123456
        assert detail.power == 110
        assert detail.engine_displacement == 1598
        assert detail.fuel_type == "Dízel"
        assert detail.transmission == "Manuális"
        assert detail.city == "Budapest"
        assert detail.postal_code == 1117

    def test_missing_make_is_incomplete(self, adapter):
        page = DETAIL_PAGE.replace("<dt>Márka</dt><dd>Volkswagen</dd>", "")

        with pytest.raises(ParseIncompleteError) as excinfo:
            adapter.parse_detail(page)

        assert excinfo.value.missing == ["make"]

    def test_missing_price_and_year_are_incomplete(self, adapter):
        with pytest.raises(ParseIncompleteError) as excinfo:
            adapter.parse_detail("<dl><dt>Márka</dt><dd>Opel</dd><dt>Modell</dt><dd>Astra</dd></dl>")

        assert excinfo.value.missing == ["age_years", "price"]

    def test_optional_fields_may_be_absent(self, adapter):
        page = (
            DETAIL_PAGE.replace("<dt>Üzemanyag</dt><dd>Dízel (Particulate Filter)</dd>", "")
            .replace('<div data-item-name="vendor-contact-city">1117 Budapest</div>', "")
        )

        detail = adapter.parse_detail(page)

        assert detail.fuel_type is None
        assert detail.postal_code is None

    def test_non_ascii_digits_are_not_a_postal_code(self, adapter):
        page = DETAIL_PAGE.replace("1117 Budapest</div>", "¹ Budapest</div>")

        assert adapter.parse_detail(page).postal_code is None

    def test_petrol_variants_are_normalised(self, adapter):
        page = DETAIL_PAGE.replace("Dízel (Particulate Filter)", "Super 95 / Benzin")
        assert adapter.parse_detail(page).fuel_type == "Benzin"


class TestHttpFetcher:
    URL = "https://www.autoscout24.hu/ajanlat/x"

    def fetcher(self, source_config, answer):
        return HttpFetcher(source_config, FakeSession({self.URL: answer}))

    def test_ok_returns_body(self, source_config):
        assert self.fetcher(source_config, (200, "<html/>")).get_text(self.URL) == "<html/>"

    @pytest.mark.parametrize("status_code", [404, 410])
    def test_gone_statuses(self, source_config, status_code):
        with pytest.raises(ResourceGoneError):
            self.fetcher(source_config, (status_code, "")).get_text(self.URL)

    def test_server_error_is_transient(self, source_config):
        with pytest.raises(TransientFetchError) as excinfo:
            self.fetcher(source_config, (503, "")).get_text(self.URL)
        assert excinfo.value.status_code == 503

    def test_connection_error_is_transient(self, source_config):
        fetcher = self.fetcher(source_config, requests.ConnectionError("reset"))
        with pytest.raises(TransientFetchError):
            fetcher.get_text(self.URL)


def test_adapter_satisfies_protocol(adapter):
    assert isinstance(adapter, SourceAdapter)
    assert adapter.listing_url.startswith("https://www.autoscout24.hu/lst/")


def test_close_releases_session(source_config):
    session = FakeSession()
    adapter = AutoScoutAdapter(source_config, fetcher=HttpFetcher(source_config, session))

    adapter.close()

    assert session.closed
