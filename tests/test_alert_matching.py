"""Tests for alert filter matching."""

from vehicle_alerts.alert_matching import AlertMatcher, find_matching_filters
from vehicle_alerts.models import AlertFilter, VehiclePayload


def make_payload(**overrides) -> VehiclePayload:
    fields = dict(
        listing_id=1,
        category_id=1,
        make="Volkswagen",
        model="Golf Variant",
        age_years=2015,
        detail_url="https://www.autoscout24.hu/ajanlat/vw-golf",
        price=8000,
        mileage=150000,
        power=85,
        engine_displacement=1598,
        fuel_type="Dízel",
        transmission="Manuális",
        city="Budapest",
        postal_code=1117,
    )
    fields.update(overrides)
    return VehiclePayload(**fields)


def make_filter(**bounds) -> AlertFilter:
    return AlertFilter(id=bounds.pop("id", 1), subscriber_id=bounds.pop("subscriber_id", 1), **bounds)


class TestAlertMatcher:
    def setup_method(self):
        self.matcher = AlertMatcher()

    def test_empty_filter_matches_everything(self):
        assert self.matcher.matches(make_payload(), make_filter())
        assert self.matcher.matches(make_payload(price=None, postal_code=None), make_filter())

    def test_set_bound_excludes_missing_field(self):
        result = self.matcher.match(make_payload(price=None), make_filter(price_max=10000))
        assert not result.is_match
        assert result.failed_bounds == ["price_max"]

    def test_ranges_are_inclusive(self):
        payload = make_payload(price=8000, age_years=2015)
        assert self.matcher.matches(payload, make_filter(price_min=8000, price_max=8000))
        assert self.matcher.matches(payload, make_filter(age_min=2015, age_max=2015))
        assert not self.matcher.matches(payload, make_filter(price_max=7999))
        assert not self.matcher.matches(payload, make_filter(age_min=2016))

    def test_each_range_dimension(self):
        payload = make_payload()
        assert not self.matcher.matches(payload, make_filter(mileage_max=100000))
        assert not self.matcher.matches(payload, make_filter(power_min=100))
        assert not self.matcher.matches(payload, make_filter(displacement_max=1400))
        assert self.matcher.matches(
            payload, make_filter(mileage_max=200000, power_min=80, displacement_min=1500)
        )

    def test_equality_bounds(self):
        payload = make_payload()
        assert self.matcher.matches(payload, make_filter(fuel_type="Dízel", make="Volkswagen"))
        assert not self.matcher.matches(payload, make_filter(fuel_type="Benzin"))
        assert not self.matcher.matches(payload, make_filter(transmission="Automata"))
        assert not self.matcher.matches(payload, make_filter(make="Opel"))

    def test_model_is_substring_match(self):
        payload = make_payload(model="Golf Variant")
        assert self.matcher.matches(payload, make_filter(model="Golf"))
        assert not self.matcher.matches(payload, make_filter(model="Passat"))

    def test_zipcode_prefix_match(self):
        payload = make_payload(postal_code=1117)
        assert self.matcher.matches(payload, make_filter(zipcodes=[11]))
        assert self.matcher.matches(payload, make_filter(zipcodes=[6720, 1117]))
        assert not self.matcher.matches(payload, make_filter(zipcodes=[12, 6720]))

    def test_zipcode_filter_rejects_unknown_location(self):
        result = self.matcher.match(make_payload(postal_code=None), make_filter(zipcodes=[11]))
        assert result.failed_bounds == ["zipcodes"]

    def test_all_failed_bounds_are_reported(self):
        result = self.matcher.match(make_payload(), make_filter(price_max=1, make="Opel"))
        assert result.failed_bounds == ["price_max", "make"]


class TestAlertFilterFromRow:
    def test_empty_values_mean_unconstrained(self):
        alert_filter = AlertFilter.from_dict({
            "id": 3,
            "subscriber_id": 7,
            "zipcodes": [],
            "fuel_type": "",
            "price_max": 5000,
        })
        assert alert_filter.zipcodes is None
        assert alert_filter.fuel_type is None
        assert alert_filter.price_max == 5000
        assert alert_filter.make is None

    def test_zero_bound_means_unconstrained(self):
        alert_filter = AlertFilter.from_dict({
            "id": 3,
            "subscriber_id": 7,
            "mileage_min": 0,
            "price_min": 0,
            "price_max": 5000,
        })

        assert alert_filter.mileage_min is None
        assert alert_filter.price_min is None
        assert AlertMatcher().matches(make_payload(mileage=None, price=4000), alert_filter)


def test_find_matching_filters_keeps_order():
    cheap = make_filter(id=1, price_max=5000)
    diesel = make_filter(id=2, fuel_type="Dízel")
    anything = make_filter(id=3)

    matched = find_matching_filters(make_payload(), [cheap, diesel, anything])

    assert [f.id for f in matched] == [2, 3]
