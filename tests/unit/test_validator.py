"""
Unit tests for location reading validation.

Covers:
- Coordinates must be present, numeric and finite (zero included)
- Numeric-looking strings and booleans are not coordinates
- Optional deviceId / timestamp normalisation
- Structured optional fields are rejected
"""

import math

import pytest
from hypothesis import given, strategies as st

from ingestion.validator import RejectionReason, validate
from models.reading import CandidateReading, NewReading


finite_floats = st.floats(allow_nan=False, allow_infinity=False)


class TestCoordinates:
    """Tests for latitude/longitude checks."""

    def test_accepts_finite_coordinates(self):
        result = validate(CandidateReading(device_id="d1", latitude=1.5, longitude=-2.25))

        assert result.ok
        assert result.reading == NewReading(latitude=1.5, longitude=-2.25, device_id="d1")

    def test_zero_is_a_valid_coordinate(self):
        """A latitude or longitude of 0 is present, not missing."""
        result = validate(CandidateReading(latitude=0, longitude=0))

        assert result.ok
        assert result.reading.latitude == 0.0
        assert result.reading.longitude == 0.0

    def test_integers_become_floats(self):
        result = validate(CandidateReading(latitude=45, longitude=-120))

        assert result.ok
        assert isinstance(result.reading.latitude, float)
        assert isinstance(result.reading.longitude, float)

    def test_out_of_range_coordinates_are_accepted(self):
        """Only well-formedness is checked, not geographic range."""
        result = validate(CandidateReading(latitude=123.0, longitude=-500.0))

        assert result.ok

    @pytest.mark.parametrize("latitude", [None, "x", "12.5", "", True, False, [1.0], {"v": 1}])
    def test_rejects_non_numeric_latitude(self, latitude):
        result = validate(CandidateReading(latitude=latitude, longitude=2.0))

        assert not result.ok
        assert result.reason == RejectionReason.INVALID_COORDINATES
        assert result.field == "latitude"
        assert result.message == "Invalid latitude/longitude"
        assert result.reading is None

    def test_rejects_missing_longitude(self):
        result = validate(CandidateReading(latitude=1.0))

        assert result.reason == RejectionReason.INVALID_COORDINATES
        assert result.field == "longitude"

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_rejects_non_finite(self, value):
        result = validate(CandidateReading(latitude=1.0, longitude=value))

        assert result.reason == RejectionReason.INVALID_COORDINATES

    def test_rejects_integer_too_large_for_float(self):
        result = validate(CandidateReading(latitude=10 ** 400, longitude=1.0))

        assert result.reason == RejectionReason.INVALID_COORDINATES
        assert result.field == "latitude"

    @given(latitude=finite_floats, longitude=finite_floats)
    def test_any_finite_pair_is_accepted(self, latitude, longitude):
        result = validate(CandidateReading(latitude=latitude, longitude=longitude))

        assert result.ok
        assert result.reading.latitude == latitude
        assert result.reading.longitude == longitude

    @given(latitude=st.text(), longitude=finite_floats)
    def test_string_latitude_is_never_accepted(self, latitude, longitude):
        result = validate(CandidateReading(latitude=latitude, longitude=longitude))

        assert result.reason == RejectionReason.INVALID_COORDINATES


class TestOptionalFields:
    """Tests for deviceId and timestamp normalisation."""

    @pytest.mark.parametrize("device_id", [None, "", "   "])
    def test_blank_device_id_becomes_none(self, device_id):
        result = validate(CandidateReading(device_id=device_id, latitude=1.0, longitude=2.0))

        assert result.ok
        assert result.reading.device_id is None
        assert result.reading.device_label == "unknown"

    def test_timestamp_is_kept_verbatim(self):
        result = validate(
            CandidateReading(latitude=1.0, longitude=2.0, timestamp="yesterday at noon")
        )

        assert result.reading.timestamp == "yesterday at noon"

    @pytest.mark.parametrize("value,expected", [(42, "42"), (1.5, "1.5"), (True, "true"), (False, "false")])
    def test_scalars_are_stringified(self, value, expected):
        result = validate(
            CandidateReading(device_id=value, latitude=1.0, longitude=2.0, timestamp=value)
        )

        assert result.reading.device_id == expected
        assert result.reading.timestamp == expected

    @pytest.mark.parametrize("field", ["device_id", "timestamp"])
    @pytest.mark.parametrize("value", [{"nested": True}, ["a", "b"]])
    def test_structured_values_are_rejected(self, field, value):
        candidate = CandidateReading(latitude=1.0, longitude=2.0, **{field: value})

        result = validate(candidate)

        assert result.reason == RejectionReason.INVALID_FIELD
        assert result.field == ("deviceId" if field == "device_id" else "timestamp")

    def test_coordinates_are_checked_before_optional_fields(self):
        result = validate(CandidateReading(device_id=["x"], latitude="bad", longitude=1.0))

        assert result.reason == RejectionReason.INVALID_COORDINATES
