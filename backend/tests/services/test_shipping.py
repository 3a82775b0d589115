"""Tests for tracking number validation and carrier detection."""
import pytest

from services.exceptions import ValidationError
from services.shipping import (
    detect_provider,
    parse_tracking_number,
    tracking_url,
    validate_tracking_number,
)


class TestValidateTrackingNumber:
    """Tests for validate_tracking_number."""

    def test__validate__returns_trimmed_number(self) -> None:
        """Surrounding whitespace is dropped."""
        assert validate_tracking_number("  1Z999AA10123456784\n") == "1Z999AA10123456784"

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            (None, "Tracking number is required"),
            ("   ", "Tracking number is required"),
            ("12 34", "Tracking number is too short"),
            ("A" * 31, "Tracking number is too long"),
            ("1Z-999-AA1", "Tracking number contains invalid characters"),
        ],
    )
    def test__validate__rejects_malformed(self, value: str | None, message: str) -> None:
        """Malformed numbers raise with a message naming the problem."""
        with pytest.raises(ValidationError) as exc_info:
            validate_tracking_number(value)

        assert exc_info.value.message == message

    def test__validate__inner_whitespace_not_counted(self) -> None:
        """Length limits apply to the number without its spaces."""
        assert validate_tracking_number("1Z 999 AA1") == "1Z 999 AA1"


class TestDetectProvider:
    """Tests for detect_provider."""

    @pytest.mark.parametrize(
        ("number", "provider"),
        [
            ("9400111899223197428490", "usps"),
            ("EA123456789US", "usps"),
            ("8212345678US", "usps"),
            ("12345678901234567890", "usps"),
            ("1Z999AA10123456784", "ups"),
            ("1z999aa10123456784", "ups"),
            ("9274899998887654321012", "ups"),
            ("PRO123456", "ups"),
            ("T1234567890", "ups"),
            ("123456789012", "ups"),
            ("ABC12345", "other"),
        ],
    )
    def test__detect_provider__by_format(self, number: str, provider: str) -> None:
        """Carriers are recognised from the number's shape."""
        assert detect_provider(number) == provider

    def test__detect_provider__ignores_spaces(self) -> None:
        """Spaces inside the number do not affect detection."""
        assert detect_provider("1Z 999 AA1 0123 456 784") == "ups"


class TestTrackingUrl:
    """Tests for tracking_url and parse_tracking_number."""

    def test__tracking_url__carrier_pages(self) -> None:
        """Known carriers link to their tracking page with the compacted number."""
        assert tracking_url("9400 1118", "usps") == (
            "https://tools.usps.com/go/TrackConfirmAction?qtc_tLabels1=94001118"
        )
        assert tracking_url("1Z999", "ups") == "https://www.ups.com/track?tracknum=1Z999"
        assert tracking_url("7489", "fedex") == "https://www.fedex.com/fedextrack/?trknbr=7489"

    def test__tracking_url__unknown_carrier_searches(self) -> None:
        """Unknown carriers fall back to a web search."""
        assert tracking_url("ABC12345", "other") == "https://www.google.com/search?q=ABC12345+tracking"

    def test__parse__resolves_everything(self) -> None:
        """Parsing validates, detects the carrier and builds the link."""
        info = parse_tracking_number(" EA123456789US ")

        assert info.tracking_number == "EA123456789US"
        assert info.provider == "usps"
        assert info.tracking_url.endswith("qtc_tLabels1=EA123456789US")
