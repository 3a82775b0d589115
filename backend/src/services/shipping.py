"""Shipment tracking numbers: validation, carrier detection and tracking links."""
import re
from dataclasses import dataclass
from urllib.parse import quote_plus

from services.exceptions import ValidationError

MIN_TRACKING_LENGTH = 5
MAX_TRACKING_LENGTH = 30

_ALPHANUMERIC = re.compile(r"^[A-Z0-9]+$", re.IGNORECASE)

# Checked in order; the first match wins. Numbers starting with 927 are UPS
# Mail Innovations even though they look like USPS numbers.
_CARRIER_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(?!927)(94|93|92|95)\d{18,20}$"), "usps"),
    (re.compile(r"^[A-Z]{2}\d{9}US$"), "usps"),
    (re.compile(r"^82\d{8}US$"), "usps"),
    (re.compile(r"^1Z[0-9A-Z]{15,18}$"), "ups"),
    (re.compile(r"^927\d{19}$"), "ups"),
    (re.compile(r"^PRO\d+$"), "ups"),
    (re.compile(r"^T\d{10}$"), "ups"),
    (re.compile(r"^\d{9,12}$"), "ups"),
    (re.compile(r"^(?!927)\d{20,22}$"), "usps"),
]

_TRACKING_URLS = {
    "usps": "https://tools.usps.com/go/TrackConfirmAction?qtc_tLabels1={number}",
    "ups": "https://www.ups.com/track?tracknum={number}",
    "fedex": "https://www.fedex.com/fedextrack/?trknbr={number}",
}


@dataclass(frozen=True)
class TrackingInfo:
    """A validated tracking number with its carrier."""

    tracking_number: str
    provider: str
    tracking_url: str


def _compact(tracking_number: str) -> str:
    return re.sub(r"\s", "", tracking_number)


def validate_tracking_number(tracking_number: str | None) -> str:
    """
    Check a tracking number's shape and return it trimmed.

    Raises:
        ValidationError: Empty, too short or long, or not alphanumeric.
    """
    if not tracking_number or not tracking_number.strip():
        raise ValidationError("Tracking number is required")
    compact = _compact(tracking_number)
    if len(compact) < MIN_TRACKING_LENGTH:
        raise ValidationError("Tracking number is too short")
    if len(compact) > MAX_TRACKING_LENGTH:
        raise ValidationError("Tracking number is too long")
    if not _ALPHANUMERIC.match(compact):
        raise ValidationError("Tracking number contains invalid characters")
    return tracking_number.strip()


def detect_provider(tracking_number: str) -> str:
    """Carrier for a tracking number by its format; "other" when nothing matches."""
    compact = _compact(tracking_number).upper()
    for pattern, provider in _CARRIER_PATTERNS:
        if pattern.match(compact):
            return provider
    return "other"


def tracking_url(tracking_number: str, provider: str) -> str:
    """Carrier tracking page, or a web search for unknown carriers."""
    compact = _compact(tracking_number)
    template = _TRACKING_URLS.get(provider)
    if template is None:
        return f"https://www.google.com/search?q={quote_plus(compact + ' tracking')}"
    return template.format(number=compact)


def parse_tracking_number(tracking_number: str | None) -> TrackingInfo:
    """
    Validate a tracking number and resolve its carrier and tracking link.

    Raises:
        ValidationError: The number is malformed.
    """
    number = validate_tracking_number(tracking_number)
    provider = detect_provider(number)
    return TrackingInfo(
        tracking_number=number,
        provider=provider,
        tracking_url=tracking_url(number, provider),
    )
