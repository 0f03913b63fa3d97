import pytest

from coffee_map.common.errors import DerivationError
from coffee_map.common.models import CafeDetails, CrawlRecord, KeyKind
from coffee_map.pipeline.search_key import derive_key


def test_derive_key_from_url_fragment():
    key = derive_key(CrawlRecord(endpoint="https://site.example/cafe/blue-bottle"))
    assert key.kind is KeyKind.FROM_URL_FRAGMENT
    assert key.as_string == "blue bottle"


def test_derive_key_prefers_details():
    record = CrawlRecord(
        endpoint="https://site.example/cafe/blue-bottle",
        details=CafeDetails(name="Blue Bottle", address="1 Main St, Berlin"),
    )
    key = derive_key(record)
    assert key.kind is KeyKind.FROM_DETAILS
    assert key.as_string == "Blue Bottle 1 Main St, Berlin"


def test_derive_key_uses_second_segment_of_deeper_paths():
    key = derive_key(CrawlRecord(endpoint="https://site.example/cafe/the-barn-roastery/reviews?page=2"))
    assert key.as_string == "the barn roastery"


def test_derive_key_is_deterministic():
    record = CrawlRecord(endpoint="https://site.example/cafe/five-elephant")
    assert derive_key(record) == derive_key(record)


@pytest.mark.parametrize(
    "endpoint",
    [
        "https://site.example/",
        "https://site.example/cafe",
        "https://site.example",
        "https://site.example/cafe/",
        "https://site.example/cafe/---",
    ],
)
def test_derive_key_fails_without_usable_segment(endpoint):
    with pytest.raises(DerivationError):
        derive_key(CrawlRecord(endpoint=endpoint))
