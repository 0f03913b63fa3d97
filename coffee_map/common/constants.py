"""Application constants."""

USER_AGENT = "coffee-map/0.3 (+places resolution; contact: configured-email)"
COMMANDS = (
    "crawl",
    "replay",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
CACHE_FILENAME = "cache.kml"
API_KEY_ENV = "GOOGLE_PLACES_API_KEY"
CAFE_CATEGORIES = frozenset({"cafe", "coffee_shop"})
PLACES_FIELD_MASK = ",".join(
    [
        "places.displayName",
        "places.id",
        "places.formattedAddress",
        "places.location",
        "places.googleMapsUri",
        "places.types",
    ]
)
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "search_key",
    "endpoint",
    "error_code",
    "duration_ms",
    "rows_in",
    "rows_out",
    "message",
)
