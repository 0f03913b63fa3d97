"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class RecordError(PipelineError):
    """Raised for failures scoped to a single crawl record; never fatal."""

    error_code = "RECORD_ERROR"


class SourceError(RecordError):
    """Raised when an input line cannot be turned into a crawl record."""

    error_code = "SOURCE_ERROR"


class MalformedLineError(SourceError):
    error_code = "SOURCE_MALFORMED_LINE"


class EndpointParseError(SourceError):
    error_code = "SOURCE_ENDPOINT_PARSE"


class SourceIOError(SourceError):
    error_code = "SOURCE_IO"


class DerivationError(RecordError):
    """Raised when no search key can be derived from a crawl record."""

    error_code = "DERIVATION_ERROR"


class PlaceLookupError(RecordError):
    """Base class for place search failures."""

    error_code = "LOOKUP_ERROR"


class LookupTransportError(PlaceLookupError):
    error_code = "LOOKUP_TRANSPORT"

    def __init__(self, message: str, *, search_key: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.search_key = search_key
        self.status_code = status_code


class PlaceNotFoundError(PlaceLookupError):
    error_code = "PLACE_NOT_FOUND"


class MalformedResponseError(PlaceLookupError):
    error_code = "MALFORMED_RESPONSE"


class CacheError(PipelineError):
    """Raised when a cached placemark cannot be decoded."""

    error_code = "CACHE_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class CrawlSourceStartError(StageError):
    error_code = "CRAWL_SOURCE_START"


class OutputError(StageError):
    """Raised when an output document cannot be written."""

    error_code = "OUTPUT_ERROR"


class CreateDirectoriesError(OutputError):
    error_code = "OUTPUT_CREATE_DIRECTORIES"


class FileCreationError(OutputError):
    error_code = "OUTPUT_FILE_CREATION"


class WriteEncodingError(OutputError):
    error_code = "OUTPUT_WRITE_ENCODING"
