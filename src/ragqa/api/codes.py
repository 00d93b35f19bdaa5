"""Stable error codes returned in the ``code`` field of error bodies."""

# Upload
NO_FILE = "NO_FILE"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
PROCESSING_ERROR = "PROCESSING_ERROR"
CHUNKING_ERROR = "CHUNKING_ERROR"
STORAGE_ERROR = "STORAGE_ERROR"

# Query
INVALID_REQUEST = "INVALID_REQUEST"
EMPTY_QUESTION = "EMPTY_QUESTION"
QUERY_ERROR = "QUERY_ERROR"
