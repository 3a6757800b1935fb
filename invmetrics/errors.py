from __future__ import annotations
from typing import Optional

class MetricsError(Exception):
    """Base class for failures raised by the metrics pipeline."""

    error = "Internal server error"
    status_code = 500

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details

class QueryValidationError(MetricsError):
    error = "Invalid query parameters"
    status_code = 400

class StoreError(MetricsError):
    def __init__(self, details: str, collection: Optional[str] = None):
        super().__init__(details)
        self.collection = collection

class GenerationError(MetricsError):
    pass
