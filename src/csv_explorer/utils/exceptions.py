"""
Custom exception classes for the CSV Explorer application.
These allow us to differentiate between user errors (4xx) and system errors (5xx).
"""


class AppException(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ParseError(AppException):
    """Raised when no header row can be detected or the CSV parser fails fatally."""
    def __init__(self, message: str = "Failed to parse CSV file."):
        super().__init__(message, status_code=400)


class ReadError(AppException):
    """Raised when the underlying file read fails."""
    def __init__(self, message: str = "Failed to read file."):
        super().__init__(message, status_code=400)


class FileProcessingError(AppException):
    """Raised when an uploaded file is rejected before parsing."""
    def __init__(self, message: str = "Failed to process the uploaded file."):
        super().__init__(message, status_code=400)


class DatasetNotLoadedError(AppException):
    """Raised when an operation needs a dataset and none is loaded."""
    def __init__(self, message: str = "No dataset loaded. Please upload a CSV file first."):
        super().__init__(message, status_code=400)


class ViewNotFoundError(AppException):
    """Raised when a saved view id does not exist."""
    def __init__(self, message: str = "View not found."):
        super().__init__(message, status_code=404)
