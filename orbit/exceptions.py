"""
Custom exceptions for the Orbit core.
Provides specific exception types for better error handling and recovery.
"""
from datetime import date


class OrbitException(Exception):
    """Base exception for the Orbit core"""
    pass


class ValidationException(OrbitException):
    """Raised when data validation fails"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")


class InvalidDateRangeException(OrbitException):
    """Raised when a batch date range is malformed or too long"""
    def __init__(self, start_date: date, end_date: date, reason: str):
        self.start_date = start_date
        self.end_date = end_date
        self.reason = reason
        super().__init__(f"Invalid date range {start_date}..{end_date}: {reason}")


class StorageUnavailableException(OrbitException):
    """Raised when the storage layer cannot be reached at all"""
    def __init__(self, details: str):
        self.details = details
        super().__init__(f"Storage unavailable: {details}")


class InstanceNotFoundException(OrbitException):
    """Raised when an obligation instance is not found"""
    def __init__(self, task_id: int, logical_day: date):
        self.task_id = task_id
        self.logical_day = logical_day
        super().__init__(f"No instance for task {task_id} on {logical_day.isoformat()}")


class InvalidTransitionException(OrbitException):
    """Raised when an instance cannot move to the requested status"""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move instance from '{current}' to '{requested}'")
