"""
Error taxonomy for the generation pipeline.

  ValidationError  — bad caller input, detected before any external call, never retried
  ServiceError     — generation service unavailable / empty / erroring, retried
  ParseError       — structurally invalid AI response, never retried

Persistence failures are database.crud.StoreError.
"""


class ValidationError(Exception):
    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class ServiceError(Exception):
    pass


class RetryExhaustedError(ServiceError):
    def __init__(self, message: str, attempts: int, last_error: Exception = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ParseError(Exception):
    pass
