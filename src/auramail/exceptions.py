"""Custom exceptions for AuraMail."""


class AuraMailError(Exception):
    """Base exception for all AuraMail errors."""


class ConfigurationError(AuraMailError):
    """Exception raised for configuration related errors."""


class AuthenticationError(AuraMailError):
    """Exception raised when Gmail access needs to be re-authorized."""


class GmailAPIError(AuraMailError):
    """Exception raised for Gmail API related errors."""


class AIExtractionError(AuraMailError):
    """Exception raised when the text-generation provider fails."""


class ValidationError(AuraMailError):
    """Exception raised for data validation errors."""


class SyncInProgressError(AuraMailError):
    """Exception raised when a sync is already running for a user."""


class DuplicateRecordError(AuraMailError):
    """Exception raised when a placement record already exists."""
