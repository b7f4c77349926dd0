"""Exception hierarchy for sops-secrets."""
from enum import Enum


class SopsSecretsError(Exception):
    """Base class for all sops-secrets errors."""
    pass


class ValidationError(SopsSecretsError):
    """Desired state or incoming event is malformed. Raised before any remote call."""
    pass


class DecodeCause(str, Enum):
    DECRYPT_FAILURE = "decrypt_failure"
    INVALID_FORMAT = "invalid_format"


class DecodeError(SopsSecretsError):
    """Encrypted content could not be turned into plaintext."""

    def __init__(self, message: str, cause: DecodeCause):
        super().__init__(message)
        self.cause = cause


class DecryptError(DecodeError):
    """sops failed to run or reported diagnostics."""

    def __init__(self, message: str):
        super().__init__(message, DecodeCause.DECRYPT_FAILURE)


class InvalidFormatError(DecodeError, ValidationError):
    """Declared content format is not one sops can round-trip."""

    def __init__(self, message: str):
        super().__init__(message, DecodeCause.INVALID_FORMAT)


class SecretNotFoundError(SopsSecretsError):
    """Secrets Manager reported ResourceNotFoundException."""

    def __init__(self, secret_id: str):
        super().__init__(f"Secret '{secret_id}' not found")
        self.secret_id = secret_id


class BlobNotFoundError(SopsSecretsError):
    """Encrypted source object does not exist."""
    pass
