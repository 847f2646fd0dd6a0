"""Custom exception classes for the Knowledge Engine service."""

from typing import Any, Dict, Optional


class KnowledgeEngineException(Exception):
    """Base exception for all Knowledge Engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class EmbeddingError(KnowledgeEngineException):
    """Base class for embedding adapter and client failures."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_type: Optional[str] = None,
        model: Optional[str] = None,
        status_code: int = 502,
        code: str = "EMBEDDING_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if provider_type:
            error_details["provider_type"] = provider_type
        if model:
            error_details["model"] = model
        super().__init__(
            message=message,
            status_code=status_code,
            code=code,
            details=error_details,
        )


class ConfigurationError(EmbeddingError):
    """Provider is misconfigured (credential, model, endpoint). Not retryable."""

    def __init__(
        self,
        message: str = "Embedding provider is misconfigured",
        provider_type: Optional[str] = None,
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            provider_type=provider_type,
            model=model,
            status_code=500,
            code="CONFIGURATION_ERROR",
            details=details,
        )


class ApiError(EmbeddingError):
    """Provider request failed (HTTP error, transport failure, malformed response)."""

    def __init__(
        self,
        message: str = "Embedding provider request failed",
        provider_type: Optional[str] = None,
        model: Optional[str] = None,
        http_status: Optional[int] = None,
        code: str = "API_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if http_status is not None:
            error_details["http_status"] = http_status
        self.http_status = http_status
        super().__init__(
            message=message,
            provider_type=provider_type,
            model=model,
            status_code=502,
            code=code,
            details=error_details,
        )


class RateLimitError(ApiError):
    """Provider rejected the request with a rate limit."""

    def __init__(
        self,
        message: str = "Embedding provider rate limit exceeded",
        provider_type: Optional[str] = None,
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            provider_type=provider_type,
            model=model,
            http_status=429,
            code="RATE_LIMIT_ERROR",
            details=details,
        )


class NoProviderError(KnowledgeEngineException):
    """No embedding provider is configured or enabled."""

    def __init__(
        self,
        message: str = "No embedding provider configured or enabled",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=503,
            code="NO_PROVIDER",
            details=details,
        )


class DatabaseError(KnowledgeEngineException):
    """Exception raised for database operation errors."""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="DATABASE_ERROR",
            details=details,
        )


class ValidationError(KnowledgeEngineException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if errors:
            error_details["validation_errors"] = errors
        super().__init__(
            message=message,
            status_code=422,
            code="VALIDATION_ERROR",
            details=error_details,
        )


class NotFoundError(KnowledgeEngineException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        if resource_id:
            message += f" with id: {resource_id}"
        error_details = details or {}
        error_details["resource"] = resource
        if resource_id:
            error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            status_code=404,
            code="NOT_FOUND",
            details=error_details,
        )


class DocumentLockedError(KnowledgeEngineException):
    """Another worker holds the embedding lock for a document."""

    def __init__(self, document_id: str):
        super().__init__(
            message=f"Document {document_id} is being embedded by another worker",
            status_code=409,
            code="DOCUMENT_LOCKED",
            details={"document_id": document_id},
        )
