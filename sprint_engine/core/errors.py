"""Error taxonomy for proposal generation, pricing and agreements."""

from typing import Any, Dict, Optional


class SprintEngineError(Exception):
    """
    Base class for every error the engine surfaces to callers.

    Each subclass carries a stable ``code`` and an HTTP ``status_code`` so
    the API layer can tell "fix your configuration" apart from
    "the model misbehaved" apart from "the input was too big".
    """

    code = "sprint_engine_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for an API error body."""
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


# ===========================================
# Configuration Errors
# ===========================================

class ConfigurationError(SprintEngineError):
    """Provider credentials are missing."""
    code = "missing_credentials"
    status_code = 500


# ===========================================
# Input / Validation Errors
# ===========================================

class DocumentTooLargeError(SprintEngineError):
    """Serialized intake document exceeds the configured ceiling."""
    code = "document_too_large"
    status_code = 413


class DocumentNotFoundError(SprintEngineError):
    code = "document_not_found"
    status_code = 404


class SprintNotFoundError(SprintEngineError):
    code = "sprint_not_found"
    status_code = 404


class DeliverableNotFoundError(SprintEngineError):
    """Catalog reference is unknown or inactive."""
    code = "invalid_catalog_reference"
    status_code = 404


class InvalidComplexityError(SprintEngineError):
    """Complexity score is not one of the enumerated multipliers."""
    code = "invalid_complexity"
    status_code = 400


class InvalidQuantityError(SprintEngineError):
    code = "invalid_quantity"
    status_code = 400


class InvalidCompPlanError(SprintEngineError):
    code = "invalid_comp_plan"
    status_code = 400


class SprintLockedError(SprintEngineError):
    """Lines can only be edited while the sprint is a draft."""
    code = "sprint_not_editable"
    status_code = 409


class PersistenceError(SprintEngineError):
    """A catalog store write did not return a row."""
    code = "persistence_error"
    status_code = 500


# ===========================================
# Upstream Provider Errors
# ===========================================

class UpstreamError(SprintEngineError):
    """The language-model provider call failed."""
    code = "upstream_error"
    status_code = 502


class UpstreamAuthError(UpstreamError):
    code = "upstream_auth"
    status_code = 502


class UpstreamQuotaError(UpstreamError):
    code = "upstream_quota"
    status_code = 429


class UpstreamTimeoutError(UpstreamError):
    code = "upstream_timeout"
    status_code = 504


class UpstreamFailureError(UpstreamError):
    code = "upstream_error"
    status_code = 502


# ===========================================
# Provider Output Errors
# ===========================================

class UnusableModelOutputError(SprintEngineError):
    """
    The model answered but its output could not be used.

    The raw response is already stored for audit; ``ai_response_id``
    points at it so staff can complete the sprint manually.
    """

    code = "model_output_unusable"
    status_code = 202

    def __init__(self, message: str, ai_response_id: Optional[str], details: Optional[Any] = None):
        super().__init__(message, details)
        self.ai_response_id = ai_response_id

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["ai_response_id"] = self.ai_response_id
        return body


class AgreementTemplateError(SprintEngineError):
    """A rendered agreement still contains unresolved placeholders."""
    code = "agreement_template_error"
    status_code = 500
