"""
Error taxonomy
Every failure the core can surface to a caller, with an HTTP status hint
"""

from typing import Any, Dict, Optional


class SOVTrackError(Exception):
    """Base exception for all tracker errors"""

    error_type = "SOVTrackError"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        partial: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Whatever data was computable before the failure
        self.partial = partial

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# AI PROVIDER
# ============================================================================

class ProviderError(SOVTrackError):
    """Non-2xx or malformed provider response"""
    error_type = "ProviderError"
    status_code = 502


class ProviderRateLimited(ProviderError):
    """Provider returned 429"""
    error_type = "ProviderRateLimited"


class ProviderAuthError(ProviderError):
    """Provider rejected credentials"""
    error_type = "ProviderAuthError"


class ProviderTimeout(SOVTrackError):
    """Provider call exceeded its timeout or the batch deadline"""
    error_type = "ProviderTimeout"
    status_code = 504


class EmptyResponse(SOVTrackError):
    """Provider returned no usable text"""
    error_type = "EmptyResponse"
    status_code = 502


class ProviderUnavailable(SOVTrackError):
    """Every prompt in a batch failed"""
    error_type = "ProviderUnavailable"
    status_code = 503


# ============================================================================
# BRAND & COMPETITORS
# ============================================================================

class BrandNotFound(SOVTrackError):
    error_type = "BrandNotFound"
    status_code = 404


class InvalidCompetitorName(SOVTrackError):
    """Empty or duplicate competitor name on add"""
    error_type = "InvalidCompetitorName"
    status_code = 422


class CompetitorNotFound(SOVTrackError):
    error_type = "CompetitorNotFound"
    status_code = 404


# ============================================================================
# SNAPSHOTS
# ============================================================================

class SnapshotWriteConflict(SOVTrackError):
    """Per-brand append lock could not be obtained in time"""
    error_type = "SnapshotWriteConflict"
    status_code = 409


class SnapshotImmutableError(SOVTrackError):
    error_type = "SnapshotImmutableError"
    status_code = 409


class SnapshotNotFound(SOVTrackError):
    """Brand has never been analyzed"""
    error_type = "SnapshotNotFound"
    status_code = 404


# ============================================================================
# BLOG SCORING
# ============================================================================

class PageFetchError(SOVTrackError):
    error_type = "PageFetchError"
    status_code = 502


class FactorEvaluationError(SOVTrackError):
    """One or more GEO factors could not be evaluated"""
    error_type = "FactorEvaluationError"
    status_code = 502
