"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the domain apps:

- Generic, reusable base classes (no domain-specific logic)
- Clear extension points for domain apps
- Infrastructure concerns separated from business logic

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError: Input validation failures
    - AuthenticationError: Unauthenticated callers (bad webhook signatures)
    - ConfigurationError: Missing server configuration
    - ExternalServiceError: Third-party service failures

Helpers (import from core.helpers):
    - mask_email / mask_phone: PII masking for logs
    - get_client_ip: Client IP extraction from request

Views (import from core.views):
    - health_check: Liveness endpoint

Note:
    - Business logic should NOT go here. Extend core classes in your domain apps.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    AuthenticationError,
    BaseApplicationError,
    ConfigurationError,
    ExternalServiceError,
    ValidationError,
)

# Helpers (no Django model dependencies)
from .helpers import get_client_ip, mask_email, mask_phone

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "AuthenticationError",
    "ConfigurationError",
    "ExternalServiceError",
    # Helpers
    "get_client_ip",
    "mask_email",
    "mask_phone",
]
