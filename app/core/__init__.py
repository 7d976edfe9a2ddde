"""
Core Application - Infrastructure & Base Classes

This app contains the infrastructure shared by the gallery domain:

- Generic, reusable base classes (no gallery-specific logic)
- Clear extension points for domain apps
- Infrastructure concerns separated from business logic

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - PermissionDeniedError: Authorization failures
    - ConflictError: State conflicts (duplicates, etc.)
    - RateLimitError: Rate limit exceeded

Protocols (import from core.protocols):
    - RateLimiter: Failed-attempt ledger interface

Helpers (import from core.helpers):
    - generate_token: Cryptographically secure token generation
    - get_client_ip: Client address extraction behind proxies
    - constant_time_equals: Timing-safe token comparison
"""
