"""
Shared module for common utilities across the REST API and the WS gateway.

STRUCTURE:
- shared.security: Authentication and login protection
  - auth.py: JWT signing/verification, current_user_context
  - password.py: Bcrypt hashing
  - rate_limit.py: slowapi limiter for public auth endpoints

- shared.infrastructure: Database and request tracing
  - db.py: SQLAlchemy engine/sessions, safe_commit()
  - correlation.py: X-Request-ID middleware and logging filter

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging and audit helpers

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.utils.exceptions import NotFoundError, DuplicateEntityError
"""
