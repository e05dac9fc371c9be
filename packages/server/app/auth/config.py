"""Auth configuration - reads from environment variables."""

import os
from dataclasses import dataclass, field


@dataclass
class AuthSettings:
    """Centralised auth configuration read from env vars at import time."""

    # Master toggle - when False, auth middleware is a no-op.
    enabled: bool = field(
        default_factory=lambda: os.getenv("AUTH_ENABLED", "true").lower() == "true"
    )

    # Pre-shared bearer token for the admin (allowlist / pairing) endpoints.
    admin_api_token: str = field(
        default_factory=lambda: os.getenv("ADMIN_API_TOKEN", "")
    )

    def validate(self) -> None:
        """Raise if critical settings are missing while auth is enabled."""
        if not self.enabled:
            return
        if not self.admin_api_token:
            raise RuntimeError(
                "ADMIN_API_TOKEN must be set when AUTH_ENABLED=true. "
                'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )


# Singleton - imported everywhere.
auth_settings = AuthSettings()
