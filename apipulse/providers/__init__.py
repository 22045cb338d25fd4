"""Provider definitions and outbound auth headers."""

from .auth import Provider, build_auth_headers
