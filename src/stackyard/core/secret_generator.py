"""Secrets, mock tokens and port assignments for new projects."""

from __future__ import annotations

import base64
import json
import secrets
import string
from typing import Literal, TypeAlias

TokenRole: TypeAlias = Literal["anon", "service_role"]

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
BASE_PORT_OFFSET = 8000
TOKEN_LIFETIME_SECONDS = 365 * 24 * 60 * 60

# Sibling port offsets relative to the base port.
PORT_OFFSETS: dict[str, int] = {
    "KONG_HTTP_PORT": 0,
    "STUDIO_PORT": 100,
    "KONG_HTTPS_PORT": 443,
    "ANALYTICS_PORT": 1000,
    "POSTGRES_PORT": 2000,
    "POOLER_PROXY_PORT_TRANSACTION": 3000,
}


def random_string(length: int) -> str:
    if length <= 0:
        return ""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def _b64url(payload: dict[str, str | int]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def mock_jwt(role: TokenRole, timestamp_ms: int) -> str:
    """Build a JWT-shaped token whose signature segment is random filler.

    The token is never verified by this package; it only has to look like
    what the stack's services expect in their environment.
    """
    issued_at = timestamp_ms // 1000
    header = _b64url({"alg": "HS256", "typ": "JWT"})
    payload = _b64url(
        {
            "role": role,
            "iss": "supabase",
            "iat": issued_at,
            "exp": issued_at + TOKEN_LIFETIME_SECONDS,
        }
    )
    return f"{header}.{payload}.{random_string(43)}"


def base_port(timestamp_ms: int) -> int:
    return BASE_PORT_OFFSET + timestamp_ms % 10000


def derive_ports(base: int) -> dict[str, int]:
    return {name: base + offset for name, offset in PORT_OFFSETS.items()}


def default_env(timestamp_ms: int) -> dict[str, str]:
    """Full default environment for a freshly created project."""
    base = base_port(timestamp_ms)
    ports = {name: str(value) for name, value in derive_ports(base).items()}
    local_url = f"http://localhost:{base}"
    return {
        # Secrets
        "POSTGRES_PASSWORD": random_string(32),
        "JWT_SECRET": random_string(64),
        "ANON_KEY": mock_jwt("anon", timestamp_ms),
        "SERVICE_ROLE_KEY": mock_jwt("service_role", timestamp_ms),
        "DASHBOARD_USERNAME": "supabase",
        "DASHBOARD_PASSWORD": random_string(16),
        "SECRET_KEY_BASE": random_string(64),
        "VAULT_ENC_KEY": random_string(32),
        # Ports
        "POSTGRES_PORT": ports["POSTGRES_PORT"],
        "POOLER_PROXY_PORT_TRANSACTION": ports["POOLER_PROXY_PORT_TRANSACTION"],
        "KONG_HTTP_PORT": ports["KONG_HTTP_PORT"],
        "KONG_HTTPS_PORT": ports["KONG_HTTPS_PORT"],
        "ANALYTICS_PORT": ports["ANALYTICS_PORT"],
        # Database
        "POSTGRES_HOST": "db",
        "POSTGRES_DB": "postgres",
        # Pooler
        "POOLER_DEFAULT_POOL_SIZE": "20",
        "POOLER_MAX_CLIENT_CONN": "100",
        "POOLER_TENANT_ID": f"project-{timestamp_ms}",
        "POOLER_DB_POOL_SIZE": "5",
        # API and auth
        "PGRST_DB_SCHEMAS": "public,storage,graphql_public",
        "SITE_URL": local_url,
        "ADDITIONAL_REDIRECT_URLS": "",
        "JWT_EXPIRY": "3600",
        "DISABLE_SIGNUP": "false",
        "API_EXTERNAL_URL": local_url,
        "MAILER_URLPATHS_CONFIRMATION": "/auth/v1/verify",
        "MAILER_URLPATHS_INVITE": "/auth/v1/verify",
        "MAILER_URLPATHS_RECOVERY": "/auth/v1/verify",
        "MAILER_URLPATHS_EMAIL_CHANGE": "/auth/v1/verify",
        "ENABLE_EMAIL_SIGNUP": "true",
        "ENABLE_EMAIL_AUTOCONFIRM": "false",
        "SMTP_ADMIN_EMAIL": "admin@example.com",
        "SMTP_HOST": "supabase-mail",
        "SMTP_PORT": "2500",
        "SMTP_USER": "fake_mail_user",
        "SMTP_PASS": "fake_mail_password",
        "SMTP_SENDER_NAME": "fake_sender",
        "ENABLE_ANONYMOUS_USERS": "false",
        "ENABLE_PHONE_SIGNUP": "true",
        "ENABLE_PHONE_AUTOCONFIRM": "true",
        # Studio
        "STUDIO_DEFAULT_ORGANIZATION": "Default Organization",
        "STUDIO_DEFAULT_PROJECT": "Default Project",
        "STUDIO_PORT": ports["STUDIO_PORT"],
        "SUPABASE_PUBLIC_URL": local_url,
        # Misc services
        "IMGPROXY_ENABLE_WEBP_DETECTION": "true",
        "OPENAI_API_KEY": "",
        "FUNCTIONS_VERIFY_JWT": "false",
        "LOGFLARE_PUBLIC_ACCESS_TOKEN": random_string(64),
        "LOGFLARE_PRIVATE_ACCESS_TOKEN": random_string(64),
        "DOCKER_SOCKET_LOCATION": "/var/run/docker.sock",
        "GOOGLE_PROJECT_ID": "GOOGLE_PROJECT_ID",
        "GOOGLE_PROJECT_NUMBER": "GOOGLE_PROJECT_NUMBER",
    }


def render_env_file(env: dict[str, str]) -> str:
    return "\n".join(f"{key}={value}" for key, value in env.items())
