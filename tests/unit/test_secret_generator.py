import base64
import json

from stackyard.core.secret_generator import (
    ALPHABET,
    base_port,
    default_env,
    derive_ports,
    mock_jwt,
    random_string,
    render_env_file,
)


def _decode_segment(segment: str) -> dict[str, object]:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


def test_random_string_length_and_alphabet() -> None:
    value = random_string(32)
    assert len(value) == 32
    assert set(value) <= set(ALPHABET)


def test_random_string_zero_length_is_empty() -> None:
    assert random_string(0) == ""
    assert random_string(-3) == ""


def test_mock_jwt_has_three_segments_with_role_and_one_year_expiry() -> None:
    token = mock_jwt("service_role", 1_700_000_000_123)
    header, payload, signature = token.split(".")

    assert _decode_segment(header) == {"alg": "HS256", "typ": "JWT"}
    claims = _decode_segment(payload)
    assert claims["role"] == "service_role"
    assert claims["iss"] == "supabase"
    assert claims["iat"] == 1_700_000_000
    assert claims["exp"] == 1_700_000_000 + 365 * 24 * 60 * 60
    assert len(signature) == 43


def test_base_port_uses_low_timestamp_digits() -> None:
    assert base_port(1_700_000_004_321) == 8000 + 4321
    assert base_port(1_700_000_000_000) == 8000


def test_derive_ports_offsets() -> None:
    ports = derive_ports(9000)
    assert ports == {
        "KONG_HTTP_PORT": 9000,
        "STUDIO_PORT": 9100,
        "KONG_HTTPS_PORT": 9443,
        "ANALYTICS_PORT": 10000,
        "POSTGRES_PORT": 11000,
        "POOLER_PROXY_PORT_TRANSACTION": 12000,
    }


def test_default_env_contains_secrets_ports_and_defaults() -> None:
    env = default_env(1_700_000_001_234)

    assert len(env["POSTGRES_PASSWORD"]) == 32
    assert len(env["JWT_SECRET"]) == 64
    assert len(env["DASHBOARD_PASSWORD"]) == 16
    assert len(env["ANON_KEY"].split(".")) == 3
    assert len(env["SERVICE_ROLE_KEY"].split(".")) == 3
    assert env["KONG_HTTP_PORT"] == "9234"
    assert env["POSTGRES_PORT"] == "11234"
    assert env["STUDIO_PORT"] == "9334"
    assert env["SITE_URL"] == "http://localhost:9234"
    assert env["POOLER_TENANT_ID"] == "project-1700000001234"
    assert env["POSTGRES_HOST"] == "db"
    assert len(env) >= 50


def test_default_env_secrets_differ_between_calls() -> None:
    first = default_env(1_700_000_001_234)
    second = default_env(1_700_000_001_234)
    assert first["POSTGRES_PASSWORD"] != second["POSTGRES_PASSWORD"]
    assert first["JWT_SECRET"] != second["JWT_SECRET"]


def test_render_env_file() -> None:
    assert render_env_file({"A": "1", "B": ""}) == "A=1\nB="
