from pathlib import Path

import pytest

from sfcms_mcp.config import ServerConfig
from sfcms_mcp.models import APIConfiguration, ConfigError

REQUIRED_ENV = {
    "SF_INSTANCE_URL": "https://example.my.salesforce.com/",
    "SF_CLIENT_ID": "3MVG9-test-client",
    "SF_USERNAME": "integration@example.com",
    "SF_JWT_PRIVATE_KEY_PATH": "/etc/sfcms/server.key",
    "SF_WORKSPACE_NAME": "Marketing",
}


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (*REQUIRED_ENV, "SF_API_VERSION", "SF_LOGIN_URL", "SF_TIMEOUT", "SF_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_settings_are_listed(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("SF_INSTANCE_URL", "https://example.my.salesforce.com")
    clean_env.setenv("SF_USERNAME", "   ")

    config = ServerConfig(_env_file=None)

    with pytest.raises(ConfigError) as excinfo:
        config.get_api_config()

    message = str(excinfo.value)
    assert "SF_CLIENT_ID" in message
    assert "SF_USERNAME" in message
    assert "SF_JWT_PRIVATE_KEY_PATH" in message
    assert "SF_WORKSPACE_NAME" in message
    assert "SF_INSTANCE_URL" not in message


def test_api_config_from_environment(clean_env: pytest.MonkeyPatch) -> None:
    for name, value in REQUIRED_ENV.items():
        clean_env.setenv(name, value)
    clean_env.setenv("SF_TIMEOUT", "12.5")

    api_config = ServerConfig(_env_file=None).get_api_config()

    assert api_config.instance_url == "https://example.my.salesforce.com"
    assert api_config.client_id == "3MVG9-test-client"
    assert api_config.private_key_path == Path("/etc/sfcms/server.key")
    assert api_config.workspace_name == "Marketing"
    assert api_config.api_version == "v61.0"
    assert api_config.timeout == 12.5
    assert api_config.login_url is None


def test_defaults_without_environment(clean_env: pytest.MonkeyPatch) -> None:
    config = ServerConfig(_env_file=None)

    assert config.log_level == "INFO"
    assert len(config.missing_settings()) == 5


@pytest.mark.parametrize(
    "instance_url, login_url, expected",
    [
        ("https://acme.my.salesforce.com", None, "https://login.salesforce.com"),
        ("https://acme--uat.sandbox.my.salesforce.com", None, "https://test.salesforce.com"),
        ("https://acme--uat.sandbox.my.salesforce.com", "https://acme.my.salesforce.com/",
         "https://acme.my.salesforce.com"),
    ],
)
def test_auth_endpoint(instance_url: str, login_url: str | None, expected: str) -> None:
    api_config = APIConfiguration(
        instance_url=instance_url,
        client_id="id",
        username="user",
        private_key_path=Path("server.key"),
        workspace_name="Marketing",
        login_url=login_url,
    )

    assert api_config.auth_endpoint == expected
