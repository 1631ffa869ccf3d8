import pytest

from shared.provider_settings import ProviderSettingsError, load_provider_settings

PREFIX = "EXTRACTION_PROVIDER"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        PREFIX,
        f"{PREFIX}_TIMEOUT_SECONDS",
        f"{PREFIX}_TEMPERATURE",
        f"{PREFIX}_MAX_TOKENS",
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "OPENAI_API_BASE",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults_to_deterministic_provider():
    settings = load_provider_settings()

    assert settings.provider_name == "deterministic"
    assert settings.timeout_seconds == 60.0
    assert settings.openai is None


def test_reads_tuning_env_vars(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(PREFIX, " MOCK ")
    monkeypatch.setenv(f"{PREFIX}_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv(f"{PREFIX}_TEMPERATURE", "0.3")
    monkeypatch.setenv(f"{PREFIX}_MAX_TOKENS", "2048")

    settings = load_provider_settings()

    assert settings.provider_name == "mock"
    assert settings.timeout_seconds == 120.0
    assert settings.temperature == pytest.approx(0.3)
    assert settings.max_output_tokens == 2048


def test_openai_provider_requires_credentials(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(PREFIX, "openai")

    with pytest.raises(ProviderSettingsError, match="OPENAI_API_KEY, OPENAI_MODEL"):
        load_provider_settings()


def test_openai_settings_describe_without_api_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(PREFIX, "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")

    settings = load_provider_settings()

    assert settings.openai.api_base == "https://api.openai.com/v1"
    snapshot = settings.describe()
    assert snapshot["openai"] == {"model": "gpt-4o-mini", "api_base": "https://api.openai.com/v1"}
    assert "sk-secret" not in str(snapshot)


@pytest.mark.parametrize(
    ("key", "value"),
    [(PREFIX, "gemini"), (f"{PREFIX}_TIMEOUT_SECONDS", "soon"), (f"{PREFIX}_MAX_TOKENS", "1.5")],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(ProviderSettingsError):
        load_provider_settings()
