# tests/core/test_config.py
from eve_core.core import config
from eve_core.core.config import Settings, dotenv_files


def test_settings_load_from_environment_without_dotenv_files(monkeypatch):
    monkeypatch.setattr(config, "find_dotenv_path", lambda *args, **kwargs: None)

    assert dotenv_files() is None
    loaded = Settings(_env_file=dotenv_files())

    assert loaded.SUPABASE_URL == "http://supabase.test"
    assert loaded.OPENAI_API_KEY == "sk-test"


def test_only_existing_dotenv_files_are_used(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("BRAND_NAME=Acme Virtual\n")
    monkeypatch.setattr(config, "find_dotenv_path", lambda filename=".env", **kwargs: str(env_file) if filename == ".env" else None)
    monkeypatch.delenv("BRAND_NAME", raising=False)

    assert dotenv_files() == (str(env_file),)
    assert Settings(_env_file=dotenv_files()).BRAND_NAME == "Acme Virtual"
