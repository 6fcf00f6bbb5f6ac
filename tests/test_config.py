from emive_portal.core.config import Settings


def test_settings_read_deployment_variable_names(monkeypatch):
    monkeypatch.setenv("SESSION_SECRET", "abc")
    monkeypatch.setenv("SMTP_PASS", "mail-secret")
    monkeypatch.setenv("CRON_TIMEZONE", "UTC")
    monkeypatch.setenv("STOCK_IMPORT_BATCH_SIZE", "50")

    settings = Settings()

    assert settings.secret_key == "abc"
    assert settings.smtp_password == "mail-secret"
    assert settings.default_timezone == "UTC"
    assert settings.stock_import_batch_size == 50


def test_blank_optional_urls_become_none(monkeypatch):
    monkeypatch.setenv("PORTAL_URL", "  ")
    monkeypatch.setenv("AI_BASE_URL", "")

    settings = Settings()

    assert settings.portal_url is None
    assert settings.ai_base_url is None


def test_defaults(monkeypatch):
    monkeypatch.delenv("AI_COST_PER_INTERACTION", raising=False)
    monkeypatch.delenv("PREVENTIVE_NOTICE_HOURS", raising=False)

    settings = Settings()

    assert settings.ai_cost_per_interaction == 0.003
    assert settings.preventive_notice_hours == 48
    assert settings.enable_csrf is True
