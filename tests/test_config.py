import pytest

from config import DEFAULT_APP_URL, PLACEHOLDER_TOKEN, get_settings


class TestSettings:
    def test_defaults(self):
        s = get_settings({})
        assert s.mongodb_uri == "mongodb://localhost:27017"
        assert s.mongodb_db == "chefdeck"
        assert s.port == 3000
        assert s.webhook_url == ""
        assert s.app_url == DEFAULT_APP_URL
        assert s.default_bot_token == PLACEHOLDER_TOKEN
        assert s.static_dir == "dist"
        assert s.debug_log is False

    def test_values_from_env(self):
        s = get_settings(
            {
                "MONGODB_URI": "mongodb://db:27017",
                "PORT": "8080",
                "WEBHOOK_URL": "https://bot.example.com/",
                "TELEGRAM_BOT_TOKEN": "1:abc",
                "UPLOAD_API_KEY": "key",
                "DEBUG_LOG": "true",
            }
        )
        assert s.mongodb_uri == "mongodb://db:27017"
        assert s.port == 8080
        assert s.webhook_url == "https://bot.example.com"
        # без APP_URL кнопка ведет на адрес вебхука
        assert s.app_url == "https://bot.example.com"
        assert s.default_bot_token == "1:abc"
        assert s.upload_api_key == "key"
        assert s.debug_log is True

    def test_app_url_wins_over_webhook(self):
        s = get_settings({"WEBHOOK_URL": "https://a.example", "APP_URL": "https://b.example/"})
        assert s.app_url == "https://b.example"

    def test_bad_port(self):
        with pytest.raises(ValueError, match="PORT"):
            get_settings({"PORT": "eighty"})
