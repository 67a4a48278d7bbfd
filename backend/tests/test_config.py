"""Settings parsing: retry budget, environment and policy aliases."""

import pytest
from pydantic import ValidationError

from users_api.config import DEGRADE, DEVELOPMENT, FAIL_FAST, PRODUCTION, Settings
from users_api.database import bootstrap_store, build_supervisor


class TestMaxRetries:
    @pytest.mark.parametrize("raw", ["unbounded", "none", "", "-1", -1, None])
    def test_unbounded_spellings(self, raw):
        assert Settings(db_max_retries=raw).db_max_retries is None

    def test_numeric_string(self):
        assert Settings(db_max_retries="3").db_max_retries == 3

    def test_zero_allowed(self):
        assert Settings(db_max_retries=0).db_max_retries == 0

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            Settings(db_max_retries=-5)


class TestEnumerations:
    def test_environment_aliases(self):
        assert Settings(environment="PROD").environment == PRODUCTION
        assert Settings(environment="dev").environment == DEVELOPMENT
        assert Settings(environment="production").is_production

    def test_unknown_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="staging")

    def test_failure_policy(self):
        assert Settings().db_failure_policy == DEGRADE
        assert Settings(db_failure_policy="Fail-Fast").db_failure_policy == FAIL_FAST
        with pytest.raises(ValidationError):
            Settings(db_failure_policy="explode")

    def test_log_level_upper_cased(self):
        assert Settings(log_level="debug").log_level == "DEBUG"


class TestDefaults:
    def test_port_and_timeouts(self, monkeypatch):
        monkeypatch.delenv("DB_RETRY_DELAY", raising=False)
        config = Settings()
        assert config.port == 3000
        assert config.db_connect_timeout == 10.0
        assert config.db_retry_delay == 5.0
        assert config.db_max_retries == 10
        assert config.shutdown_grace_period == 10.0

    def test_list_properties(self):
        config = Settings(cors_origins="http://a, http://b", mongo_fallback_uris=" mongodb://x/db ,")
        assert config.cors_origins_list == ["http://a", "http://b"]
        assert config.fallback_uris_list == ["mongodb://x/db"]


class TestBuildSupervisor:
    def test_wires_settings(self):
        config = Settings(
            mongo_uri="mongodb://mongo:27017/devopsTp2",
            environment="production",
            db_max_retries=4,
            db_retry_delay=1,
            db_heartbeat_interval=7,
            db_auth_failure_terminal=True,
        )
        supervisor = build_supervisor(config)

        assert list(supervisor.targets) == ["mongodb://mongo:27017/devopsTp2"]
        assert supervisor.policy.max_passes == 4
        assert supervisor.policy.delay == 1.0
        assert supervisor.heartbeat_interval == 7.0
        assert supervisor.auth_failure_terminal is True
        assert supervisor.on_first_connect is bootstrap_store
        assert not supervisor.running
