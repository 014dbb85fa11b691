"""
Tests for discovery hand-off: the in-process runner and the scheduled tick.
"""
import pytest

from ugcdesk.services import discovery as discovery_module
from ugcdesk.services import dispatch
from ugcdesk.services import notify as notify_module
from ugcdesk.services.scheduler import SchedulerService
from ugcdesk.settings import get_settings

from conftest import StaticDiscovery, make_post


@pytest.fixture
def provider():
    previous = discovery_module.get_discovery_provider()
    stub = StaticDiscovery({"instagram": [make_post(), make_post()]}, failing={"tiktok"})
    discovery_module.set_discovery_provider(stub)
    yield stub
    discovery_module.set_discovery_provider(previous)


@pytest.fixture
def alerts(monkeypatch):
    sent: list[tuple[str, str]] = []

    async def _warn(title, payload=None):
        sent.append(("warn", title))
        return True

    async def _error(title, payload=None):
        sent.append(("error", title))
        return True

    monkeypatch.setattr(notify_module, "notify_warn", _warn)
    monkeypatch.setattr(notify_module, "notify_error", _error)
    return sent


class TestRunDiscoveryNow:
    """Tests for dispatch.run_discovery_now."""

    async def test_stores_posts_and_alerts_on_platform_errors(self, session_factory, provider, alerts):
        result = await dispatch.run_discovery_now(
            hashtags=["fashion"], platforms=["instagram", "tiktok"], limit=5, session_factory=session_factory
        )

        assert result["created"] == 2
        assert "tiktok" in result["platform_errors"]
        assert alerts == [("warn", "Discovery platform errors")]

    async def test_falls_back_to_configured_terms(self, session_factory, provider, monkeypatch):
        monkeypatch.setattr(get_settings(), "discovery_hashtags", ["ootd"])
        monkeypatch.setattr(get_settings(), "discovery_keywords", [])

        await dispatch.run_discovery_now(platforms=["instagram"], session_factory=session_factory)

        assert provider.calls[0][1] == ["ootd"]

    async def test_no_terms_skips_the_run(self, session_factory, provider, monkeypatch):
        monkeypatch.setattr(get_settings(), "discovery_hashtags", [])
        monkeypatch.setattr(get_settings(), "discovery_keywords", [])

        result = await dispatch.run_discovery_now(session_factory=session_factory)

        assert result["skipped"] is True
        assert provider.calls == []

    async def test_crash_is_reported_not_raised(self, provider, alerts):
        def _broken_factory():
            raise RuntimeError("database is gone")

        result = await dispatch.run_discovery_now(hashtags=["x"], session_factory=_broken_factory)

        assert "database is gone" in result["error"]
        assert alerts == [("error", "Discovery run failed")]


class TestScheduledDiscovery:
    """Tests for SchedulerService._run_discovery."""

    async def test_tick_without_terms_does_nothing(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "discovery_hashtags", [])
        monkeypatch.setattr(get_settings(), "discovery_keywords", [])

        assert await SchedulerService()._run_discovery() is None

    async def test_tick_runs_discovery_in_process(self, monkeypatch):
        calls = []

        async def _fake_run(**kwargs):
            calls.append(kwargs)
            return {"created": 0}

        monkeypatch.setattr(get_settings(), "discovery_hashtags", ["ootd"])
        monkeypatch.setattr(dispatch, "run_discovery_now", _fake_run)

        result = await SchedulerService()._run_discovery()

        assert result == {"created": 0}
        assert calls == [{}]

    def test_disabled_scheduler_does_not_start(self):
        service = SchedulerService()
        service.start()

        assert service.scheduler.get_jobs() == []
        assert not service.scheduler.running
