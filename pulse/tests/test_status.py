import unittest
from datetime import datetime, timedelta, timezone

from pulse.models import Run, RunStatus
from pulse.settings import load_settings
from pulse.status import build_health, build_monitor, countdown_text
from pulse.timeutil import relative_time, to_iso

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class CountdownTests(unittest.TestCase):
    def test_countdown_text(self):
        self.assertEqual(countdown_text(timedelta(hours=2, minutes=5)), "in 2h 5m")
        self.assertEqual(countdown_text(timedelta(hours=1)), "in 1h")
        self.assertEqual(countdown_text(timedelta(minutes=12)), "in 12 minutes")
        self.assertEqual(countdown_text(timedelta(seconds=70)), "very soon")
        self.assertEqual(countdown_text(timedelta(minutes=-5)), "very soon")

    def test_relative_time(self):
        self.assertEqual(relative_time(to_iso(NOW - timedelta(seconds=10)), NOW), "just now")
        self.assertEqual(relative_time(to_iso(NOW - timedelta(minutes=5)), NOW), "5m ago")
        self.assertEqual(relative_time(to_iso(NOW - timedelta(hours=3)), NOW), "3h ago")
        self.assertEqual(relative_time(to_iso(NOW - timedelta(days=2)), NOW), "2d ago")
        self.assertEqual(relative_time(None, NOW), "")


class MonitorTests(unittest.TestCase):
    def test_never_run_is_due_now(self):
        payload = build_monitor(None, 3, now=NOW)
        self.assertEqual(payload["status"], "never_run")
        self.assertIsNone(payload["last_run_at"])
        self.assertTrue(payload["is_overdue"])
        self.assertEqual(payload["next_run_at"], to_iso(NOW))

    def test_next_run_follows_last_completion(self):
        run = Run(id="r1", started_at=to_iso(NOW - timedelta(hours=1, minutes=5)), status=RunStatus.COMPLETED)
        run.completed_at = to_iso(NOW - timedelta(hours=1))
        payload = build_monitor(run, 3, now=NOW)

        self.assertEqual(payload["status"], "active")
        self.assertEqual(payload["interval_hours"], 3)
        self.assertEqual(payload["next_run_at"], to_iso(NOW + timedelta(hours=2)))
        self.assertFalse(payload["is_overdue"])
        self.assertEqual(payload["relative_text"], "in 2h")
        self.assertEqual(payload["last_run"]["id"], "r1")


class HealthTests(unittest.TestCase):
    def test_health_reports_flags_without_secrets(self):
        settings = load_settings()
        settings.search_api_key = "exa-secret-value"
        settings.completion_api_key = None
        settings.cron_secret = "cron-secret-value"

        payload = build_health(settings, {"entries": 0})
        self.assertTrue(payload["services"]["search"])
        self.assertFalse(payload["services"]["completion"])
        self.assertTrue(payload["services"]["cron_secret"])
        self.assertNotIn("exa-secret-value", str(payload))
        self.assertNotIn("cron-secret-value", str(payload))


if __name__ == "__main__":
    unittest.main()
