import io
import unittest

from fastapi.testclient import TestClient
from PIL import Image

from main import create_app
from focustimer.config import FocusTimerConfig
from focustimer.detection.detector import StaticDetector
from focustimer.errors import ModelLoadFailure
from focustimer.session.controller import FocusSession
from focustimer.timer.ticker import ManualTicker
from focustimer.utils.clock import ManualClock


def jpeg_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (32, 24), (10, 20, 30)).save(buf, format="JPEG")
    return buf.getvalue()


class BrokenDetector(StaticDetector):
    def load(self):
        raise ModelLoadFailure("weights missing")


class ReconfigurableDetector(StaticDetector):
    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail
        self.applied = []

    def reconfigure(self, **settings):
        if self.fail:
            raise ModelLoadFailure("rebuild failed")
        self.applied.append(settings)


class TestService(unittest.TestCase):
    def setUp(self):
        self.clock = ManualClock()
        self.session = FocusSession(clock=self.clock, ticker=ManualTicker())
        self.app = create_app(FocusTimerConfig(), self.session, StaticDetector())

    def test_health_and_home(self):
        with TestClient(self.app) as client:
            r = client.get("/health")
            self.assertEqual(r.status_code, 200)
            self.assertTrue(r.json()["ok"])
            r = client.get("/")
            self.assertEqual(r.status_code, 200)
            self.assertIn("Focus Timer", r.text)

    def test_commands(self):
        with TestClient(self.app) as client:
            st = client.get("/state").json()
            self.assertEqual(st["status_text"], "Models loaded. Please allow camera access.")
            self.assertTrue(st["start_enabled"])

            st = client.post("/start").json()
            self.assertFalse(st["start_enabled"])
            self.assertTrue(st["pause_enabled"])
            self.assertTrue(st["detection_active"])

            self.clock.advance_s(65)
            st = client.post("/pause").json()
            self.assertEqual(st["pause_label"], "Resume")
            self.assertEqual(st["elapsed"], "00:01:05")
            st = client.post("/pause").json()
            self.assertEqual(st["pause_label"], "Pause")

            st = client.post("/reset").json()
            self.assertEqual(st["elapsed"], "00:00:00")
            self.assertTrue(st["start_enabled"])
            self.assertFalse(st["reset_enabled"])

    def test_frames(self):
        with TestClient(self.app) as client:
            r = client.post("/frame", content=jpeg_bytes())
            self.assertFalse(r.json()["accepted"])  # detection not started yet
            client.post("/start")
            r = client.post("/frame", content=b"garbage")
            self.assertEqual(r.status_code, 400)
            r = client.post("/frame", content=jpeg_bytes())
            self.assertEqual(r.status_code, 200)
            self.assertTrue(r.json()["accepted"])

    def test_camera_denied(self):
        with TestClient(self.app) as client:
            client.post("/start")
            st = client.post("/camera/denied").json()
            self.assertFalse(st["tracking_available"])
            self.assertEqual(st["status_text"], "Camera access denied. Timer will work without focus detection.")
            r = client.post("/frame", content=jpeg_bytes())
            self.assertFalse(r.json()["accepted"])
            self.clock.advance_s(2)
            self.assertEqual(client.get("/state").json()["elapsed"], "00:00:02")

    def test_config_patch(self):
        with TestClient(self.app) as client:
            r = client.patch("/config", json={"detection_retry_delay_s": 2.5})
            self.assertEqual(r.json()["config"]["detection_retry_delay_s"], 2.5)
            self.assertEqual(self.app.state.detection.retry_delay_s, 2.5)
            self.assertEqual(client.get("/config").json()["config"]["tick_period_s"], 1.0)

    def test_config_patch_rejects_non_positive_periods(self):
        with TestClient(self.app) as client:
            self.assertEqual(client.patch("/config", json={"tick_period_s": 0}).status_code, 422)
            self.assertEqual(client.patch("/config", json={"detection_retry_delay_s": -5}).status_code, 422)
            self.assertEqual(client.patch("/config", json={"min_detection_confidence": 1.5}).status_code, 422)
            cfg = client.get("/config").json()["config"]
            self.assertEqual(cfg["tick_period_s"], 1.0)
            self.assertEqual(cfg["detection_retry_delay_s"], 1.0)
            self.assertEqual(self.app.state.detection.retry_delay_s, 1.0)

    def test_config_patch_reconfigures_detector(self):
        detector = ReconfigurableDetector()
        session = FocusSession(clock=self.clock, ticker=ManualTicker())
        app = create_app(FocusTimerConfig(), session, detector)
        with TestClient(app) as client:
            r = client.patch("/config", json={"min_detection_confidence": 0.9, "tick_period_s": 2.0})
            self.assertEqual(r.status_code, 200)
            self.assertEqual(r.json()["config"]["min_detection_confidence"], 0.9)
            self.assertEqual(detector.applied, [{"min_detection_confidence": 0.9}])
            # settings unrelated to the detector do not rebuild it
            client.patch("/config", json={"detection_retry_delay_s": 3.0})
            self.assertEqual(len(detector.applied), 1)

    def test_config_patch_failed_rebuild_keeps_config(self):
        detector = ReconfigurableDetector(fail=True)
        session = FocusSession(clock=self.clock, ticker=ManualTicker())
        app = create_app(FocusTimerConfig(), session, detector)
        with TestClient(app) as client:
            r = client.patch("/config", json={"min_tracking_confidence": 0.9})
            self.assertEqual(r.status_code, 500)
            self.assertFalse(r.json()["ok"])
            self.assertEqual(client.get("/config").json()["config"]["min_tracking_confidence"], 0.5)

    def test_model_load_failure_keeps_stopwatch(self):
        session = FocusSession(clock=self.clock, ticker=ManualTicker())
        app = create_app(FocusTimerConfig(), session, BrokenDetector())
        with TestClient(app) as client:
            st = client.get("/state").json()
            self.assertFalse(st["tracking_available"])
            self.assertEqual(st["status_text"], "Error loading face detection. Timer will work without focus detection.")
            st = client.post("/start").json()
            self.assertFalse(st["start_enabled"])

    def test_detection_disabled(self):
        session = FocusSession(clock=self.clock, ticker=ManualTicker())
        app = create_app(FocusTimerConfig(enable_detection=False), session)
        with TestClient(app) as client:
            self.assertFalse(client.get("/state").json()["tracking_available"])
            self.assertIsNone(app.state.detection)


if __name__ == "__main__":
    unittest.main()
