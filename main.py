# main.py
from contextlib import asynccontextmanager
import asyncio
import time
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from focustimer.config import FocusTimerConfig, resolve_config
from focustimer.errors import ModelLoadFailure, CameraAccessDenied
from focustimer.session.controller import FocusSession
from focustimer.detection.detector import DetectionAdapter, FaceMeshDetector
from focustimer.detection.frames import LatestFrameSource
from focustimer.detection.loop import DetectionLoop
from focustimer.timer.ticker import AsyncioTicker

# Logging (one-line INFO summaries per transition and command)
if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger("focustimer")

VERSION = "0.1.0"


# ---------- State ----------
class State:
    def __init__(self):
        self.start_ts = time.time()
        self.frame_count = 0
        self.rejected_frames = 0
        self.last_frame_ts = 0.0
        self.last_error = ""


# ---------- Config Models ----------
class FocusConfigPatch(BaseModel):
    tick_period_s: float | None = Field(default=None, gt=0)
    detection_retry_delay_s: float | None = Field(default=None, gt=0)
    min_detection_confidence: float | None = Field(default=None, ge=0, le=1)
    min_tracking_confidence: float | None = Field(default=None, ge=0, le=1)


DETECTOR_KEYS = ("min_detection_confidence", "min_tracking_confidence")


def create_app(
    cfg: FocusTimerConfig | None = None,
    session: FocusSession | None = None,
    detector: DetectionAdapter | None = None,
) -> FastAPI:
    cfg = cfg or resolve_config()
    session = session or FocusSession(ticker=AsyncioTicker(cfg.tick_period_s))
    if detector is None and cfg.enable_detection:
        detector = FaceMeshDetector(
            max_num_faces=cfg.max_num_faces,
            min_detection_confidence=cfg.min_detection_confidence,
            min_tracking_confidence=cfg.min_tracking_confidence,
            refine_landmarks=cfg.refine_landmarks,
        )
    S = State()
    frames = LatestFrameSource()
    detection = DetectionLoop(session, detector, frames, retry_delay_s=cfg.detection_retry_delay_s) if detector is not None else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if detection is None:
            session.tracking_unavailable(ModelLoadFailure("focus detection disabled in config"))
        else:
            try:
                load = getattr(detector, "load", None)
                if load is not None:
                    await asyncio.to_thread(load)
                session.tracking_ready()
            except ModelLoadFailure as e:
                log.error("Error loading face detection: %s", e)
                session.tracking_unavailable(e)
        yield
        if detection is not None:
            await detection.aclose()
        frames.close()
        session.stopwatch.ticker.stop()
        close = getattr(detector, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="Focus Timer Service", version=VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )
    app.state.session = session
    app.state.detection = detection
    app.state.frames = frames
    app.state.status = S
    app.state.config = cfg

    def state_json():
        return session.view().model_dump()

    # ---------- Routes ----------
    @app.get("/health")
    def health():
        return {"ok": True, "uptime_s": round(time.time() - S.start_ts, 1)}

    @app.get("/state")
    def get_state():
        return state_json()

    @app.post("/start")
    async def start():
        session.start()
        if detection is not None:
            detection.ensure_started()
        log.info("start elapsed=%s detection=%s", session.stopwatch.display(), session.detection_active)
        return state_json()

    @app.post("/pause")
    async def pause():
        session.toggle_pause()
        log.info("pause-toggle paused=%s elapsed=%s", session.stopwatch.paused, session.stopwatch.display())
        return state_json()

    @app.post("/reset")
    async def reset():
        session.reset()
        log.info("reset")
        return state_json()

    @app.post("/camera/denied")
    async def camera_denied():
        session.tracking_unavailable(CameraAccessDenied("browser denied camera access"))
        if detection is not None:
            detection.stop()
        return state_json()

    @app.post("/frame")
    async def frame(request: Request):
        if not session.tracking_available or not session.detection_active:
            S.rejected_frames += 1
            return {"accepted": False, "tracking_available": session.tracking_available}
        data = await request.body()
        try:
            frames.push_jpeg(data)
        except ValueError as e:
            log.exception("/frame rejected")
            S.last_error = str(e)
            S.rejected_frames += 1
            return JSONResponse({"error": S.last_error}, status_code=400)
        S.frame_count += 1
        S.last_frame_ts = time.time()
        return {"accepted": True, "tracking_available": session.tracking_available}

    @app.get("/config")
    def get_config():
        return {"ok": True, "config": cfg.to_dict()}

    @app.patch("/config")
    async def patch_config(patch: FocusConfigPatch):
        updates = patch.model_dump(exclude_none=True)
        detector_updates = {k: v for k, v in updates.items() if k in DETECTOR_KEYS}
        reconfigure = getattr(detector, "reconfigure", None)
        if detector_updates and reconfigure is not None:
            try:
                await asyncio.to_thread(reconfigure, **detector_updates)
            except ModelLoadFailure as e:
                log.exception("/config rebuild failed")
                S.last_error = str(e)
                return JSONResponse({"ok": False, "error": S.last_error, "config": cfg.to_dict()}, status_code=500)
        for k, v in updates.items():
            setattr(cfg, k, v)
        if detection is not None:
            detection.retry_delay_s = cfg.detection_retry_delay_s
        ticker = session.stopwatch.ticker
        if hasattr(ticker, "period_s"):
            ticker.period_s = cfg.tick_period_s
        return {"ok": True, "config": cfg.to_dict()}

    @app.get("/", response_class=HTMLResponse)
    def home():
        uptime = round(time.time() - S.start_ts, 1)
        last_frame = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(S.last_frame_ts)) if S.last_frame_ts else "never"
        v = session.view()
        paused = " (paused)" if v.pause_label == "Resume" else ""
        tracking = "on" if v.tracking_available else "off"
        dot = {"focus": "#3ddc84", "distracted": "#ff6b6b"}.get(v.status, "#f5c542")
        html = f"""<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Focus Timer</title>
<meta http-equiv="refresh" content="1">
<style>
body {{ font-family: -apple-system, Segoe UI, Roboto, sans-serif; background:#0b0f14; color:#e8edf3; margin:0; }}
.container {{ max-width:900px; margin:24px auto; padding:0 16px; }}
.card {{ background:#121822; border:1px solid #1f2a3a; border-radius:14px; padding:16px; margin-bottom:16px; }}
.kv {{ display:grid; grid-template-columns: 220px 1fr; gap:8px; }}
.key {{ color:#9fb0c3; }}
.val {{ color:#cfe5ff; }}
h1 {{ font-size:22px; margin:0 0 12px 0; letter-spacing:0.3px; }}
small {{ color:#9fb0c3; }}
.clock {{ font-size:64px; font-weight:600; color:#7fd0ff; text-align:center; letter-spacing:2px; }}
.status {{ text-align:center; color:#cfe5ff; }}
.dot {{ display:inline-block; width:10px; height:10px; border-radius:50%; background:{dot}; margin-right:6px; }}
.row {{ display:flex; gap:14px; }}
.kpi {{ flex:1; background:linear-gradient(180deg,#141b28,#0f1520); border:1px solid #1f2a3a; border-radius:14px; padding:14px; }}
.kpi h3 {{ margin:0 0 6px 0; font-size:16px; color:#cfe5ff; }}
.kpi .big {{ font-size:28px; color:#7fd0ff; font-weight:600; }}
</style>
</head>
<body>
<div class="container">
  <div class="card">
    <h1>Focus Timer <small>v{VERSION}</small></h1>
    <div class="clock">{v.elapsed}</div>
    <div class="status"><span class="dot"></span>{v.status_text}{paused}</div>
  </div>
  <div class="row">
    <div class="kpi"><h3>Focused</h3><div class="big">{v.focused_time}</div></div>
    <div class="kpi"><h3>Distracted</h3><div class="big">{v.distracted_time}</div></div>
    <div class="kpi"><h3>Focus</h3><div class="big">{v.focus_percentage}%</div></div>
  </div>
  <div class="card" style="margin-top:16px;">
    <div class="kv">
      <div class="key">Uptime</div><div class="val">{uptime} s</div>
      <div class="key">Frames received</div><div class="val">{S.frame_count}</div>
      <div class="key">Frames rejected</div><div class="val">{S.rejected_frames}</div>
      <div class="key">Last frame</div><div class="val">{last_frame}</div>
      <div class="key">Focus tracking</div><div class="val">{tracking}</div>
      <div class="key">State JSON</div><div class="val"><a style="color:#7fd0ff" href="/state">/state</a></div>
      <div class="key">OpenAPI</div><div class="val"><a style="color:#7fd0ff" href="/docs">/docs</a></div>
    </div>
  </div>
</div>
</body>
</html>"""
        return HTMLResponse(content=html)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
