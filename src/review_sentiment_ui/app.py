"""
Review Sentiment Demo (FastAPI)

A single-page app that loads a tab-separated review dataset, picks a random
review, sends it to a sentiment-classification endpoint (by default the Hugging
Face Inference API for siebert/sentiment-roberta-large-english) and shows the
returned label/score as an icon and text.

The browser holds no decision logic. Buttons post to the backend, the backend
runs the action on the ``ReviewSession`` and answers with a ``SessionView``:
icon, status line, label/score text, review text and error message. The page
script only copies those fields into the DOM. Calls to the classifier are
routed through the backend to avoid CORS issues and keep JS simple.

Run the application:
- uvicorn review_sentiment_ui.app:app --reload --port 8001
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from review_sentiment_ui.clients import ClassifierClient, DatasetSource
from review_sentiment_ui.session import ReviewSession, UIState

logger = logging.getLogger(__name__)

# ---- Configuration you can tweak ----
TSV_PATH = "reviews_test.tsv"  # local file or http(s) URL
MODEL_URL = "https://api-inference.huggingface.co/models/siebert/sentiment-roberta-large-english"
REQUEST_TIMEOUT_SECONDS: Optional[float] = None  # None: wait for the service indefinitely

# (Font Awesome class, CSS colour variable) per state
ICONS: Dict[UIState, Tuple[str, str]] = {
    UIState.POSITIVE: ("fa-solid fa-thumbs-up", "--success"),
    UIState.NEGATIVE: ("fa-solid fa-thumbs-down", "--danger"),
    UIState.NEUTRAL: ("fa-solid fa-question", "--neutral"),
    UIState.ERROR: ("fa-solid fa-question", "--neutral"),
    UIState.LOADING: ("fa-solid fa-spinner fa-pulse", "--muted"),
    UIState.IDLE: ("fa-solid fa-comment", "--muted"),
}

START_HINT = 'Click "Analyze Random Review" to start.'


class ActionRequest(BaseModel):
    """Payload of the analyze buttons.

    Parameters
    ----------
    hf_token : str | None
        Optional Hugging Face token, sent as a bearer credential. Raises the
        Inference API rate limits; required for private deployments.
    """

    hf_token: Optional[str] = Field(None, description="Optional bearer token for the classifier service")


class SessionView(BaseModel):
    """Everything the page needs to redraw itself after an action."""

    state: UIState
    icon: str
    icon_color: str
    status: str
    label_text: str
    score_text: str
    review_text: str
    error: Optional[str] = None
    review_count: int
    ready: bool
    can_reanalyze: bool


def _status_for(session: ReviewSession, state: UIState) -> str:
    if state is UIState.LOADING:
        return "Working..."
    if state is UIState.ERROR:
        return "Error loading TSV." if session.failed_action == "load" else "Analysis failed."
    if state in (UIState.POSITIVE, UIState.NEGATIVE, UIState.NEUTRAL):
        return "Analysis complete."
    if session.corpus:
        return f"Loaded {len(session.corpus)} reviews. Ready."
    return "No reviews loaded."


def render_view(
    session: ReviewSession,
    state: Optional[UIState] = None,
    status: Optional[str] = None,
) -> SessionView:
    """Map a UI state and the session contents to a ``SessionView``.

    Parameters
    ----------
    session : ReviewSession
        Source of the review text, result and error.
    state : UIState | None
        State to render; defaults to the session's own state. Passing
        ``UIState.LOADING`` renders the in-flight view.
    status : str | None
        Overrides the status line.
    """
    if state is None:
        state = session.state
    icon, color = ICONS[state]

    result = session.result if state in (UIState.POSITIVE, UIState.NEGATIVE, UIState.NEUTRAL) else None
    label_text = f"Label: {result.label}" if result else "Label: —"
    score_text = f"Score: {result.score:.3f}" if result else "Score: —"

    if session.review is not None:
        review_text = session.review
    else:
        review_text = START_HINT if session.corpus else ""

    return SessionView(
        state=state,
        icon=icon,
        icon_color=color,
        status=status if status is not None else _status_for(session, state),
        label_text=label_text,
        score_text=score_text,
        review_text=review_text,
        error=session.error if state is UIState.ERROR else None,
        review_count=len(session.corpus),
        ready=bool(session.corpus),
        can_reanalyze=session.review is not None,
    )


def build_session() -> ReviewSession:
    return ReviewSession(
        source=DatasetSource(timeout=REQUEST_TIMEOUT_SECONDS),
        client=ClassifierClient(MODEL_URL, timeout=REQUEST_TIMEOUT_SECONDS),
        tsv_path=TSV_PATH,
    )


def get_session(request: Request) -> ReviewSession:
    return request.app.state.session


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
def index(session: ReviewSession = Depends(get_session)) -> str:
    loading_views = {
        "reload": render_view(session, UIState.LOADING, status=f"Fetching {session.tsv_path}...").model_dump(mode="json"),
        "analyze": render_view(session, UIState.LOADING, status="Calling Hugging Face Inference API...").model_dump(mode="json"),
    }
    return PAGE_HTML.replace("__LOADING_VIEWS_JSON__", json.dumps(loading_views, ensure_ascii=False))


@router.get("/api/session")
def api_session(session: ReviewSession = Depends(get_session)) -> SessionView:
    return render_view(session)


@router.post("/api/reload")
async def api_reload(session: ReviewSession = Depends(get_session)) -> SessionView:
    """Reload the TSV; the previous corpus survives a failed reload."""
    await session.load()
    return render_view(session)


@router.post("/api/random")
async def api_random(req: ActionRequest, session: ReviewSession = Depends(get_session)) -> SessionView:
    """Pick a random review and classify it."""
    await session.analyze_random(req.hf_token)
    return render_view(session)


@router.post("/api/reanalyze")
async def api_reanalyze(req: ActionRequest, session: ReviewSession = Depends(get_session)) -> SessionView:
    """Classify the displayed review again."""
    await session.reanalyze(req.hf_token)
    return render_view(session)


@router.get("/api/metrics")
def api_metrics(session: ReviewSession = Depends(get_session)) -> JSONResponse:
    """Return a snapshot of in-memory metrics."""
    return JSONResponse(content=session.metrics.snapshot())


def create_app(session: Optional[ReviewSession] = None) -> FastAPI:
    """Build the app around ``session`` (a default one if omitted).

    The corpus is loaded once at startup; load errors are shown on the page,
    they do not stop the server.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Classifier endpoint: %s", app.state.session.client.model_url)
        await app.state.session.load()
        yield

    app = FastAPI(title="Review Sentiment Demo", version="1.0.0", lifespan=lifespan)
    app.state.session = session if session is not None else build_session()
    app.include_router(router)
    return app


PAGE_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>Review Sentiment Demo</title>
  <link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.5.1/css/all.min.css" />
  <style>
    :root {
      --accent: #3b5bdb;
      --bg: #ffffff;
      --fg: #111111;
      --muted: #666666;
      --card: #f6f6f6;
      --border: #dddddd;
      --success: #2b8a3e;
      --danger: #c92a2a;
      --neutral: #e67700;
    }
    body {
      margin: 0;
      font-family: system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif;
      color: var(--fg);
      background: var(--bg);
    }
    header {
      background: var(--accent);
      color: white;
      padding: 14px 18px;
    }
    header h1 { font-size: 18px; margin: 0; font-weight: 700; }
    header p { margin: 6px 0 0 0; font-size: 13px; opacity: 0.9; }
    main {
      max-width: 900px;
      margin: 18px auto;
      padding: 0 14px 30px 14px;
    }
    .card {
      background: var(--card);
      border: 1px solid var(--border);
      border-radius: 12px;
      padding: 14px;
      margin-bottom: 14px;
    }
    label {
      display: block;
      font-size: 12px;
      color: var(--muted);
      margin-bottom: 6px;
    }
    input[type="password"] {
      width: 100%;
      box-sizing: border-box;
      border: 1px solid var(--border);
      border-radius: 10px;
      padding: 10px;
      font-size: 14px;
      background: white;
    }
    .buttons { display: flex; flex-wrap: wrap; gap: 10px; margin-top: 10px; }
    button {
      border: 0;
      border-radius: 10px;
      padding: 10px 12px;
      font-weight: 700;
      cursor: pointer;
      background: var(--accent);
      color: white;
    }
    button.secondary { background: #2b2b2b; }
    button.ghost { background: transparent; color: var(--accent); border: 1px solid var(--accent); }
    button:disabled { opacity: 0.5; cursor: not-allowed; }
    .small { font-size: 12px; color: var(--muted); margin-top: 8px; line-height: 1.35; }
    .review {
      background: white;
      border: 1px solid var(--border);
      border-radius: 12px;
      padding: 12px;
      white-space: pre-wrap;
      line-height: 1.45;
    }
    .result { display: flex; align-items: center; gap: 14px; margin-top: 12px; }
    .icon { font-size: 36px; width: 48px; text-align: center; }
    .pill {
      display: inline-block;
      padding: 4px 10px;
      border-radius: 999px;
      font-size: 12px;
      font-weight: 700;
      border: 1px solid var(--border);
      background: #fff;
      margin-right: 8px;
    }
    .mono { font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, monospace; font-size: 12px; }
    .error {
      border: 1px solid rgba(201,42,42,0.35);
      background: rgba(201,42,42,0.06);
      color: #4a0000;
      padding: 10px;
      border-radius: 12px;
      margin-top: 10px;
    }
  </style>
</head>
<body>
  <header>
    <h1>Review Sentiment Demo</h1>
    <p>Picks a random review from the TSV and classifies it with <span class="mono">siebert/sentiment-roberta-large-english</span>.</p>
  </header>

  <main>
    <div class="card">
      <label for="hfToken">Hugging Face token (optional)</label>
      <input id="hfToken" type="password" autocomplete="off" placeholder="hf_..." />
      <div class="small">Without a token the free tier is used; a token raises rate limits.</div>

      <div class="buttons">
        <button id="randomBtn">Analyze Random Review</button>
        <button id="reanalyzeBtn" class="ghost">Re-analyze</button>
        <button id="reloadBtn" class="secondary">Reload TSV</button>
      </div>
      <div id="status" class="small"></div>
      <div id="error" class="error" style="display:none;"></div>
    </div>

    <div id="reviewArea" class="card" style="display:none;">
      <div id="reviewText" class="review"></div>
      <div class="result">
        <div id="sentIcon" class="icon"></div>
        <div>
          <div id="labelText" class="pill"></div>
          <div id="scoreText" class="pill"></div>
        </div>
      </div>
    </div>

    <div class="card">
      <h3 style="margin:0 0 10px 0; font-size: 16px;">Operational metrics</h3>
      <div id="metricsBox" class="small">No requests yet.</div>
    </div>
  </main>

  <script>
    // In-flight views rendered by the backend.
    const LOADING_VIEWS = __LOADING_VIEWS_JSON__;

    const buttons = ["randomBtn", "reanalyzeBtn", "reloadBtn"].map(id => document.getElementById(id));
    let canReanalyze = false;

    function setIcon(view) {
      const el = document.getElementById("sentIcon");
      el.innerHTML = "";
      const i = document.createElement("i");
      i.className = view.icon;
      i.style.color = `var(${view.icon_color})`;
      el.appendChild(i);
    }

    function applyLoading(view) {
      setIcon(view);
      document.getElementById("status").textContent = view.status;
      document.getElementById("labelText").textContent = view.label_text;
      document.getElementById("scoreText").textContent = view.score_text;
      document.getElementById("error").style.display = "none";
    }

    function applyView(view) {
      applyLoading(view);
      document.getElementById("reviewText").textContent = view.review_text;
      document.getElementById("reviewArea").style.display = view.ready ? "" : "none";
      const err = document.getElementById("error");
      err.textContent = view.error || "";
      err.style.display = view.error ? "" : "none";
      canReanalyze = view.can_reanalyze;
    }

    function setBusy(busy) {
      buttons.forEach(b => { b.disabled = busy; });
      if (!busy) document.getElementById("reanalyzeBtn").disabled = !canReanalyze;
    }

    function renderMetrics(m) {
      const fmt = x => (x == null) ? "—" : x.toFixed(1);
      const kinds = Object.entries(m.failures_by_kind).map(([k, n]) => `${k}: ${n}`).join(", ") || "none";
      document.getElementById("metricsBox").innerHTML = `
        <span class="pill">Total: ${m.total_requests}</span>
        <span class="pill">Success: ${m.success_requests}</span>
        <span class="pill">Failed: ${m.failed_requests}</span>
        <div style="margin-top:10px;">
          Latency (ms): last <span class="mono">${fmt(m.last_latency_ms)}</span>,
          avg <span class="mono">${fmt(m.avg_latency_ms)}</span>,
          p95 <span class="mono">${fmt(m.p95_latency_ms)}</span>
        </div>
        <div style="margin-top:6px;">Failures by kind: <span class="mono">${kinds}</span></div>
      `;
    }

    async function refreshMetrics() {
      const r = await fetch("/api/metrics");
      renderMetrics(await r.json());
    }

    async function runAction(url, loadingKey, withToken) {
      setBusy(true);
      applyLoading(LOADING_VIEWS[loadingKey]);
      const body = withToken ? { hf_token: document.getElementById("hfToken").value.trim() || null } : {};
      try {
        const r = await fetch(url, {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify(body)
        });
        applyView(await r.json());
        await refreshMetrics();
      } finally {
        setBusy(false);
      }
    }

    document.getElementById("randomBtn").addEventListener("click", () => runAction("/api/random", "analyze", true));
    document.getElementById("reanalyzeBtn").addEventListener("click", () => runAction("/api/reanalyze", "analyze", true));
    document.getElementById("reloadBtn").addEventListener("click", () => runAction("/api/reload", "reload", false));

    // Boot
    (async () => {
      const r = await fetch("/api/session");
      applyView(await r.json());
      setBusy(false);
      await refreshMetrics();
    })();
  </script>
</body>
</html>
"""


app = create_app()
