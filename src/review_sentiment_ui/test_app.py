import httpx
from fastapi.testclient import TestClient

from review_sentiment_ui.app import create_app, render_view
from review_sentiment_ui.clients import ClassifierClient, DatasetSource
from review_sentiment_ui.session import ReviewSession, UIState

TSV = "id\ttext\n1\tA wonderful, moving film.\n2\tTwo hours I will never get back.\n"


def make_client(status=200, body=None, tsv_status=200, tsv=TSV):
    if body is None:
        body = [[{"label": "POSITIVE", "score": 0.9987}]]
    source = DatasetSource(
        transport=httpx.MockTransport(lambda request: httpx.Response(tsv_status, text=tsv))
    )
    classifier = ClassifierClient(
        "https://classifier.test/models/sentiment",
        transport=httpx.MockTransport(lambda request: httpx.Response(status, json=body)),
    )
    session = ReviewSession(source, classifier, "https://data.test/reviews_test.tsv")
    return TestClient(create_app(session))


def test_index_page():
    with make_client() as client:
        response = client.get("/")
    assert response.status_code == 200
    assert "Analyze Random Review" in response.text
    assert "__LOADING_VIEWS_JSON__" not in response.text
    assert "fa-spinner" in response.text


def test_corpus_loaded_at_startup():
    with make_client() as client:
        view = client.get("/api/session").json()
    assert view["state"] == "idle"
    assert view["status"] == "Loaded 2 reviews. Ready."
    assert view["review_count"] == 2
    assert view["ready"] is True
    assert view["can_reanalyze"] is False
    assert view["label_text"] == "Label: —"


def test_startup_load_error_is_shown():
    with make_client(tsv_status=404) as client:
        view = client.get("/api/session").json()
    assert view["state"] == "error"
    assert view["status"] == "Error loading TSV."
    assert "404" in view["error"]
    assert view["ready"] is False


def test_random_review_positive():
    with make_client() as client:
        view = client.post("/api/random", json={"hf_token": None}).json()
    assert view["state"] == "positive"
    assert view["icon"] == "fa-solid fa-thumbs-up"
    assert view["icon_color"] == "--success"
    assert view["label_text"] == "Label: POSITIVE"
    assert view["score_text"] == "Score: 0.999"
    assert view["status"] == "Analysis complete."
    assert view["review_text"] in TSV
    assert view["can_reanalyze"] is True


def test_random_review_negative():
    with make_client(body=[[{"label": "NEGATIVE", "score": 0.73}]]) as client:
        view = client.post("/api/random", json={}).json()
    assert view["state"] == "negative"
    assert view["icon"] == "fa-solid fa-thumbs-down"


def test_rate_limited_shows_neutral_icon_and_keeps_review():
    with make_client(status=429, body={"error": "Rate limit reached"}) as client:
        view = client.post("/api/random", json={}).json()
        metrics = client.get("/api/metrics").json()
    assert view["state"] == "error"
    assert view["icon"] == "fa-solid fa-question"
    assert view["status"] == "Analysis failed."
    assert view["error"].startswith("Rate limit or model busy (429).")
    assert view["review_text"] in TSV
    assert view["label_text"] == "Label: —"
    assert metrics["failed_requests"] == 1
    assert metrics["failures_by_kind"] == {"rate_limited": 1}


def test_reanalyze_requires_a_review():
    with make_client() as client:
        view = client.post("/api/reanalyze", json={}).json()
    assert view["state"] == "error"
    assert "No review selected" in view["error"]


def test_reanalyze_keeps_review():
    with make_client() as client:
        first = client.post("/api/random", json={}).json()
        second = client.post("/api/reanalyze", json={"hf_token": "hf_x"}).json()
    assert second["review_text"] == first["review_text"]
    assert second["state"] == "positive"


def test_reload_resets_view():
    with make_client() as client:
        client.post("/api/random", json={})
        view = client.post("/api/reload").json()
    assert view["state"] == "idle"
    assert view["review_text"] == 'Click "Analyze Random Review" to start.'
    assert view["can_reanalyze"] is False


def test_metrics_snapshot():
    with make_client() as client:
        client.post("/api/random", json={})
        client.post("/api/random", json={})
        m = client.get("/api/metrics").json()
    assert m["total_requests"] == 2
    assert m["success_requests"] == 2
    assert m["results_by_bucket"] == {"positive": 2}
    assert m["p95_latency_ms"] is None


def test_render_loading_view():
    session = ReviewSession(DatasetSource(), ClassifierClient("http://unused"), "unused.tsv")
    view = render_view(session, UIState.LOADING, status="Calling...")
    assert view.icon == "fa-solid fa-spinner fa-pulse"
    assert view.status == "Calling..."
    assert view.error is None
    assert view.ready is False
