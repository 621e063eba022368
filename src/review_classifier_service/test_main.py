from types import SimpleNamespace

import numpy as np
from fastapi.testclient import TestClient

from review_classifier_service.main import app, get_model, softmax


class FakeTokenizer:
    def __call__(self, text, **kwargs):
        return {"input_ids": np.array([[0, len(text), 2]])}


class FakeModel:
    """Returns fixed logits; label order as in the siebert config."""

    config = SimpleNamespace(id2label={0: "NEGATIVE", 1: "POSITIVE"})

    def __init__(self, logits):
        self.logits = np.array([logits])

    def __call__(self, **inputs):
        return SimpleNamespace(logits=self.logits)


def client_with(logits):
    app.dependency_overrides[get_model] = lambda: (FakeTokenizer(), FakeModel(logits))
    return TestClient(app)


def teardown_function():
    app.dependency_overrides.clear()


def test_positive_review():
    client = client_with([-2.0, 3.0])
    response = client.post("/", json={"inputs": "I loved this movie."})
    assert response.status_code == 200
    body = response.json()
    assert isinstance(body, list) and isinstance(body[0], list)
    assert body[0][0]["label"] == "POSITIVE"
    assert body[0][0]["score"] > 0.99
    assert body[0][1]["label"] == "NEGATIVE"


def test_negative_review():
    client = client_with([4.0, -1.0])
    response = client.post("/", json={"inputs": "Dull and far too long."})
    assert response.status_code == 200
    top = response.json()[0][0]
    assert top["label"] == "NEGATIVE"
    assert top["score"] > 0.5


def test_scores_sum_to_one():
    client = client_with([0.3, 0.1])
    entries = client.post("/", json={"inputs": "It was fine."}).json()[0]
    assert abs(sum(e["score"] for e in entries) - 1.0) < 1e-6


def test_empty_input_is_rejected():
    client = client_with([0.0, 0.0])
    response = client.post("/", json={"inputs": ""})
    assert response.status_code == 422


def test_softmax():
    probs = softmax(np.array([1.0, 1.0]))
    assert np.allclose(probs, [0.5, 0.5])


if __name__ == "__main__":
    for test in (
        test_positive_review,
        test_negative_review,
        test_scores_sum_to_one,
        test_empty_input_is_rejected,
        test_softmax,
    ):
        test()
        teardown_function()
    print("All tests passed!")
