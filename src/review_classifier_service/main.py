"""Stand-in for the Hugging Face Inference API, serving a local quantized model.

Speaks the same wire format as the hosted text-classification endpoint, so the
review UI can point MODEL_URL at it for offline work:

    POST /   {"inputs": "<review>"}   ->   [[{"label": "POSITIVE", "score": 0.99}, ...]]

Run with: uvicorn review_classifier_service.main:app --port 8000
Build the model first with build_model.py.
"""

from functools import lru_cache

from fastapi import Depends, FastAPI
from pydantic import BaseModel, Field
import numpy as np

app = FastAPI()

# Local quantized model written by build_model.py
model_path = "sentiment_model_onnx"
file_name = "model_quantized.onnx"


class ClassifyInput(BaseModel):
    inputs: str = Field(..., min_length=1)


def softmax(x):
    """Compute softmax values for each set of scores in x."""
    e_x = np.exp(x - np.max(x))
    return e_x / e_x.sum(axis=0)


@lru_cache(maxsize=1)
def get_model():
    """Load tokenizer and model once, on the first request."""
    from optimum.onnxruntime import ORTModelForSequenceClassification
    from transformers import AutoTokenizer

    tokenizer = AutoTokenizer.from_pretrained(model_path)
    model = ORTModelForSequenceClassification.from_pretrained(model_path, file_name=file_name)
    return tokenizer, model


@app.post("/")
def classify(input_data: ClassifyInput, loaded=Depends(get_model)):
    tokenizer, model = loaded

    # 1. Tokenize (the RoBERTa model accepts up to 512 tokens)
    inputs = tokenizer(
        input_data.inputs,
        return_tensors="np",
        truncation=True,
        max_length=512
    )

    # 2. Inference
    outputs = model(**inputs)

    # 3. Probabilities per label, best first
    probs = softmax(np.asarray(outputs.logits[0]))
    id2label = model.config.id2label
    entries = [
        {"label": str(id2label[i]).upper(), "score": float(p)}
        for i, p in enumerate(probs)
    ]
    entries.sort(key=lambda e: e["score"], reverse=True)

    # The hosted API wraps one list of entries per input
    return [entries]
