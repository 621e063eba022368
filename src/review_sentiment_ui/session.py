"""Review session controller.

Holds the loaded review corpus and drives the three user actions of the page:
load the TSV, analyze a random review, re-analyze the displayed review.

Everything here is UI-agnostic. The web layer (``app.py``) turns a session
into a view; the HTTP collaborators live in ``clients.py`` and are passed in.
"""

from __future__ import annotations

import csv
import io
import logging
import math
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from review_sentiment_ui.metrics import Metrics

logger = logging.getLogger(__name__)

ReviewCorpus = Tuple[str, ...]

# A result only counts as positive/negative above this score.
CONFIDENCE_THRESHOLD = 0.5


class LoadErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MISSING_COLUMN = "missing_column"
    EMPTY = "empty"


class AnalysisErrorKind(str, Enum):
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    SERVICE_ERROR = "service_error"
    UNEXPECTED_SHAPE = "unexpected_shape"
    NETWORK_FAILURE = "network_failure"


class ReviewSessionError(Exception):
    """Base class for errors surfaced to the user.

    ``str(error)`` is the user-visible message.
    """

    def __init__(self, kind: Enum, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class LoadError(ReviewSessionError):
    """The dataset could not be turned into a corpus."""

    def __init__(self, kind: LoadErrorKind, message: str) -> None:
        super().__init__(kind, message)


class AnalysisError(ReviewSessionError):
    """The classification request failed or returned something unusable."""

    def __init__(self, kind: AnalysisErrorKind, message: str, detail: Optional[str] = None) -> None:
        super().__init__(kind, message)
        self.detail = detail


class Bucket(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class UIState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    ERROR = "error"


@dataclass(frozen=True)
class ClassificationResult:
    """Normalized answer of the classifier for one review."""

    label: str
    score: float
    bucket: Bucket


# ---- Corpus ----

def _drop_overlong_rows(lines: List[str]) -> Tuple[List[str], List[int]]:
    """Split data rows with more fields than the header off the document.

    Reviews are unquoted, so one line is one row. Returns the kept lines and the
    1-based line numbers of the dropped ones.
    """
    header_idx = next((i for i, line in enumerate(lines) if line.strip()), None)
    if header_idx is None:
        return lines, []
    width = lines[header_idx].count("\t") + 1

    kept: List[str] = []
    skipped: List[int] = []
    for i, line in enumerate(lines):
        if i > header_idx and line.count("\t") + 1 > width:
            skipped.append(i + 1)
        else:
            kept.append(line)
    return kept, skipped


def parse_corpus(raw: str) -> ReviewCorpus:
    """Parse TSV text into a corpus of non-empty review strings.

    Parameters
    ----------
    raw : str
        Tab-separated text whose first row is a header.

    Returns
    -------
    ReviewCorpus
        Values of the first column named "text" (any case), in file order,
        with blank values dropped. Values are kept as-is, not trimmed.

    Raises
    ------
    LoadError
        ``MISSING_COLUMN`` if no header matches "text", ``EMPTY`` if no
        non-blank value remains.

    Examples
    --------
    >>> parse_corpus("id\\tText\\n1\\tGreat film\\n2\\t \\n")
    ('Great film',)
    """
    kept, skipped = _drop_overlong_rows(raw.splitlines())
    if skipped:
        logger.warning(
            "Skipped %d malformed TSV row(s) with too many fields, at line(s) %s",
            len(skipped),
            ", ".join(str(n) for n in skipped),
        )

    try:
        df = pd.read_csv(
            io.StringIO("\n".join(kept)),
            sep="\t",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            quoting=csv.QUOTE_NONE,
            engine="python",
        )
    except EmptyDataError as e:
        raise LoadError(
            LoadErrorKind.MISSING_COLUMN,
            'TSV does not contain a "text" column (case-insensitive).',
        ) from e
    except ParserError as e:
        raise LoadError(LoadErrorKind.EMPTY, f"No reviews could be parsed from the TSV: {e}") from e

    text_col = next((c for c in df.columns if str(c).lower() == "text"), None)
    if text_col is None:
        raise LoadError(
            LoadErrorKind.MISSING_COLUMN,
            'TSV does not contain a "text" column (case-insensitive).',
        )

    reviews = tuple(v for v in df[text_col].fillna("").astype(str) if v.strip())
    if not reviews:
        raise LoadError(LoadErrorKind.EMPTY, 'No non-empty reviews found in "text" column.')
    return reviews


async def load_corpus(source: Any, path: str) -> ReviewCorpus:
    """Fetch ``path`` through ``source`` (a ``DatasetSource``) and parse it."""
    raw = await source.fetch(path)
    return parse_corpus(raw)


def pick_random(corpus: ReviewCorpus) -> Optional[str]:
    if not corpus:
        return None
    return corpus[random.randrange(len(corpus))]


# ---- Classification ----

def _is_entry(obj: Any) -> bool:
    return isinstance(obj, dict) and "label" in obj and "score" in obj


def find_entry(payload: Any) -> Optional[Dict[str, Any]]:
    """Locate the first ``{label, score}`` object in a classifier response.

    The Inference API answers text classification with a list of lists,
    ``[[{"label": ..., "score": ...}, ...]]``; that is the canonical shape. A flat
    list and a bare object are accepted as fallbacks.
    """
    if _is_entry(payload):
        logger.debug("Classifier returned a bare object instead of [[...]]")
        return payload
    if not isinstance(payload, list):
        return None
    for item in payload:
        if isinstance(item, list):
            for inner in item:
                if _is_entry(inner):
                    return inner
        elif _is_entry(item):
            logger.debug("Classifier returned a flat list instead of [[...]]")
            return item
    return None


def bucket_for(label: str, score: float) -> Bucket:
    """Map an uppercased label and its score to a result bucket.

    Low-confidence results and labels other than POSITIVE/NEGATIVE are neutral.

    Examples
    --------
    >>> bucket_for("POSITIVE", 0.91)
    <Bucket.POSITIVE: 'positive'>
    >>> bucket_for("POSITIVE", 0.4)
    <Bucket.NEUTRAL: 'neutral'>
    """
    if score > CONFIDENCE_THRESHOLD and label == "POSITIVE":
        return Bucket.POSITIVE
    if score > CONFIDENCE_THRESHOLD and label == "NEGATIVE":
        return Bucket.NEGATIVE
    return Bucket.NEUTRAL


def normalize_response(payload: Any) -> ClassificationResult:
    entry = find_entry(payload)
    if entry is None:
        if isinstance(payload, dict) and payload.get("error"):
            raise AnalysisError(
                AnalysisErrorKind.SERVICE_ERROR,
                f"API returned error: {payload['error']}",
                detail=str(payload["error"]),
            )
        logger.debug("Unexpected classifier response: %r", payload)
        raise AnalysisError(AnalysisErrorKind.UNEXPECTED_SHAPE, "Unexpected API response format.")

    label = str(entry["label"]).upper()
    try:
        score = float(entry["score"])
    except (TypeError, ValueError):
        score = math.nan
    if not math.isfinite(score):
        raise AnalysisError(
            AnalysisErrorKind.UNEXPECTED_SHAPE,
            f"Unexpected API response format: score {entry['score']!r} is not a finite number.",
        )
    return ClassificationResult(label=label, score=score, bucket=bucket_for(label, score))


async def analyze(client: Any, review_text: str, auth_token: Optional[str] = None) -> ClassificationResult:
    """Classify one review through ``client`` (a ``ClassifierClient``).

    One request, no retry. Raises ``AnalysisError`` on any failure.
    """
    payload = await client.classify(review_text, auth_token)
    return normalize_response(payload)


def decide_ui_state(
    result: Optional[ClassificationResult],
    error: Optional[str],
    loading: bool = False,
) -> UIState:
    if loading:
        return UIState.LOADING
    if error:
        return UIState.ERROR
    if result is not None:
        return UIState(result.bucket.value)
    return UIState.IDLE


# ---- Session ----

class ReviewSession:
    """The one piece of process-wide state: corpus, displayed review, last outcome.

    Actions never raise ``ReviewSessionError``; they log it and keep its message
    in ``error`` for the page to show. ``failed_action`` records which action
    produced it ("load" or "analyze").

    Parameters
    ----------
    source : DatasetSource
        Where the TSV is fetched from.
    client : ClassifierClient
        Where reviews are classified.
    tsv_path : str
        Default path for ``load``.
    metrics : Metrics | None
        Collector for classification calls; a fresh one by default.
    """

    def __init__(self, source: Any, client: Any, tsv_path: str, metrics: Optional[Metrics] = None) -> None:
        self.source = source
        self.client = client
        self.tsv_path = tsv_path
        self.metrics = metrics if metrics is not None else Metrics()

        self.corpus: ReviewCorpus = ()
        self.review: Optional[str] = None
        self.result: Optional[ClassificationResult] = None
        self.error: Optional[str] = None
        self.failed_action: Optional[str] = None

    @property
    def state(self) -> UIState:
        return decide_ui_state(self.result, self.error)

    def _fail(self, action: str, message: str) -> None:
        self.error = message
        self.failed_action = action

    def _clear_error(self) -> None:
        self.error = None
        self.failed_action = None

    async def load(self, path: Optional[str] = None) -> None:
        """Load the corpus, replacing the current one only on success."""
        path = path or self.tsv_path
        try:
            corpus = await load_corpus(self.source, path)
        except LoadError as e:
            logger.error("Error loading TSV %s: %s", path, e)
            self._fail("load", str(e))
            return

        self.corpus = corpus
        self.review = None
        self.result = None
        self._clear_error()
        logger.info("Loaded %d reviews from %s", len(corpus), path)

    async def analyze_random(self, auth_token: Optional[str] = None) -> None:
        self._clear_error()
        review = pick_random(self.corpus)
        if review is None:
            self._fail("analyze", "No reviews loaded. Reload TSV first.")
            return
        self.review = review
        await self._analyze_current(auth_token)

    async def reanalyze(self, auth_token: Optional[str] = None) -> None:
        self._clear_error()
        if self.review is None:
            self._fail("analyze", "No review selected. Analyze a random review first.")
            return
        await self._analyze_current(auth_token)

    async def _analyze_current(self, auth_token: Optional[str]) -> None:
        self.result = None
        t0 = time.perf_counter()
        try:
            result = await analyze(self.client, self.review, auth_token)
        except AnalysisError as e:
            latency_ms = (time.perf_counter() - t0) * 1000.0
            self.metrics.record(ok=False, latency_ms=latency_ms, error_kind=e.kind.value)
            logger.error("Analyze error (%s): %s", e.kind.value, e)
            self._fail("analyze", str(e))
            return

        latency_ms = (time.perf_counter() - t0) * 1000.0
        self.metrics.record(ok=True, latency_ms=latency_ms, bucket=result.bucket.value)
        self.result = result
        logger.info("Analysis complete: %s %.3f -> %s", result.label, result.score, result.bucket.value)
