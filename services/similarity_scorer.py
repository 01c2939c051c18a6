"""
Similarity scorer for free-text queries against searchable blobs.

Score contract (owned here, not by the matching library):
    - bounded to [0, 1]
    - 0 is an ideal match, higher is worse
    - anything above the configured threshold is "no match" (None)
    - only comparable between scores produced by the same ScorerConfig

Each query token is aligned against the blob on its own with
rapidfuzz.fuzz.partial_ratio_alignment, so words can appear out of order
and surrounded by extra text. The record score is the mean token error.
"""

from dataclasses import dataclass
from typing import Optional

from rapidfuzz import fuzz

from exceptions import ConfigurationError
from utils.text_utils import tokenize

# ===================
# CALIBRATION
# ===================

# Fraction of a token's characters that may be wrong before it stops matching.
GLOBAL_SEARCH_THRESHOLD = 0.4
SUGGESTION_THRESHOLD = 0.6

# Locality: a token matched `distance` characters away from `location`
# costs a full point of error.
DEFAULT_LOCATION = 0
DEFAULT_DISTANCE = 100


@dataclass(frozen=True)
class ScorerConfig:
    """
    Tuning for one scorer call site.

    Attributes:
        threshold: Highest accepted score (exclusive of "no match")
        ignore_location: When True, a token matched anywhere counts the same
        location: Expected character offset of matches
        distance: Characters of offset that add 1.0 of error
    """
    threshold: float = GLOBAL_SEARCH_THRESHOLD
    ignore_location: bool = False
    location: int = DEFAULT_LOCATION
    distance: int = DEFAULT_DISTANCE

    def __post_init__(self):
        if not 0 < self.threshold <= 1:
            raise ConfigurationError(
                "Scorer threshold must be in (0, 1]",
                details={"threshold": self.threshold}
            )
        if self.distance <= 0:
            raise ConfigurationError(
                "Scorer distance must be positive",
                details={"distance": self.distance}
            )
        if self.location < 0:
            raise ConfigurationError(
                "Scorer location must not be negative",
                details={"location": self.location}
            )


# Operator search: deliberate queries, matches near the start of the blob.
GLOBAL_SEARCH_PRESET = ScorerConfig(threshold=GLOBAL_SEARCH_THRESHOLD)

# Hand-typed contractor text: noisier, the words can be anywhere.
SUGGESTION_PRESET = ScorerConfig(
    threshold=SUGGESTION_THRESHOLD,
    ignore_location=True,
)


class SimilarityScorer:
    """
    Scores a query against candidate blobs.

    Usage:
        scorer = SimilarityScorer(GLOBAL_SEARCH_PRESET)
        scorer.score("acme clean", "acme cleaning co ops@acme.test")  # 0.025
    """

    def __init__(self, config: ScorerConfig = GLOBAL_SEARCH_PRESET):
        self.config = config

    def score(self, query: str, blob: str) -> Optional[float]:
        """
        Score a query against one blob.

        Args:
            query: Raw user text (normalized here)
            blob: Searchable blob (already normalized by the catalog)

        Returns:
            Score in [0, threshold], or None when there is no match
        """
        return self.score_tokens(tokenize(query), blob)

    def score_tokens(self, tokens: list[str], blob: str) -> Optional[float]:
        """Score pre-tokenized query text; lets callers tokenize once per query."""
        if not tokens or not blob:
            return None

        total = sum(self._token_error(token, blob) for token in tokens)
        score = total / len(tokens)

        if score > self.config.threshold:
            return None
        return score

    def _token_error(self, token: str, blob: str) -> float:
        alignment = fuzz.partial_ratio_alignment(token, blob)
        if alignment is None:
            return 1.0

        error = 1.0 - alignment.score / 100.0

        if not self.config.ignore_location:
            offset = abs(alignment.dest_start - self.config.location)
            error += offset / self.config.distance

        return min(error, 1.0)
