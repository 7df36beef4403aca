import math
import structlog
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from workledger import config
from workledger.models.work import Work
from workledger.models.similarity import (
    PlagiarismResult, WorkMatch, MATCH_DETAILS, NO_MATCH_DETAILS
)
from workledger.services.text import normalize, shingles

logger = structlog.get_logger()

@dataclass(frozen=True)
class SimilarityThresholds:
    """Tunable parameters of the corpus scan."""
    match_threshold: float = 0.15   # per-work containment needed to count as a match
    flag_threshold: int = 40        # aggregate score at which a submission is flagged
    shingle_size: int = 3
    max_phrases: int = 20

    @classmethod
    def from_config(cls) -> "SimilarityThresholds":
        return cls(
            match_threshold=config.MATCH_THRESHOLD,
            flag_threshold=config.FLAG_THRESHOLD,
            shingle_size=config.SHINGLE_SIZE,
            max_phrases=config.MAX_OVERLAP_PHRASES,
        )

def percent_score(containment: float) -> int:
    """Containment ratio as an integer percentage, rounding halves up."""
    return int(math.floor(containment * 100 + 0.5))

class SimilarityEngine:
    """Scores a candidate text against a corpus of other authors' works by shingle containment."""

    def __init__(self, thresholds: Optional[SimilarityThresholds] = None, max_workers: int = 1):
        self.thresholds = thresholds or SimilarityThresholds.from_config()
        self.max_workers = max(1, max_workers)

        logger.info("SimilarityEngine initialized",
                   match_threshold=self.thresholds.match_threshold,
                   flag_threshold=self.thresholds.flag_threshold,
                   shingle_size=self.thresholds.shingle_size,
                   max_workers=self.max_workers)

    def score(self,
              candidate_text: str,
              exclude_owner_id: Optional[str],
              corpus: Iterable[Work]) -> PlagiarismResult:
        """
        Compare candidate_text with every corpus work not owned by exclude_owner_id.

        Containment is asymmetric: overlap divided by the candidate's own
        shingle count, so a short text lifted from a long work still scores
        near 1.0.

        Args:
            candidate_text: Raw text of the submission
            exclude_owner_id: Author whose own works are never matched
            corpus: Snapshot of stored works

        Returns:
            PlagiarismResult with per-work matches and the aggregate score
        """
        others = [work for work in corpus if exclude_owner_id is None or work.owner_id != exclude_owner_id]

        if not others:
            logger.info("No other works to compare against", exclude_owner_id=exclude_owner_id)
            return PlagiarismResult(is_plagiarized=False, score=0, details=NO_MATCH_DETAILS, matches=[])

        candidate = shingles(normalize(candidate_text), self.thresholds.shingle_size)
        denominator = max(len(candidate), 1)

        if self.max_workers > 1 and len(others) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(lambda work: self.compare(candidate, denominator, work), others))
        else:
            results = [self.compare(candidate, denominator, work) for work in others]

        matches = sorted(
            (match for match in results if match is not None),
            key=lambda match: (-match.similarity, match.work_id),
        )

        best = max((match.similarity for match in matches), default=0.0)
        score = percent_score(best)
        is_plagiarized = score >= self.thresholds.flag_threshold

        logger.info("Similarity scan completed",
                   corpus_size=len(others),
                   candidate_shingles=len(candidate),
                   matches_found=len(matches),
                   score=score,
                   is_plagiarized=is_plagiarized)

        return PlagiarismResult(
            is_plagiarized=is_plagiarized,
            score=score,
            details=MATCH_DETAILS if matches else NO_MATCH_DETAILS,
            matches=matches,
        )

    def compare(self, candidate: FrozenSet[str], denominator: int, work: Work) -> Optional[WorkMatch]:
        """Containment of the candidate shingles in one work; None below the match threshold."""
        normalized = normalize(work.content)
        if not normalized:
            return None

        overlap = candidate & shingles(normalized, self.thresholds.shingle_size)
        containment = len(overlap) / denominator

        logger.debug("Compared against work", work_id=work.id, containment=round(containment, 3))

        if containment <= self.thresholds.match_threshold:
            return None

        return WorkMatch(
            work_id=work.id,
            work_title=work.title,
            similarity=round(containment, 3),
            overlapping_phrases=sorted(overlap)[:self.thresholds.max_phrases],
        )

# Global engine instance
_engine = None

def get_engine() -> SimilarityEngine:
    """Lazily build the engine from configuration."""
    global _engine
    if _engine is None:
        _engine = SimilarityEngine(max_workers=config.SCAN_WORKERS)
    return _engine

def get_similarity_info() -> dict:
    """Get information about the similarity scan configuration."""
    thresholds = get_engine().thresholds
    return {
        "match_threshold": thresholds.match_threshold,
        "flag_threshold": thresholds.flag_threshold,
        "shingle_size": thresholds.shingle_size,
        "max_phrases": thresholds.max_phrases,
        "algorithm": "word_shingle_containment",
    }
