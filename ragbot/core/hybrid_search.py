"""
Keyword scoring for hybrid retrieval.

Blends vector similarity with a keyword match score computed over the
hit's content and section metadata. Section numbers in the question are
kept as keywords so "section 4.2" favours chunks that carry that number.

Dependencies: re (stdlib), ragbot.models
System role: Re-ranking stage inside the retrieval aggregator
"""

import re

from ragbot.models.search import SearchHit

DEFAULT_VECTOR_WEIGHT = 0.7
SECTION_VECTOR_WEIGHT = 0.3
KEYWORD_SCORE_CAP = 10.0

STOP_WORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in",
        "with", "to", "for", "of", "as", "by", "from", "what", "where", "when",
        "how", "why", "are", "does", "this", "that",
    }
)

_SECTION_NUMBER = re.compile(r"\b\d+(?:\.\d+)*\b")
_NON_WORD = re.compile(r"[^\w\s.-]")


def extract_keywords(question: str) -> list[str]:
    """
    Section numbers plus lowercase content words of the question.

    >>> extract_keywords("What is the refund policy in section 4.2?")
    ['4.2', 'refund', 'policy', 'section']
    """
    keywords = _SECTION_NUMBER.findall(question)
    for word in _NON_WORD.sub("", question.lower()).split():
        word = word.strip(".-")
        if len(word) > 2 and word not in STOP_WORDS:
            keywords.append(word)
    return list(dict.fromkeys(keywords))


def keyword_score(hit: SearchHit, keywords: list[str]) -> float:
    """
    Raw keyword score of a hit.

    Whole-word content matches count 2 each; a keyword inside
    sectionNumber adds 10, inside sectionTitle 5, inside summary 2.
    """
    content = hit.content.lower()
    section_number = str(hit.metadata.get("sectionNumber") or "")
    section_title = str(hit.metadata.get("sectionTitle") or "").lower()
    summary = str(hit.metadata.get("summary") or "").lower()

    score = 0.0
    for keyword in keywords:
        score += 2 * len(re.findall(rf"(?<!\w){re.escape(keyword)}(?!\w)", content))
        if section_number and keyword in section_number:
            score += 10
        if keyword in section_title:
            score += 5
        if keyword in summary:
            score += 2
    return score


def hybrid_score(similarity: float, raw_keyword_score: float, vector_weight: float) -> float:
    """``w * similarity + (1 - w) * min(keyword / 10, 1)``."""
    normalised = min(raw_keyword_score / KEYWORD_SCORE_CAP, 1.0)
    return vector_weight * similarity + (1.0 - vector_weight) * normalised


def apply_hybrid_scores(
    hits: list[SearchHit],
    question: str,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> list[SearchHit]:
    """Copies of ``hits`` carrying keyword and hybrid scores."""
    keywords = extract_keywords(question)
    scored = []
    for hit in hits:
        raw = keyword_score(hit, keywords)
        scored.append(
            hit.model_copy(
                update={
                    "keyword_score": raw,
                    "hybrid_score": hybrid_score(hit.similarity, raw, vector_weight),
                }
            )
        )
    return scored
