"""
church_engines.heritage -- Pure heritage classifier.

Responsibility:
    Score a church profile for heritage significance with a weighted
    additive model and map the score to a confidence band and the
    ``is_heritage`` guard value the workflow engine routes on.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import church_kernel/domain types.

Scoring (defaults; every number and list comes from HeritageSettings):

    Signal                    Weight  Fires when
    ------------------------  ------  -------------------------------------
    declared_classification     100   tag is ICP or NCT
    founded_before_cutoff        50   founding_year < 1900
    historic_architecture        30   style contains a historic style name
    heritage_keyword             20   a heritage keyword appears in the
                                      keywords, description or notes

    Signals sum, each counted at most once, with no cap.

    Band:  score > 100        -> high    (is_heritage)
           50 <= score <= 100 -> medium  (is_heritage)
           score < 50         -> low

Invariants enforced:
    - Determinism: identical profiles give identical assessments.
    - Monotonicity: every weight is non-negative, so adding a signal never
      lowers the score.
    - Missing fields contribute nothing and never raise.

Failure modes:
    - ValidationError for a founding year that is negative, zero or not
      an integer.
    - ValueError from HeritageSettings for a negative weight or inverted
      band thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from church_engines.tracer import traced_engine
from church_kernel.domain.church import (
    ChurchProfile,
    Confidence,
    HeritageAssessment,
    HeritageClassification,
    HeritageIndicator,
)
from church_kernel.domain.validation import validate_founding_year

DECLARED_CLASSIFICATION = "declared_classification"
FOUNDED_BEFORE_CUTOFF = "founded_before_cutoff"
HISTORIC_ARCHITECTURE = "historic_architecture"
HERITAGE_KEYWORD = "heritage_keyword"

DEFAULT_HISTORIC_STYLES: tuple[str, ...] = (
    "baroque",
    "earthquake baroque",
    "gothic",
    "romanesque",
    "neoclassical",
    "spanish colonial",
    "renaissance",
    "byzantine",
)

DEFAULT_HERITAGE_KEYWORDS: tuple[str, ...] = (
    "heritage",
    "national cultural treasure",
    "important cultural property",
    "historical marker",
    "coral stone",
    "spanish era",
    "centuries-old",
)


@dataclass(frozen=True)
class HeritageSettings:
    """Tunable parameters of the classifier."""

    declared_weight: int = 100
    founding_weight: int = 50
    architecture_weight: int = 30
    keyword_weight: int = 20
    cutoff_year: int = 1900
    high_threshold: int = 100
    medium_threshold: int = 50
    historic_styles: tuple[str, ...] = field(default=DEFAULT_HISTORIC_STYLES)
    heritage_keywords: tuple[str, ...] = field(default=DEFAULT_HERITAGE_KEYWORDS)

    def __post_init__(self) -> None:
        for name in (
            "declared_weight",
            "founding_weight",
            "architecture_weight",
            "keyword_weight",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.medium_threshold > self.high_threshold:
            raise ValueError("medium_threshold must not exceed high_threshold")


DEFAULT_SETTINGS = HeritageSettings()


@runtime_checkable
class HeritageClassifierLike(Protocol):
    """What the workflow engine needs from a classifier."""

    def classify(self, profile: ChurchProfile) -> HeritageAssessment: ...


def band_for(score: int, settings: HeritageSettings = DEFAULT_SETTINGS) -> Confidence:
    if score > settings.high_threshold:
        return Confidence.HIGH
    if score >= settings.medium_threshold:
        return Confidence.MEDIUM
    return Confidence.LOW


def _first_match(text: str, needles: tuple[str, ...]) -> str | None:
    for needle in needles:
        if needle.lower() in text:
            return needle
    return None


def _keyword_haystack(profile: ChurchProfile) -> str:
    parts = list(profile.keywords or ())
    if profile.description:
        parts.append(profile.description)
    if profile.heritage_notes:
        parts.append(profile.heritage_notes)
    return " | ".join(parts).lower()


def _indicators(
    profile: ChurchProfile,
    settings: HeritageSettings,
) -> tuple[HeritageIndicator, ...]:
    classification = profile.classification or HeritageClassification.NONE
    declared = classification in (HeritageClassification.ICP, HeritageClassification.NCT)

    year = validate_founding_year(profile.founding_year)
    old = year is not None and year < settings.cutoff_year

    style = (profile.architectural_style or "").lower()
    style_match = _first_match(style, settings.historic_styles) if style else None

    haystack = _keyword_haystack(profile)
    keyword_match = (
        _first_match(haystack, settings.heritage_keywords) if haystack else None
    )

    return (
        HeritageIndicator(
            name=DECLARED_CLASSIFICATION,
            present=declared,
            weight=settings.declared_weight if declared else 0,
            detail=f"declared {classification.value}" if declared else "",
        ),
        HeritageIndicator(
            name=FOUNDED_BEFORE_CUTOFF,
            present=old,
            weight=settings.founding_weight if old else 0,
            detail=f"founded {year}, before {settings.cutoff_year}" if old else "",
        ),
        HeritageIndicator(
            name=HISTORIC_ARCHITECTURE,
            present=style_match is not None,
            weight=settings.architecture_weight if style_match else 0,
            detail=f"{style_match} architecture" if style_match else "",
        ),
        HeritageIndicator(
            name=HERITAGE_KEYWORD,
            present=keyword_match is not None,
            weight=settings.keyword_weight if keyword_match else 0,
            detail=f"mentions '{keyword_match}'" if keyword_match else "",
        ),
    )


def _reasoning(score: int, confidence: Confidence, indicators) -> str:
    fired = [f"{i.detail} (+{i.weight})" for i in indicators if i.present]
    if not fired:
        return f"Score {score} ({confidence.value}): no heritage indicators found"
    return f"Score {score} ({confidence.value}): " + "; ".join(fired)


@traced_engine("heritage_classifier", "1.0", fingerprint_fields=("profile",))
def classify(
    profile: ChurchProfile,
    settings: HeritageSettings = DEFAULT_SETTINGS,
) -> HeritageAssessment:
    """Score a profile.

    Returns:
        HeritageAssessment with score, confidence band, is_heritage, one
        indicator per signal in fixed order and a reasoning string.
    """
    indicators = _indicators(profile, settings)
    score = sum(i.weight for i in indicators)
    confidence = band_for(score, settings)
    return HeritageAssessment(
        score=score,
        confidence=confidence,
        is_heritage=score >= settings.medium_threshold,
        indicators=indicators,
        reasoning=_reasoning(score, confidence, indicators),
    )


class WeightedHeritageClassifier:
    """Default HeritageClassifierLike implementation bound to one settings object."""

    def __init__(self, settings: HeritageSettings | None = None):
        self._settings = settings or DEFAULT_SETTINGS

    @property
    def settings(self) -> HeritageSettings:
        return self._settings

    def classify(self, profile: ChurchProfile) -> HeritageAssessment:
        return classify(profile, self._settings)
