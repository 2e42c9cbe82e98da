"""
Risk Scoring Module

Combines the weather, industry, personal health and historical incident
sub-scores into one overall 1-5 risk level with a confidence score and
recommendation text.
"""

import numpy as np
import math
import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple, Union
import logging

from .estimators import (
    DEFAULT_SCORE,
    MAX_SCORE,
    MIN_SCORE,
    SubScore,
    default_sub_score,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


SubScoreInput = Union[SubScore, int, None]


@dataclass(frozen=True)
class RiskAnalysis:
    primary_risk_factors: Tuple[str, ...] = ()
    urgent_actions: Tuple[str, ...] = ()
    preventive_measures: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("primary_risk_factors", "urgent_actions", "preventive_measures"):
            object.__setattr__(self, name, tuple(getattr(self, name)))


@dataclass(frozen=True)
class RiskResult:
    """Composite risk assessment for one worker at one point in time"""

    overall_risk: int
    confidence: float
    recommendations: Tuple[str, ...]
    analysis: RiskAnalysis
    weather_risk: int
    industry_risk: int
    health_risk: int
    historical_risk: int

    def __post_init__(self):
        object.__setattr__(self, "recommendations", tuple(self.recommendations))

    def to_dict(self) -> Dict:
        return {
            "overall_risk": self.overall_risk,
            "weather_risk": self.weather_risk,
            "industry_risk": self.industry_risk,
            "health_risk": self.health_risk,
            "historical_risk": self.historical_risk,
            "confidence": self.confidence,
            "recommendations": list(self.recommendations),
            "analysis": {
                "primary_risk_factors": list(self.analysis.primary_risk_factors),
                "urgent_actions": list(self.analysis.urgent_actions),
                "preventive_measures": list(self.analysis.preventive_measures),
            },
        }


class RiskScorer:
    """Calculate composite occupational risk scores"""

    # Default weights for each sub-score (must sum to 1.0)
    DEFAULT_WEIGHTS = {
        "weather": 0.30,
        "industry": 0.25,
        "health": 0.25,
        "historical": 0.20
    }

    BASE_CONFIDENCE = 0.5
    CONFIDENCE_INCREMENTS = {
        "weather": 0.20,
        "industry": 0.15,
        "health": 0.20,
        "historical": 0.15
    }

    # Sub-scores at or above this level are reported as primary risk factors
    PRIMARY_FACTOR_LEVEL = 4

    FACTOR_LABELS = {
        "weather": "weather risk",
        "industry": "industry risk",
        "health": "health risk",
        "historical": "historical incident pattern"
    }

    # Checked from the highest tier down; the first tier the level reaches wins
    URGENT_ACTION_TIERS = (
        (5, ("Stop work immediately", "Evacuate to a safe place", "Contact your manager")),
        (4, ("Reduce work intensity", "Inspect safety equipment", "Share the situation with colleagues")),
    )
    ROUTINE_ACTIONS = ("Work carefully", "Take regular breaks", "Follow safety rules")

    PREVENTIVE_MEASURES = (
        "Get regular health checkups",
        "Attend safety training",
        "Wear protective equipment",
        "Check weather information",
        "Check emergency contacts"
    )

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        """
        Initialize risk scorer

        Args:
            weights: Custom weights for each sub-score. If None, uses defaults.
        """
        self.weights = dict(weights) if weights is not None else dict(self.DEFAULT_WEIGHTS)

        unknown = set(self.weights) - set(self.DEFAULT_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown sub-score weights: {sorted(unknown)}")

        # Validate weights sum to 1.0
        total_weight = sum(self.weights.values())
        if total_weight <= 0:
            raise ValueError("Weights must sum to a positive value")
        if not np.isclose(total_weight, 1.0):
            logger.warning(f"Weights sum to {total_weight:.2f}, normalizing to 1.0")
            self.weights = {k: v/total_weight for k, v in self.weights.items()}

    def compute(
        self,
        weather: SubScoreInput,
        industry: SubScoreInput,
        health: SubScoreInput,
        historical: SubScoreInput
    ) -> RiskResult:
        """
        Calculate the composite risk from the four sub-scores

        Each argument may be a SubScore from an estimator, a plain 1-5
        integer, or None for missing evidence.
        """

        scores = {
            "weather": self._coerce("weather", weather),
            "industry": self._coerce("industry", industry),
            "health": self._coerce("health", health),
            "historical": self._coerce("historical", historical)
        }

        weighted = sum(
            self.weights.get(name, 0) * sub.score
            for name, sub in scores.items()
        )
        overall = self._clamp_level(_round_half_up(weighted))

        return RiskResult(
            overall_risk=overall,
            confidence=self.calculate_confidence(scores),
            recommendations=merge_recommendations(
                sub.recommendations for sub in scores.values()
            ),
            analysis=RiskAnalysis(
                primary_risk_factors=self.primary_risk_factors(scores),
                urgent_actions=self.urgent_actions(overall),
                preventive_measures=list(self.PREVENTIVE_MEASURES)
            ),
            weather_risk=scores["weather"].score,
            industry_risk=scores["industry"].score,
            health_risk=scores["health"].score,
            historical_risk=scores["historical"].score
        )

    def calculate_confidence(self, scores: Dict[str, SubScore]) -> float:
        """Base confidence plus an increment for every sub-score backed by real evidence"""
        confidence = self.BASE_CONFIDENCE
        for name, sub in scores.items():
            if self._has_evidence(sub):
                confidence += self.CONFIDENCE_INCREMENTS.get(name, 0.0)
        return round(float(np.clip(confidence, 0.0, 1.0)), 4)

    def primary_risk_factors(self, scores: Dict[str, SubScore]) -> List[str]:
        return [
            self.FACTOR_LABELS[name]
            for name, sub in scores.items()
            if sub.score >= self.PRIMARY_FACTOR_LEVEL
        ]

    def urgent_actions(self, level: int) -> List[str]:
        for tier, actions in self.URGENT_ACTION_TIERS:
            if level >= tier:
                return list(actions)
        return list(self.ROUTINE_ACTIONS)

    @staticmethod
    def _has_evidence(sub: SubScore) -> bool:
        if not sub.available:
            return False
        if sub.name == "historical" and "total_incidents" in sub.details:
            return sub.details["total_incidents"] > 0
        return True

    @staticmethod
    def _coerce(name: str, value: SubScoreInput) -> SubScore:
        if value is None:
            return default_sub_score(name)
        if isinstance(value, SubScore):
            if value.name != name:
                logger.warning(f"Sub-score '{value.name}' passed as '{name}'")
            level = RiskScorer._clamp_level(value.score)
            if level != value.score:
                logger.warning(f"{name} sub-score {value.score} out of range, clamped to {level}")
                return replace(value, score=level)
            return value
        return SubScore(name=name, score=RiskScorer._clamp_level(value))

    @staticmethod
    def _clamp_level(value) -> int:
        try:
            level = int(value)
        except (TypeError, ValueError):
            return DEFAULT_SCORE
        return min(max(level, MIN_SCORE), MAX_SCORE)


def merge_recommendations(groups: Iterable[Iterable[str]]) -> List[str]:
    """
    Union of recommendation lists in first-seen order

    Two strings are duplicates when they match after case folding and
    whitespace collapsing; the first spelling is kept.
    """
    merged = []
    seen = set()
    for group in groups:
        for text in group:
            key = _normalize(text)
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(text.strip())
    return merged


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().casefold()


def _round_half_up(value: float) -> int:
    # Trim float noise so 2.4999999999 lands on the 2.5 it stands for
    return int(math.floor(round(value, 6) + 0.5))


if __name__ == "__main__":
    # Test the risk scorer
    print("\n" + "="*60)
    print("COMPOSITE RISK SCORER TEST")
    print("="*60 + "\n")

    scorer = RiskScorer()

    for inputs in [(5, 5, 5, 5), (1, 1, 1, 1), (5, 1, 1, 1), (4, 4, 3, 2)]:
        result = scorer.compute(*inputs)
        print(f"Sub-scores {inputs} -> overall {result.overall_risk}, "
              f"confidence {result.confidence:.2f}")
        print(f"  Primary factors: {result.analysis.primary_risk_factors}")
        print(f"  Urgent actions:  {result.analysis.urgent_actions}")

    print("\n" + "="*60)
    print("TEST COMPLETE")
    print("="*60)
