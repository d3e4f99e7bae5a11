"""
Purpose: VCMS scoring engine.
Description: Pure, deterministic computation of the 0-100 vendor fitness score from
quality, reliability and compliance evidence plus a blunt penalty multiplier.
Weights and caps live in `scoring_config.yaml` next to this module.
Key Functions: calculate_vcms_score, initial_score, get_scoring_config, validate_scoring_config.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ScoringError
from .models import ComplianceInputs, QualityInputs, ReliabilityInputs, ScoreComponents


# Global config cache
_scoring_config: Optional[Dict[str, Any]] = None

_REQUIRED_SECTIONS = ("weights", "rating_scale", "quality", "reliability", "compliance", "penalties")

T = TypeVar("T", bound=BaseModel)


def get_scoring_config() -> Dict[str, Any]:
    """Load and cache the scoring configuration from YAML file."""
    global _scoring_config

    if _scoring_config is None:
        config_path = Path(__file__).parent / "scoring_config.yaml"

        if not config_path.exists():
            raise FileNotFoundError(f"Scoring configuration not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
        if not validate_scoring_config(config):
            raise ScoringError(f"Invalid scoring configuration: {config_path}")
        _scoring_config = config

    return _scoring_config


def validate_scoring_config(config: Mapping[str, Any]) -> bool:
    """
    Validate that the scoring configuration is properly formatted.

    The three weights must sum to 1.0 and the sub-score caps to 100, so that a
    fully-credited, unpenalized vendor lands exactly on 100.
    """
    if not isinstance(config, Mapping):
        return False
    for section in _REQUIRED_SECTIONS:
        if section not in config:
            return False
    try:
        weights = config["weights"]
        if not math.isclose(sum(weights[k] for k in ("quality", "reliability", "compliance")), 1.0):
            return False
        caps = (
            config["quality"]["max_points"]
            + config["reliability"]["max_points"]
            + config["compliance"]["max_points"]
        )
        if caps != 100:
            return False
        multiplier = config["penalties"]["multiplier"]
    except (KeyError, TypeError):
        return False
    return 0 < multiplier <= 1


def _coerce(model: Type[T], value: Union[T, Mapping[str, Any], None], label: str) -> T:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value or {})
    except ValidationError as e:
        # AIDEV-NOTE: Reject out-of-range evidence; never clamp silently.
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ScoringError(f"Invalid {label} inputs: {problems}") from e


def _round_half_up(value: float) -> int:
    # Trim float noise first so 39.4999999... still lands on 40
    return int(math.floor(round(value, 6) + 0.5))


def calculate_vcms_score(
    quality: Union[QualityInputs, Mapping[str, Any], None],
    reliability: Union[ReliabilityInputs, Mapping[str, Any], None],
    compliance: Union[ComplianceInputs, Mapping[str, Any], None],
) -> ScoreComponents:
    """
    Calculate the VCMS score.

    Score = ((0.5 * Quality) + (0.35 * Reliability) + (0.15 * Compliance)) * Penalty

    Args:
        quality: star rating (0-5) and review count (>= 0)
        reliability: internal rating (0-5) and total jobs (reporting only)
        compliance: COI / contract credits, do-not-use and expired-license flags

    Returns:
        ScoreComponents with sub-scores rounded to one decimal and an integer final score.

    Raises:
        ScoringError: when any input is outside its documented range.
    """
    q = _coerce(QualityInputs, quality, "quality")
    r = _coerce(ReliabilityInputs, reliability, "reliability")
    c = _coerce(ComplianceInputs, compliance, "compliance")

    config = get_scoring_config()
    weights = config["weights"]
    scale = config["rating_scale"]
    qcfg = config["quality"]
    ccfg = config["compliance"]

    # 1. Quality (rating up to 40, review volume up to 10)
    rating_score = (q.star_rating / scale) * qcfg["rating_points"]
    volume_score = min(qcfg["volume_points"], math.log10(q.review_count + 1) * qcfg["volume_log_factor"])
    quality_score = min(qcfg["max_points"], rating_score + volume_score)

    # 2. Reliability
    reliability_max = config["reliability"]["max_points"]
    reliability_score = min(reliability_max, (r.internal_rating / scale) * reliability_max)

    # 3. Compliance (additive flags)
    compliance_score = 0
    if c.has_coi:
        compliance_score += ccfg["coi_points"]
    if c.has_contract:
        compliance_score += ccfg["contract_points"]
    compliance_score = min(ccfg["max_points"], compliance_score)

    # 4. Penalty
    penalty_multiplier = 1.0
    if c.license_expired or c.is_do_not_use:
        penalty_multiplier = float(config["penalties"]["multiplier"])

    weighted = (
        weights["quality"] * quality_score
        + weights["reliability"] * reliability_score
        + weights["compliance"] * compliance_score
    )

    return ScoreComponents(
        quality_score=round(quality_score, 1),
        reliability_score=round(reliability_score, 1),
        compliance_score=compliance_score,
        penalty_multiplier=penalty_multiplier,
        final_score=_round_half_up(weighted * penalty_multiplier),
    )


def initial_score() -> ScoreComponents:
    """Score for a brand-new vendor: no ratings, no reviews, no history, no compliance flags."""
    return calculate_vcms_score(QualityInputs(), ReliabilityInputs(), ComplianceInputs())


def describe_score(components: ScoreComponents) -> List[str]:
    """Human-readable lines explaining each part of a score."""
    config = get_scoring_config()
    lines = [
        f"Quality: {components.quality_score:g} of {config['quality']['max_points']} points",
        f"Reliability: {components.reliability_score:g} of {config['reliability']['max_points']} points",
        f"Compliance: {components.compliance_score} of {config['compliance']['max_points']} points",
    ]
    if components.penalty_multiplier < 1.0:
        lines.append(f"Penalty: x{components.penalty_multiplier:g} (expired license or do-not-use)")
    lines.append(f"Final VCMS score: {components.final_score}/100")
    return lines
