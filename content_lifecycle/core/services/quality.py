"""
QualityGate - content quality evaluation.

Pure function from content fields to a QualityReport. No I/O, no state.

Key behaviors:
- Every rule is evaluated; a caller always sees every issue
- Issues are ordered by rule, not by severity
- Only high-severity issues block a forward transition
- Score is 100 minus a weighted deduction per issue, floored at 0
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from content_lifecycle.domain.entities import ContentItem, LocaleVariant, Severity

# --- Configuration ---


@dataclass(frozen=True)
class QualityConfig:
    """Quality gate thresholds from rules."""

    slug_pattern: str = r"^[a-z0-9-]+$"
    title_min: int = 3
    title_max: int = 200
    body_min_length: int = 1
    meta_description_min: int = 50
    meta_description_max: int = 160
    meta_title_max: int = 60
    require_excerpt: bool = True

    # Deduction per issue
    weight_high: int = 30
    weight_medium: int = 10
    weight_low: int = 3


DEFAULT_CONFIG = QualityConfig()

_PLACEHOLDER_PATTERNS = (
    re.compile(r"\[image[^\]]*\]", re.IGNORECASE),
    re.compile(r"\(image[^)]*\)", re.IGNORECASE),
    re.compile(r"\[alt text\]", re.IGNORECASE),
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"\bTODO\b"),
)


# --- Models ---


@dataclass(frozen=True)
class QualityFields:
    """Fields the gate looks at: one locale variant plus its parent slug."""

    title: str
    body: str
    slug: str
    excerpt: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None

    @classmethod
    def from_variant(cls, item: ContentItem, variant: LocaleVariant) -> QualityFields:
        return cls(
            title=variant.title,
            body=variant.body,
            slug=item.slug,
            excerpt=variant.excerpt,
            meta_title=variant.meta_title,
            meta_description=variant.meta_description,
        )


@dataclass(frozen=True)
class QualityIssue:
    type: str
    severity: Severity
    message: str
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class QualityReport:
    score: int
    issues: tuple[QualityIssue, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        return not any(issue.severity == "high" for issue in self.issues)

    def has_issue(self, issue_type: str) -> bool:
        return any(issue.type == issue_type for issue in self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "passed": self.passed,
            "issues": [issue.to_dict() for issue in self.issues],
        }


# --- Rules ---


def _check_slug(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    if fields.slug and re.fullmatch(config.slug_pattern, fields.slug):
        return None
    return QualityIssue(
        type="slug-invalid",
        severity="high",
        message="Slug is empty or contains characters other than a-z, 0-9 and '-'",
        suggestion="Use lowercase letters, digits and hyphens only",
    )


def _check_title(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    length = len((fields.title or "").strip())
    if config.title_min <= length <= config.title_max:
        return None
    return QualityIssue(
        type="title-length",
        severity="high",
        message=f"Title is {length} characters; expected {config.title_min}-{config.title_max}",
        suggestion="Write a descriptive title of reasonable length",
    )


def _check_body(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    body = (fields.body or "").strip()
    if body and len(body) >= max(config.body_min_length, 1):
        return None
    return QualityIssue(
        type="body-empty",
        severity="high",
        message="Body is empty or too short",
        suggestion=f"Add at least {max(config.body_min_length, 1)} characters of content",
    )


def _check_meta_description(
    fields: QualityFields, config: QualityConfig
) -> QualityIssue | None:
    desc = (fields.meta_description or "").strip()
    if desc and config.meta_description_min <= len(desc) <= config.meta_description_max:
        return None
    return QualityIssue(
        type="meta-description-missing",
        severity="medium",
        message=(
            "Meta description is missing or outside "
            f"{config.meta_description_min}-{config.meta_description_max} characters"
        ),
        suggestion="Summarise the page in one or two sentences for search results",
    )


def _check_meta_title(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    meta_title = (fields.meta_title or "").strip()
    if len(meta_title) <= config.meta_title_max:
        return None
    return QualityIssue(
        type="meta-title-length",
        severity="low",
        message=f"Meta title is longer than {config.meta_title_max} characters",
        suggestion="Shorten the meta title so search results do not truncate it",
    )


def _check_excerpt(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    if not config.require_excerpt or (fields.excerpt or "").strip():
        return None
    return QualityIssue(
        type="excerpt-missing",
        severity="low",
        message="Excerpt is missing",
        suggestion="Add a short excerpt for listings and social cards",
    )


def _check_placeholders(fields: QualityFields, config: QualityConfig) -> QualityIssue | None:
    body = fields.body or ""
    found = [p.pattern for p in _PLACEHOLDER_PATTERNS if p.search(body)]
    if not found:
        return None
    return QualityIssue(
        type="placeholder-content",
        severity="medium",
        message="Body contains placeholder text",
        suggestion="Replace image placeholders and filler text before publishing",
    )


# Order matters: issues are reported in this order.
_RULES = (
    _check_slug,
    _check_title,
    _check_body,
    _check_meta_description,
    _check_meta_title,
    _check_excerpt,
    _check_placeholders,
)


def _weight(severity: Severity, config: QualityConfig) -> int:
    if severity == "high":
        return config.weight_high
    if severity == "medium":
        return config.weight_medium
    return config.weight_low


def evaluate(fields: QualityFields, config: QualityConfig = DEFAULT_CONFIG) -> QualityReport:
    """Run every rule and build the report."""
    issues: list[QualityIssue] = []
    for rule in _RULES:
        issue = rule(fields, config)
        if issue is not None:
            issues.append(issue)

    deduction = sum(_weight(issue.severity, config) for issue in issues)
    return QualityReport(score=max(0, 100 - deduction), issues=tuple(issues))


def can_transition_forward(
    fields: QualityFields, config: QualityConfig = DEFAULT_CONFIG
) -> bool:
    """True when no high-severity issue is present."""
    return evaluate(fields, config).passed


class QualityGate:
    """Configured evaluator handed to the lifecycle service."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG

    @property
    def config(self) -> QualityConfig:
        return self._config

    def evaluate(self, fields: QualityFields) -> QualityReport:
        return evaluate(fields, self._config)

    def can_transition_forward(self, fields: QualityFields) -> bool:
        return can_transition_forward(fields, self._config)
