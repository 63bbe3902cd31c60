from pathlib import Path

import yaml
from pydantic import ValidationError

from content_lifecycle.core.services.audit import AuditConfig
from content_lifecycle.core.services.quality import QualityConfig
from content_lifecycle.core.services.scheduler import SweepConfig
from content_lifecycle.rules.models import Rules


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    with open(path) as f:
        content = f.read()

    # Strip a markdown ```yaml fence if the file is wrapped in one
    lines = content.splitlines()
    yaml_lines = []
    in_block = False
    found_block = False

    for line in lines:
        s_line = line.strip()
        if s_line.startswith("```yaml"):
            in_block = True
            found_block = True
            continue
        if in_block and s_line.startswith("```"):
            break

        if in_block:
            yaml_lines.append(line)

    clean_content = "\n".join(yaml_lines) if found_block else content

    try:
        data = yaml.safe_load(clean_content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        return Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def quality_config(rules: Rules) -> QualityConfig:
    q = rules.quality
    return QualityConfig(
        slug_pattern=q.slug_pattern,
        title_min=q.title_length.min,
        title_max=q.title_length.max,
        body_min_length=q.body_min_length,
        meta_description_min=q.meta_description_length.min,
        meta_description_max=q.meta_description_length.max,
        meta_title_max=q.meta_title_max,
        require_excerpt=q.require_excerpt,
        weight_high=q.weights.high,
        weight_medium=q.weights.medium,
        weight_low=q.weights.low,
    )


def sweep_config(rules: Rules) -> SweepConfig:
    s = rules.scheduler
    return SweepConfig(
        interval_seconds=s.interval_seconds,
        per_item_timeout_seconds=s.per_item_timeout_seconds,
        max_workers=s.max_workers,
        batch_limit=s.batch_limit,
    )


def audit_config(rules: Rules) -> AuditConfig:
    return AuditConfig(
        enabled=rules.audit.enabled,
        max_changes_bytes=rules.audit.max_changes_bytes,
    )
