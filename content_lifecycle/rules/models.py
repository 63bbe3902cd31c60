from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str

class RbacRules(BaseModel):
    roles: dict[str, list[str]]

class RangeRule(BaseModel):
    min: int
    max: int

class QualityWeights(BaseModel):
    high: int = 30
    medium: int = 10
    low: int = 3

class QualityRules(BaseModel):
    slug_pattern: str = r"^[a-z0-9-]+$"
    title_length: RangeRule = Field(default_factory=lambda: RangeRule(min=3, max=200))
    body_min_length: int = Field(default=1, ge=1)
    meta_description_length: RangeRule = Field(
        default_factory=lambda: RangeRule(min=50, max=160)
    )
    meta_title_max: int = 60
    require_excerpt: bool = True
    weights: QualityWeights = Field(default_factory=QualityWeights)

class SchedulerRules(BaseModel):
    interval_seconds: int = Field(default=60, gt=0)
    per_item_timeout_seconds: float = Field(default=30.0, gt=0)
    max_workers: int = Field(default=4, ge=1)
    batch_limit: int = Field(default=100, ge=1)
    run_in_process: bool = False

class BulkRules(BaseModel):
    max_ids: int = Field(default=100, ge=1)

class AuditRules(BaseModel):
    enabled: bool = True
    max_changes_bytes: int = 10000

class NotificationRules(BaseModel):
    revalidate_url: str | None = None
    timeout_seconds: float = 5.0

class Rules(BaseModel):
    project: ProjectRules
    rbac: RbacRules
    quality: QualityRules = Field(default_factory=QualityRules)
    scheduler: SchedulerRules = Field(default_factory=SchedulerRules)
    bulk: BulkRules = Field(default_factory=BulkRules)
    audit: AuditRules = Field(default_factory=AuditRules)
    notifications: NotificationRules = Field(default_factory=NotificationRules)
