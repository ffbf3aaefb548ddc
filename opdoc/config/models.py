from typing import Literal

from pydantic import BaseModel, Field

from opdoc.execution.staging import DEFAULT_STAGING_SUFFIX


class ApplyConfig(BaseModel):
    dry_run: bool = False
    verbose: bool = False
    overwrite: bool = False
    partial_apply: bool = False
    continue_on_error: bool = False
    max_parallelism: int = Field(default=1, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)
    recursive: bool = False


class StagingConfig(BaseModel):
    suffix: str = Field(default=DEFAULT_STAGING_SUFFIX, pattern=r"^\.[\w.-]+$")
    cleanup_on_start: bool = True


class OpdocConfig(BaseModel):
    project_root: str = "."
    apply: ApplyConfig = Field(default_factory=ApplyConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    capabilities: dict[str, str] = Field(default_factory=dict)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
