"""Patch Stage core: YAML pipeline configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .pipeline import Stage
from .records import PATCH_SUFFIX


class ConfigModel(BaseModel):
    """Base model rejecting unknown keys."""

    model_config = ConfigDict(extra="forbid")


class StageConfig(ConfigModel):
    """One entry of the `stages` list."""

    name: str
    patches: Optional[Path] = None
    snapshot: Optional[Path] = None
    inject: List[Path] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("stage name must not be blank")
        return value

    def to_stage(self) -> Stage:
        return Stage(
            name=self.name,
            patch_source=self.patches,
            snapshot_target=self.snapshot,
            injection_sources=list(self.inject),
        )


class PipelineConfig(ConfigModel):
    """Top-level pipeline configuration; `max_fuzz` applies to every stage."""

    input: Optional[Path] = None
    output: Optional[Path] = None
    max_fuzz: int = Field(default=0, ge=0)
    patch_suffix: str = PATCH_SUFFIX
    stages: List[StageConfig] = Field(default_factory=list)

    def build_stages(self) -> List[Stage]:
        return [stage.to_stage() for stage in self.stages]

    def resolved(self, base: Path) -> "PipelineConfig":
        """Return a copy with every relative path anchored at `base`."""

        def anchor(path: Optional[Path]) -> Optional[Path]:
            if path is None or path.is_absolute():
                return path
            return base / path

        stages = [
            stage.model_copy(update={
                "patches": anchor(stage.patches),
                "snapshot": anchor(stage.snapshot),
                "inject": [anchor(p) for p in stage.inject],
            })
            for stage in self.stages
        ]
        return self.model_copy(update={
            "input": anchor(self.input),
            "output": anchor(self.output),
            "stages": stages,
        })


def parse_pipeline_config(data: Mapping[str, Any], base: Optional[Path] = None) -> PipelineConfig:
    try:
        config = PipelineConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigError(f"Invalid pipeline configuration: {exc}", details={"errors": exc.errors()}) from exc
    return config.resolved(base) if base is not None else config


def load_pipeline_config(path: Path) -> PipelineConfig:
    """Load a YAML pipeline file; relative paths resolve against its directory."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read pipeline configuration {path}: {exc}", details={"path": str(path)}) from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Expected mapping at top level of {path}", details={"path": str(path)})
    return parse_pipeline_config(data, base=path.parent)
