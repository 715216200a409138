# src/paradise/model.py
from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AnalysisConfig(BaseModel):
    """
    Tunable constants of one analysis run.

    Defaults mirror settings.json; from_settings() reads the live
    ConfigManager values, and explicit keyword arguments override both.
    """
    model_config = ConfigDict(frozen=True)

    completeness_step: float = Field(default=0.1, gt=0.0, le=1.0)
    completeness_floor: float = Field(default=0.3, ge=0.0, le=1.0)
    completeness_bonus: float = Field(default=0.3, ge=0.0, le=1.0)

    fuzzy_min_distance: int = Field(default=2, ge=0)
    fuzzy_length_divisor: int = Field(default=3, ge=1)
    max_suggestions: int = Field(default=3, ge=1)

    opacity_threshold: float = Field(default=0.05, ge=0.0, le=1.0)

    max_workers: int = Field(default=1, ge=1)
    enabled_analyzers: Optional[List[str]] = None

    @field_validator('enabled_analyzers', mode='before')
    @classmethod
    def empty_means_all(cls, v: Any) -> Optional[List[str]]:
        """An empty list in settings.json enables every analyzer."""
        if not v:
            return None
        return list(v)

    @model_validator(mode='after')
    def check_floor(self) -> "AnalysisConfig":
        if self.completeness_floor > 1.0 - self.completeness_step:
            raise ValueError("completeness_floor must leave room for at least one step")
        return self

    def suggestion_threshold(self, missing: str) -> int:
        """Largest edit distance at which a known id is offered as a suggestion."""
        return max(self.fuzzy_min_distance, len(missing) // self.fuzzy_length_divisor)

    @classmethod
    def from_settings(cls, manager=None, **overrides) -> "AnalysisConfig":
        if manager is None:
            from paradise.core.managers.config_manager import config_manager
            manager = config_manager
        values = {
            "completeness_step": manager.get_nested("completeness.step"),
            "completeness_floor": manager.get_nested("completeness.floor"),
            "completeness_bonus": manager.get_nested("completeness.bonus"),
            "fuzzy_min_distance": manager.get_nested("fuzzy.min_distance"),
            "fuzzy_length_divisor": manager.get_nested("fuzzy.length_divisor"),
            "max_suggestions": manager.get_nested("fuzzy.max_suggestions"),
            "opacity_threshold": manager.get_nested("style.opacity_threshold"),
            "max_workers": manager.get_nested("engine.max_workers"),
            "enabled_analyzers": manager.get_nested("engine.enabled_analyzers"),
        }
        values = {k: v for k, v in values.items() if v is not None}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
