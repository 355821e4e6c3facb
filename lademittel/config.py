from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lademittel.errors import ConfigurationError

OracleProvider = Literal["openai", "ollama", "mock"]
TieBreakRole = Literal["pickup", "delivery"]


class EngineConfig(BaseModel):
    """
    Policy knobs of the reconciliation engine.
    Passed explicitly into validation and review; nothing in the engine reads
    module-level defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    review_threshold: float = Field(0.7, ge=0.0, le=1.0)
    flag_low_confidence: bool = True
    auto_correct_saldo: bool = True
    auto_correct_exchange_status: bool = True
    # equal given/received totals: heuristic, flagged for review when hit
    tie_break_role: TieBreakRole = "delivery"
    flag_tie_break: bool = True
    max_warnings: int = Field(2, ge=0)


class Settings(BaseSettings):
    """
    Central configuration for paths, oracle access and engine defaults.
    Every field can be overridden via LADEMITTEL_<FIELD>.
    """

    model_config = SettingsConfigDict(
        env_prefix="LADEMITTEL_",
        extra="ignore",
    )

    project_root: Path = Field(
        default_factory=lambda: Path(__file__).resolve().parents[1]
    )

    data_dir: Path = Field(default=Path("data") / "pdfs")
    output_dir: Path = Field(default=Path("artifacts"))

    oracle_provider: OracleProvider = "openai"
    oracle_model: str = "gpt-4.1-mini"
    oracle_base_url: Optional[str] = None
    oracle_timeout_s: float = 120.0
    oracle_concurrency: int = Field(3, ge=1)
    oracle_max_attempts: int = Field(3, ge=1)
    oracle_backoff_s: float = Field(1.0, ge=0.0)
    render_zoom: float = Field(2.0, gt=0.0)

    review_threshold: float = Field(0.7, ge=0.0, le=1.0)
    auto_correct_saldo: bool = True
    auto_correct_exchange_status: bool = True
    tie_break_role: TieBreakRole = "delivery"

    @field_validator("data_dir", "output_dir", mode="before")
    @classmethod
    def _coerce_path(cls, v):
        # Accept strings from env and coerce; allow Path passthrough.
        if isinstance(v, str):
            s = v.strip()
            return Path(s).expanduser() if s else v
        if isinstance(v, Path):
            return v.expanduser()
        return v

    def model_post_init(self, __context) -> None:
        if not self.data_dir.is_absolute():
            self.data_dir = (self.project_root / self.data_dir).resolve()
        if not self.output_dir.is_absolute():
            self.output_dir = (self.project_root / self.output_dir).resolve()

    @property
    def output_dir_reports(self) -> Path:
        dir_reports = self.output_dir / "reports"
        dir_reports.mkdir(parents=True, exist_ok=True)
        return dir_reports

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            review_threshold=self.review_threshold,
            auto_correct_saldo=self.auto_correct_saldo,
            auto_correct_exchange_status=self.auto_correct_exchange_status,
            tie_break_role=self.tie_break_role,
        )

    def with_oracle_provider(self, provider: str) -> "Settings":
        """Copy with another oracle provider; unknown names are rejected."""
        try:
            checked = TypeAdapter(OracleProvider).validate_python(provider)
        except ValidationError as e:
            raise ConfigurationError(
                f"Unknown oracle provider: {provider!r}. Use 'openai', 'ollama' or 'mock'."
            ) from e
        return self.model_copy(update={"oracle_provider": checked})


def load_engine_config(path: Path, base: Optional[EngineConfig] = None) -> EngineConfig:
    """
    Read engine overrides from a YAML mapping, e.g.

        review_threshold: 0.8
        auto_correct_saldo: false
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read engine config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Engine config {path} must be a mapping")

    merged = {**(base or EngineConfig()).model_dump(), **data}
    try:
        return EngineConfig(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engine config {path}: {e}") from e


# Lazy singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
