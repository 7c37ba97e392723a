"""Configuration models for Memoir components."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class StoreConfig(BaseModel):
    """Configuration for the SQLite persistence layer."""

    db_path: str = Field(
        default="~/.memoir/memoir.db",
        description="Path to the SQLite database file. ~ is expanded at runtime.",
    )

    wal_mode: bool = True
    """Use WAL journal mode for better concurrent read performance."""

    connection_timeout: float = 30.0
    """Seconds to wait for the database connection before raising."""

    write_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for a write transaction that hits a transient lock/busy error.",
    )


class SearchConfig(BaseModel):
    """Ranking configuration for full-text chunk search."""

    default_limit: int = Field(default=10, ge=1, le=1_000)

    summary_weight: float = Field(default=10.0, gt=0)
    """BM25 column weight for chunk summaries."""
    body_weight: float = Field(default=5.0, gt=0)
    """BM25 column weight for message text, reasoning and file parts."""
    tools_weight: float = Field(default=1.0, gt=0)
    """BM25 column weight for tool names, inputs and outputs."""


class TrackingConfig(BaseModel):
    """Configuration for deriving chunk metadata at finalize time."""

    file_modifying_tools: list[str] = Field(
        default_factory=lambda: ["write", "edit", "multiedit", "patch", "apply_patch"],
        description="Tool names whose path-bearing inputs count as modified files.",
    )

    path_keys: list[str] = Field(
        default_factory=lambda: ["filePath", "file_path", "path", "filename"],
        description="Tool input keys checked, in order, for a file path.",
    )


class ToolsConfig(BaseModel):
    """Budgeting thresholds for the history and expand tool surfaces."""

    chars_per_token: int = Field(default=4, ge=1)

    expand_warning_tokens: int = Field(
        default=4_000,
        ge=0,
        description="Full expansions estimated above this many tokens carry a warning.",
    )

    search_warning_tokens: int = Field(
        default=2_000,
        ge=0,
        description="Search results whose combined expansion exceeds this carry a warning.",
    )

    search_warning_min_results: int = Field(default=3, ge=0)
    """The search warning only applies when more than this many results are returned."""

    max_tool_input_chars: int = Field(default=500, ge=0)
    max_tool_output_chars: int = Field(default=2_000, ge=0)

    recent_summary_count: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Summary chunks listed when priming a new session with prior work.",
    )


class CompactionConfig(BaseModel):
    """Configuration for the compaction engine."""

    summarizer: Literal["metadata", "llm"] = "metadata"
    """Fallback summary strategy used when the host supplies no narrative."""

    summary_model: str | None = Field(
        default=None,
        description="litellm model string for the 'llm' summarizer.",
    )

    max_files_listed: int = Field(default=3, ge=0)
    """Files named in a generated summary before collapsing into '+K more'."""

    @model_validator(mode="after")
    def validate_llm_model(self) -> CompactionConfig:
        if self.summarizer == "llm" and not self.summary_model:
            raise ValueError("summary_model is required when summarizer is 'llm'")
        return self


class LoggingConfig(BaseModel):
    """Configuration for structlog output."""

    debug: bool = False
    """Emit debug-level events."""

    file: str | None = None
    """Append log lines to this file instead of stderr."""

    json_format: bool = Field(default=False, alias="json")
    """Render events as JSON lines instead of console key/value text."""

    model_config = {"populate_by_name": True}


class MemoirConfig(BaseModel):
    """
    Top-level configuration for Memoir.

    All sub-configs have sensible defaults and can be overridden individually.

    Example::

        config = MemoirConfig(
            store=StoreConfig(db_path="/tmp/memoir.db"),
            tools=ToolsConfig(expand_warning_tokens=8_000),
        )
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> MemoirConfig:
        """Return a config instance with all defaults."""
        return cls()

    @classmethod
    def load(cls, path: str | Path) -> MemoirConfig:
        """
        Load configuration from a JSON file.

        A missing file yields the defaults.

        Raises:
            pydantic.ValidationError: If the file content does not match the schema.
            json.JSONDecodeError: If the file is not valid JSON.
        """
        config_path = Path(path).expanduser()
        if not config_path.exists():
            return cls()
        data = json.loads(config_path.read_text())
        return cls.model_validate(data)
