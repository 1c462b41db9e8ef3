"""Pydantic configuration models for mdgrab."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class BlockPolicy(str, Enum):
    """What to do when a fetched document is a challenge or login wall."""

    # Log the classification and keep going (truncation/fallback heuristics route around it)
    LOG = "log"
    # Treat the document as a failed fetch so the API fallback is tried immediately
    FALLBACK = "fallback"


class TableHeaderPolicy(str, Enum):
    """When the table rule inserts a Markdown header separator."""

    # After the first row, whether or not it holds header cells
    ALWAYS = "always"
    # Only if the first row holds header cells
    DETECT = "detect"


def _expand_env_var(value: Optional[str]) -> Optional[str]:
    """Expand environment variable references in a string.

    Supports $VAR and ${VAR} syntax. Returns original value if
    the env var is not set.
    """
    import os
    import re

    if value is None:
        return None

    pattern = r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)"

    def replace(match: re.Match) -> str:
        var_name = match.group(1) or match.group(2)
        return os.environ.get(var_name, match.group(0))

    return re.sub(pattern, replace, value)


class NetworkConfig(BaseModel):
    """Configuration for the HTTP client."""

    user_agent: Optional[str] = Field(None, description="Custom User-Agent header")
    proxy: Optional[str] = Field(None, description="HTTP/HTTPS proxy URL")
    timeout: float = Field(30.0, gt=0, description="Request timeout in seconds")
    max_retries: int = Field(
        0,
        ge=0,
        description="Retries for 429/5xx responses (0 leaves retrying to the resolver fallbacks)",
    )
    block_policy: BlockPolicy = Field(
        BlockPolicy.LOG,
        description="How to treat security-check and login-wall pages",
    )

    model_config = {"extra": "forbid"}


class AuthConfig(BaseModel):
    """Session credentials sent with every request.

    The cookie string supports environment variable expansion, e.g.
        --cookie '$ZHIHU_COOKIE'
    """

    cookie: Optional[str] = Field(None, description="Cookie header value for the platform session")

    model_config = {"extra": "forbid"}

    def model_post_init(self, __context: object) -> None:
        """Expand environment variables in the cookie after init."""
        if self.cookie:
            object.__setattr__(self, "cookie", _expand_env_var(self.cookie))


class ConversionConfig(BaseModel):
    """Configuration for HTML to Markdown conversion."""

    inline_images: bool = Field(True, description="Embed images as base64 data URLs")
    table_header_policy: TableHeaderPolicy = Field(
        TableHeaderPolicy.ALWAYS,
        description="When to insert the table header separator row",
    )
    min_content_length: int = Field(
        200,
        ge=0,
        description="Visible text length below which DOM content counts as truncated",
    )

    model_config = {"extra": "forbid"}


class HarvestConfig(BaseModel):
    """Configuration for list-page harvesting."""

    max_rounds: int = Field(80, ge=1, description="Maximum scroll rounds")
    max_idle_rounds: int = Field(4, ge=1, description="Stop after this many rounds without new entries")
    scroll_delay: float = Field(1.2, ge=0, description="Seconds to let the page settle after scrolling")
    item_delay: float = Field(0.4, ge=0, description="Seconds to wait after each saved item")
    skip_delay: float = Field(0.2, ge=0, description="Seconds to wait after each skipped item")

    model_config = {"extra": "forbid"}


class BrowserConfig(BaseModel):
    """Configuration for headless browser rendering."""

    javascript: bool = Field(False, description="Render pages with Playwright")
    headless: bool = Field(True, description="Run the browser headless")

    model_config = {"extra": "forbid"}


class OutputConfig(BaseModel):
    """Configuration for saving Markdown files."""

    directory: Path = Field(Path("."), description="Directory for downloaded Markdown files")

    model_config = {"extra": "forbid"}


class MdgrabConfig(BaseModel):
    """
    Root configuration model for mdgrab.

    Example:
        config = MdgrabConfig(
            output=OutputConfig(directory=Path("./notes")),
            auth=AuthConfig(cookie="$ZHIHU_COOKIE"),
        )

    YAML format:
        network:
          block_policy: fallback
        conversion:
          table_header_policy: detect
        output:
          directory: ./notes
    """

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    harvest: HarvestConfig = Field(default_factory=HarvestConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(None, description="Log file path")
    dry_run: bool = Field(False, description="Convert without writing files")

    model_config = {"extra": "forbid"}

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> MdgrabConfig:
        """Load config from YAML string."""
        import yaml

        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> MdgrabConfig:
        """Load config from YAML file."""
        return cls.from_yaml(path.read_text(encoding="utf-8"))

    @staticmethod
    def read_yaml_file(path: Path) -> dict:
        """Raw settings from a YAML file, before validation and env expansion."""
        import yaml

        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
