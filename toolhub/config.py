from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
]

# Entry names that are never traversed, listed or returned, at any depth
DEFAULT_BLOCKED_DIRS = [
    "node_modules",
    ".git",
    ".next",
    "dist",
    "build",
    ".env",
    ".env.local",
    ".env.production",
    "__pycache__",
    ".venv",
]

DEFAULT_ALLOWED_EXTENSIONS = [
    ".ts", ".tsx", ".js", ".jsx", ".json", ".md", ".txt",
    ".css", ".scss", ".html", ".yml", ".yaml", ".env",
    ".gitignore", ".prettierrc", ".eslintrc", ".config",
    ".svg", ".png", ".jpg", ".jpeg", ".gif", ".ico",
    ".py", ".toml",
]

# Text-like extensions whose content is scanned by search
DEFAULT_SEARCHABLE_EXTENSIONS = [
    ".ts", ".tsx", ".js", ".jsx", ".md", ".txt", ".json", ".py",
]


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _extension_set(raw: str) -> FrozenSet[str]:
    exts = set()
    for item in _split_csv(raw):
        item = item.lower()
        exts.add(item if item.startswith(".") else f".{item}")
    return frozenset(exts)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="allow",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- Server ---
    host: str = Field(default="localhost", validation_alias="MCP_SERVER_HOST")
    port: int = Field(default=10000, validation_alias="MCP_SERVER_PORT")
    request_timeout: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT")

    # --- CORS ---
    cors_allowed_origins: str = Field(default=",".join(DEFAULT_ALLOWED_ORIGINS), validation_alias="CORS_ALLOWED_ORIGINS")

    # --- Logging ---
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="toolhub.log", validation_alias="LOG_FILE")

    # --- Filesystem sandbox ---
    project_root: Optional[str] = Field(default=None, validation_alias="PROJECT_ROOT")
    fs_blocked_dirs: str = Field(default=",".join(DEFAULT_BLOCKED_DIRS), validation_alias="FS_BLOCKED_DIRS")
    fs_allowed_extensions: str = Field(default=",".join(DEFAULT_ALLOWED_EXTENSIONS), validation_alias="FS_ALLOWED_EXTENSIONS")
    fs_searchable_extensions: str = Field(default=",".join(DEFAULT_SEARCHABLE_EXTENSIONS), validation_alias="FS_SEARCHABLE_EXTENSIONS")
    fs_search_result_limit: int = Field(default=50, validation_alias="FS_SEARCH_RESULT_LIMIT")
    fs_structure_default_depth: int = Field(default=3, validation_alias="FS_STRUCTURE_DEFAULT_DEPTH")

    # --- GitHub ---
    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    github_owner: str = Field(default="", validation_alias="GITHUB_OWNER")
    github_repo: str = Field(default="", validation_alias="GITHUB_REPO")
    github_api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")

    # --- Figma ---
    figma_access_token: str | None = Field(default=None, validation_alias="FIGMA_ACCESS_TOKEN")
    figma_api_url: str = Field(default="https://api.figma.com/v1", validation_alias="FIGMA_API_URL")

    @property
    def allowed_origins(self) -> List[str]:
        return _split_csv(self.cors_allowed_origins)

    @property
    def resolved_project_root(self) -> Path:
        return Path(self.project_root or Path.cwd()).expanduser().resolve()

    @property
    def blocked_dirs(self) -> FrozenSet[str]:
        return frozenset(_split_csv(self.fs_blocked_dirs))

    @property
    def allowed_extensions(self) -> FrozenSet[str]:
        return _extension_set(self.fs_allowed_extensions)

    @property
    def searchable_extensions(self) -> FrozenSet[str]:
        return _extension_set(self.fs_searchable_extensions)


@lru_cache
def get_settings() -> Settings:
    return Settings()
