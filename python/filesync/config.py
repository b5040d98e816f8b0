"""
Sync Configuration - Centralized settings for folder indexing.

Uses environment variables with sensible defaults. The database path is
resolved to an absolute path for reliability.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Set


@dataclass
class SyncConfig:
    """
    Configuration for folder indexing, watching and search.

    The database defaults to ~/.filesync. Batch and delay values are tuned
    so very large folders stay responsive without hard timeouts.
    """

    # --- Storage ---
    db_path: Path = field(default_factory=lambda: Path.home() / ".filesync" / "filesync.db")
    batch_size: int = 1000          # Entries persisted per transaction

    # --- Scheduling ---
    stale_after_hours: float = 24.0  # Indexed folders older than this get rescanned
    background_delay_ms: int = 500   # Pause between folders in a background pass

    # --- Watcher ---
    watch_depth: int = 99

    # --- Search ---
    result_limit: int = 50

    # --- Skip Patterns ---
    skip_dirs: Set[str] = field(default_factory=lambda: {
        # Version control
        ".git", ".svn", ".hg", "CVS",
        # Dependencies
        "node_modules", "__pycache__",
    })

    skip_files: Set[str] = field(default_factory=lambda: {
        ".DS_Store", "Thumbs.db", "desktop.ini",
    })

    # Directory and file globs applied on top of skip_dirs/skip_files.
    # "common" always applies, the others only when the project type is detected.
    ignore_patterns: Dict[str, Dict[str, List[str]]] = field(default_factory=lambda: {
        "common": {
            "dirs": ["dist", "build", "out", ".cache", "coverage", ".nyc_output", ".idea", ".vscode"],
            "files": ["*.log", ".env*", "*.min.js", "*.min.css", "*.map"],
        },
        "javascript": {
            "dirs": ["bower_components", ".npm", ".yarn", "jspm_packages", ".next", ".nuxt"],
            "files": [".pnp.*"],
        },
        "python": {
            "dirs": ["env", "venv", ".venv", "pip-wheel-metadata", "*.egg-info", ".eggs",
                     ".mypy_cache", ".pytest_cache", ".tox"],
            "files": ["*.pyc", "*.pyo", "*.pyd"],
        },
        "java": {
            "dirs": ["target", ".gradle", "gradle"],
            "files": ["*.class", "*.jar", "*.war", "*.ear", "*.iml"],
        },
        "go": {
            "dirs": ["vendor"],
            "files": ["*.exe", "*.dll", "*.so", "*.dylib"],
        },
        "rust": {
            "dirs": ["target"],
            "files": ["*.rlib", "*.rmeta"],
        },
        "cpp": {
            "dirs": ["cmake-build-*", ".cmake"],
            "files": ["*.o", "*.obj", "*.a", "*.lib", "*.dll", "*.so", "*.dylib"],
        },
        "dotnet": {
            "dirs": ["bin", "obj", "packages", ".vs"],
            "files": ["*.dll", "*.exe", "*.pdb"],
        },
        "ruby": {
            "dirs": [".bundle"],
            "files": ["*.gem"],
        },
        "php": {
            "dirs": ["vendor"],
            "files": ["composer.phar"],
        },
    })

    # Marker files that identify a project type (globs allowed)
    project_markers: Dict[str, List[str]] = field(default_factory=lambda: {
        "javascript": ["package.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb"],
        "python": ["requirements.txt", "setup.py", "pyproject.toml", "Pipfile"],
        "java": ["pom.xml", "build.gradle", "build.gradle.kts"],
        "go": ["go.mod"],
        "rust": ["Cargo.toml"],
        "cpp": ["CMakeLists.txt", "Makefile"],
        "dotnet": ["*.csproj", "*.sln"],
        "ruby": ["Gemfile"],
        "php": ["composer.json"],
    })

    def __post_init__(self):
        """Resolve the database path and make sure its directory exists."""
        if str(self.db_path) == ":memory:":
            return
        self.db_path = Path(self.db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self.stale_after_hours)

    @property
    def background_delay(self) -> float:
        """Inter-folder delay in seconds."""
        return self.background_delay_ms / 1000.0

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """
        Create config from environment variables.

        Supported env vars:
            FILESYNC_DB_PATH: Path to the SQLite database
            FILESYNC_BATCH_SIZE: Entries per write transaction
            FILESYNC_STALE_HOURS: Age after which indexed folders are rescanned
            FILESYNC_BACKGROUND_DELAY_MS: Pause between background folders
            FILESYNC_WATCH_DEPTH: Maximum watched directory depth
            FILESYNC_RESULT_LIMIT: Maximum search results
        """
        config = cls()

        if db_path := os.environ.get("FILESYNC_DB_PATH"):
            config.db_path = Path(db_path)

        if batch_size := os.environ.get("FILESYNC_BATCH_SIZE"):
            config.batch_size = int(batch_size)

        if stale := os.environ.get("FILESYNC_STALE_HOURS"):
            config.stale_after_hours = float(stale)

        if delay := os.environ.get("FILESYNC_BACKGROUND_DELAY_MS"):
            config.background_delay_ms = int(delay)

        if depth := os.environ.get("FILESYNC_WATCH_DEPTH"):
            config.watch_depth = int(depth)

        if limit := os.environ.get("FILESYNC_RESULT_LIMIT"):
            config.result_limit = int(limit)

        config.__post_init__()
        return config


# Process default config
_default_config: SyncConfig | None = None


def get_config() -> SyncConfig:
    """Get the default configuration (created from the environment on first use)."""
    global _default_config
    if _default_config is None:
        _default_config = SyncConfig.from_env()
    return _default_config


def set_config(config: SyncConfig) -> None:
    """Override the default configuration (for testing)."""
    global _default_config
    _default_config = config
