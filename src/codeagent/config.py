"""codeagent configuration loader.

Priority (high → low):
  1. CLI flags           (applied by the caller, not here)
  2. Environment variables  (CODEAGENT_EMBEDDING_MODEL, CODEAGENT_GENERATION_MODEL,
                             CODEAGENT_COMPLETION_ENABLED)
  3. Per-project codeagent.yaml  (in the workspace root)
  4. Global ~/.codeagent/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".codeagent"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "codeagent.yaml"

DEFAULT_DB_PATH: Path = Path.home() / ".local_code_embeddings" / "index.db"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or context_length.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["embedding", "generation", "index", "completion"])

COMPLETION_MODES: frozenset[str] = frozenset(["retrieval", "local"])

_TRUE_STRINGS = frozenset(["1", "true", "yes", "on"])
_FALSE_STRINGS = frozenset(["0", "false", "no", "off"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (codeagent.yaml: embedding:)."""

    model: str = "ollama/nomic-embed-text"


@dataclass
class GenerationCfg:
    """Completion model configuration (codeagent.yaml: generation:).

    Attributes:
        model: LiteLLM model string used for inline completions.
        temperature: Sampling temperature; kept low for stable completions.
        context_length: Context window requested from the backend (``num_ctx``).
        max_tokens: Upper bound on generated tokens per completion.
    """

    model: str = "ollama/qwen2.5-coder:latest"
    temperature: float = 0.2
    context_length: int = 4_096
    max_tokens: int = 256


@dataclass
class IndexCfg:
    """Index storage and chunking configuration (codeagent.yaml: index:).

    Attributes:
        db_path: SQLite database holding every project's tables.
        chunk_size: Chunk window in characters.
        overlap: Characters shared by consecutive chunks.
        exclude: Extra fnmatch patterns excluded on top of the defaults.
        atomic_replace: Replace a changed file's rows in one transaction instead
            of delete-then-insert.
    """

    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    chunk_size: int = 1_000
    overlap: int = 200
    exclude: list[str] = field(default_factory=list)
    atomic_replace: bool = False


@dataclass
class CompletionCfg:
    """Inline completion configuration (codeagent.yaml: completion:).

    Attributes:
        enabled: Master switch; when False every request returns no suggestion.
        mode: 'retrieval' (embed + vector search) or 'local' (cursor context only).
        debounce_ms: Quiet period before a trigger is evaluated.
        before_lines: Lines of context kept before the cursor.
        after_lines: Lines of context kept after the cursor.
        top_k: Number of retrieved chunks in retrieval mode.
        reuse_last_result: Return the previous suggestion instead of an empty one
            when a trigger fires while a generation is still running.
    """

    enabled: bool = True
    mode: str = "retrieval"
    debounce_ms: int = 300
    before_lines: int = 30
    after_lines: int = 5
    top_k: int = 3
    reuse_last_result: bool = False


@dataclass
class CodeAgentConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    completion: CompletionCfg = field(default_factory=CompletionCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: CodeAgentConfig) -> None:
    idx = cfg.index
    if idx.chunk_size < 1:
        raise ConfigError(f"index.chunk_size must be >= 1, got {idx.chunk_size}")
    if not 0 <= idx.overlap < idx.chunk_size:
        raise ConfigError(
            f"index.overlap must be in [0, chunk_size), got {idx.overlap} "
            f"(chunk_size={idx.chunk_size})"
        )
    comp = cfg.completion
    if comp.mode not in COMPLETION_MODES:
        raise ConfigError(
            f"completion.mode must be one of {sorted(COMPLETION_MODES)}, got '{comp.mode}'"
        )
    if comp.debounce_ms < 0:
        raise ConfigError(f"completion.debounce_ms must be >= 0, got {comp.debounce_ms}")
    if comp.top_k < 1:
        raise ConfigError(f"completion.top_k must be >= 1, got {comp.top_k}")
    if comp.before_lines < 1 or comp.after_lines < 0:
        raise ConfigError("completion.before_lines must be >= 1 and after_lines >= 0")


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{value}'")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> CodeAgentConfig:
    """Build a *CodeAgentConfig* from a merged raw YAML dict."""
    cfg = CodeAgentConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(model=str(e.get("model", cfg.embedding.model)))

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            context_length=int(g.get("context_length", cfg.generation.context_length)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
        )

    if "index" in data:
        i = data["index"] or {}
        db_path = i.get("db_path")
        cfg.index = IndexCfg(
            db_path=Path(db_path).expanduser() if db_path else cfg.index.db_path,
            chunk_size=int(i.get("chunk_size", cfg.index.chunk_size)),
            overlap=int(i.get("overlap", cfg.index.overlap)),
            exclude=[str(p) for p in i.get("exclude", [])],
            atomic_replace=_parse_bool(
                i.get("atomic_replace", cfg.index.atomic_replace), "index.atomic_replace"
            ),
        )

    if "completion" in data:
        c = data["completion"] or {}
        cfg.completion = CompletionCfg(
            enabled=_parse_bool(c.get("enabled", cfg.completion.enabled), "completion.enabled"),
            mode=str(c.get("mode", cfg.completion.mode)),
            debounce_ms=int(c.get("debounce_ms", cfg.completion.debounce_ms)),
            before_lines=int(c.get("before_lines", cfg.completion.before_lines)),
            after_lines=int(c.get("after_lines", cfg.completion.after_lines)),
            top_k=int(c.get("top_k", cfg.completion.top_k)),
            reuse_last_result=_parse_bool(
                c.get("reuse_last_result", cfg.completion.reuse_last_result),
                "completion.reuse_last_result",
            ),
        )

    return cfg


def _apply_env_overrides(cfg: CodeAgentConfig) -> CodeAgentConfig:
    """Apply CODEAGENT_* environment variable overrides."""
    if model := os.environ.get("CODEAGENT_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("CODEAGENT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if enabled := os.environ.get("CODEAGENT_COMPLETION_ENABLED"):
        cfg.completion.enabled = _parse_bool(enabled, "CODEAGENT_COMPLETION_ENABLED")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CodeAgentConfig:
    """Load and return a merged *CodeAgentConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *codeagent.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is out of range (chunk overlap, completion mode, ...).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg

