"""TOML config loader: defaults + user overrides, frozen into Settings."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

DEFAULTS_PATH = Path(__file__).parent.parent.parent.parent / "config" / "defaults.toml"


@dataclass(frozen=True)
class Settings:
    """Everything a run needs from the environment, resolved once at start-up.

    Passed explicitly into the orchestrator, the stage executors and the run
    supervisor. Nothing in the core reads config files on its own.
    """
    projects_root: Path
    python: str = "python3"
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    spatial_checkpoint: str = ""
    reasoning_model: str = ""
    device: str = "mps"
    spatial_module: str = "tttlrm.generate"
    render_module: str = "gaussian_splatting.render"
    reasoning_module: str = "vbvr.inference"
    default_max_memory_gb: int = 24
    fallback_total_frames: int = 300
    probe_timeout_s: float = 15.0
    flush_timeout_s: float = 15.0
    process_env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict) -> "Settings":
        """Build Settings from a merged config dict (see defaults.toml)."""
        paths = config.get("paths", {})
        tools = config.get("tools", {})
        modules = config.get("modules", {})
        runtime = config.get("runtime", {})

        projects_root = paths.get("projects_root", "")
        if not projects_root:
            raise ValueError("Projects root not configured: paths.projects_root")

        return cls(
            projects_root=Path(expand_path(projects_root)),
            python=expand_tool(tools.get("python", "python3")),
            ffmpeg=expand_tool(tools.get("ffmpeg", "ffmpeg")),
            ffprobe=expand_tool(tools.get("ffprobe", "ffprobe")),
            spatial_checkpoint=expand_path(paths.get("spatial_checkpoint", "")),
            reasoning_model=expand_path(paths.get("reasoning_model", "")),
            device=runtime.get("device", "mps"),
            spatial_module=modules.get("spatial", "tttlrm.generate"),
            render_module=modules.get("render", "gaussian_splatting.render"),
            reasoning_module=modules.get("reasoning", "vbvr.inference"),
            default_max_memory_gb=int(runtime.get("max_memory_gb", 24)),
            fallback_total_frames=int(runtime.get("fallback_total_frames", 300)),
            probe_timeout_s=float(runtime.get("probe_timeout_s", 15.0)),
            flush_timeout_s=float(runtime.get("flush_timeout_s", 15.0)),
            process_env={k: str(v) for k, v in runtime.get("env", {}).items()},
        )


def load_defaults() -> dict:
    """Load the global defaults.toml."""
    with open(DEFAULTS_PATH, "rb") as f:
        return tomllib.load(f)


def load_config(user_toml: Path | None = None) -> dict:
    """Load defaults.toml, with an optional user TOML merged over it."""
    config = load_defaults()
    if user_toml is not None:
        with open(user_toml, "rb") as f:
            overrides = tomllib.load(f)
        _deep_merge(config, overrides)
    return config


def load_settings(user_toml: Path | None = None) -> Settings:
    """Load and freeze the settings for this process."""
    return Settings.from_config(load_config(user_toml))


def expand_path(value: str) -> str:
    """Expand ``~`` and make the path absolute; empty stays empty."""
    if not value:
        return ""
    return str(Path(value).expanduser().resolve())


def expand_tool(value: str) -> str:
    """Bare command names are left for PATH lookup, paths are expanded."""
    if not value or ("/" not in value and "\\" not in value and not value.startswith("~")):
        return value
    return expand_path(value)


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place, recursing into dicts."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
