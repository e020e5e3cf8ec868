# src/elasticache_lite/config.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, cast

from dotenv import load_dotenv

from .utils import getenv_str

# --- tomllib for 3.11+, tomli for 3.9/3.10 ---
try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # Python 3.9–3.10
    import tomli as tomllib


DEFAULT_REGION = "us-east-1"

# Setting name -> (environment variable(s), config.toml key)
_SETTINGS = {
    "AWS_ACCESS_KEY_ID": (("AWS_ACCESS_KEY_ID",), "AWS_ACCESS_KEY_ID"),
    "AWS_SECRET_ACCESS_KEY": (("AWS_SECRET_ACCESS_KEY",), "AWS_SECRET_ACCESS_KEY"),
    "AWS_SESSION_TOKEN": (("AWS_SESSION_TOKEN",), "AWS_SESSION_TOKEN"),
    "AWS_CREDENTIALS_EXPIRE_AT": (
        ("AWS_CREDENTIALS_EXPIRE_AT",),
        "AWS_CREDENTIALS_EXPIRE_AT",
    ),
    "AWS_DEFAULT_REGION": (("AWS_DEFAULT_REGION", "AWS_REGION"), "AWS_DEFAULT_REGION"),
    "AWS_PROFILE": (("AWS_PROFILE",), "AWS_PROFILE"),
    "ELASTICACHE_HOST": (("ELASTICACHE_HOST",), "HOST"),
    "ELASTICACHE_PATH": (("ELASTICACHE_PATH",), "PATH"),
    "ELASTICACHE_PORT": (("ELASTICACHE_PORT",), "PORT"),
    "ELASTICACHE_SCHEME": (("ELASTICACHE_SCHEME",), "SCHEME"),
    "ELASTICACHE_PERSISTENT": (("ELASTICACHE_PERSISTENT",), "PERSISTENT"),
    "ELASTICACHE_USE_IAM_PROFILE": (
        ("ELASTICACHE_USE_IAM_PROFILE",),
        "USE_IAM_PROFILE",
    ),
}


def config_path() -> Path:
    return Path.home() / ".config" / "elasticache-lite" / "config.toml"


def load_env_files() -> None:
    """Load environment variables from a .env if present (no-op if absent)."""
    load_dotenv()


def load_toml_config(path: Optional[Path] = None) -> Dict[str, str]:
    """
    Read the [aws] and [elasticache] sections of the config file.

    Keys are upper-cased; [elasticache] keys are kept bare (HOST, PORT, ...)
    and [aws] keys are expected in their AWS_* form.
    """
    cfg_path = path or config_path()
    if not cfg_path.exists():
        return {}
    with cfg_path.open("rb") as f:
        data = cast("dict[str, Any]", tomllib.load(f))
    out: Dict[str, str] = {}
    for section in ("aws", "elasticache"):
        values = cast("dict[str, Any]", data.get(section, {}))
        out.update({k.upper(): str(v) for k, v in values.items()})
    return out


def resolved_aws_settings(path: Optional[Path] = None) -> Dict[str, Optional[str]]:
    """
    Resolve client settings from env/.env/config.toml.
    Environment variables win over the config file.
    Returns a dict keyed by setting name (values may be None).
    """
    load_env_files()
    toml_cfg = load_toml_config(path)

    resolved: Dict[str, Optional[str]] = {}
    for name, (env_names, toml_key) in _SETTINGS.items():
        value = toml_cfg.get(toml_key)
        for env_name in reversed(env_names):
            value = getenv_str(env_name, value)
        resolved[name] = value
    return resolved
