from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    p = Path(path)
    data = tomllib.loads(p.read_text())
    return Config(**data)

def loads_config(text: str) -> Config:
    """Parse a TOML string (handy for tests and inline configs)."""
    return Config(**tomllib.loads(text))
