from __future__ import annotations

import dataclasses
import enum
import json
from pathlib import Path
from typing import Any, Optional

import yaml

from easel.easel_datatypes import EaselCallable, EaselError, Environment


# --------------------------
# Helpers
# --------------------------

def to_builtin(obj: Any) -> Any:
    """
    Convert tokens, AST nodes, and runtime values into plain dicts, lists and
    scalars. Dataclass instances become {"type": <ClassName>, <field>: ...};
    source positions are kept.
    """
    if isinstance(obj, enum.Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        out = {"type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            out[f.name] = to_builtin(getattr(obj, f.name))
        return out
    if isinstance(obj, (list, tuple)):
        return [to_builtin(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, EaselError):
        return {"type": obj.kind, "message": obj.message, "line": obj.line, "col": obj.col}
    if isinstance(obj, EaselCallable):
        return {"type": type(obj).__name__, "name": obj.name}
    if isinstance(obj, Environment):
        return {"type": "Environment", "names": obj.names()}
    return obj


def detect_format(path: Optional[str] = None) -> Optional[str]:
    """
    Returns 'json' or 'yaml' from a file extension, or None when the
    extension is neither.
    """
    suffix = Path(path or "").suffix.lower()
    if suffix == '.json':
        return 'json'
    if suffix in ('.yaml', '.yml'):
        return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def serialize(value: Any,
              *,
              fmt: str,
              pretty: bool = True) -> str:
    """
    Convert tokens, nodes or any nesting of them into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_builtin(value)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(text: str, *, fmt: str) -> Any:
    """Read a dump back into plain Python structures (for inspection, not for execution)."""
    f = (fmt or '').lower()
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def dump_debug_artifacts(tokens, statements, *, fmt: str = 'json', directory: str | Path = '.') -> list[Path]:
    """Write tokens.<fmt> and ast.<fmt> into directory; returns the written paths."""
    ext = 'yaml' if fmt == 'yaml' else 'json'
    base = Path(directory)
    written = []
    for stem, payload in (('tokens', tokens), ('ast', statements)):
        target = base / f"{stem}.{ext}"
        target.write_text(serialize(payload, fmt=fmt), encoding='utf-8')
        written.append(target)
    return written


__all__ = [
    "to_builtin",
    "serialize",
    "deserialize",
    "detect_format",
    "dump_debug_artifacts",
]
