# automator/core/sequence_loader.py
from __future__ import annotations

"""Sequence schema and loader
-----------------------------
Pydantic model for YAML sequence documents and loaders for single and
multi-document files. Callables cannot live in YAML, so file-based
sequences hold delays, key tokens and nulls only.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from automator.core.expander import expand_actions

__all__ = [
    "Sequence",
    "load_sequence",
    "load_sequences_file",
    "find_sequence_files",
]

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

FileAction = Union[int, float, str, None]


class Sequence(BaseModel):
    version: str = Field(default="1")
    name: str = Field(..., description="Sequence name, e.g., 'konami'")
    description: Optional[str] = None
    iterations: Optional[int] = Field(default=None, ge=1, description="Falls back to DEFAULT_ITERATIONS")
    step_delay_ms: Optional[int] = Field(default=None, ge=0)
    iteration_delay_ms: Optional[int] = Field(default=None, ge=0)
    url: Optional[str] = Field(default=None, description="Page that receives key tokens")
    actions: list[FileAction]

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("actions", mode="before")
    @classmethod
    def _scalar_actions(cls, v: Any) -> Any:
        if not isinstance(v, list):
            raise ValueError("actions must be a list")
        for idx, a in enumerate(v):
            # YAML booleans would otherwise coerce to 0/1 delays
            if isinstance(a, bool) or not (a is None or isinstance(a, (int, float, str))):
                raise ValueError(f"action {idx} must be a number, a string or null, got {a!r}")
        return v

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.startswith("http"):
            raise ValueError("url must be an absolute http(s) URL")
        return v

    def expanded(self) -> list[FileAction]:
        return expand_actions(self.actions)


# ---------- Helpers ----------


def _subst_env(obj: Any) -> Any:
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _validate(data: dict, origin: str) -> Sequence:
    try:
        return Sequence.model_validate(_subst_env(data))
    except ValidationError as ve:
        lines = [f"Invalid sequence {origin}:"]
        for e in ve.errors():
            loc = ".".join(str(p) for p in e.get("loc", []))
            msg = e.get("msg", "invalid value")
            lines.append(f"  - {loc}: {msg}")
        raise ValueError("\n".join(lines)) from ve


# ---------- Public API ----------


def load_sequence(path: Path | str) -> Sequence:
    seq_path = Path(path)
    if not seq_path.exists():
        raise FileNotFoundError(f"Sequence file not found: {seq_path}")
    try:
        data = yaml.safe_load(seq_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {seq_path}: {ye}") from ye
    if not isinstance(data, dict):
        raise ValueError("Sequence YAML must define a mapping/object at the top level.")
    data.setdefault("name", seq_path.stem)
    return _validate(data, f"'{seq_path}'")


def load_sequences_file(path: Path | str) -> list[Sequence]:
    """Load one or more sequences from a YAML file (supports multi-document)."""
    seq_path = Path(path)
    if not seq_path.exists():
        raise FileNotFoundError(f"Sequence file not found: {seq_path}")
    try:
        docs = list(yaml.safe_load_all(seq_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {seq_path}: {ye}") from ye

    out: list[Sequence] = []
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(f"Document {idx} in {seq_path} must be a mapping/object.")
        data.setdefault("name", f"{seq_path.stem}-{idx}")
        out.append(_validate(data, f"'{seq_path}' (document {idx})"))
    if not out:
        raise ValueError(f"No sequence documents found in {seq_path}")
    return out


def find_sequence_files(root: Path, recursive: bool = True) -> list[Path]:
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))
