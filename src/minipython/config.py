"""Engine configuration and inline source directives.

Supported directive formats (first 25 lines):
- # @minipy: {"max_steps": 500, "max_history_size": 50}
- # @minipy: max_steps=500; max_history_size=50; debug=true
- # @minipy: max_call_depth=100

Values accept booleans, ints, floats, or strings.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_MAX_SCAN_LINES = 25
_MARKER = "@minipy"

VM_MAX_STEPS = 100000
INTERPRETER_MAX_STEPS = 10000
DEFAULT_HISTORY_SIZE = 1000
DEFAULT_EVAL_MAX_STEPS = 10000
DEFAULT_MAX_CALL_DEPTH = 200


@dataclass
class EngineConfig:
    # None means "the engine's own default"
    max_steps: Optional[int] = None
    max_history_size: int = DEFAULT_HISTORY_SIZE
    eval_max_steps: int = DEFAULT_EVAL_MAX_STEPS
    # nested user calls, the same limit on both engines
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    debug: bool = False

    @classmethod
    def from_flags(cls, flags: Dict[str, Any], base: Optional["EngineConfig"] = None) -> "EngineConfig":
        base = base or cls()
        known = {f.name for f in fields(cls)}
        updates = {}
        for key, value in flags.items():
            if key not in known:
                logger.debug("ignoring unknown directive %r", key)
                continue
            if key == "debug":
                updates[key] = bool(value)
            elif isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                updates[key] = int(value)
            else:
                logger.debug("ignoring invalid value %r for %r", value, key)
        return replace(base, **updates)

    @classmethod
    def from_source(cls, source: str, base: Optional["EngineConfig"] = None) -> "EngineConfig":
        return cls.from_flags(parse_file_flags(source), base)


def parse_file_flags(source: str) -> Dict[str, Any]:
    flags: Dict[str, Any] = {}
    if not source:
        return flags

    lines = source.splitlines()[:_MAX_SCAN_LINES]
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith("#"):
            continue
        if _MARKER not in stripped:
            continue

        # Strip the comment marker and the @minipy prefix
        directive = stripped.lstrip("#").strip()
        if not directive.lower().startswith(_MARKER):
            continue
        directive = directive[len(_MARKER):].strip()
        if directive.startswith(":"):
            directive = directive[1:].strip()

        # JSON object form
        if directive.startswith("{"):
            try:
                parsed = json.loads(directive)
            except ValueError:
                logger.debug("malformed directive %r", directive)
                continue
            if isinstance(parsed, dict):
                flags.update(parsed)
            continue

        # key=value form (semicolon or comma separated)
        for part in re.split(r"[;,]", directive):
            part = part.strip()
            if not part or "=" not in part:
                continue
            key, raw_val = part.split("=", 1)
            flags[key.strip()] = _parse_value(raw_val.strip())

    return flags


def _parse_value(raw: str) -> Any:
    if not raw:
        return raw
    lowered = raw.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    # numbers
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    # quoted string
    if (raw.startswith("\"") and raw.endswith("\"")) or (raw.startswith("'") and raw.endswith("'")):
        return raw[1:-1]
    return raw


def apply_engine_config(engine, config: EngineConfig) -> None:
    """Push a config onto a VM or interpreter instance."""
    if config.max_steps is not None:
        engine.max_steps = config.max_steps
    engine.max_call_depth = config.max_call_depth
    if hasattr(engine, "set_max_history_size"):
        engine.set_max_history_size(config.max_history_size)
    if hasattr(engine, "eval_max_steps"):
        engine.eval_max_steps = config.eval_max_steps
    logger.debug("applied %s to %s", config, type(engine).__name__)
