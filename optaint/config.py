# optaint/config.py
"""Engine configuration.

An :class:`EngineConfig` is built once, from defaults, a JSON file, a
mapping, or parsed command-line arguments (in that order of precedence,
later sources overriding earlier ones), and is read-only afterwards.

JSON file layout::

    {
        "substrate_module": "myhost.taint",
        "exports": ["__plus__", "__eval__"],
        "taint_name": "location.hash",
        "record_sinks": true,
        "debug": false
    }
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from optaint.errors import ConfigFileError, ErrorCodes

logger = logging.getLogger(__name__)

__all__ = ["EngineConfig", "DEFAULT_SUBSTRATE_MODULE"]

DEFAULT_SUBSTRATE_MODULE = "optaint.substrate"


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by the code generator and the CLI.

    ``substrate_module``
        Module the generated code imports ``is_tainted``, ``unwrap``,
        ``wrap``, ``provenance_name`` (and ``record_sink``) from.
    ``exports``
        Replacement names to generate; empty means every mock.
    ``taint_name``
        Provenance name given to the source the CLI taints.
    ``record_sinks``
        Whether the generated ``eval`` mock reports sink hits.
    ``debug``
        Turns on debug logging in the CLI.
    """

    substrate_module: str = DEFAULT_SUBSTRATE_MODULE
    exports: Tuple[str, ...] = ()
    taint_name: str = "taint"
    record_sinks: bool = True
    debug: bool = False

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["EngineConfig"] = None) -> "EngineConfig":
        base = base or cls()
        unknown = sorted(set(data) - set(cls.field_names()))
        if unknown:
            raise ConfigFileError(
                "unknown configuration key(s): " + ", ".join(unknown),
                code=ErrorCodes.CONFIG_KEY,
                hint="valid keys: " + ", ".join(cls.field_names()),
            )
        values = dict(data)
        if "exports" in values:
            exports = values["exports"]
            if isinstance(exports, str) or not all(isinstance(e, str) for e in exports):
                raise ConfigFileError("'exports' must be a list of names")
            values["exports"] = tuple(exports)
        for key in ("substrate_module", "taint_name"):
            if key in values and not isinstance(values[key], str):
                raise ConfigFileError(f"{key!r} must be a string")
        for key in ("record_sinks", "debug"):
            if key in values and not isinstance(values[key], bool):
                raise ConfigFileError(f"{key!r} must be true or false")
        return dataclasses.replace(base, **values)

    @classmethod
    def from_file(cls, path: str | Path, base: Optional["EngineConfig"] = None) -> "EngineConfig":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise ConfigFileError(f"cannot read configuration {path}: {exc}", cause=exc) from exc
        except json.JSONDecodeError as exc:
            raise ConfigFileError(
                f"{path}:{exc.lineno}:{exc.colno}: {exc.msg}", cause=exc
            ) from exc
        if not isinstance(data, dict):
            raise ConfigFileError(f"{path}: top level must be a JSON object")
        logger.debug("loaded configuration from %s", path)
        return cls.from_mapping(data, base)

    def merge_args(self, args: Any) -> "EngineConfig":
        """Override fields with any matching, non-``None`` argparse values."""
        overrides = {}
        for name in self.field_names():
            value = getattr(args, name, None)
            if value is None or value == []:
                continue
            overrides[name] = tuple(value) if name == "exports" else value
        return dataclasses.replace(self, **overrides)
