"""Typed run configuration.

Precedence: CLI flag > YAML config file (``oft_peer:`` section) > environment
(``.env`` is loaded first) > built-in defaults.

YAML values may use ``ENV:NAME`` placeholders, resolved at load time::

    oft_peer:
      rpc: "ENV:HELIUS_RPC"
      program: YALAoTj27wZ1vsu8V8kbk79Dupx6a7ubQFKMfciYKh8
      eidlist: [30101, 30109]
      record_len: 1654
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from oft_peer.constants import (
    DEFAULT_EID,
    DEFAULT_RPC_FALLBACKS,
    DEFAULT_RPC_TIMEOUT,
    DEFAULT_RPC_URL,
    PEER_RECORD_LEN,
    U32_MAX,
)
from oft_peer.errors import ConfigError

CONFIG_SECTION = "oft_peer"


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def parse_eid_list(value: Union[str, List[Any], Tuple[Any, ...], None]) -> List[int]:
    """Parse ``"30101, 30109,x"`` style lists; blanks and non-numbers are skipped."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    out: List[int] = []
    for item in items:
        s = str(item).strip()
        if not s:
            continue
        try:
            eid = int(s, 10)
        except ValueError:
            continue
        if eid < 0 or eid > U32_MAX:
            raise ConfigError(f"EID out of u32 range: {eid}")
        out.append(eid)
    return out


# ---------------------------------------------------------------------------
# YAML file
# ---------------------------------------------------------------------------

class FileSettings(BaseModel):
    """Shape of the ``oft_peer:`` section of a YAML config file."""

    rpc: Optional[str] = None
    rpc_list: List[str] = []
    program: Optional[str] = None
    eid: Optional[int] = None
    eidlist: Optional[List[int]] = None
    record_len: Optional[int] = None
    layout_offset: Optional[int] = None
    timeout: Optional[float] = None

    @field_validator("eidlist", mode="before")
    @classmethod
    def _split_eids(cls, v: Any) -> Any:
        if v is None:
            return None
        return parse_eid_list(v)

    @field_validator("rpc_list", mode="before")
    @classmethod
    def _split_urls(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [x.strip() for x in v.split(",") if x.strip()]
        return v or []

    @field_validator("eid")
    @classmethod
    def _u32(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 0 <= v <= U32_MAX:
            raise ValueError(f"EID out of u32 range: {v}")
        return v


def _resolve_env(val: Any) -> Any:
    """Resolve ENV:FOO placeholders recursively."""
    if isinstance(val, str) and val.startswith("ENV:"):
        env_key = val.split("ENV:", 1)[1].strip()
        v = os.environ.get(env_key)
        if v is None or v == "":
            raise ConfigError(f"Missing required environment variable: {env_key}")
        return v
    if isinstance(val, dict):
        return {k: _resolve_env(v) for k, v in val.items()}
    if isinstance(val, list):
        return [_resolve_env(v) for v in val]
    return val


def load_file_settings(path: Union[str, Path]) -> FileSettings:
    """Load the ``oft_peer`` section of ``path`` and resolve ENV placeholders there."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    with p.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    section = raw.get(CONFIG_SECTION) if isinstance(raw, dict) else None
    if not section:
        raise ConfigError(f"Missing '{CONFIG_SECTION}' section in config.")
    try:
        return FileSettings(**_resolve_env(section))
    except ValidationError as e:
        raise ConfigError(f"Invalid '{CONFIG_SECTION}' section in {p}: {e}") from e


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanConfig:
    """Everything one CLI invocation needs."""

    program_id: str
    rpc_endpoint: str = DEFAULT_RPC_URL
    eid: int = DEFAULT_EID
    batch_mode: bool = False
    enumerate_mode: bool = False
    scan_mode: bool = False
    candidate_eids: Optional[Tuple[int, ...]] = None
    structured_output: bool = False
    record_len: int = PEER_RECORD_LEN
    layout_offset: Optional[int] = None
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    rpc_extra_endpoints: Tuple[str, ...] = field(default_factory=tuple)
    verbose: bool = False

    @property
    def endpoints(self) -> List[str]:
        """Primary endpoint, then extras, then public fallbacks, de-duplicated."""
        out: List[str] = []
        for u in (self.rpc_endpoint, *self.rpc_extra_endpoints, *DEFAULT_RPC_FALLBACKS):
            u = (u or "").strip()
            if u and u not in out:
                out.append(u)
        return out


def load_env(dotenv_path: Optional[Union[str, Path]] = None) -> None:
    """Load ``.env`` (searched upward from the working directory) without
    clobbering variables already exported."""
    path = dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True)
    if path:
        load_dotenv(dotenv_path=path, override=False)


def build_config(args: Any, env: Optional[Mapping[str, str]] = None) -> ScanConfig:
    """
    Merge parsed CLI ``args`` (argparse namespace, unset options are None/False)
    with the optional YAML file and the environment.
    """
    env = os.environ if env is None else env
    fs = load_file_settings(args.config) if getattr(args, "config", None) else FileSettings()

    def pick(cli: Any, file_val: Any, env_key: Optional[str], default: Any) -> Any:
        if cli is not None:
            return cli
        if file_val is not None:
            return file_val
        if env_key and env.get(env_key):
            return env[env_key]
        return default

    program = pick(getattr(args, "program", None), fs.program, "OFT_PROGRAM_ID", "")
    if not str(program).strip():
        raise ConfigError("missing program id (--program, config 'program' or OFT_PROGRAM_ID)")

    cli_eids = getattr(args, "eidlist", None)
    if cli_eids is not None:
        candidates: Optional[Tuple[int, ...]] = tuple(parse_eid_list(cli_eids))
    elif fs.eidlist is not None:
        candidates = tuple(fs.eidlist)
    else:
        candidates = None

    extras = list(fs.rpc_list) + [x.strip() for x in env.get("RPC_LIST", "").split(",") if x.strip()]

    try:
        record_len = int(pick(getattr(args, "record_len", None), fs.record_len, "OFT_RECORD_LEN", PEER_RECORD_LEN))
        timeout = float(pick(None, fs.timeout, "RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT))
        eid = int(pick(getattr(args, "eid", None), fs.eid, None, DEFAULT_EID))
    except ValueError as e:
        raise ConfigError(f"invalid numeric setting: {e}") from e
    if record_len <= 0:
        raise ConfigError(f"record length must be positive: {record_len}")
    if not 0 <= eid <= U32_MAX:
        raise ConfigError(f"EID out of u32 range: {eid}")

    return ScanConfig(
        program_id=str(program).strip(),
        rpc_endpoint=str(pick(getattr(args, "rpc", None), fs.rpc, "RPC_URL", DEFAULT_RPC_URL)).strip(),
        eid=eid,
        batch_mode=bool(getattr(args, "list", False)),
        enumerate_mode=bool(getattr(args, "enumerate", False)),
        scan_mode=bool(getattr(args, "scan", False)),
        candidate_eids=candidates,
        structured_output=bool(getattr(args, "json", False)) or _as_bool(env.get("OFT_JSON")),
        record_len=record_len,
        layout_offset=pick(getattr(args, "layout_offset", None), fs.layout_offset, None, None),
        rpc_timeout=timeout,
        rpc_extra_endpoints=tuple(extras),
        verbose=bool(getattr(args, "verbose", False)),
    )


__all__ = [
    "ScanConfig",
    "FileSettings",
    "build_config",
    "load_env",
    "load_file_settings",
    "parse_eid_list",
]
