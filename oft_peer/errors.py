"""Custom exceptions for the OFT peer reader."""

from __future__ import annotations

from typing import Any, Sequence


class OftPeerError(RuntimeError):
    """Base class for every error raised by :mod:`oft_peer`."""

    pass


class ConfigError(OftPeerError):
    pass


class DerivationExhausted(OftPeerError):
    """Raised when no bump in 255..0 yields an off-curve address."""

    def __init__(self, seeds: Sequence[bytes], program_id: Any) -> None:
        shown = ", ".join(s.hex() for s in seeds)
        super().__init__(f"no valid bump for seeds [{shown}] under program {program_id}")
        self.seeds = list(seeds)
        self.program_id = program_id


class RemoteFetchFailure(OftPeerError):
    """Raised when the ledger RPC could not serve a request."""

    def __init__(self, method: str, target: Any, cause: BaseException | None = None) -> None:
        msg = f"{method}({target}) failed"
        if cause is not None:
            msg = f"{msg}: {cause!r}"
        super().__init__(msg)
        self.method = method
        self.target = target
        self.cause = cause
