from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from solders.pubkey import Pubkey


def _b58(pk: Optional[Pubkey]) -> Optional[str]:
    return str(pk) if pk is not None else None


class ByteOrder(str, Enum):
    """Encoding of the u32 EID inside the Peer PDA seeds."""

    LE = "LE"
    BE = "BE"

    @property
    def struct_name(self) -> str:
        return "little" if self is ByteOrder.LE else "big"


@dataclass(frozen=True)
class AccountSnapshot:
    address: Pubkey
    data: bytes
    owner: Optional[Pubkey] = None
    lamports: int = 0


@dataclass(frozen=True)
class PeerCandidate:
    """A zero-padded bytes32 slot found at ``offset`` in an account buffer."""

    offset: int
    bytes32: bytes

    @property
    def evm(self) -> str:
        return "0x" + self.bytes32[12:].hex()

    @property
    def bytes32_hex(self) -> str:
        return "0x" + self.bytes32.hex()

    def to_dict(self) -> Dict[str, Any]:
        return {"off": self.offset, "evm": self.evm, "b32": self.bytes32_hex}


@dataclass(frozen=True)
class ResolvedPeer:
    """One row of the EID -> peer directory.

    ``eid`` is ``None`` for records found by enumeration that no candidate EID
    derives to. ``byte_order`` is ``None`` when it cannot be told apart.
    """

    eid: Optional[int]
    address: Optional[Pubkey]
    exists: bool
    byte_order: Optional[ByteOrder] = None
    candidate: Optional[PeerCandidate] = None
    ambiguous: bool = False
    data_len: Optional[int] = None
    candidates: Tuple[PeerCandidate, ...] = ()

    @property
    def attributed(self) -> bool:
        return self.eid is not None

    @property
    def remote_address(self) -> Optional[str]:
        return self.candidate.evm if self.candidate else None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "eid": self.eid,
            "peerPda": _b58(self.address),
            "exists": self.exists,
            "endian": self.byte_order.value if self.byte_order else None,
            "bytes32": self.candidate.bytes32_hex if self.candidate else None,
            "evm": self.remote_address,
            "ambiguous": self.ambiguous,
        }
        if self.data_len is not None:
            out["dataLen"] = self.data_len
        if self.candidates:
            out["candidates"] = [c.to_dict() for c in self.candidates]
        return out


@dataclass(frozen=True)
class StoreInfo:
    address: Pubkey
    exists: bool
    owner: Optional[Pubkey] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storePda": str(self.address),
            "storeExists": self.exists,
            "storeOwner": _b58(self.owner),
        }


@dataclass
class PeerReport:
    """Targeted lookup of one EID."""

    rpc: str
    program_id: Pubkey
    store: Optional[StoreInfo]
    peer: Optional[ResolvedPeer] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"rpc": self.rpc, "programId": str(self.program_id)}
        out.update(_store_fields(self.store))
        out["peer"] = self.peer.to_dict() if self.peer else None
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class DirectoryReport:
    """List or enumerate mode output."""

    rpc: str
    program_id: Pubkey
    store: Optional[StoreInfo]
    mode: str = "list"
    peers: List[ResolvedPeer] = field(default_factory=list)
    unattributed: List[ResolvedPeer] = field(default_factory=list)
    failed_eids: List[int] = field(default_factory=list)
    record_len: Optional[int] = None
    accounts_scanned: Optional[int] = None
    layout_mismatch: bool = False

    @property
    def peers_found(self) -> int:
        return len(self.peers)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"rpc": self.rpc, "programId": str(self.program_id)}
        out.update(_store_fields(self.store))
        if self.mode == "enumerate":
            out["recordLen"] = self.record_len
            out["accountsScanned"] = self.accounts_scanned
            out["layoutMismatch"] = self.layout_mismatch
        out["peersFound"] = self.peers_found
        out["peers"] = [p.to_dict() for p in self.peers]
        if self.mode == "enumerate":
            out["unattributed"] = [p.to_dict() for p in self.unattributed]
        if self.failed_eids:
            out["failedEids"] = list(self.failed_eids)
        return out


def _store_fields(store: Optional[StoreInfo]) -> Dict[str, Any]:
    if store is None:
        return {"storePda": None, "storeExists": False, "storeOwner": None}
    return store.to_dict()
