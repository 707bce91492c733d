from __future__ import annotations

import hashlib
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from solders.pubkey import Pubkey

from oft_peer.constants import (
    MAX_SEED_LEN,
    MAX_SEEDS,
    PDA_MARKER,
    PEER_SEED,
    STORE_SEED,
    U32_MAX,
)
from oft_peer.errors import DerivationExhausted
from oft_peer.models import ByteOrder

__all__ = [
    "encode_eid",
    "find_program_address",
    "derive_store_pda",
    "derive_peer_pda",
    "peer_pda_pair",
    "peer_pda_index",
]

Seedish = Union[bytes, bytearray, Pubkey]

# ---------------------------------------------------------------------------
# Core helper
# ---------------------------------------------------------------------------

def _seed_bytes(x: Seedish) -> bytes:
    if isinstance(x, Pubkey):
        return bytes(x)
    if isinstance(x, (bytes, bytearray)):
        if len(x) > MAX_SEED_LEN:
            raise ValueError(f"seed too long ({len(x)}B > {MAX_SEED_LEN}B)")
        return bytes(x)
    raise TypeError(f"unsupported seed type: {type(x)}")


def find_program_address(seeds: Sequence[Seedish], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Bump search identical to the runtime's ``find_program_address``:
      sha256(seeds || bump || program_id || "ProgramDerivedAddress"),
    bump 255 -> 0, first digest that is off the ed25519 curve wins.
    Raises DerivationExhausted after 256 misses.
    """
    raw = [_seed_bytes(s) for s in seeds]
    if len(raw) + 1 > MAX_SEEDS:
        raise ValueError(f"too many seeds ({len(raw)} + bump > {MAX_SEEDS})")

    prefix = b"".join(raw)
    suffix = bytes(program_id) + PDA_MARKER
    for bump in range(255, -1, -1):
        digest = hashlib.sha256(prefix + bytes([bump]) + suffix).digest()
        candidate = Pubkey(digest)
        if not candidate.is_on_curve():
            return candidate, bump
    raise DerivationExhausted(raw, program_id)


def encode_eid(eid: int, byte_order: ByteOrder) -> bytes:
    """Serialize an EID as the 4-byte seed the Peer PDA uses."""
    eid = int(eid)
    if eid < 0 or eid > U32_MAX:
        raise ValueError(f"EID out of u32 range: {eid}")
    return eid.to_bytes(4, ByteOrder(byte_order).struct_name, signed=False)

# ---------------------------------------------------------------------------
# OFT seeds
# ---------------------------------------------------------------------------

def derive_store_pda(program_id: Pubkey) -> Pubkey:
    """Store PDA: seeds = ["Store"]."""
    return find_program_address([STORE_SEED], program_id)[0]


def derive_peer_pda(program_id: Pubkey, store: Pubkey, eid: int, byte_order: ByteOrder) -> Pubkey:
    """Peer PDA: seeds = ["Peer", store, u32(eid)]."""
    return find_program_address([PEER_SEED, bytes(store), encode_eid(eid, byte_order)], program_id)[0]


def peer_pda_pair(program_id: Pubkey, store: Pubkey, eid: int) -> Dict[ByteOrder, Pubkey]:
    """Both Peer PDA candidates for ``eid``; the deployed encoding is not documented."""
    return {order: derive_peer_pda(program_id, store, eid, order) for order in (ByteOrder.LE, ByteOrder.BE)}


def peer_pda_index(
    program_id: Pubkey,
    store: Pubkey,
    eids: Iterable[int],
) -> Dict[Pubkey, Tuple[int, Optional[ByteOrder]]]:
    """
    Reverse map PDA -> (eid, byte_order) over both encodings of every EID.
    The order is None when LE and BE derive the same address (palindromic
    EID bytes); such entries are ambiguous. First EID wins on a cross-EID clash.
    """
    index: Dict[Pubkey, Tuple[int, Optional[ByteOrder]]] = {}
    for eid in eids:
        pair = peer_pda_pair(program_id, store, eid)
        if pair[ByteOrder.LE] == pair[ByteOrder.BE]:
            index.setdefault(pair[ByteOrder.LE], (eid, None))
            continue
        for order, pda in pair.items():
            index.setdefault(pda, (eid, order))
    return index
