"""Locate a zero-padded EVM address inside raw Peer account data.

The Peer account layout is not published, so the main path slides a 32-byte
window over every offset and keeps slots shaped like ``bytes32(address)``:
12 zero bytes followed by 20 bytes that are not all zero.

When the field offset is known (8 on the deployments seen so far, right after
the Anchor discriminator) :func:`decode_peer_at` reads that slot directly and
the sliding window is only a fallback.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Union

from oft_peer.constants import (
    BYTES32_LEN,
    DISCRIMINATOR_LEN,
    EVM_PAD_LEN,
    PEER_FIELD_OFFSET,
)
from oft_peer.models import PeerCandidate

Buffer = Union[bytes, bytearray, memoryview]

_ZERO_PAD = bytes(EVM_PAD_LEN)
_ZERO_TAIL = bytes(BYTES32_LEN - EVM_PAD_LEN)


def looks_like_padded_evm_address(window: Buffer) -> bool:
    """True if ``window`` is 32 bytes: 12 zero bytes then a non-zero 20-byte tail."""
    if len(window) != BYTES32_LEN:
        return False
    return bytes(window[:EVM_PAD_LEN]) == _ZERO_PAD and bytes(window[EVM_PAD_LEN:]) != _ZERO_TAIL


def iter_peer_candidates(data: Buffer) -> Iterator[PeerCandidate]:
    """Yield every matching window, offsets 0..len-32 step 1 (windows overlap)."""
    view = memoryview(data).cast("B") if not isinstance(data, bytes) else data
    for off in range(0, len(view) - BYTES32_LEN + 1):
        window = view[off : off + BYTES32_LEN]
        if looks_like_padded_evm_address(window):
            yield PeerCandidate(offset=off, bytes32=bytes(window))


def extract_all_peers(data: Buffer) -> List[PeerCandidate]:
    """All candidates, one per distinct 20-byte address, keeping the lowest offset."""
    out: List[PeerCandidate] = []
    seen = set()
    for cand in iter_peer_candidates(data):
        if cand.evm in seen:
            continue
        seen.add(cand.evm)
        out.append(cand)
    return out


def find_first_peer(data: Buffer) -> Optional[PeerCandidate]:
    return next(iter_peer_candidates(data), None)


def decode_peer_at(data: Buffer, offset: int = PEER_FIELD_OFFSET) -> Optional[PeerCandidate]:
    """Read the bytes32 peer slot at a known ``offset``; None if it does not fit the pattern."""
    if offset < 0 or offset + BYTES32_LEN > len(data):
        return None
    window = bytes(data[offset : offset + BYTES32_LEN])
    if not looks_like_padded_evm_address(window):
        return None
    return PeerCandidate(offset=offset, bytes32=window)


def extract_peer(data: Buffer, layout_offset: Optional[int] = None) -> Optional[PeerCandidate]:
    """Fixed-offset decode when configured, sliding-window scan otherwise or on a miss."""
    if layout_offset is not None:
        hit = decode_peer_at(data, layout_offset)
        if hit is not None:
            return hit
    return find_first_peer(data)


def account_discriminator(data: Optional[Buffer]) -> Optional[str]:
    """First 8 bytes as ``0x..`` hex; only used as a grouping tag."""
    if data is None or len(data) < DISCRIMINATOR_LEN:
        return None
    return "0x" + bytes(data[:DISCRIMINATOR_LEN]).hex()
