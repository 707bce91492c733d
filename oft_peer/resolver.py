"""EID -> peer resolution on top of the PDA deriver and the field extractor.

Three entry points:

* :meth:`PeerResolver.resolve` - one EID, both byte orders fetched together.
* :meth:`PeerResolver.resolve_many` - list mode; per-EID failures are logged and
  skipped so one bad lookup never sinks the batch.
* :meth:`PeerResolver.enumerate` - pull every program-owned account of the Peer
  record size and attribute each back to a candidate EID by PDA equality.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence

from solders.pubkey import Pubkey

from oft_peer.constants import PEER_RECORD_LEN
from oft_peer.errors import OftPeerError
from oft_peer.extractor import decode_peer_at, extract_all_peers, extract_peer
from oft_peer.logging import log
from oft_peer.models import AccountSnapshot, ByteOrder, PeerCandidate, ResolvedPeer, StoreInfo
from oft_peer.pdas import derive_store_pda, peer_pda_index, peer_pda_pair


class Ledger(Protocol):
    async def fetch_account(self, address: Pubkey) -> Optional[AccountSnapshot]: ...

    async def list_program_accounts(self, program_id: Pubkey) -> List[AccountSnapshot]: ...


@dataclass
class Enumeration:
    peers: List[ResolvedPeer] = field(default_factory=list)
    unattributed: List[ResolvedPeer] = field(default_factory=list)
    accounts_scanned: int = 0
    layout_mismatch: bool = False


@dataclass
class BatchResult:
    peers: List[ResolvedPeer] = field(default_factory=list)
    failed_eids: List[int] = field(default_factory=list)


class PeerResolver:
    def __init__(
        self,
        client: Ledger,
        program_id: Pubkey,
        record_len: int = PEER_RECORD_LEN,
        layout_offset: Optional[int] = None,
    ) -> None:
        self.client = client
        self.program_id = program_id
        self.record_len = record_len
        self.layout_offset = layout_offset
        self.store = derive_store_pda(program_id)

    # ------------------------------------------------------------------
    # Store record
    # ------------------------------------------------------------------
    async def store_info(self) -> StoreInfo:
        acc = await self.client.fetch_account(self.store)
        return StoreInfo(address=self.store, exists=acc is not None, owner=acc.owner if acc else None)

    # ------------------------------------------------------------------
    # Targeted mode
    # ------------------------------------------------------------------
    async def resolve(self, eid: int) -> ResolvedPeer:
        pair = peer_pda_pair(self.program_id, self.store, eid)
        le, be = pair[ByteOrder.LE], pair[ByteOrder.BE]

        if le == be:
            # palindromic EID bytes: one address, order cannot be told apart
            acc = await self.client.fetch_account(le)
            if acc is None:
                return ResolvedPeer(eid=eid, address=None, exists=False)
            log.warning(f"EID {eid}: LE and BE seeds derive the same PDA {le}", source="resolver")
            return self._row(eid, acc, None, ambiguous=True)

        acc_le, acc_be = await asyncio.gather(self.client.fetch_account(le), self.client.fetch_account(be))
        if acc_le is not None and acc_be is not None:
            log.warning(
                f"EID {eid}: accounts exist at both LE {le} and BE {be}; reporting LE",
                source="resolver",
            )
            return self._row(eid, acc_le, ByteOrder.LE, ambiguous=True)
        if acc_le is not None:
            return self._row(eid, acc_le, ByteOrder.LE)
        if acc_be is not None:
            return self._row(eid, acc_be, ByteOrder.BE)
        return ResolvedPeer(eid=eid, address=None, exists=False)

    def _row(self, eid: int, acc: AccountSnapshot, order: Optional[ByteOrder], ambiguous: bool = False) -> ResolvedPeer:
        cand = extract_peer(acc.data, self.layout_offset)
        if cand is None:
            log.info(f"EID {eid}: {len(acc.data)}B at {acc.address} has no padded EVM slot", source="resolver")
        return ResolvedPeer(
            eid=eid,
            address=acc.address,
            exists=True,
            byte_order=order,
            candidate=cand,
            ambiguous=ambiguous,
            data_len=len(acc.data),
        )

    # ------------------------------------------------------------------
    # List mode
    # ------------------------------------------------------------------
    async def resolve_many(self, eids: Iterable[int]) -> BatchResult:
        unique = sorted(set(eids))
        results = await asyncio.gather(*(self.resolve(e) for e in unique), return_exceptions=True)

        out = BatchResult()
        for eid, res in zip(unique, results):
            if isinstance(res, (OftPeerError, ValueError)):
                log.warning(f"EID {eid} skipped: {res}", source="resolver")
                out.failed_eids.append(eid)
                continue
            if isinstance(res, BaseException):
                raise res
            if res.exists:
                out.peers.append(res)
        log.debug(f"{len(out.peers)}/{len(unique)} EIDs have a Peer account", source="resolver")
        return out

    # ------------------------------------------------------------------
    # Enumerate mode
    # ------------------------------------------------------------------
    async def enumerate(self, candidate_eids: Sequence[int]) -> Enumeration:
        log.start_timer("enumerate")
        accounts = await self.client.list_program_accounts(self.program_id)
        tracked = [a for a in accounts if len(a.data) == self.record_len]

        result = Enumeration(accounts_scanned=len(accounts))
        if accounts and not tracked:
            result.layout_mismatch = True
            sizes = sorted({len(a.data) for a in accounts})
            log.warning(
                f"no {self.record_len}-byte accounts among {len(accounts)} owned by {self.program_id}; "
                f"layout may differ (sizes seen: {sizes})",
                source="resolver",
            )

        index = peer_pda_index(self.program_id, self.store, candidate_eids)
        for acc in tracked:
            cands = extract_all_peers(acc.data)
            best = self._best(acc.data, cands)
            hit = index.get(acc.address)
            if hit is None:
                result.unattributed.append(
                    ResolvedPeer(
                        eid=None,
                        address=acc.address,
                        exists=True,
                        candidate=best,
                        data_len=len(acc.data),
                        candidates=tuple(cands),
                    )
                )
                continue
            eid, order = hit
            result.peers.append(
                ResolvedPeer(
                    eid=eid,
                    address=acc.address,
                    exists=True,
                    byte_order=order,
                    candidate=best,
                    ambiguous=order is None,
                    data_len=len(acc.data),
                    candidates=tuple(cands),
                )
            )

        result.peers.sort(key=lambda r: (r.eid, str(r.address)))
        result.unattributed.sort(key=lambda r: str(r.address))
        if result.unattributed:
            log.info(f"{len(result.unattributed)} Peer account(s) match no candidate EID", source="resolver")
        log.end_timer("enumerate", source="resolver")
        return result

    def _best(self, data: bytes, cands: List[PeerCandidate]) -> Optional[PeerCandidate]:
        if self.layout_offset is not None:
            hit = decode_peer_at(data, self.layout_offset)
            if hit is not None:
                return hit
        return cands[0] if cands else None
