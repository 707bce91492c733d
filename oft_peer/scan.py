"""Survey of every account a program owns.

Groups accounts by Anchor discriminator to get a rough idea of the record
types, then lists every account that carries at least one padded EVM address.
Useful for finding the Peer record size before running ``--enumerate``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from solders.pubkey import Pubkey

from oft_peer.extractor import account_discriminator, extract_all_peers
from oft_peer.models import AccountSnapshot, PeerCandidate

NO_DISC = "no-disc"


@dataclass
class DiscriminatorGroup:
    disc: str
    count: int = 0
    sizes: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"disc": self.disc, "count": self.count, "sizes": self.sizes}


@dataclass(frozen=True)
class CandidateAccount:
    address: Pubkey
    data_len: int
    disc: Optional[str]
    peers: List[PeerCandidate]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubkey": str(self.address),
            "dataLen": self.data_len,
            "disc": self.disc,
            "peers": [p.to_dict() for p in self.peers],
        }


@dataclass
class SurveyReport:
    rpc: str
    program_id: Pubkey
    total_accounts: int
    groups: List[DiscriminatorGroup]
    candidates: List[CandidateAccount]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc": self.rpc,
            "programId": str(self.program_id),
            "totalAccounts": self.total_accounts,
            "groups": [g.to_dict() for g in self.groups],
            "candidates": [c.to_dict() for c in self.candidates],
        }


def group_by_discriminator(accounts: Iterable[AccountSnapshot]) -> List[DiscriminatorGroup]:
    groups: Dict[str, DiscriminatorGroup] = {}
    sizes: Dict[str, set] = {}
    for acc in accounts:
        disc = account_discriminator(acc.data) or NO_DISC
        grp = groups.setdefault(disc, DiscriminatorGroup(disc=disc))
        grp.count += 1
        sizes.setdefault(disc, set()).add(len(acc.data))
    for disc, grp in groups.items():
        grp.sizes = sorted(sizes[disc])
    return list(groups.values())


def survey_program_accounts(rpc: str, program_id: Pubkey, accounts: List[AccountSnapshot]) -> SurveyReport:
    candidates: List[CandidateAccount] = []
    for acc in accounts:
        peers = extract_all_peers(acc.data)
        if peers:
            candidates.append(
                CandidateAccount(
                    address=acc.address,
                    data_len=len(acc.data),
                    disc=account_discriminator(acc.data),
                    peers=peers,
                )
            )
    candidates.sort(key=lambda c: c.data_len)
    return SurveyReport(
        rpc=rpc,
        program_id=program_id,
        total_accounts=len(accounts),
        groups=group_by_discriminator(accounts),
        candidates=candidates,
    )
