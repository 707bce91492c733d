import os
import sys
from typing import Dict, Iterable, List, Optional

import pytest
from solders.pubkey import Pubkey

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from oft_peer.errors import RemoteFetchFailure
from oft_peer.models import AccountSnapshot

PROGRAM_ID = Pubkey.from_string("YALAoTj27wZ1vsu8V8kbk79Dupx6a7ubQFKMfciYKh8")
OWNER = PROGRAM_ID


class FakeLedger:
    """In-memory stand-in for LedgerClient."""

    def __init__(
        self,
        accounts: Optional[Dict[Pubkey, bytes]] = None,
        fail: Iterable[Pubkey] = (),
        fail_list: bool = False,
    ):
        self.accounts = {
            addr: AccountSnapshot(address=addr, data=data, owner=OWNER, lamports=1)
            for addr, data in (accounts or {}).items()
        }
        self.fail = set(fail)
        self.fail_list = fail_list
        self.fetched: List[Pubkey] = []

    async def fetch_account(self, address: Pubkey) -> Optional[AccountSnapshot]:
        self.fetched.append(address)
        if address in self.fail:
            raise RemoteFetchFailure("getAccountInfo", address, ConnectionError("boom"))
        return self.accounts.get(address)

    async def list_program_accounts(self, program_id: Pubkey) -> List[AccountSnapshot]:
        if self.fail_list:
            raise RemoteFetchFailure("getProgramAccounts", program_id, ConnectionError("boom"))
        return list(self.accounts.values())


def peer_buffer(evm: bytes = b"\xab" * 20, length: int = 1654, offset: int = 8) -> bytes:
    """Peer-like account: non-zero discriminator, bytes32(evm) at ``offset``, zeros after."""
    buf = bytearray(length)
    buf[0:8] = bytes(range(1, 9))
    buf[offset : offset + 32] = bytes(12) + evm
    return bytes(buf)


@pytest.fixture
def program_id() -> Pubkey:
    return PROGRAM_ID


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # setenv first so anything a test loads from .env is removed again afterwards
    for key in ("RPC_URL", "RPC_LIST", "OFT_PROGRAM_ID", "OFT_RECORD_LEN", "RPC_TIMEOUT", "OFT_JSON", "LOG_LEVEL"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
