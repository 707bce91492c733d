"""Ledger access for the peer reader (solana-py AsyncClient, commitment=confirmed)."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from oft_peer.constants import DEFAULT_RPC_TIMEOUT
from oft_peer.errors import ConfigError, RemoteFetchFailure
from oft_peer.logging import log
from oft_peer.models import AccountSnapshot

ClientFactory = Callable[[str, float], AsyncClient]


def is_rate_limit(exc: Exception) -> bool:
    s = repr(exc)
    return ("429" in s) or ("Too Many Requests" in s)


def _default_factory(url: str, timeout: float) -> AsyncClient:
    return AsyncClient(url, commitment=Confirmed, timeout=timeout)


class LedgerClient:
    """
    Two read calls over an ordered endpoint list. Rate limits back off and retry
    on the same endpoint; other errors rotate to the next one. When every
    endpoint fails the last error is raised as RemoteFetchFailure.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = DEFAULT_RPC_TIMEOUT,
        attempts_per_endpoint: int = 2,
        sleep_base: float = 0.35,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.endpoints = [u for u in endpoints if u]
        if not self.endpoints:
            raise ConfigError("No RPC endpoint configured")
        self.timeout = timeout
        self.attempts_per_endpoint = max(1, attempts_per_endpoint)
        self.sleep_base = sleep_base
        self._factory = client_factory or _default_factory
        self._clients: Dict[str, AsyncClient] = {}
        self._idx = 0

    @property
    def url(self) -> str:
        return self.endpoints[self._idx]

    def _client(self, url: str) -> AsyncClient:
        cl = self._clients.get(url)
        if cl is None:
            cl = self._factory(url, self.timeout)
            self._clients[url] = cl
        return cl

    async def _call(self, method: str, target: Any, op: Callable[[AsyncClient], Awaitable[Any]]) -> Any:
        n = len(self.endpoints)
        idx = self._idx
        last_exc: Optional[Exception] = None
        for _ in range(n):
            url = self.endpoints[idx]
            for att in range(self.attempts_per_endpoint):
                try:
                    result = await op(self._client(url))
                    self._idx = idx
                    return result
                except Exception as e:
                    last_exc = e
                    if is_rate_limit(e) or isinstance(e, SolanaRpcException):
                        log.warning(
                            f"{method} @ {url} error {e!r} (attempt {att + 1}/{self.attempts_per_endpoint})",
                            source="rpc",
                        )
                        await asyncio.sleep(self.sleep_base * (2 ** att))
                        continue
                    log.warning(f"{method} @ {url} non-429 error {e!r} — rotating", source="rpc")
                    break
            idx = (idx + 1) % n
        raise RemoteFetchFailure(method, target, last_exc)

    # ---- collaborator surface ----
    async def fetch_account(self, address: Pubkey) -> Optional[AccountSnapshot]:
        resp = await self._call(
            "getAccountInfo", address, lambda c: c.get_account_info(address, encoding="base64")
        )
        val = resp.value
        if val is None:
            return None
        return AccountSnapshot(address=address, data=bytes(val.data), owner=val.owner, lamports=val.lamports)

    async def list_program_accounts(self, program_id: Pubkey) -> List[AccountSnapshot]:
        resp = await self._call(
            "getProgramAccounts",
            program_id,
            lambda c: c.get_program_accounts(program_id, commitment=Confirmed, encoding="base64"),
        )
        out: List[AccountSnapshot] = []
        for keyed in resp.value or []:
            acc = keyed.account
            out.append(
                AccountSnapshot(address=keyed.pubkey, data=bytes(acc.data), owner=acc.owner, lamports=acc.lamports)
            )
        log.debug(f"{len(out)} accounts owned by {program_id}", source="rpc")
        return out

    async def close(self) -> None:
        for cl in self._clients.values():
            await cl.close()
        self._clients.clear()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
