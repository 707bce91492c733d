"""
Read the EID -> peer directory of an OFT program.

Examples:
  python -m oft_peer --program YALAoTj27wZ1vsu8V8kbk79Dupx6a7ubQFKMfciYKh8
  python -m oft_peer --program <PID> --eid 30110 --json
  python -m oft_peer --program <PID> --list --eidlist "30101,30109,30184"
  python -m oft_peer --program <PID> --enumerate --record-len 1654
  python -m oft_peer --program <PID> --scan
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from solders.pubkey import Pubkey

from oft_peer.config import ScanConfig, build_config, load_env
from oft_peer.console.views import emit
from oft_peer.constants import CANDIDATE_EIDS
from oft_peer.errors import ConfigError, OftPeerError
from oft_peer.logging import configure_console_log, log
from oft_peer.models import DirectoryReport, PeerReport, StoreInfo
from oft_peer.resolver import Ledger, PeerResolver
from oft_peer.rpc import LedgerClient
from oft_peer.scan import survey_program_accounts

USAGE = (
    'usage: python -m oft_peer --program <OFT_PROGRAM_ID> [--eid 30109] [--list] '
    '[--eidlist "30109,30168,..."] [--enumerate] [--scan] [--rpc <URL>] [--json]'
)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    ap = _Parser(prog="oft-peer", description="Reconstruct the EID -> peer map of an OFT program.")
    ap.add_argument("--program", help="OFT program id (base58); env OFT_PROGRAM_ID")
    ap.add_argument("--eid", type=int, help="EID for a single lookup (default 30109)")
    ap.add_argument("--list", action="store_true", help="look up every candidate EID")
    ap.add_argument("--eidlist", help="comma-separated candidate EIDs for --list/--enumerate")
    ap.add_argument("--enumerate", action="store_true", help="scan program accounts of the Peer size and attribute them")
    ap.add_argument("--scan", action="store_true", help="survey all program accounts by discriminator")
    ap.add_argument("--record-len", type=int, dest="record_len", help="Peer account size in bytes (default 1654)")
    ap.add_argument("--layout-offset", type=int, dest="layout_offset", help="known offset of the peer bytes32 slot")
    ap.add_argument("--rpc", help="RPC endpoint; env RPC_URL")
    ap.add_argument("--config", help="YAML config file with an 'oft_peer' section")
    ap.add_argument("--json", action="store_true", help="structured output")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap


async def _store_or_none(resolver: PeerResolver) -> Optional[StoreInfo]:
    try:
        return await resolver.store_info()
    except OftPeerError as e:
        log.warning(f"Store PDA {resolver.store} unavailable: {e}", source="cli")
        return None


async def run(cfg: ScanConfig, client: Ledger) -> int:
    """Execute one invocation against ``client``; returns the process exit code."""
    try:
        program_id = Pubkey.from_string(cfg.program_id)
    except ValueError as e:
        log.error(f"invalid program id {cfg.program_id!r}: {e}", source="cli")
        return 1

    candidates: List[int] = list(cfg.candidate_eids) if cfg.candidate_eids is not None else list(CANDIDATE_EIDS)

    if cfg.scan_mode:
        try:
            accounts = await client.list_program_accounts(program_id)
        except OftPeerError as e:
            log.error(f"getProgramAccounts failed: {e}", source="cli")
            return 1
        emit(survey_program_accounts(cfg.rpc_endpoint, program_id, accounts), cfg.structured_output)
        return 0

    resolver = PeerResolver(client, program_id, record_len=cfg.record_len, layout_offset=cfg.layout_offset)
    store = await _store_or_none(resolver)

    if cfg.enumerate_mode:
        try:
            found = await resolver.enumerate(candidates)
        except OftPeerError as e:
            log.error(f"enumeration failed: {e}", source="cli")
            partial = DirectoryReport(cfg.rpc_endpoint, program_id, store, mode="enumerate", record_len=cfg.record_len)
            emit(partial, cfg.structured_output)
            return 1
        emit(
            DirectoryReport(
                rpc=cfg.rpc_endpoint,
                program_id=program_id,
                store=store,
                mode="enumerate",
                peers=found.peers,
                unattributed=found.unattributed,
                record_len=cfg.record_len,
                accounts_scanned=found.accounts_scanned,
                layout_mismatch=found.layout_mismatch,
            ),
            cfg.structured_output,
        )
        return 0

    if cfg.batch_mode:
        batch = await resolver.resolve_many(candidates)
        emit(
            DirectoryReport(
                rpc=cfg.rpc_endpoint,
                program_id=program_id,
                store=store,
                peers=batch.peers,
                failed_eids=batch.failed_eids,
            ),
            cfg.structured_output,
        )
        if candidates and len(batch.failed_eids) == len(set(candidates)):
            log.error("every EID lookup failed", source="cli")
            return 1
        return 0

    report = PeerReport(rpc=cfg.rpc_endpoint, program_id=program_id, store=store)
    try:
        report.peer = await resolver.resolve(cfg.eid)
    except (OftPeerError, ValueError) as e:
        log.error(f"EID {cfg.eid} lookup failed: {e}", source="cli")
        report.error = str(e)
        emit(report, cfg.structured_output)
        return 1
    emit(report, cfg.structured_output)
    return 0


async def _amain(cfg: ScanConfig) -> int:
    async with LedgerClient(cfg.endpoints, timeout=cfg.rpc_timeout) as client:
        return await run(cfg, client)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_env()
    configure_console_log(args.verbose)
    try:
        cfg = build_config(args)
    except ConfigError as e:
        print(USAGE, file=sys.stderr)
        log.error(str(e), source="cli")
        return 1
    try:
        return asyncio.run(_amain(cfg))
    except OftPeerError as e:
        log.exception(e, "unhandled error", source="cli")
        return 1


if __name__ == "__main__":
    sys.exit(main())
