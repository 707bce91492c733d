from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional, Union

from rich import box
from rich.console import Console
from rich.table import Table

from oft_peer.models import DirectoryReport, PeerReport, ResolvedPeer, StoreInfo
from oft_peer.scan import SurveyReport

Report = Union[PeerReport, DirectoryReport, SurveyReport]


def _console() -> Console:
    return Console(highlight=False, soft_wrap=True)


def _short(s: Optional[str]) -> str:
    if not s:
        return "-"
    return s[:6] + "..." + s[-6:] if len(s) > 16 else s


def kv_lines(data: Dict[str, Any], width: int = 12) -> None:
    cn = _console()
    for k, v in data.items():
        cn.print(f"{k:<{width}}: {v}")


def rows_table(title: str, columns: Iterable[str], rows: Iterable[Iterable[Any]]) -> None:
    t = Table(title=title, box=box.MINIMAL_DOUBLE_HEAD, expand=False)
    for col in columns:
        t.add_column(str(col))
    for r in rows:
        t.add_row(*[str(x) for x in r])
    _console().print(t)


def _store_line(store: Optional[StoreInfo]) -> str:
    if store is None:
        return "unavailable"
    return f"{store.address} exists = {store.exists} owner = {store.owner}"


def _endian(row: ResolvedPeer) -> str:
    if row.byte_order is None:
        return "?"
    return row.byte_order.value + ("!" if row.ambiguous else "")


def render_peer(report: PeerReport) -> None:
    kv_lines({"RPC": report.rpc, "Program": str(report.program_id), "Store PDA": _store_line(report.store)})
    row = report.peer
    cn = _console()
    if row is None:
        cn.print(f"[red]lookup failed:[/red] {report.error}")
        return
    cn.print(f"Peer EID={row.eid}  exists={row.exists}  seed={_endian(row) if row.exists else None}  PDA={row.address}")
    if row.ambiguous:
        cn.print("[yellow]warning:[/yellow] byte order is ambiguous for this EID")
    kv_lines(
        {
            "peer(bytes32)": row.candidate.bytes32_hex if row.candidate else None,
            "peer(EVM)": row.remote_address,
        },
        width=13,
    )


def render_directory(report: DirectoryReport) -> None:
    header: Dict[str, Any] = {
        "RPC": report.rpc,
        "Program": str(report.program_id),
        "Store PDA": _store_line(report.store),
    }
    if report.mode == "enumerate":
        header["Accounts"] = f"{report.accounts_scanned} scanned, len={report.record_len}"
    header["Peers"] = report.peers_found
    kv_lines(header, width=10)

    cn = _console()
    if report.layout_mismatch:
        cn.print(
            f"[yellow]No {report.record_len}-byte accounts found; program may not be the expected OFT "
            f"or the layout differs.[/yellow]"
        )
    rows = [
        (r.eid, _endian(r), str(r.address), r.remote_address or "-", r.candidate.bytes32_hex if r.candidate else "-")
        for r in report.peers
    ]
    if rows:
        rows_table("EID → Peer map", ["EID", "Seed", "PDA", "EVM", "bytes32"], rows)
    if report.unattributed:
        rows_table(
            "Unattributed Peer accounts (extend --eidlist)",
            ["EID", "PDA", "EVM", "All candidates"],
            [
                ("UNKNOWN_EID", str(r.address), r.remote_address or "-", ", ".join(c.evm for c in r.candidates) or "-")
                for r in report.unattributed
            ],
        )
    if report.failed_eids:
        cn.print(f"[yellow]Skipped EIDs (RPC errors):[/yellow] {', '.join(str(e) for e in report.failed_eids)}")


def render_survey(report: SurveyReport) -> None:
    kv_lines({"RPC": report.rpc, "Program": str(report.program_id), "Accounts": report.total_accounts}, width=9)
    rows_table(
        "Discriminator groups",
        ["disc", "count", "dataLens"],
        [(g.disc, g.count, ",".join(str(s) for s in g.sizes)) for g in report.groups],
    )
    cn = _console()
    if not report.candidates:
        cn.print("No bytes32(EVM) patterns found in program-owned accounts.")
        return
    cn.print("\n== Candidate peers (bytes32(EVM) found) ==")
    for c in report.candidates:
        cn.print(f"• {_short(str(c.address))}  len={c.data_len}  disc={c.disc}  peers={len(c.peers)}")
        for p in c.peers:
            cn.print(f"    - off={p.offset:>5}  evm={p.evm}  b32={p.bytes32_hex}")


def emit(report: Report, structured: bool = False) -> None:
    """Print ``report`` as indented JSON or as human-readable lines."""
    if structured:
        print(json.dumps(report.to_dict(), indent=2))
        return
    if isinstance(report, PeerReport):
        render_peer(report)
    elif isinstance(report, DirectoryReport):
        render_directory(report)
    else:
        render_survey(report)
