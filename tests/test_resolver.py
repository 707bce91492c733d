import asyncio

import pytest
from solders.pubkey import Pubkey

from oft_peer.errors import RemoteFetchFailure
from oft_peer.models import ByteOrder
from oft_peer.pdas import derive_store_pda, peer_pda_pair
from oft_peer.resolver import PeerResolver

from conftest import FakeLedger, peer_buffer


def _pair(program_id, eid):
    return peer_pda_pair(program_id, derive_store_pda(program_id), eid)


@pytest.mark.parametrize("order", [ByteOrder.LE, ByteOrder.BE])
def test_targeted_lookup_finds_peer(program_id, order):
    addr = _pair(program_id, 30109)[order]
    ledger = FakeLedger({addr: peer_buffer()})

    row = asyncio.run(PeerResolver(ledger, program_id).resolve(30109))

    assert row.exists
    assert row.remote_address == "0xabababababababababababababababababababab"
    assert row.byte_order == order
    assert row.address == addr
    assert not row.ambiguous
    assert row.data_len == 1654


def test_targeted_lookup_without_padded_slot(program_id):
    addr = _pair(program_id, 30109)[ByteOrder.LE]
    ledger = FakeLedger({addr: b"\xff" * 1654})

    row = asyncio.run(PeerResolver(ledger, program_id).resolve(30109))

    assert row.exists
    assert row.remote_address is None
    assert row.candidate is None


def test_targeted_lookup_missing_account(program_id):
    ledger = FakeLedger()
    row = asyncio.run(PeerResolver(ledger, program_id).resolve(30109))

    assert not row.exists
    assert row.address is None
    assert row.byte_order is None
    pair = _pair(program_id, 30109)
    assert set(ledger.fetched) == {pair[ByteOrder.LE], pair[ByteOrder.BE]}


def test_both_orders_present_is_flagged(program_id):
    pair = _pair(program_id, 30110)
    ledger = FakeLedger({
        pair[ByteOrder.LE]: peer_buffer(evm=b"\x01" * 20),
        pair[ByteOrder.BE]: peer_buffer(evm=b"\x02" * 20),
    })

    row = asyncio.run(PeerResolver(ledger, program_id).resolve(30110))

    assert row.ambiguous
    assert row.byte_order == ByteOrder.LE
    assert row.remote_address == "0x" + "01" * 20


def test_palindromic_eid_has_unknown_order(program_id):
    addr = _pair(program_id, 0)[ByteOrder.LE]
    ledger = FakeLedger({addr: peer_buffer()})

    row = asyncio.run(PeerResolver(ledger, program_id).resolve(0))

    assert row.exists and row.ambiguous
    assert row.byte_order is None
    assert ledger.fetched == [addr]


def test_layout_offset_is_preferred(program_id):
    addr = _pair(program_id, 30109)[ByteOrder.LE]
    buf = bytearray(b"\xff" * 1654)
    buf[40:72] = bytes(12) + b"\x0a" * 20
    buf[200:232] = bytes(12) + b"\x0b" * 20
    ledger = FakeLedger({addr: bytes(buf)})

    scan_row = asyncio.run(PeerResolver(ledger, program_id).resolve(30109))
    fixed_row = asyncio.run(PeerResolver(ledger, program_id, layout_offset=200).resolve(30109))

    assert scan_row.candidate.offset == 40
    assert fixed_row.candidate.offset == 200


def test_targeted_fetch_failure_propagates(program_id):
    pair = _pair(program_id, 30109)
    ledger = FakeLedger(fail=[pair[ByteOrder.BE]])
    with pytest.raises(RemoteFetchFailure):
        asyncio.run(PeerResolver(ledger, program_id).resolve(30109))


def test_resolve_many_keeps_going_after_failures(program_id):
    a = _pair(program_id, 30101)[ByteOrder.LE]
    b = _pair(program_id, 30184)[ByteOrder.BE]
    broken = _pair(program_id, 30110)[ByteOrder.LE]
    ledger = FakeLedger({a: peer_buffer(evm=b"\x01" * 20), b: peer_buffer(evm=b"\x02" * 20)}, fail=[broken])

    batch = asyncio.run(PeerResolver(ledger, program_id).resolve_many([30184, 30110, 30101, 30109, 30101]))

    assert [r.eid for r in batch.peers] == [30101, 30184]
    assert [r.byte_order for r in batch.peers] == [ByteOrder.LE, ByteOrder.BE]
    assert batch.failed_eids == [30110]


def test_enumerate_attributes_and_keeps_unknown(program_id):
    known = _pair(program_id, 30145)[ByteOrder.BE]
    stranger = Pubkey.new_unique()
    small = Pubkey.new_unique()
    ledger = FakeLedger({
        known: peer_buffer(evm=b"\x11" * 20),
        stranger: peer_buffer(evm=b"\x22" * 20),
        small: peer_buffer(length=200),
    })

    found = asyncio.run(PeerResolver(ledger, program_id).enumerate([30101, 30145]))

    assert found.accounts_scanned == 3
    assert not found.layout_mismatch
    assert len(found.peers) == 1
    peer = found.peers[0]
    assert (peer.eid, peer.byte_order, peer.address) == (30145, ByteOrder.BE, known)
    assert peer.remote_address == "0x" + "11" * 20

    assert len(found.unattributed) == 1
    lost = found.unattributed[0]
    assert lost.eid is None and not lost.attributed
    assert lost.address == stranger
    assert lost.remote_address == "0x" + "22" * 20


def test_enumerate_sorts_by_eid(program_id):
    accounts = {_pair(program_id, eid)[ByteOrder.LE]: peer_buffer(evm=bytes([eid % 200 + 1]) * 20) for eid in (30184, 30101, 30145)}
    found = asyncio.run(PeerResolver(FakeLedger(accounts), program_id).enumerate([30101, 30145, 30184]))
    assert [r.eid for r in found.peers] == [30101, 30145, 30184]


def test_enumerate_flags_layout_mismatch(program_id):
    ledger = FakeLedger({Pubkey.new_unique(): peer_buffer(length=900)})
    found = asyncio.run(PeerResolver(ledger, program_id).enumerate([30101]))
    assert found.layout_mismatch
    assert found.peers == [] and found.unattributed == []

    empty = asyncio.run(PeerResolver(FakeLedger(), program_id).enumerate([30101]))
    assert not empty.layout_mismatch


def test_enumerate_honours_record_len(program_id):
    addr = _pair(program_id, 30101)[ByteOrder.LE]
    ledger = FakeLedger({addr: peer_buffer(length=900)})
    found = asyncio.run(PeerResolver(ledger, program_id, record_len=900).enumerate([30101]))
    assert [r.eid for r in found.peers] == [30101]


def test_store_info(program_id):
    store = derive_store_pda(program_id)
    info = asyncio.run(PeerResolver(FakeLedger({store: b"\x00" * 64}), program_id).store_info())
    assert info.exists and info.address == store
    assert info.owner == program_id

    missing = asyncio.run(PeerResolver(FakeLedger(), program_id).store_info())
    assert not missing.exists and missing.owner is None
