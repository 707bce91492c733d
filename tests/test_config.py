import argparse
import importlib
import textwrap
from dataclasses import FrozenInstanceError

import pytest

from oft_peer import constants
from oft_peer.config import FileSettings, ScanConfig, build_config, load_env, load_file_settings, parse_eid_list
from oft_peer.constants import DEFAULT_EID, DEFAULT_RPC_URL
from oft_peer.errors import ConfigError

PID = "YALAoTj27wZ1vsu8V8kbk79Dupx6a7ubQFKMfciYKh8"


def _args(**kw):
    base = dict(
        program=None, eid=None, list=False, eidlist=None, enumerate=False, scan=False,
        record_len=None, layout_offset=None, rpc=None, config=None, json=False, verbose=False,
    )
    base.update(kw)
    return argparse.Namespace(**base)


def test_parse_eid_list_skips_garbage():
    assert parse_eid_list("30101, 30109,,abc, 30184 ") == [30101, 30109, 30184]
    assert parse_eid_list("") == []
    assert parse_eid_list(None) == []
    assert parse_eid_list([30101, "30102"]) == [30101, 30102]


def test_parse_eid_list_rejects_out_of_range():
    with pytest.raises(ConfigError):
        parse_eid_list("30101,4294967296")


def test_defaults():
    cfg = build_config(_args(program=PID), env={})
    assert cfg.program_id == PID
    assert cfg.rpc_endpoint == DEFAULT_RPC_URL
    assert cfg.eid == DEFAULT_EID
    assert cfg.candidate_eids is None
    assert cfg.record_len == 1654
    assert not cfg.batch_mode and not cfg.structured_output


def test_missing_program_id():
    with pytest.raises(ConfigError):
        build_config(_args(), env={})


def test_env_fills_gaps():
    env = {"OFT_PROGRAM_ID": PID, "RPC_URL": "https://rpc.example", "RPC_LIST": "https://b.example, https://c.example"}
    cfg = build_config(_args(list=True, json=True, eidlist="1,2"), env=env)
    assert cfg.program_id == PID
    assert cfg.rpc_endpoint == "https://rpc.example"
    assert cfg.candidate_eids == (1, 2)
    assert cfg.batch_mode and cfg.structured_output
    assert cfg.endpoints == ["https://rpc.example", "https://b.example", "https://c.example", DEFAULT_RPC_URL]


def test_cli_beats_file_beats_env(tmp_path, monkeypatch):
    monkeypatch.setenv("HELIUS_RPC", "https://helius.example")
    p = tmp_path / "peer.yaml"
    p.write_text(textwrap.dedent(f"""
    oft_peer:
      rpc: "ENV:HELIUS_RPC"
      program: {PID}
      eid: 30110
      eidlist: "30101, 30102"
      record_len: 900
      timeout: 5
    """), encoding="utf-8")

    cfg = build_config(_args(config=str(p), eid=30184), env={"RPC_URL": "https://env.example"})
    assert cfg.rpc_endpoint == "https://helius.example"
    assert cfg.eid == 30184
    assert cfg.candidate_eids == (30101, 30102)
    assert cfg.record_len == 900
    assert cfg.rpc_timeout == 5.0


def test_file_missing_section(tmp_path):
    p = tmp_path / "peer.yaml"
    p.write_text("other: true", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_file_settings(p)


def test_file_missing_env_placeholder(tmp_path, monkeypatch):
    monkeypatch.delenv("NOPE_RPC", raising=False)
    p = tmp_path / "peer.yaml"
    p.write_text("oft_peer:\n  rpc: ENV:NOPE_RPC\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_file_settings(p)


def test_file_invalid_value(tmp_path):
    p = tmp_path / "peer.yaml"
    p.write_text("oft_peer:\n  eid: -5\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_file_settings(p)


def test_file_not_found(tmp_path):
    with pytest.raises(ConfigError):
        load_file_settings(tmp_path / "absent.yaml")


def test_file_settings_rpc_list_string():
    fs = FileSettings(rpc_list="https://a.example, https://b.example")
    assert fs.rpc_list == ["https://a.example", "https://b.example"]


def test_bad_record_len():
    with pytest.raises(ConfigError):
        build_config(_args(program=PID, record_len=0), env={})


def test_bad_record_len_from_env_is_config_error():
    with pytest.raises(ConfigError):
        build_config(_args(program=PID), env={"OFT_RECORD_LEN": "abc"})


def test_record_len_constant_ignores_env(monkeypatch):
    monkeypatch.setenv("OFT_RECORD_LEN", "abc")
    importlib.reload(constants)
    assert constants.PEER_RECORD_LEN == 1654


def test_load_env_reads_dotenv_from_working_directory(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text(f"OFT_PROGRAM_ID={PID}\nRPC_URL=https://rpc.example\n")
    monkeypatch.chdir(tmp_path)

    load_env()

    cfg = build_config(_args())
    assert cfg.program_id == PID
    assert cfg.rpc_endpoint == "https://rpc.example"


def test_load_env_keeps_exported_values(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("RPC_URL=https://from-file.example\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RPC_URL", "https://exported.example")

    load_env()

    cfg = build_config(_args(program=PID))
    assert cfg.rpc_endpoint == "https://exported.example"


def test_scan_config_is_frozen():
    cfg = ScanConfig(program_id=PID)
    with pytest.raises(FrozenInstanceError):
        cfg.eid = 1  # type: ignore[misc]
