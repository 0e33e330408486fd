from __future__ import annotations

import json
from pathlib import Path

import pytest

from hydrator.cli import build_parser, main
from hydrator.core.config import HydrationConfig
from hydrator.core.store import open_store
from hydrator.security.cipher import StateCipher

DOC = {"title": "groceries", "items": ["milk"]}


def _seed(data_dir: Path, **records: dict) -> None:
    store = open_store(HydrationConfig(data_dir=data_dir))
    try:
        for key, doc in records.items():
            store.put(key, doc, compress=True)
    finally:
        store.close()


def test_cli_help_includes_subcommands(capsys: pytest.CaptureFixture[str]) -> None:
    rc = main([])
    assert rc == 2
    out = capsys.readouterr().out
    for cmd in ("keys", "show", "verify", "delete", "clear", "keygen"):
        assert cmd in out


def test_cli_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip().startswith("hydrator v")


def test_cli_unknown_command_errors() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["nope"])
    with pytest.raises(SystemExit):
        main(["nope"])


def test_keys_and_show(temp_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(temp_dir, b=DOC, a={"v": 1})

    assert main(["--data-dir", str(temp_dir), "keys"]) == 0
    assert capsys.readouterr().out.split() == ["a", "b"]

    assert main(["--data-dir", str(temp_dir), "keys", "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"keys": ["a", "b"]}

    assert main(["--data-dir", str(temp_dir), "show", "b"]) == 0
    assert json.loads(capsys.readouterr().out) == DOC


def test_show_missing_key(temp_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(temp_dir)
    assert main(["--data-dir", str(temp_dir), "show", "nope"]) == 1
    assert "not found" in capsys.readouterr().err


def test_data_dir_from_env(temp_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(temp_dir, k=DOC)
    monkeypatch.setenv("HYDRATOR_DATA_DIR", str(temp_dir))
    assert main(["keys"]) == 0
    assert capsys.readouterr().out.split() == ["k"]


def test_verify_reports_corruption(temp_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(temp_dir, good=DOC, bad=DOC)
    assert main(["--data-dir", str(temp_dir), "verify"]) == 0
    capsys.readouterr()

    store = open_store(HydrationConfig(data_dir=temp_dir))
    try:
        rec = store.get_record("bad")
        assert rec is not None
        store.backend.write("bad", rec.model_copy(update={"hash": "0" * 64}))
    finally:
        store.close()

    assert main(["--data-dir", str(temp_dir), "verify", "--json"]) == 1
    results = json.loads(capsys.readouterr().out)["results"]
    assert results == {"bad": "corrupt", "good": "ok"}

    assert main(["--data-dir", str(temp_dir), "verify", "good"]) == 0
    assert main(["--data-dir", str(temp_dir), "verify", "missing"]) == 1


def test_delete_and_clear(temp_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(temp_dir, a=DOC, b=DOC, c=DOC)

    assert main(["--data-dir", str(temp_dir), "delete", "a"]) == 0
    assert main(["--data-dir", str(temp_dir), "delete", "a"]) == 1

    assert main(["--data-dir", str(temp_dir), "clear"]) == 2
    assert main(["--data-dir", str(temp_dir), "clear", "--yes"]) == 0
    assert "cleared 2 records" in capsys.readouterr().out

    store = open_store(HydrationConfig(data_dir=temp_dir))
    try:
        assert store.keys() == set()
    finally:
        store.close()


def test_keygen_prints_usable_key(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["keygen"]) == 0
    key = capsys.readouterr().out.strip()
    cipher = StateCipher(key)
    assert cipher.decrypt(cipher.encrypt("ok")) == "ok"
