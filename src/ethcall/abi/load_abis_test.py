"""Tests for load_abis.py"""

from __future__ import annotations

import json

import pytest

from ethcall.base.errors import MalformedAbi
from ethcall.test_fixtures import ONESPLIT_ABI

from .load_abis import load_abi_from_file, load_all_abis


def test_load_bare_and_artifact_files(tmp_path):
    """Files hold either the document or a compiler artifact with an abi field."""
    (tmp_path / "OneSplit.json").write_text(json.dumps(ONESPLIT_ABI))
    nested = tmp_path / "out" / "Token.sol"
    nested.mkdir(parents=True)
    (nested / "Token.json").write_text(json.dumps({"abi": ONESPLIT_ABI[:2], "bytecode": "0x"}))
    (tmp_path / "notes.txt").write_text("not json")

    abis = load_all_abis(str(tmp_path))

    assert set(abis) == {"OneSplit", "Token"}
    assert abis["OneSplit"] == ONESPLIT_ABI
    assert abis["Token"] == ONESPLIT_ABI[:2]


def test_files_without_abi_are_skipped(tmp_path):
    """Json files that hold no interface document are skipped."""
    (tmp_path / "config.json").write_text(json.dumps({"rpc": "http://localhost:8545"}))
    (tmp_path / "number.json").write_text("5")
    assert not load_all_abis(str(tmp_path))


def test_load_abi_from_file_errors(tmp_path):
    """A single file must hold an abi."""
    artifact = tmp_path / "artifact.json"
    artifact.write_text(json.dumps({"bytecode": "0x"}))
    with pytest.raises(ValueError):
        load_abi_from_file(str(artifact))
    number = tmp_path / "number.json"
    number.write_text("5")
    with pytest.raises(MalformedAbi):
        load_abi_from_file(str(number))
