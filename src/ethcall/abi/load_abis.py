"""Load ABIs"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from ethcall.base.errors import MalformedAbi

from .catalog import parse_abi_json


def load_all_abis(abi_folder: str) -> dict[str, list[dict[str, Any]]]:
    """Load all ABI JSONs given an abi_folder.

    Arguments
    ---------
    abi_folder: str
        The local directory that contains all abi json

    Returns
    -------
    dict[str, list[dict[str, Any]]]
        A dictionary with keys for each abi filename and value is the interface document of the file
    """
    abis = {}
    abi_files = _collect_files(abi_folder)
    loaded = []
    for abi_file in abi_files:
        file_name = os.path.splitext(os.path.basename(abi_file))[0]
        try:
            abi_data = load_abi_from_file(abi_file)
        except (ValueError, MalformedAbi) as err:
            logging.debug("JSON file %s did not contain an ABI.\nError: %s", abi_file, err)
            continue
        abis[file_name] = abi_data
        loaded.append(abi_file)
    logging.debug("Loaded ABI files %s", str(loaded))
    return abis


def load_abi_from_file(file_name: str) -> list[dict[str, Any]]:
    """Load an ABI JSON given an ABI file.

    The file either holds the interface document itself, or a compiler artifact with an "abi" field.

    Arguments
    ---------
    file_name: str
        The path to the json file

    Returns
    -------
    list[dict[str, Any]]
        The interface document
    """
    with open(file_name, mode="r", encoding="UTF-8") as file:
        data = json.load(file)
    if isinstance(data, dict):
        if "abi" not in data:
            raise ValueError(f"ABI for {file_name=} must contain an 'abi' field")
        data = data["abi"]
    return parse_abi_json(data)


def _collect_files(folder_path: str, extension: str = ".json") -> list[str]:
    """Load all files with the given extension into a list"""
    collected_files = []
    for root, _, files in os.walk(folder_path):
        for file in files:
            if file.endswith(extension):
                file_path = os.path.join(root, file)
                collected_files.append(file_path)
    return sorted(collected_files)
