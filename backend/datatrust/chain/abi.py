"""
Contract ABI registry.

Loads one JSON artifact per contract name (``<abi_dir>/<Name>.json`` with an
``"abi"`` array, the layout Hardhat and Truffle emit) and caches the parsed
interface for the lifetime of the process.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eth_utils import collapse_if_tuple, event_abi_to_log_topic, function_abi_to_4byte_selector

from datatrust.core.errors import ArtifactMalformedError, ArtifactMissingError, InvalidArgumentError
from datatrust.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AbiParam:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True, slots=True)
class FunctionSpec:
    """A callable contract function with its precomputed selector."""

    name: str
    inputs: tuple[AbiParam, ...]
    outputs: tuple[AbiParam, ...]
    state_mutability: str
    selector: bytes

    @property
    def input_types(self) -> tuple[str, ...]:
        return tuple(param.type for param in self.inputs)

    @property
    def output_types(self) -> tuple[str, ...]:
        return tuple(param.type for param in self.outputs)

    @property
    def is_read_only(self) -> bool:
        return self.state_mutability in ("view", "pure")


@dataclass(frozen=True, slots=True)
class EventSpec:
    """An emitted event with its topic-0 hash."""

    name: str
    inputs: tuple[AbiParam, ...]
    topic: bytes

    @property
    def input_types(self) -> tuple[str, ...]:
        return tuple(param.type for param in self.inputs)

    @property
    def indexed_inputs(self) -> tuple[AbiParam, ...]:
        return tuple(param for param in self.inputs if param.indexed)

    @property
    def data_inputs(self) -> tuple[AbiParam, ...]:
        return tuple(param for param in self.inputs if not param.indexed)


@dataclass(frozen=True, slots=True)
class ContractInterface:
    """Parsed interface of one contract."""

    name: str
    functions: Mapping[str, FunctionSpec]
    events: Mapping[str, EventSpec]

    def function(self, name: str) -> FunctionSpec:
        try:
            return self.functions[name]
        except KeyError:
            raise InvalidArgumentError(f"{self.name} has no function '{name}'") from None

    def event(self, name: str) -> EventSpec:
        try:
            return self.events[name]
        except KeyError:
            raise InvalidArgumentError(f"{self.name} has no event '{name}'") from None


def _params(entries: list[dict[str, Any]]) -> tuple[AbiParam, ...]:
    return tuple(
        AbiParam(
            name=str(entry.get("name", "")),
            type=collapse_if_tuple(entry),
            indexed=bool(entry.get("indexed", False)),
        )
        for entry in entries
    )


def parse_interface(name: str, abi: list[dict[str, Any]]) -> ContractInterface:
    """Build a ContractInterface from a raw ABI array."""
    functions: dict[str, FunctionSpec] = {}
    events: dict[str, EventSpec] = {}
    try:
        for element in abi:
            element_type = element.get("type", "function")
            element_name = element.get("name", "")
            if element_type == "function":
                if element_name in functions:
                    raise ArtifactMalformedError(
                        f"{name}: overloaded function '{element_name}' is not supported"
                    )
                functions[element_name] = FunctionSpec(
                    name=element_name,
                    inputs=_params(element.get("inputs", [])),
                    outputs=_params(element.get("outputs", [])),
                    state_mutability=element.get("stateMutability", "nonpayable"),
                    selector=function_abi_to_4byte_selector(element),
                )
            elif element_type == "event":
                if element.get("anonymous"):
                    continue
                events[element_name] = EventSpec(
                    name=element_name,
                    inputs=_params(element.get("inputs", [])),
                    topic=event_abi_to_log_topic(element),
                )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ArtifactMalformedError(f"{name}: invalid ABI entry ({exc})") from exc
    return ContractInterface(name=name, functions=functions, events=events)


class AbiRegistry:
    """Per-process cache of contract interfaces loaded from disk.

    Entries are write-once: the first lookup for a name reads and parses the
    artifact under a lock, every later lookup is a plain dict read.
    """

    def __init__(self, abi_dir: Path | str) -> None:
        self._abi_dir = Path(abi_dir)
        self._cache: dict[str, ContractInterface] = {}
        self._lock = threading.Lock()

    @property
    def abi_dir(self) -> Path:
        return self._abi_dir

    def load(self, contract_name: str) -> ContractInterface:
        cached = self._cache.get(contract_name)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(contract_name)
            if cached is None:
                cached = self._read_artifact(contract_name)
                self._cache[contract_name] = cached
        return cached

    def available(self) -> list[str]:
        """Names of every contract with an artifact in the ABI directory."""
        if not self._abi_dir.is_dir():
            return []
        return sorted(path.stem for path in self._abi_dir.glob("*.json"))

    def _read_artifact(self, contract_name: str) -> ContractInterface:
        path = self._abi_dir / f"{contract_name}.json"
        if not path.is_file():
            raise ArtifactMissingError(f"ABI artifact not found for contract '{contract_name}'")
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ArtifactMalformedError(
                f"ABI artifact for '{contract_name}' is not valid JSON: {exc}"
            ) from exc
        if not isinstance(document, dict) or not isinstance(document.get("abi"), list):
            raise ArtifactMalformedError(
                f"ABI artifact for '{contract_name}' has no 'abi' array"
            )

        interface = parse_interface(contract_name, document["abi"])
        logger.info(
            "abi_loaded",
            contract=contract_name,
            functions=len(interface.functions),
            events=len(interface.events),
        )
        return interface
