"""
Typed contract bindings.

Every function and event the services use is declared here as a frozen
dataclass whose fields follow the ABI parameter order. The set is closed:
``verify_bindings`` checks each declaration against the loaded artifacts at
startup so a drifted ABI fails the boot rather than a request.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Self

from datatrust.chain.abi import AbiRegistry
from datatrust.core.errors import ArtifactMalformedError, InvalidArgumentError

INSTITUTION_REGISTRY = "InstitutionRegistry"
DATA_VAULT = "DataVaultContract"
ACCESS_CONTROL = "AccessControlContract"
AUDIT_TRAIL = "AuditTrailContract"

CONTRACT_NAMES = (INSTITUTION_REGISTRY, DATA_VAULT, ACCESS_CONTROL, AUDIT_TRAIL)


class ContractCall:
    """A function call bound to a contract; fields are the ABI arguments."""

    __slots__ = ()

    contract: ClassVar[str]
    function: ClassVar[str]
    input_types: ClassVar[tuple[str, ...]]

    def args(self) -> tuple[Any, ...]:
        return tuple(getattr(self, field.name) for field in fields(self))  # type: ignore[arg-type]


class ContractRead(ContractCall):
    __slots__ = ()

    output_types: ClassVar[tuple[str, ...]]


class ContractWrite(ContractCall):
    __slots__ = ()


class ContractEvent:
    """A decoded event payload; fields follow the ABI input order."""

    __slots__ = ()

    contract: ClassVar[str]
    event: ClassVar[str]
    input_types: ClassVar[tuple[str, ...]]

    @classmethod
    def from_values(cls, values: Sequence[Any]) -> Self:
        return cls(*values)


# =============================================================================
# InstitutionRegistry
# =============================================================================


@dataclass(frozen=True, slots=True)
class RegisterInstitution(ContractWrite):
    contract = INSTITUTION_REGISTRY
    function = "registerInstitution"
    input_types = ("string", "string", "string", "string")

    name: str
    institution_type: str
    registration_number: str
    metadata_uri: str


@dataclass(frozen=True, slots=True)
class UpdateInstitution(ContractWrite):
    contract = INSTITUTION_REGISTRY
    function = "updateInstitution"
    input_types = ("string", "string")

    name: str
    metadata_uri: str


@dataclass(frozen=True, slots=True)
class DeactivateInstitution(ContractWrite):
    contract = INSTITUTION_REGISTRY
    function = "deactivateInstitution"
    input_types = ("address",)

    institution_address: str


@dataclass(frozen=True, slots=True)
class GetInstitution(ContractRead):
    contract = INSTITUTION_REGISTRY
    function = "getInstitution"
    input_types = ("address",)
    output_types = ("string", "string", "string", "address", "uint256", "bool", "string")

    institution_address: str


@dataclass(frozen=True, slots=True)
class GetTotalInstitutions(ContractRead):
    contract = INSTITUTION_REGISTRY
    function = "getTotalInstitutions"
    input_types = ()
    output_types = ("uint256",)


@dataclass(frozen=True, slots=True)
class VerifyInstitution(ContractRead):
    contract = INSTITUTION_REGISTRY
    function = "verifyInstitution"
    input_types = ("address",)
    output_types = ("bool",)

    institution_address: str


@dataclass(frozen=True, slots=True)
class InstitutionRegistered(ContractEvent):
    contract = INSTITUTION_REGISTRY
    event = "InstitutionRegistered"
    input_types = ("address", "string", "string", "uint256")

    institution_address: str
    name: str
    institution_type: str
    timestamp: int


# =============================================================================
# DataVaultContract
# =============================================================================


@dataclass(frozen=True, slots=True)
class UploadData(ContractWrite):
    contract = DATA_VAULT
    function = "uploadData"
    input_types = (
        "string",
        "bytes32",
        "string",
        "string",
        "uint256",
        "string",
        "string",
        "string",
        "string",
    )

    record_id: str
    data_hash: bytes
    file_name: str
    file_type: str
    file_size: int
    storage_locator: str
    encryption_algorithm: str
    category: str
    metadata_uri: str


@dataclass(frozen=True, slots=True)
class UpdateDataMetadata(ContractWrite):
    contract = DATA_VAULT
    function = "updateDataMetadata"
    input_types = ("string", "string")

    record_id: str
    metadata_uri: str


@dataclass(frozen=True, slots=True)
class DeactivateData(ContractWrite):
    contract = DATA_VAULT
    function = "deactivateData"
    input_types = ("string",)

    record_id: str


@dataclass(frozen=True, slots=True)
class GetDataRecord(ContractRead):
    contract = DATA_VAULT
    function = "getDataRecord"
    input_types = ("string",)
    output_types = (
        "bytes32",
        "address",
        "string",
        "string",
        "uint256",
        "string",
        "string",
        "string",
        "string",
        "uint256",
        "bool",
    )

    record_id: str


@dataclass(frozen=True, slots=True)
class GetRecordsByOwner(ContractRead):
    contract = DATA_VAULT
    function = "getRecordsByOwner"
    input_types = ("address",)
    output_types = ("string[]",)

    owner: str


@dataclass(frozen=True, slots=True)
class VerifyData(ContractRead):
    contract = DATA_VAULT
    function = "verifyData"
    input_types = ("string", "bytes32")
    output_types = ("bool",)

    record_id: str
    data_hash: bytes


@dataclass(frozen=True, slots=True)
class GetTotalRecords(ContractRead):
    contract = DATA_VAULT
    function = "getTotalRecords"
    input_types = ()
    output_types = ("uint256",)


@dataclass(frozen=True, slots=True)
class DataUploaded(ContractEvent):
    contract = DATA_VAULT
    event = "DataUploaded"
    input_types = ("string", "address", "string", "uint256")

    record_id: str
    owner: str
    file_name: str
    timestamp: int


# =============================================================================
# AccessControlContract
# =============================================================================


@dataclass(frozen=True, slots=True)
class GrantAccess(ContractWrite):
    contract = ACCESS_CONTROL
    function = "grantAccess"
    input_types = ("string", "address", "uint256", "string", "string")

    record_id: str
    grantee: str
    expires_at: int
    permission_type: str
    grant_reason: str


@dataclass(frozen=True, slots=True)
class RevokeAccess(ContractWrite):
    contract = ACCESS_CONTROL
    function = "revokeAccess"
    input_types = ("string", "address")

    record_id: str
    grantee: str


@dataclass(frozen=True, slots=True)
class UpdatePermission(ContractWrite):
    contract = ACCESS_CONTROL
    function = "updatePermission"
    input_types = ("string", "address", "uint256")

    record_id: str
    grantee: str
    new_expires_at: int


@dataclass(frozen=True, slots=True)
class GetPermission(ContractRead):
    contract = ACCESS_CONTROL
    function = "getPermission"
    input_types = ("string", "address")
    output_types = ("address", "string", "string", "uint256", "uint256", "bool")

    record_id: str
    grantee: str


@dataclass(frozen=True, slots=True)
class AccessGranted(ContractEvent):
    contract = ACCESS_CONTROL
    event = "AccessGranted"
    input_types = ("string", "address", "address", "string", "uint256")

    record_id: str
    owner: str
    grantee: str
    permission_type: str
    expires_at: int


# =============================================================================
# AuditTrailContract
# =============================================================================


@dataclass(frozen=True, slots=True)
class CreateLog(ContractWrite):
    contract = AUDIT_TRAIL
    function = "createLog"
    input_types = (
        "uint8",
        "address",
        "string",
        "string",
        "bytes32",
        "bool",
        "string",
        "string",
    )

    action_type: int
    target_address: str
    record_id: str
    action_details: str
    data_hash: bytes
    success: bool
    ip_address: str
    user_agent: str


@dataclass(frozen=True, slots=True)
class GetAuditLog(ContractRead):
    contract = AUDIT_TRAIL
    function = "getAuditLog"
    input_types = ("uint256",)
    output_types = (
        "uint8",
        "address",
        "address",
        "string",
        "string",
        "bytes32",
        "bool",
        "uint256",
        "string",
        "string",
    )

    log_id: int


@dataclass(frozen=True, slots=True)
class GetTotalLogs(ContractRead):
    contract = AUDIT_TRAIL
    function = "getTotalLogs"
    input_types = ()
    output_types = ("uint256",)


@dataclass(frozen=True, slots=True)
class AuditLogCreated(ContractEvent):
    contract = AUDIT_TRAIL
    event = "AuditLogCreated"
    input_types = ("uint256", "address", "uint8", "uint256")

    log_id: int
    actor: str
    action_type: int
    timestamp: int


READ_BINDINGS: tuple[type[ContractRead], ...] = (
    GetInstitution,
    GetTotalInstitutions,
    VerifyInstitution,
    GetDataRecord,
    GetRecordsByOwner,
    VerifyData,
    GetTotalRecords,
    GetPermission,
    GetAuditLog,
    GetTotalLogs,
)

WRITE_BINDINGS: tuple[type[ContractWrite], ...] = (
    RegisterInstitution,
    UpdateInstitution,
    DeactivateInstitution,
    UploadData,
    UpdateDataMetadata,
    DeactivateData,
    GrantAccess,
    RevokeAccess,
    UpdatePermission,
    CreateLog,
)

EVENT_BINDINGS: tuple[type[ContractEvent], ...] = (
    InstitutionRegistered,
    DataUploaded,
    AccessGranted,
    AuditLogCreated,
)


def verify_bindings(registry: AbiRegistry) -> None:
    """Check every declared binding against the loaded ABI artifacts."""
    problems: list[str] = []
    for binding in (*READ_BINDINGS, *WRITE_BINDINGS):
        interface = registry.load(binding.contract)
        try:
            spec = interface.function(binding.function)
        except InvalidArgumentError as exc:
            problems.append(str(exc))
            continue
        if spec.input_types != binding.input_types:
            problems.append(
                f"{binding.contract}.{binding.function} inputs {spec.input_types} "
                f"!= declared {binding.input_types}"
            )
        if issubclass(binding, ContractRead):
            if spec.output_types != binding.output_types:
                problems.append(
                    f"{binding.contract}.{binding.function} outputs {spec.output_types} "
                    f"!= declared {binding.output_types}"
                )
            if not spec.is_read_only:
                problems.append(f"{binding.contract}.{binding.function} is not a view function")
        elif spec.is_read_only:
            problems.append(f"{binding.contract}.{binding.function} is a view function")
        if len(fields(binding)) != len(binding.input_types):  # type: ignore[arg-type]
            problems.append(f"{binding.__name__} fields do not match its input types")

    for event in EVENT_BINDINGS:
        interface = registry.load(event.contract)
        try:
            event_spec = interface.event(event.event)
        except InvalidArgumentError as exc:
            problems.append(str(exc))
            continue
        if event_spec.input_types != event.input_types:
            problems.append(
                f"{event.contract}.{event.event} inputs {event_spec.input_types} "
                f"!= declared {event.input_types}"
            )
        for param in event_spec.indexed_inputs:
            if param.type in ("string", "bytes") or param.type.endswith("]"):
                problems.append(
                    f"{event.contract}.{event.event} indexes dynamic parameter '{param.name}'"
                )

    if problems:
        raise ArtifactMalformedError("ABI bindings out of date: " + "; ".join(problems))
