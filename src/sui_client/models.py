"""Shared data models for the Sui ledger client.

Pydantic-based models parsed straight from JSON-RPC payloads. Field aliases
follow the node's camelCase keys; Python code uses the snake_case names.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid integer: {value}")
    try:
        return int(str(value))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid integer: {value}") from exc


class EnvConfig(BaseModel):
    """Deployment identifiers of the lending market."""

    model_config = ConfigDict(frozen=True)

    package_id: str
    lending_market_id: str
    lending_market_type: str


class ObjectRef(BaseModel):
    """Exact (id, version, digest) reference to an object."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    object_id: str = Field(alias="objectId")
    version: int
    digest: str

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> int:
        return _to_int(v)


class CoinRecord(BaseModel):
    """One coin object held by a wallet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    object_id: str = Field(alias="coinObjectId")
    coin_type: str = Field(alias="coinType")
    balance: int
    version: int
    digest: str

    @field_validator("balance", "version", mode="before")
    @classmethod
    def validate_amounts(cls, v: Any) -> int:
        """Validate balances and versions are non-negative integers."""
        parsed = _to_int(v)
        if parsed < 0:
            raise ValueError(f"Value cannot be negative: {v}")
        return parsed

    def to_ref(self) -> ObjectRef:
        return ObjectRef(object_id=self.object_id, version=self.version, digest=self.digest)


class ObjectSnapshot(BaseModel):
    """Object data as returned by ``sui_getObject``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    object_id: str = Field(alias="objectId")
    version: int
    digest: str
    type: str | None = None
    owner: Any = None
    content: Mapping[str, Any] | None = None

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> int:
        return _to_int(v)

    @property
    def is_shared(self) -> bool:
        return isinstance(self.owner, Mapping) and "Shared" in self.owner

    @property
    def initial_shared_version(self) -> int | None:
        if not self.is_shared:
            return None
        shared = self.owner["Shared"]
        return _to_int(shared.get("initial_shared_version"))

    def to_ref(self) -> ObjectRef:
        return ObjectRef(object_id=self.object_id, version=self.version, digest=self.digest)


class ExecutionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == "success"


class GasCostSummary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    computation_cost: int = Field(0, alias="computationCost")
    storage_cost: int = Field(0, alias="storageCost")
    storage_rebate: int = Field(0, alias="storageRebate")
    non_refundable_storage_fee: int = Field(0, alias="nonRefundableStorageFee")

    @field_validator(
        "computation_cost",
        "storage_cost",
        "storage_rebate",
        "non_refundable_storage_fee",
        mode="before",
    )
    @classmethod
    def validate_costs(cls, v: Any) -> int:
        return _to_int(v)

    @property
    def net_cost(self) -> int:
        return self.computation_cost + self.storage_cost - self.storage_rebate


class OwnedObjectRef(BaseModel):
    """Object reference plus owner, as listed in transaction effects."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    owner: Any = None
    reference: ObjectRef

    @property
    def object_id(self) -> str:
        return self.reference.object_id

    @property
    def address_owner(self) -> str | None:
        if isinstance(self.owner, Mapping):
            owner = self.owner.get("AddressOwner")
            return str(owner) if owner is not None else None
        return None


class TransactionEffects(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: ExecutionStatus
    transaction_digest: str | None = Field(None, alias="transactionDigest")
    gas_used: GasCostSummary = Field(default_factory=GasCostSummary, alias="gasUsed")
    created: tuple[OwnedObjectRef, ...] = ()
    mutated: tuple[OwnedObjectRef, ...] = ()
    deleted: tuple[ObjectRef, ...] = ()

    @property
    def created_ids(self) -> list[str]:
        return [item.object_id for item in self.created]


class DevInspectResults(BaseModel):
    """Outcome of a cheap, non-committing inspection of a transaction kind."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    effects: TransactionEffects | None = None
    error: str | None = None
    results: tuple[Any, ...] | None = None
    raw_payload: Mapping[str, Any] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return (
            self.error is None
            and self.effects is not None
            and self.effects.status.is_success
        )


class DryRunResponse(BaseModel):
    """Full-fidelity, non-committing execution with fee estimate."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    effects: TransactionEffects
    object_changes: tuple[Any, ...] = Field((), alias="objectChanges")
    balance_changes: tuple[Any, ...] = Field((), alias="balanceChanges")
    raw_payload: Mapping[str, Any] = Field(default_factory=dict)


class TransactionBlockResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    digest: str
    effects: TransactionEffects | None = None
    events: tuple[Any, ...] = ()
    raw_payload: Mapping[str, Any] = Field(default_factory=dict)


class ReserveInfo(BaseModel):
    """One lending reserve; its list position is the on-chain reserve index."""

    model_config = ConfigDict(frozen=True)

    coin_type: str
    price: str
    smoothed_price: str
    last_update_timestamp: str
    price_info_id: str
    config_cell_id: str | None = None
