"""Staking and checkpoint parameters of the Babylon chain as the indexer stores them."""

from __future__ import annotations

import base64
import binascii
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

_DEC_QUANTUM = Decimal(1).scaleb(-18)


@dataclass
class StakingParams:
    """One version of the BTC staking parameters."""

    covenant_pks: list[str] = field(default_factory=list)
    covenant_quorum: int = 0
    min_staking_value_sat: int = 0
    max_staking_value_sat: int = 0
    min_staking_time_blocks: int = 0
    max_staking_time_blocks: int = 0
    slashing_pk_script: str = ""
    min_slashing_tx_fee_sat: int = 0
    slashing_rate: str = ""
    unbonding_time_blocks: int = 0
    unbonding_fee_sat: int = 0
    min_commission_rate: str = ""
    delegation_creation_base_gas_fee: int = 0
    allow_list_expiration_height: int = 0
    btc_activation_height: int = 0

    def to_document(self) -> dict[str, Any]:
        """Return the parameters as a database document."""
        return asdict(self)


@dataclass
class CheckpointParams:
    """The BTC checkpoint parameters."""

    btc_confirmation_depth: int = 0
    checkpoint_finalization_timeout: int = 0
    checkpoint_tag: str = ""

    def to_document(self) -> dict[str, Any]:
        """Return the parameters as a database document."""
        return asdict(self)


def _get(params: Mapping[str, Any], key: str) -> Any:
    if key not in params:
        raise ValueError(f"missing parameter {key}")
    return params[key]


def _int(params: Mapping[str, Any], key: str) -> int:
    value = _get(params, key)
    try:
        if isinstance(value, bool):
            raise TypeError
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"parameter {key} is not an integer: {value!r}") from None


def _hex(value: Any, key: str, encoded_as_base64: bool) -> str:
    """Hex of raw bytes, or of a string in the chain's JSON encoding."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, str):
        try:
            if encoded_as_base64:
                return base64.b64decode(value, validate=True).hex()
            return bytes.fromhex(value).hex()
        except (binascii.Error, ValueError):
            pass
    raise ValueError(f"parameter {key} is not valid bytes: {value!r}")


def _dec(params: Mapping[str, Any], key: str) -> str:
    """Format a fixed-point decimal with 18 fractional digits."""
    value = _get(params, key)
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        number = Decimal("NaN")
    exponent = number.as_tuple().exponent
    if not number.is_finite() or (isinstance(exponent, int) and exponent < -18):
        raise ValueError(f"parameter {key} is not a decimal with at most 18 places: {value!r}")
    return format(number.quantize(_DEC_QUANTUM), "f")


def staking_params_from_chain(params: Mapping[str, Any]) -> StakingParams:
    """Build StakingParams from the chain's staking parameters."""
    ints = {
        key: _int(params, key)
        for key in (
            "covenant_quorum", "min_staking_value_sat", "max_staking_value_sat",
            "min_staking_time_blocks", "max_staking_time_blocks", "min_slashing_tx_fee_sat",
            "unbonding_time_blocks", "unbonding_fee_sat", "delegation_creation_base_gas_fee",
            "allow_list_expiration_height", "btc_activation_height",
        )
    }
    return StakingParams(
        covenant_pks=[_hex(pk, "covenant_pks", False) for pk in _get(params, "covenant_pks")],
        slashing_pk_script=_hex(_get(params, "slashing_pk_script"), "slashing_pk_script", True),
        slashing_rate=_dec(params, "slashing_rate"),
        min_commission_rate=_dec(params, "min_commission_rate"),
        **ints,
    )


def checkpoint_params_from_chain(params: Mapping[str, Any]) -> CheckpointParams:
    """Build CheckpointParams from the chain's checkpoint parameters."""
    return CheckpointParams(
        btc_confirmation_depth=_int(params, "btc_confirmation_depth"),
        checkpoint_finalization_timeout=_int(params, "checkpoint_finalization_timeout"),
        checkpoint_tag=str(_get(params, "checkpoint_tag")),
    )