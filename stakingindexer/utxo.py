"""Unspent outputs as reported by a Bitcoin wallet's listunspent call."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any, Mapping

SATOSHI_PER_BITCOIN = 100_000_000

_MAX_VOUT = 2**32 - 1
_HASH_HEX_LEN = 64

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_VERSIONS = {0x00, 0x05, 0x6F, 0xC4}

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3
_SEGWIT_HRPS = ("bc", "tb", "bcrt")


@dataclass(frozen=True)
class OutPoint:
    """A reference to one output of a transaction."""

    txid: str
    vout: int


@dataclass(frozen=True)
class UTXO:
    """An unspent output; ``amount`` is in satoshis."""

    txid: str
    vout: int
    script_pk: bytes
    amount: int
    address: str

    def outpoint(self) -> OutPoint:
        return OutPoint(self.txid, self.vout)


def btc_to_satoshi(amount: float) -> int:
    """Convert an amount in bitcoin to satoshis, rounding half away from zero."""
    value = float(amount)
    if math.isnan(value) or math.isinf(value):
        raise ValueError("invalid bitcoin amount")
    scaled = value * SATOSHI_PER_BITCOIN
    return int(scaled + 0.5) if scaled >= 0 else int(scaled - 0.5)


def _normalize_txid(txid: Any) -> str:
    if not isinstance(txid, str):
        raise ValueError(f"invalid transaction id: {txid!r}")
    if len(txid) > _HASH_HEX_LEN:
        raise ValueError(f"max hash string length is {_HASH_HEX_LEN} bytes")
    padded = txid.rjust(_HASH_HEX_LEN, "0")
    try:
        bytes.fromhex(padded)
    except ValueError:
        raise ValueError(f"invalid transaction id: {txid!r}") from None
    return padded.lower()


def _b58decode(text: str) -> bytes:
    number = 0
    for ch in text:
        index = _B58_ALPHABET.find(ch)
        if index < 0:
            raise ValueError(f"invalid base58 character {ch!r}")
        number = number * 58 + index
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    leading = len(text) - len(text.lstrip("1"))
    return b"\x00" * leading + body


def _check_base58_address(address: str) -> None:
    raw = _b58decode(address)
    if len(raw) < 5:
        raise ValueError("address too short")
    payload, checksum = raw[:-4], raw[-4:]
    if hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4] != checksum:
        raise ValueError("address checksum mismatch")
    if len(payload) != 21 or payload[0] not in _B58_VERSIONS:
        raise ValueError("unknown address type")


def _polymod(values: list[int]) -> int:
    generators = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
    check = 1
    for value in values:
        top = check >> 25
        check = (check & 0x1FFFFFF) << 5 ^ value
        for bit, gen in enumerate(generators):
            if (top >> bit) & 1:
                check ^= gen
    return check


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: list[int], from_bits: int, to_bits: int) -> list[int]:
    acc = 0
    bits = 0
    out = []
    max_value = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & max_value)
    if bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise ValueError("invalid padding in witness program")
    return out


def _check_segwit_address(address: str) -> None:
    if address.lower() != address and address.upper() != address:
        raise ValueError("mixed case address")
    address = address.lower()
    sep = address.rfind("1")
    if sep < 1 or sep + 7 > len(address) or len(address) > 90:
        raise ValueError("invalid bech32 address")
    hrp = address[:sep]
    data = [_BECH32_CHARSET.find(c) for c in address[sep + 1:]]
    if -1 in data:
        raise ValueError("invalid bech32 character")
    const = _polymod(_hrp_expand(hrp) + data)
    if const not in (_BECH32_CONST, _BECH32M_CONST):
        raise ValueError("address checksum mismatch")
    data = data[:-6]
    if not data:
        raise ValueError("missing witness version")
    version = data[0]
    program = _convert_bits(data[1:], 5, 8)
    if version > 16 or not 2 <= len(program) <= 40:
        raise ValueError("invalid witness program")
    if version == 0:
        if len(program) not in (20, 32) or const != _BECH32_CONST:
            raise ValueError("invalid witness v0 program")
    elif const != _BECH32M_CONST:
        raise ValueError("witness v1+ address must use bech32m")


def _check_address(address: Any) -> str:
    if not isinstance(address, str) or not address:
        raise ValueError(f"invalid address: {address!r}")
    lowered = address.lower()
    if any(lowered.startswith(hrp + "1") for hrp in _SEGWIT_HRPS):
        _check_segwit_address(address)
    else:
        _check_base58_address(address)
    return address


def utxo_from_list_unspent(result: Mapping[str, Any]) -> UTXO:
    """Build a UTXO from one entry of a listunspent result, validating each field."""
    try:
        script = bytes.fromhex(result["scriptPubKey"])
    except (KeyError, TypeError, ValueError):
        raise ValueError("invalid scriptPubKey hex") from None
    txid = _normalize_txid(result.get("txid"))
    try:
        address = _check_address(result.get("address"))
    except ValueError as exc:
        raise ValueError(f"invalid address: {exc}") from None
    try:
        amount = btc_to_satoshi(result["amount"])
    except (KeyError, TypeError):
        raise ValueError("invalid bitcoin amount") from None
    vout = result.get("vout")
    if isinstance(vout, bool) or not isinstance(vout, int) or not 0 <= vout <= _MAX_VOUT:
        raise ValueError(f"invalid output index: {vout!r}")
    return UTXO(txid=txid, vout=vout, script_pk=script, amount=amount, address=address)