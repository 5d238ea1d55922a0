import math

import pytest

from stakingindexer.utxo import OutPoint, UTXO, btc_to_satoshi, utxo_from_list_unspent

GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
SCRIPT_HEX = "76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac"
TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"


def entry(**overrides):
    values = {
        "txid": TXID,
        "vout": 1,
        "scriptPubKey": SCRIPT_HEX,
        "address": GENESIS_ADDRESS,
        "amount": 0.5,
    }
    values.update(overrides)
    return values


def test_btc_to_satoshi_fixed_values():
    assert btc_to_satoshi(1.5) == 150000000
    assert btc_to_satoshi(0.00000001) == 1
    assert btc_to_satoshi(0) == 0


@pytest.mark.parametrize("sats", [0, 1, 999, 12345678, 2099999997690000])
def test_btc_to_satoshi_round_trips(sats):
    assert btc_to_satoshi(sats / 1e8) == sats
    assert btc_to_satoshi(-sats / 1e8) == -sats


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_btc_to_satoshi_rejects_non_finite(value):
    with pytest.raises(ValueError, match="invalid bitcoin amount"):
        btc_to_satoshi(value)


def test_utxo_from_list_unspent_fields():
    utxo = utxo_from_list_unspent(entry())
    assert utxo == UTXO(
        txid=TXID,
        vout=1,
        script_pk=bytes.fromhex(SCRIPT_HEX),
        amount=btc_to_satoshi(0.5),
        address=GENESIS_ADDRESS,
    )
    assert utxo.outpoint() == OutPoint(TXID, 1)


def test_short_txid_is_zero_padded():
    utxo = utxo_from_list_unspent(entry(txid="AB"))
    assert utxo.txid == "0" * 62 + "ab"


def test_invalid_script_is_rejected():
    with pytest.raises(ValueError, match="scriptPubKey"):
        utxo_from_list_unspent(entry(scriptPubKey="zz"))


def test_too_long_txid_is_rejected():
    with pytest.raises(ValueError):
        utxo_from_list_unspent(entry(txid="0" * 65))


@pytest.mark.parametrize(
    "address",
    [
        GENESIS_ADDRESS[:-1] + "b",
        "bcrt1qinvalidchecksum",
        "",
    ],
)
def test_bad_address_is_rejected(address):
    with pytest.raises(ValueError, match="invalid address"):
        utxo_from_list_unspent(entry(address=address))


def test_bad_vout_is_rejected():
    with pytest.raises(ValueError, match="output index"):
        utxo_from_list_unspent(entry(vout=-1))


def test_non_finite_amount_is_rejected():
    with pytest.raises(ValueError, match="invalid bitcoin amount"):
        utxo_from_list_unspent(entry(amount=math.nan))