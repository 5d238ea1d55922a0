import base64

import pytest

from stakingindexer.bbn_types import (
    CheckpointParams,
    StakingParams,
    checkpoint_params_from_chain,
    staking_params_from_chain,
)

SCRIPT = bytes.fromhex("76a914010101010101010101010101010101010101010188ac")
PK = bytes(range(32))


def _chain_params(**overrides):
    params = {
        "covenant_pks": [PK],
        "covenant_quorum": 1,
        "min_staking_value_sat": "10000",
        "max_staking_value_sat": 10000000000,
        "min_staking_time_blocks": 10,
        "max_staking_time_blocks": "65535",
        "slashing_pk_script": SCRIPT,
        "min_slashing_tx_fee_sat": 1000,
        "slashing_rate": "0.1",
        "unbonding_time_blocks": 101,
        "unbonding_fee_sat": 1000,
        "min_commission_rate": "0.03",
        "delegation_creation_base_gas_fee": 1000,
        "allow_list_expiration_height": 0,
        "btc_activation_height": 100,
    }
    params.update(overrides)
    return params


def test_staking_params_fields():
    result = staking_params_from_chain(_chain_params())
    assert result.covenant_pks == [PK.hex()]
    assert result.covenant_quorum == 1
    assert result.min_staking_value_sat == 10000
    assert result.max_staking_time_blocks == 65535
    assert result.slashing_pk_script == SCRIPT.hex()
    assert result.btc_activation_height == 100


def test_decimal_rendered_with_eighteen_places():
    result = staking_params_from_chain(_chain_params())
    assert result.slashing_rate == "0.100000000000000000"
    whole, frac = result.min_commission_rate.split(".")
    assert whole == "0" and len(frac) == 18 and frac.startswith("03")


def test_base64_script_and_hex_keys():
    encoded = base64.b64encode(SCRIPT).decode()
    result = staking_params_from_chain(
        _chain_params(slashing_pk_script=encoded, covenant_pks=[PK.hex().upper()])
    )
    assert result.slashing_pk_script == SCRIPT.hex()
    assert result.covenant_pks == [PK.hex()]


def test_staking_document_uses_storage_names():
    doc = staking_params_from_chain(_chain_params()).to_document()
    assert set(doc) == {
        "covenant_pks",
        "covenant_quorum",
        "min_staking_value_sat",
        "max_staking_value_sat",
        "min_staking_time_blocks",
        "max_staking_time_blocks",
        "slashing_pk_script",
        "min_slashing_tx_fee_sat",
        "slashing_rate",
        "unbonding_time_blocks",
        "unbonding_fee_sat",
        "min_commission_rate",
        "delegation_creation_base_gas_fee",
        "allow_list_expiration_height",
        "btc_activation_height",
    }
    assert StakingParams(**doc) == staking_params_from_chain(_chain_params())


def test_missing_parameter_raises():
    params = _chain_params()
    del params["unbonding_fee_sat"]
    with pytest.raises(ValueError, match="unbonding_fee_sat"):
        staking_params_from_chain(params)


@pytest.mark.parametrize("rate", ["abc", "NaN", "0.1234567890123456789"])
def test_invalid_decimal_raises(rate):
    with pytest.raises(ValueError, match="slashing_rate"):
        staking_params_from_chain(_chain_params(slashing_rate=rate))


def test_invalid_integer_raises():
    with pytest.raises(ValueError, match="covenant_quorum"):
        staking_params_from_chain(_chain_params(covenant_quorum="many"))


def test_checkpoint_params_round_trip():
    chain = {
        "btc_confirmation_depth": "2",
        "checkpoint_finalization_timeout": 4,
        "checkpoint_tag": "01020304",
    }
    result = checkpoint_params_from_chain(chain)
    assert result == CheckpointParams(
        btc_confirmation_depth=2,
        checkpoint_finalization_timeout=4,
        checkpoint_tag="01020304",
    )
    assert checkpoint_params_from_chain(result.to_document()) == result


def test_checkpoint_missing_tag_raises():
    with pytest.raises(ValueError, match="checkpoint_tag"):
        checkpoint_params_from_chain(
            {"btc_confirmation_depth": 2, "checkpoint_finalization_timeout": 4}
        )