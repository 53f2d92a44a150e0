"""
Calldata builders for the calls the engine submits.

Only static ABI words and a trailing string are needed by the launchpad
router, so encoding is done by hand on 32-byte words.
"""

from typing import Sequence

from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .models import MAX_UINT256, Call


ERC20_APPROVE_SIGNATURE = "approve(address,uint256)"
ERC20_ALLOWANCE_SIGNATURE = "allowance(address,address)"
RIG_MINE_SIGNATURE = "mine(address,uint256,uint256,uint256,string)"
AUCTION_BUY_SIGNATURE = "buy(address,uint256,uint256,uint256)"

# Mining price moves between read and inclusion; pay at most 5% over the read price.
MINE_MAX_PRICE_NUMERATOR = 105
MINE_MAX_PRICE_DENOMINATOR = 100


def selector(signature: str) -> str:
    """0x-prefixed 4-byte function selector."""
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if not 0 <= value <= MAX_UINT256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    return to_checksum_address(address).lower()[2:].zfill(64)


def _encode_string_tail(text: str) -> str:
    """Length word followed by the UTF-8 bytes, right-padded to 32 bytes."""
    raw = text.encode("utf-8")
    padded_len = ((len(raw) + 31) // 32) * 32
    return _encode_uint256(len(raw)) + raw.hex().ljust(padded_len * 2, "0")


def encode_contract_call(
    contract_address: str,
    signature: str,
    encoded_args: Sequence[str] = (),
    value: int = 0,
    label: str = "",
) -> Call:
    """Build a Call from a function signature and pre-encoded 32-byte words."""
    payload = selector(signature) + "".join(arg.removeprefix("0x") for arg in encoded_args)
    return Call(
        target=to_checksum_address(contract_address),
        payload=payload,
        value=value,
        label=label or signature.split("(")[0],
    )


def encode_approve_call(token_address: str, spender: str, amount: int = MAX_UINT256) -> Call:
    """ERC20 ``approve(spender, amount)``."""
    return encode_contract_call(
        token_address,
        ERC20_APPROVE_SIGNATURE,
        [_encode_address(spender), _encode_uint256(amount)],
        label="approve",
    )


def encode_allowance_call(token_address: str, owner: str, spender: str) -> Call:
    """ERC20 ``allowance(owner, spender)``, used with eth_call only."""
    return encode_contract_call(
        token_address,
        ERC20_ALLOWANCE_SIGNATURE,
        [_encode_address(owner), _encode_address(spender)],
        label="allowance",
    )


def mine_max_price(price: int) -> int:
    return 0 if price == 0 else price * MINE_MAX_PRICE_NUMERATOR // MINE_MAX_PRICE_DENOMINATOR


def encode_mine_call(
    multicall_address: str,
    rig: str,
    epoch_id: int,
    deadline: int,
    price: int,
    message: str = "gm",
) -> Call:
    """Mine a rig through the multicall router, paying ``price`` in the native asset.

    The router wraps the native asset itself, so no approval is needed and the
    call can go out directly.
    """
    # Four static words plus the string offset precede the string tail
    string_offset = 5 * 32
    args = [
        _encode_address(rig),
        _encode_uint256(epoch_id),
        _encode_uint256(deadline),
        _encode_uint256(mine_max_price(price)),
        _encode_uint256(string_offset),
        _encode_string_tail(message or "gm"),
    ]
    return encode_contract_call(multicall_address, RIG_MINE_SIGNATURE, args, value=price, label="mine")


def encode_buy_call(
    multicall_address: str,
    rig: str,
    epoch_id: int,
    deadline: int,
    max_payment_amount: int,
) -> Call:
    """Buy an auction lot, paying with LP tokens approved to the router."""
    args = [
        _encode_address(rig),
        _encode_uint256(epoch_id),
        _encode_uint256(deadline),
        _encode_uint256(max_payment_amount),
    ]
    return encode_contract_call(multicall_address, AUCTION_BUY_SIGNATURE, args, label="buy")


def decode_uint256(result: str) -> int:
    """Decode a single uint256 word returned by eth_call."""
    data = (result or "0x").removeprefix("0x")
    if not data:
        return 0
    return int(data[:64], 16)
