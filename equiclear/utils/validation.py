"""
Input Validation - checks on query inputs and materialized records.

Functions return (is_valid, error_message) so callers decide whether a
failure is an error or an empty result.
"""

from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_ID_LENGTH = 256
MAX_ADDRESS_LENGTH = 128
MAX_PAGE_LIMIT = 1000

MIN_AMOUNT = 0
MAX_AMOUNT = 2**64 - 1  # on-chain u64
MAX_TIMESTAMP = 2**63 - 1  # heights and Unix times stay SQLite INTEGER


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_string(value: Any, name: str, max_length: int) -> Tuple[bool, str]:
    """Validate a non-empty string of bounded length."""
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"
    if not value.strip():
        return False, f"{name} must not be empty"
    if len(value) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(value)}"
    return True, ""


def validate_auction_id(auction_id: Any) -> Tuple[bool, str]:
    return validate_string(auction_id, "auction_id", MAX_ID_LENGTH)


def validate_address(address: Any) -> Tuple[bool, str]:
    return validate_string(address, "user_address", MAX_ADDRESS_LENGTH)


def validate_pagination(limit: Optional[int], offset: int) -> Tuple[bool, str]:
    """Validate list limit/offset. A None limit means unbounded."""
    if limit is not None:
        valid, err = validate_integer(limit, "limit", 1, MAX_PAGE_LIMIT)
        if not valid:
            return valid, err
    return validate_integer(offset, "offset", 0, MAX_AMOUNT)


def validate_auction_record(record: Any) -> Tuple[bool, str]:
    """
    Check the invariants of a materialized auction.

    Checks:
    1. 0 <= reserve_price <= start_price
    2. 0 <= remaining_supply <= total_supply
    3. start_time <= end_time
    """
    for name in ("total_supply", "remaining_supply", "start_price", "reserve_price"):
        valid, err = validate_integer(getattr(record, name), name)
        if not valid:
            return valid, err

    for name in ("start_time", "end_time", "block_height"):
        valid, err = validate_integer(getattr(record, name), name, max_val=MAX_TIMESTAMP)
        if not valid:
            return valid, err

    if record.reserve_price > record.start_price:
        return False, (f"reserve_price {record.reserve_price} exceeds "
                       f"start_price {record.start_price}")

    if record.remaining_supply > record.total_supply:
        return False, (f"remaining_supply {record.remaining_supply} exceeds "
                       f"total_supply {record.total_supply}")

    if record.end_time < record.start_time:
        return False, f"end_time {record.end_time} precedes start_time {record.start_time}"

    return True, ""
