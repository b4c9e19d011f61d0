"""
Security utilities for masking sensitive data in logs.

Provides functions to safely mask sensitive information like:
- Owner addresses
- Chain identifiers
- Private keys and auth tokens
"""

from chainsync.config.constants import OWNER_DISPLAY_CHARS


def mask_address(address: str | None) -> str:
    """
    Mask owner address for logging: 0x1234...5678

    Args:
        address: Address to mask

    Returns:
        Masked address showing first 6 and last 4 characters

    Examples:
        >>> mask_address("0x1234567890abcdef1234567890abcdef12345678")
        '0x1234...5678'
        >>> mask_address(None)
        '***'
        >>> mask_address("short")
        '***'
    """
    if not address or len(address) < 10:
        return "***"
    return f"{address[:6]}...{address[-4:]}"


def mask_chain_id(chain_id: str | None) -> str:
    """
    Mask chain identifier for logging.

    Args:
        chain_id: Chain identifier to mask

    Returns:
        Masked identifier showing first 8 and last 6 characters

    Examples:
        >>> mask_chain_id("e476187f6ddfeb9d588c7b45d3df334d5501d6499b3f9ad5595cae86cce16a65")
        'e476187f...16a65'
    """
    if not chain_id or len(chain_id) < 16:
        return chain_id or "***"
    return f"{chain_id[:8]}...{chain_id[-5:]}"


def mask_sensitive(value: str | None, show_chars: int = 4) -> str:
    """
    Mask sensitive string (keys, auth tokens, etc).

    Args:
        value: Sensitive value to mask
        show_chars: Number of trailing characters to keep

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"***{value[-show_chars:]}"


def owner_display(owner: str | None) -> str:
    """Short owner label for status output: 0x12abcd..."""
    if not owner:
        return "-"
    return f"{owner[:OWNER_DISPLAY_CHARS]}..."
