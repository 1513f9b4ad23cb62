"""Text predicates for token addresses and display metadata.

Character-class boundaries:
- Address look-alike: the base-58 alphabet (ASCII letters and digits
  minus ``0``, ``O``, ``I`` and ``l``), 32 to 44 characters inclusive,
  case-sensitive.
- Printable ASCII: every character in ``0x20`` (space) to ``0x7E`` (``~``).
- Gibberish: empty, not printable ASCII, or longer than 32 characters.
"""

from __future__ import annotations

import re

from solders.pubkey import Pubkey

MIN_ADDRESS_LENGTH = 32
MAX_ADDRESS_LENGTH = 44
MAX_DISPLAY_LENGTH = 32

ADDRESS_PATTERN = re.compile(
    rf"^[1-9A-HJ-NP-Za-km-z]{{{MIN_ADDRESS_LENGTH},{MAX_ADDRESS_LENGTH}}}$"
)


def looks_like_address(text: str) -> bool:
    """Return True if text has the shape of a base-58 account address."""
    return ADDRESS_PATTERN.fullmatch(text) is not None


def is_printable_ascii(text: str) -> bool:
    """Return True if every character is printable 7-bit ASCII."""
    return all(0x20 <= ord(ch) <= 0x7E for ch in text)


def is_gibberish(text: str) -> bool:
    """Return True if text is unfit for display as a token name or symbol."""
    return not text or len(text) > MAX_DISPLAY_LENGTH or not is_printable_ascii(text)


def is_valid_mint_address(text: str) -> bool:
    """Return True if text decodes to a 32-byte public key."""
    if not looks_like_address(text):
        return False
    try:
        Pubkey.from_string(text)
    except ValueError:
        return False
    return True


def short_symbol(address: str) -> str:
    """Fallback ticker: the first four characters of an address, upper-cased."""
    return address[:4].upper()
