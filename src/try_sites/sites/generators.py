"""Random tenant handles and demo admin passwords.

Both use the non-cryptographic ``random`` module: handles are re-checked
for uniqueness before use and demo passwords are short-lived.

Password character classes leave out look-alike glyphs (I, O, l):
- uppercase: ABCDEFGHJKLMNPQRSTUVWXYZ
- lowercase: abcdefghijkmnopqrstuvwxyz
- digits:    0123456789
- symbols:   !@$?_-
"""

import random
import string
from dataclasses import dataclass
from typing import Optional

UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnopqrstuvwxyz"
DIGITS = "0123456789"
SYMBOLS = "!@$?_-"
CHARACTER_CLASSES = (UPPERCASE, LOWERCASE, DIGITS, SYMBOLS)

HANDLE_LENGTH = 8
_HANDLE_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class PasswordOptions:
    required_length: int = 8
    required_unique_chars: int = 4
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_non_alphanumeric: bool = True


def _insert_random(chars: list[str], alphabet: str, rng: random.Random) -> None:
    chars.insert(rng.randint(0, len(chars)), rng.choice(alphabet))


def generate_random_password(
    options: Optional[PasswordOptions] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Generate a password satisfying ``options``.

    One character from each required class is placed at a random position,
    then characters from randomly chosen classes (any of the four) are
    inserted until both the length and distinct-character minimums hold.
    """
    opts = options or PasswordOptions()
    rng = rng or random.Random()

    max_unique = len(set("".join(CHARACTER_CLASSES)))
    if opts.required_unique_chars > max_unique:
        raise ValueError(
            f"required_unique_chars cannot exceed {max_unique}, got {opts.required_unique_chars}"
        )

    chars: list[str] = []
    required = (
        (opts.require_uppercase, UPPERCASE),
        (opts.require_lowercase, LOWERCASE),
        (opts.require_digit, DIGITS),
        (opts.require_non_alphanumeric, SYMBOLS),
    )
    for enabled, alphabet in required:
        if enabled:
            _insert_random(chars, alphabet, rng)

    while len(chars) < opts.required_length or len(set(chars)) < opts.required_unique_chars:
        _insert_random(chars, rng.choice(CHARACTER_CLASSES), rng)

    return "".join(chars)


def generate_random_name(rng: Optional[random.Random] = None) -> str:
    """8-char lowercase alphanumeric handle suggestion."""
    rng = rng or random.Random()
    return "".join(rng.choices(_HANDLE_ALPHABET, k=HANDLE_LENGTH))
