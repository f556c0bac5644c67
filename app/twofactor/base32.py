"""
RFC 4648 base32 codec for TOTP secrets.

Encoding never emits "=" padding, which is what authenticator apps expect
in an otpauth:// URI. Decoding is lenient: anything outside the alphabet
(spaces, dashes, padding) is skipped and lowercase input is accepted.
"""

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_LOOKUP = {char: index for index, char in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """
    Encode bytes as unpadded base32 text.

    Args:
        data: Raw bytes, e.g. a freshly generated secret

    Returns:
        Base32 string using the A-Z2-7 alphabet
    """
    output = []
    buffer = 0
    bits = 0

    for byte in data:
        buffer = (buffer << 8) | byte
        bits += 8
        while bits >= 5:
            bits -= 5
            output.append(ALPHABET[(buffer >> bits) & 0x1F])
        buffer &= (1 << bits) - 1

    if bits > 0:
        # pad the last group with zero bits on the low end
        output.append(ALPHABET[(buffer << (5 - bits)) & 0x1F])

    return "".join(output)


def decode(text: str) -> bytes:
    """
    Decode base32 text back into bytes.

    Args:
        text: Base32 string, case-insensitive, may contain formatting characters

    Returns:
        Decoded bytes. Trailing bits that don't fill a whole byte are dropped.
    """
    output = bytearray()
    buffer = 0
    bits = 0

    for char in text.upper():
        value = _LOOKUP.get(char)
        if value is None:
            continue
        buffer = (buffer << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            output.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1

    return bytes(output)
