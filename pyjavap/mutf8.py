"""
Decoder for the modified UTF-8 used by CONSTANT_Utf8 entries (JVMS 4.4.7).

Differences from standard UTF-8: supplementary characters are stored as a
surrogate pair, each half encoded as a three-byte sequence, giving six bytes
per code point. Decoding is lenient: malformed input becomes U+FFFD.
"""

REPLACEMENT_CHARACTER = "\ufffd"


def _is_surrogate_pair(data: bytes, i: int) -> bool:
    """Whether data[i:i+6] is a high surrogate triple followed by an ED lead byte."""
    return (
        data[i] == 0xED
        and (data[i + 1] >> 4) == 0b1010
        and i + 5 < len(data)
        and data[i + 3] == 0xED
    )


def decode_modified_utf8(data: bytes) -> str:
    """Decode a modified UTF-8 byte run into a str."""
    chars = []
    i = 0
    n = len(data)
    while i < n:
        b0 = data[i]
        if b0 >> 7 == 0:
            chars.append(chr(b0))
            i += 1
        elif b0 >> 5 == 0b110:
            if i + 1 >= n:
                chars.append(REPLACEMENT_CHARACTER)
                i += 1
                continue
            b1 = data[i + 1]
            chars.append(chr(((b0 & 0x1F) << 6) | (b1 & 0x3F)))
            i += 2
        elif b0 >> 4 == 0b1110:
            if i + 2 >= n:
                chars.append(REPLACEMENT_CHARACTER)
                i += 1
                continue
            if _is_surrogate_pair(data, i):
                b1, b2, _, b4, b5 = data[i + 1:i + 6]
                code_point = (
                    0x10000
                    + ((b1 & 0x0F) << 16)
                    + ((b2 & 0x3F) << 10)
                    + ((b4 & 0x0F) << 6)
                    + (b5 & 0x3F)
                )
                chars.append(chr(code_point))
                i += 6
                continue
            b1, b2 = data[i + 1], data[i + 2]
            code_point = ((b0 & 0x0F) << 12) | ((b1 & 0x3F) << 6) | (b2 & 0x3F)
            if 0xD800 <= code_point <= 0xDFFF:
                chars.append(REPLACEMENT_CHARACTER)
            else:
                chars.append(chr(code_point))
            i += 3
        else:
            chars.append(REPLACEMENT_CHARACTER)
            i += 1
    return "".join(chars)
