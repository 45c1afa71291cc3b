"""
FastLZ level 1 compression as implemented by Solady's ``LibZip``.

ENABLE-mode session signatures are compressed with this format before they
are put in calldata, and the Smart Sessions module decompresses them on-chain
with ``LibZip.flzDecompress``. There is no stream header; the output is a
plain sequence of literal runs and back-references.
"""

from __future__ import annotations

_HASH_BITS = 13
_HASH_SIZE = 1 << _HASH_BITS
_MAX_DISTANCE = 8192
_MAX_LITERAL_RUN = 32
_LONG_MATCH_CHUNK = 262


def _hash(value: int) -> int:
    return (((value * 2654435769) & 0xFFFFFFFF) >> 18) & (_HASH_SIZE - 1)


def flz_compress(data: bytes) -> bytes:
    ib = bytes(data)
    end = len(ib) - 4
    table = [0] * _HASH_SIZE
    out = bytearray()
    anchor = 0
    i = 2

    def u24(pos: int) -> int:
        return ib[pos] | (ib[pos + 1] << 8) | (ib[pos + 2] << 16)

    def literals(run: int, start: int) -> None:
        while run >= _MAX_LITERAL_RUN:
            out.append(_MAX_LITERAL_RUN - 1)
            out.extend(ib[start:start + _MAX_LITERAL_RUN])
            start += _MAX_LITERAL_RUN
            run -= _MAX_LITERAL_RUN
        if run:
            out.append(run - 1)
            out.extend(ib[start:start + run])

    while i < end - 9:
        # Scan forward until a 3-byte sequence repeats within the window
        while True:
            seq = u24(i)
            slot = _hash(seq)
            ref = table[slot]
            table[slot] = i
            distance = i - ref
            candidate = u24(ref) if distance < _MAX_DISTANCE else 0x1000000
            if i < end - 9:
                i += 1
                if seq != candidate:
                    continue
            break
        if i >= end - 9:
            break

        i -= 1
        if i > anchor:
            literals(i - anchor, anchor)

        # length is (match length - 2); the first three bytes already match
        length = 0
        p = ref + 3
        q = i + 3
        limit = end - q
        while length < limit:
            same = ib[p + length] == ib[q + length]
            length += 1
            if not same:
                break
        i += length

        distance -= 1
        while length > _LONG_MATCH_CHUNK:
            out.extend((224 + (distance >> 8), 253, distance & 255))
            length -= _LONG_MATCH_CHUNK
        if length < 7:
            out.extend(((length << 5) + (distance >> 8), distance & 255))
        else:
            out.extend((224 + (distance >> 8), length - 7, distance & 255))

        table[_hash(u24(i))] = i
        i += 1
        table[_hash(u24(i))] = i
        i += 1
        anchor = i

    literals(len(ib) - anchor, anchor)
    return bytes(out)


def flz_decompress(data: bytes) -> bytes:
    """Inverse of :func:`flz_compress`. Raises ``ValueError`` on truncated input."""
    ib = bytes(data)
    out = bytearray()
    i = 0
    size = len(ib)

    while i < size:
        token = ib[i] >> 5
        if token == 0:
            run = 1 + ib[i]
            i += 1
            if i + run > size:
                raise ValueError("Truncated literal run")
            out.extend(ib[i:i + run])
            i += run
            continue

        if token < 7:
            if i + 1 >= size:
                raise ValueError("Truncated match")
            offset = 256 * (ib[i] & 31) + ib[i + 1]
            length = 2 + token
            i += 2
        else:
            if i + 2 >= size:
                raise ValueError("Truncated long match")
            offset = 256 * (ib[i] & 31) + ib[i + 2]
            length = 9 + ib[i + 1]
            i += 3

        ref = len(out) - offset - 1
        if ref < 0:
            raise ValueError("Match references data before start of output")
        # Byte-wise copy: matches may overlap the bytes they produce
        for _ in range(length):
            out.append(out[ref])
            ref += 1

    return bytes(out)
