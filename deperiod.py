#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
deperiod.py -- One-bit local de-periodization code for binary strings.

Given ``n`` input bits, the encoder produces ``n + 1`` bits in which every
window of ``l`` consecutive bits has minimal period at least ``p``.  The
transform is lossless: ``decode(encode(x)) == x``.  Only a single bit of
global redundancy is spent.  Whenever a window is found to be periodic with
a short period, its tail is pure repetition and can be collapsed; the bits
freed by the collapse are recycled to store *where* the collapse happened
(the window start) and *how* (the period, hidden as a marker bit inside the
collapsed window).

### Stream layout

The working sequence always holds exactly ``n + 1`` bits between correction
cycles::

    [ payload ... ][ record_k ] ... [ record_1 ][ flag ]

* Before the first scan the input is followed by a single ``1`` bit.  That
  bit terminates the record stack: the decoder stops unwinding when it sees
  it at the tail.
* Every correction appends one record of exactly ``l - p`` bits:

  - ``w = ceil(log2 n)`` bits, little-endian: the window start index;
  - ``l - p - w - 1`` zero padding bits (empty when ``l`` is minimal);
  - one flag bit ``0`` meaning "unwind required".

  The records form a LIFO stack on the tail; the decoder pops them newest
  first.

* Inside a collapsed window ``[i, i + p)`` the bit at ``i + period`` is
  forced to ``1`` and the bits strictly between ``i + period`` and ``i + p``
  to ``0``.  Scanning backwards from ``i + p - 1`` therefore recovers the
  period.

The window bound needs ``l >= p + ceil(log2 n) + 1``, otherwise a record
cannot fit into the space freed by a collapse.

### Period analysis

The minimal period of every window is computed from its Z-array: ``q`` is a
period of ``s`` (length ``m``) iff ``q + Z[q] == m``.  The Z-array is linear
in the window length which keeps each encoder scan at O(n * l).

Global termination of the encoder scan loop has only been checked
empirically (exhaustively for ``n = 20, l = 20, p = 14``).  The loop is
therefore capped by ``max_passes`` and raises :class:`ConvergenceError` when
the cap is hit.

Usage examples:
    python3 deperiod.py 00000000000000000000             # encode (n=20, p=14)
    python3 deperiod.py -d 010000000000000110000 -n 20   # decode
    python3 deperiod.py --verify --limit 65536 --progress
"""

from __future__ import annotations

import random
import sys
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

DEFAULT_N = 20
DEFAULT_P = 14
DEFAULT_MAX_PASSES = 10_000

# Continuation flag values stored at the very end of the stream.
PENDING = 0
DONE = 1

# Progress switch (set by the CLI)
G_PROGRESS: bool = False


class ConvergenceError(RuntimeError):
    """Raised when the encoder scan loop does not settle within ``max_passes``."""

    def __init__(self, passes: int, corrections: int) -> None:
        super().__init__(
            f"encoder did not converge after {passes} passes "
            f"({corrections} corrections applied)"
        )
        self.passes = passes
        self.corrections = corrections


def _print_progress(done: int, total: int, final: bool = False) -> None:
    """Draw a 100 column progress bar: [====>   ] 42 %."""
    if not G_PROGRESS:
        return
    if final:
        print(f"[{'=' * 100}] 100 %", flush=True)
        return
    progress = (100 * done) // total if total else 100
    bar = "".join(
        "=" if i < progress else (">" if i == progress else " ") for i in range(100)
    )
    print(f"[{bar}] {progress} %", end="\r", flush=True)

###############################################################################
# Bit / integer conversion
###############################################################################

def to_binary(value: int, width: int) -> List[int]:
    """Return ``width`` bits of ``value``, least significant bit first."""
    if width < 0 or not 0 <= value < (1 << width):
        raise ValueError(f"value {value} does not fit in {width} bits")
    return [(value >> j) & 1 for j in range(width)]


def from_binary(bits: Sequence[int], width: int) -> int:
    """Inverse of ``to_binary``: read the first ``width`` bits little-endian."""
    if len(bits) < width:
        raise ValueError(f"need {width} bits, got {len(bits)}")
    out = 0
    for j in range(width):
        out |= (bits[j] & 1) << j
    return out


def index_width(n: int) -> int:
    """ceil(log2 n), exact for every positive ``n``."""
    if n < 1:
        raise ValueError("n must be positive")
    return (n - 1).bit_length()


def min_window(n: int, p: int) -> int:
    """Smallest window length ``l`` for which a correction record fits."""
    return p + index_width(n) + 1

###############################################################################
# Period analysis (Z-array)
###############################################################################

def compute_z(s: Sequence[int]) -> List[int]:
    """Compute the Z-array of ``s``.

    ``z[i]`` is the length of the longest common prefix of ``s`` and
    ``s[i:]`` for ``1 <= i < len(s)``; ``z[0]`` is left at zero.  The
    classic box technique keeps ``[left, right)`` as the rightmost
    segment known to match a prefix of ``s`` so each position is compared
    at most once outside the box.
    """
    m = len(s)
    z = [0] * m
    left = right = 0
    for i in range(1, m):
        if i < right:
            z[i] = min(right - i, z[i - left])
        while i + z[i] < m and s[z[i]] == s[i + z[i]]:
            z[i] += 1
        if i + z[i] > right:
            left, right = i, i + z[i]
    return z


def compute_periods(s: Sequence[int]) -> List[int]:
    """Return every period of ``s`` in ascending order.

    ``q`` is a period iff ``q + z[q] == len(s)`` where ``z[len(s)]`` is
    taken as zero, so the full length is always the last entry.  An empty
    sequence has no periods.
    """
    m = len(s)
    if m == 0:
        return []
    z = compute_z(s)
    periods = [q for q in range(1, m) if q + z[q] == m]
    periods.append(m)
    return periods


def compute_min_period(s: Sequence[int]) -> int:
    """Return the minimal period of a non-empty sequence."""
    if len(s) == 0:
        raise ValueError("minimal period of an empty sequence is undefined")
    return compute_periods(s)[0]


def has_short_period(s: Sequence[int], p: int) -> bool:
    return compute_min_period(s) < p

###############################################################################
# Correction records
###############################################################################

@dataclass(frozen=True)
class CorrectionRecord:
    """A collapsed window, as stored on the tail of the working sequence.

    ``index`` is the start of the collapsed window and ``flag`` the
    continuation bit written after it (always ``PENDING`` for records
    produced by the encoder).
    """
    index: int
    flag: int = PENDING

    def to_bits(self, width: int, size: int) -> List[int]:
        """Serialize into ``size`` bits: index, zero padding, flag."""
        padding = size - width - 1
        if padding < 0:
            raise ValueError(f"record of {size} bits cannot hold a {width}-bit index")
        return to_binary(self.index, width) + [0] * padding + [self.flag]

    @classmethod
    def pop_from(cls, bits: List[int], width: int, size: int) -> "CorrectionRecord":
        """Remove the trailing ``size``-bit record from ``bits`` and return it."""
        if len(bits) < size:
            raise ValueError("stream too short for a correction record")
        flag = bits[-1]
        index = from_binary(bits[len(bits) - size:], width)
        del bits[len(bits) - size:]
        return cls(index=index, flag=flag)

###############################################################################
# Window corrector
###############################################################################

def correct_window(out: List[int], i: int, period: int, n: int, l: int, p: int) -> CorrectionRecord:
    """Collapse the periodic window ``out[i:i+l]`` in place.

    The window has minimal period ``period < p``, so everything from
    ``i + p`` on is implied by the first ``period`` bits and is dropped.
    The bit at ``i + period`` becomes the marker ``1`` and the gap up to
    ``i + p`` is cleared, which lets the decoder find ``period`` again.
    A record of ``l - p`` bits is pushed on the tail so the length stays
    ``n + 1``.
    """
    del out[i + p:i + l]
    out[i + period] = 1
    for j in range(i + period + 1, i + p):
        out[j] = 0
    record = CorrectionRecord(index=i)
    out += record.to_bits(index_width(n), l - p)
    assert len(out) == n + 1, f"length {len(out)} after correction, expected {n + 1}"
    return record

###############################################################################
# Encoder / decoder
###############################################################################

def _check_params(n: int, l: int, p: int) -> None:
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    if p < 1:
        raise ValueError(f"p must be positive, got {p}")
    if l < min_window(n, p):
        raise ValueError(
            f"window l={l} too small: need l >= p + ceil(log2 n) + 1 = {min_window(n, p)}"
        )


def encode_with_records(bits: Sequence[int], n: int, l: int, p: int,
                        max_passes: Optional[int] = DEFAULT_MAX_PASSES
                        ) -> Tuple[List[int], List[CorrectionRecord], int]:
    """Encode ``bits`` and also report how the result was obtained.

    Returns ``(encoded, records, passes)`` where ``records`` lists the
    corrections in the order they were applied and ``passes`` is the number
    of full scans run, including the final clean one.  Raises
    ``ConvergenceError`` if ``max_passes`` scans all applied corrections;
    ``max_passes=None`` scans until a clean pass however long it takes.
    """
    _check_params(n, l, p)
    if len(bits) != n:
        raise ValueError(f"expected {n} input bits, got {len(bits)}")
    if any(b not in (0, 1) for b in bits):
        raise ValueError("input must contain only 0 and 1")

    out = [int(b) for b in bits]
    out.append(DONE)
    records: List[CorrectionRecord] = []
    passes = 0
    while True:
        if max_passes is not None and passes >= max_passes:
            raise ConvergenceError(passes, len(records))
        passes += 1
        found = False
        for i in range((n + 1) - (l - 1)):
            period = compute_min_period(out[i:i + l])
            if period < p:
                records.append(correct_window(out, i, period, n, l, p))
                found = True
        if not found:
            break
    return out, records, passes


def encode(bits: Sequence[int], n: int, l: int, p: int,
           max_passes: Optional[int] = DEFAULT_MAX_PASSES) -> List[int]:
    """Encode ``n`` bits into ``n + 1`` bits with no window period below ``p``."""
    out, _records, _passes = encode_with_records(bits, n, l, p, max_passes=max_passes)
    return out


def _unwind_once(work: List[int], n: int, l: int, p: int) -> CorrectionRecord:
    """Pop the newest record from ``work`` and re-expand its window."""
    record = CorrectionRecord.pop_from(work, index_width(n), l - p)
    index = record.index
    if index + l > n + 1:
        raise ValueError(f"record index {index} out of range")
    # locate the marker: first 1 scanning down from index + p - 1
    period = 0
    for j in range(index + p - 1, index, -1):
        if work[j] == 1:
            period = j - index
            break
    if period == 0:
        raise ValueError(f"no period marker in window at {index}")
    work[index + p:index + p] = [0] * (l - p)
    for k in range(index + period, index + l):
        work[k] = work[k - period]
    assert len(work) == n + 1
    return record


def iter_records(encoded: Sequence[int], n: int, l: int, p: int) -> Iterator[CorrectionRecord]:
    """Yield the correction records of ``encoded``, newest first."""
    _check_params(n, l, p)
    if len(encoded) != n + 1:
        raise ValueError(f"expected {n + 1} encoded bits, got {len(encoded)}")
    work = list(encoded)
    while work[-1] == PENDING:
        yield _unwind_once(work, n, l, p)


def decode(encoded: Sequence[int], n: int, l: int, p: int) -> List[int]:
    """Invert ``encode``.

    Records are unwound while the trailing flag bit is ``0``; once the
    terminator ``1`` is reached it is dropped and the ``n`` original bits
    remain.  Input that was not produced by ``encode`` with the same
    parameters gives an unspecified result or ``ValueError``.
    """
    _check_params(n, l, p)
    if len(encoded) != n + 1:
        raise ValueError(f"expected {n + 1} encoded bits, got {len(encoded)}")
    work = list(encoded)
    while work[-1] == PENDING:
        _unwind_once(work, n, l, p)
    work.pop()
    return work

###############################################################################
# Verification driver
###############################################################################

def check_window_bound(bits: Sequence[int], l: int, p: int) -> bool:
    """True if every length-``l`` window of ``bits`` has minimal period >= ``p``."""
    for i in range(len(bits) - l + 1):
        if compute_min_period(bits[i:i + l]) < p:
            return False
    return True


@dataclass
class VerifyReport:
    n: int
    l: int
    p: int
    checked: int = 0
    total_corrections: int = 0
    max_corrections: int = 0
    max_passes: int = 0
    failures: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def verify(n: int = DEFAULT_N, l: Optional[int] = None, p: int = DEFAULT_P,
           start: int = 0, stop: Optional[int] = None,
           sample: Optional[int] = None, seed: int = 42,
           max_passes: Optional[int] = DEFAULT_MAX_PASSES) -> VerifyReport:
    """Check the period bound and the round trip over many inputs.

    Inputs are the integers ``start .. stop - 1`` (``stop`` defaults to
    ``2**n``) unpacked little-endian into ``n`` bits.  With ``sample`` set,
    only that many of them are drawn with a seeded RNG.  Each input must
    encode to ``n + 1`` bits, satisfy the window bound and decode back to
    itself; inputs failing any of these (or not converging) are collected
    in ``report.failures``.  Progress is drawn when ``G_PROGRESS`` is on.
    """
    if l is None:
        l = min_window(n, p)
    if stop is None:
        stop = 1 << n
    numbers: Sequence[int] = range(start, stop)
    if sample is not None and sample < len(numbers):
        numbers = sorted(random.Random(seed).sample(numbers, sample))

    report = VerifyReport(n=n, l=l, p=p)
    total = len(numbers)
    step = max(1, total // 100)
    for k, num in enumerate(numbers):
        x = to_binary(num, n)
        try:
            encoded, records, passes = encode_with_records(x, n, l, p, max_passes=max_passes)
        except ConvergenceError:
            report.failures.append(num)
        else:
            if (len(encoded) != n + 1
                    or not check_window_bound(encoded, l, p)
                    or decode(encoded, n, l, p) != x):
                report.failures.append(num)
            report.total_corrections += len(records)
            report.max_corrections = max(report.max_corrections, len(records))
            report.max_passes = max(report.max_passes, passes)
        report.checked += 1
        if k % step == 0:
            _print_progress(k, total)
    _print_progress(total, total, final=True)
    return report

###############################################################################
# CLI
###############################################################################

def _parse_bits(text: str) -> List[int]:
    text = text.strip().replace("_", "")
    if not text or any(c not in "01" for c in text):
        raise ValueError(f"not a bit string: {text!r}")
    return [int(c) for c in text]


def _format_bits(bits: Sequence[int]) -> str:
    return "".join(str(b) for b in bits)


def main(argv: Optional[Sequence[str]] = None) -> int:
    import argparse
    global G_PROGRESS
    parser = argparse.ArgumentParser(description="One-bit local de-periodization code")
    parser.add_argument('bits', nargs='?', help="Bit string to encode (or decode with -d)")
    parser.add_argument('-d', '--decode', action='store_true', help="Decode instead of encode")
    parser.add_argument('-n', type=int, default=None,
                        help=f"Input length (default: from BITS, or {DEFAULT_N} for --verify)")
    parser.add_argument('-l', type=int, default=None,
                        help="Window length (default: p + ceil(log2 n) + 1)")
    parser.add_argument('-p', type=int, default=DEFAULT_P,
                        help=f"Period bound (default {DEFAULT_P})")
    parser.add_argument('--records', action='store_true', help="List correction records")
    parser.add_argument('--max-passes', type=int, default=DEFAULT_MAX_PASSES,
                        help="Encoder scan cap, 0 for unbounded")
    parser.add_argument('--verify', action='store_true',
                        help="Check every n-bit input (round trip and period bound)")
    parser.add_argument('--limit', type=int, default=None, help="Only verify inputs below this value")
    parser.add_argument('--sample', type=int, default=None, help="Verify a random sample of inputs")
    parser.add_argument('--seed', type=int, default=42, help="Seed for --sample")
    parser.add_argument('--progress', action='store_true', help="Show a progress bar")
    args = parser.parse_args(argv)

    G_PROGRESS = bool(args.progress)
    max_passes = args.max_passes or None

    if args.verify:
        n = args.n or DEFAULT_N
        l = args.l or min_window(n, args.p)
        report = verify(n, l, args.p, stop=args.limit, sample=args.sample,
                        seed=args.seed, max_passes=max_passes)
        print(f"Parameters: n={n}, l={l}, p={args.p} (where min_l = {min_window(n, args.p)})")
        print(f"Checked {report.checked} inputs, {report.total_corrections} corrections "
              f"(max {report.max_corrections} per input, max {report.max_passes} passes)")
        if report.failures:
            shown = ", ".join(str(x) for x in report.failures[:10])
            print(f"{len(report.failures)} failures: {shown}")
            return 1
        print("All inputs passed.")
        return 0

    if not args.bits:
        parser.print_help()
        return 0
    try:
        bits = _parse_bits(args.bits)
    except ValueError as e:
        parser.error(str(e))

    if args.decode:
        n = args.n if args.n is not None else len(bits) - 1
        l = args.l or min_window(n, args.p)
        if args.records:
            for record in iter_records(bits, n, l, args.p):
                print(f"index={record.index} flag={record.flag}")
        print(_format_bits(decode(bits, n, l, args.p)))
    else:
        n = args.n if args.n is not None else len(bits)
        l = args.l or min_window(n, args.p)
        encoded, records, passes = encode_with_records(bits, n, l, args.p, max_passes=max_passes)
        if args.records:
            for record in records:
                print(f"index={record.index} flag={record.flag}")
            print(f"{len(records)} corrections in {passes} passes")
        print(_format_bits(encoded))
    return 0


if __name__ == '__main__':
    sys.exit(main())
