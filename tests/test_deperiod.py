import itertools
import random

import pytest

import deperiod
from deperiod import (
    ConvergenceError,
    CorrectionRecord,
    check_window_bound,
    compute_min_period,
    compute_periods,
    compute_z,
    decode,
    encode,
    encode_with_records,
    from_binary,
    has_short_period,
    index_width,
    iter_records,
    min_window,
    to_binary,
    verify,
)

N, L, P = 20, 20, 14

# all-zero input worked by hand: two corrections in the first pass
# (windows 0 and 1), a clean second pass
ZEROS_ENCODED = [0, 1] + [0] * 12 + [1] + [1, 0, 0, 0, 0] + [0]


def brute_z(s):
    z = [0] * len(s)
    for i in range(1, len(s)):
        while i + z[i] < len(s) and s[z[i]] == s[i + z[i]]:
            z[i] += 1
    return z


def brute_periods(s):
    m = len(s)
    return [q for q in range(1, m + 1) if all(s[i] == s[i + q] for i in range(m - q))]


def all_sequences(max_len):
    for m in range(1, max_len + 1):
        for seq in itertools.product((0, 1), repeat=m):
            yield list(seq)


# --- bit / integer conversion ---

def test_to_binary_is_little_endian():
    assert to_binary(6, 4) == [0, 1, 1, 0]
    assert to_binary(0, 0) == []


def test_binary_round_trip():
    for width in range(7):
        for v in range(1 << width):
            assert from_binary(to_binary(v, width), width) == v


def test_from_binary_reads_only_width_bits():
    assert from_binary([1, 1, 1, 1], 2) == 3


def test_binary_rejects_bad_arguments():
    with pytest.raises(ValueError):
        to_binary(16, 4)
    with pytest.raises(ValueError):
        to_binary(-1, 4)
    with pytest.raises(ValueError):
        from_binary([1, 0], 3)


@pytest.mark.parametrize("n, width", [(1, 0), (2, 1), (3, 2), (4, 2), (5, 3), (20, 5), (32, 5), (33, 6)])
def test_index_width(n, width):
    assert index_width(n) == width


def test_min_window():
    assert min_window(20, 14) == 20
    with pytest.raises(ValueError):
        index_width(0)


# --- period analysis ---

def test_compute_z_matches_brute_force():
    for s in all_sequences(8):
        assert compute_z(s) == brute_z(s), s


def test_compute_periods_matches_brute_force():
    for s in all_sequences(10):
        assert compute_periods(s) == brute_periods(s), s


def test_alternating_periods():
    s = [1, 0, 1, 0, 1, 0]
    assert compute_min_period(s) == 2
    assert compute_periods(s) == [2, 4, 6]


def test_length_is_always_a_period():
    rng = random.Random(7)
    for _ in range(200):
        s = [rng.getrandbits(1) for _ in range(rng.randint(1, 40))]
        periods = compute_periods(s)
        assert periods[-1] == len(s)
        assert periods == sorted(periods)


def test_empty_sequence():
    assert compute_periods([]) == []
    with pytest.raises(ValueError):
        compute_min_period([])


def test_has_short_period():
    assert has_short_period([0] * 20, 14)
    assert not has_short_period([1] + [0] * 19, 14)


# --- correction records ---

def test_record_layout_without_padding():
    assert CorrectionRecord(1).to_bits(5, 6) == [1, 0, 0, 0, 0, 0]


def test_record_layout_with_padding():
    assert CorrectionRecord(3).to_bits(5, 8) == [1, 1, 0, 0, 0, 0, 0, 0]


def test_record_too_small():
    with pytest.raises(ValueError):
        CorrectionRecord(0).to_bits(5, 5)


def test_pop_record_from_tail():
    bits = [1, 1, 1] + CorrectionRecord(6).to_bits(5, 7)
    record = CorrectionRecord.pop_from(bits, 5, 7)
    assert record == CorrectionRecord(index=6, flag=deperiod.PENDING)
    assert bits == [1, 1, 1]


# --- encoder / decoder ---

def test_encode_zeros_trace():
    encoded, records, passes = encode_with_records([0] * N, N, L, P)
    assert encoded == ZEROS_ENCODED
    assert records == [CorrectionRecord(0), CorrectionRecord(1)]
    assert passes == 2


def test_decode_zeros_trace():
    assert [r.index for r in iter_records(ZEROS_ENCODED, N, L, P)] == [1, 0]
    assert decode(ZEROS_ENCODED, N, L, P) == [0] * N


def test_aperiodic_input_is_only_terminated():
    x = [1] + [0] * 19
    encoded, records, passes = encode_with_records(x, N, L, P, max_passes=1)
    assert encoded == x + [1]
    assert records == []
    assert passes == 1
    assert list(iter_records(encoded, N, L, P)) == []
    assert decode(encoded, N, L, P) == x


def test_convergence_cap():
    with pytest.raises(ConvergenceError) as info:
        encode([0] * N, N, L, P, max_passes=1)
    assert info.value.passes == 1
    assert info.value.corrections == 2
    assert isinstance(info.value, RuntimeError)


def test_unbounded_loop_matches_default():
    x = [1, 1, 0] * 6 + [1, 0]
    assert encode(x, N, L, P, max_passes=None) == encode(x, N, L, P)


def _check(x, n=N, l=L, p=P):
    encoded = encode(x, n, l, p)
    assert len(encoded) == n + 1
    assert check_window_bound(encoded, l, p)
    assert decode(encoded, n, l, p) == list(x)


@pytest.mark.parametrize("x", [
    [0] * N,
    [1] * N,
    [i & 1 for i in range(N)],
    [1, 1, 0] * 6 + [1, 1],
    [1, 0, 0, 1] * 5,
    [0] * 10 + [1] * 10,
])
def test_structured_inputs(x):
    _check(x)


def test_random_inputs():
    rng = random.Random(2024)
    for _ in range(300):
        _check(to_binary(rng.getrandbits(N), N))


def test_leading_range_of_inputs():
    for num in range(2048):
        _check(to_binary(num, N))


def test_wider_window_pads_records():
    l = L + 1
    encoded, records, passes = encode_with_records([1] * N, N, l, P)
    assert encoded == [1, 1] + [0] * 19
    assert records == [CorrectionRecord(0)]
    assert passes == 2
    assert decode(encoded, N, l, P) == [1] * N


def test_window_longer_than_stream():
    x = [0] * 8
    assert encode(x, 8, 12, 4) == x + [1]
    assert decode(x + [1], 8, 12, 4) == x


def test_encode_rejects_bad_input():
    with pytest.raises(ValueError):
        encode([0] * (N - 1), N, L, P)
    with pytest.raises(ValueError):
        encode([0] * (N - 1) + [2], N, L, P)
    with pytest.raises(ValueError):
        encode([0] * N, N, L - 1, P)
    with pytest.raises(ValueError):
        encode([0] * N, N, L, 0)
    with pytest.raises(ValueError):
        encode([], 0, L, P)


def test_decode_rejects_bad_length():
    with pytest.raises(ValueError):
        decode([1] * N, N, L, P)


def test_decode_missing_marker():
    with pytest.raises(ValueError):
        decode([0] * (N + 1), N, L, P)


def test_decode_index_out_of_range():
    # record index 3: window [3, 23) does not fit into 21 bits
    with pytest.raises(ValueError):
        decode([1] * 15 + [1, 1, 0, 0, 0] + [0], N, L, P)


def test_check_window_bound():
    assert not check_window_bound([0] * N, L, P)
    assert check_window_bound(ZEROS_ENCODED, L, P)


# --- verification driver ---

def test_verify_range():
    report = verify(N, L, P, stop=256)
    assert report.ok
    assert report.checked == 256
    assert report.max_passes >= 2
    assert report.total_corrections >= report.max_corrections > 0


def test_verify_sample():
    report = verify(N, None, P, sample=50, seed=1)
    assert report.l == L
    assert report.checked == 50
    assert report.ok


def test_verify_reports_convergence_failures():
    report = verify(N, L, P, stop=1, max_passes=1)
    assert report.failures == [0]
    assert not report.ok


# --- CLI ---

def test_cli_encode(capsys):
    assert deperiod.main(["0" * N]) == 0
    out = capsys.readouterr().out
    assert out.strip() == "".join(map(str, ZEROS_ENCODED))


def test_cli_encode_records(capsys):
    assert deperiod.main(["--records", "0" * N]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[:3] == ["index=0 flag=0", "index=1 flag=0", "2 corrections in 2 passes"]


def test_cli_decode(capsys):
    encoded = "".join(map(str, ZEROS_ENCODED))
    assert deperiod.main(["-d", encoded, "-n", str(N)]) == 0
    assert capsys.readouterr().out.strip() == "0" * N


def test_cli_verify(capsys):
    assert deperiod.main(["--verify", "--limit", "64"]) == 0
    out = capsys.readouterr().out
    assert "Checked 64 inputs" in out
    assert "All inputs passed." in out


def test_cli_rejects_non_bits():
    with pytest.raises(SystemExit) as info:
        deperiod.main(["01x"])
    assert info.value.code == 2


def test_cli_without_input_prints_help(capsys):
    assert deperiod.main([]) == 0
    assert "usage" in capsys.readouterr().out
