import logging
import random
import threading

import pytest

from crtfountain import (
    Bucket,
    CoprimeSequence,
    Config,
    DataTooLarge,
    Fountain,
    Incomplete,
    InvalidArgument,
    ReconstructionFailed,
)


def _random_bytes(n, seed=0):
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(n))


def _fill(fountain, bucket, indices):
    for i in indices:
        bucket.push(i, fountain.generate(i))


def _feed_until_complete(fountain, bucket, indices):
    used = 0
    for i in indices:
        bucket.push(i, fountain.generate(i))
        used += 1
        if bucket.is_complete():
            return used
    raise AssertionError("ran out of bundles before completion")


def test_config_geometry():
    config = Config.create(4096, 64)
    assert config.padded_length == 4096
    assert config.min_bundles == 64
    assert config.hunk_size == 128
    assert config.num_hunks == 32
    assert config.bundle_shorts == 32

    config = Config.create(1000, 128)
    assert config.padded_length == 1024
    assert config.min_bundles == 8
    assert config.num_hunks == 64

    assert Config.create(0, 128).min_bundles == 1


def test_round_trip():
    data = _random_bytes(1000, seed=1)
    fountain = Fountain(data, 128)
    bucket = Bucket(len(data), 128)

    used = _feed_until_complete(fountain, bucket, range(100))
    assert used == fountain.min_bundles + 1
    assert bucket.recover_data() == data


def test_min_bundles_are_not_enough():
    data = _random_bytes(512, seed=2)
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    _fill(fountain, bucket, range(fountain.min_bundles))
    assert not bucket.is_complete()
    with pytest.raises(Incomplete):
        bucket.recover_data()


def test_loss_tolerance():
    data = _random_bytes(4096, seed=3)
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    kept = (i for i in range(1000) if i % 5 and i % 7)
    _feed_until_complete(fountain, bucket, kept)
    assert all(i % 5 and i % 7 for i in bucket.received)
    assert bucket.recover_data() == data


def test_random_loss():
    data = _random_bytes(3000, seed=4)
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    rng = random.Random(4)
    kept = (i for i in range(1000) if rng.random() > 0.4)
    _feed_until_complete(fountain, bucket, kept)
    assert bucket.recover_data() == data


def test_order_independence():
    data = _random_bytes(700, seed=5)
    fountain = Fountain(data, 64)

    indices = list(range(3, 40, 2))
    shuffled = indices[:]
    random.Random(5).shuffle(shuffled)

    forward = Bucket(len(data), 64)
    backward = Bucket(len(data), 64)
    _fill(fountain, forward, indices)
    _fill(fountain, backward, shuffled)

    assert forward.received == backward.received == tuple(indices)
    assert forward.recover_data() == backward.recover_data() == data


def test_completeness_is_monotonic():
    data = _random_bytes(600, seed=6)
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    seen_complete = False
    last_progress = 0.0
    for i in range(30):
        bucket.push(i, fountain.generate(i))
        complete = bucket.is_complete()
        assert complete or not seen_complete
        seen_complete = complete

        progress = bucket.progress()
        assert last_progress <= progress <= 1.0
        last_progress = progress

    assert seen_complete
    assert bucket.progress() == 1.0


@pytest.mark.parametrize("fill", [0x00, 0xFF])
def test_uniform_buffers(fill):
    data = bytes([fill]) * 2048
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    _feed_until_complete(fountain, bucket, range(100))
    assert bucket.recover_data() == data


def test_unaligned_length_is_truncated_back():
    data = _random_bytes(1001, seed=7)
    fountain = Fountain(data, 128)
    bucket = Bucket(len(data), 128)

    _feed_until_complete(fountain, bucket, range(50, 150))
    assert bucket.recover_data() == data


def test_empty_data():
    fountain = Fountain(b"", 128)
    bucket = Bucket(0, 128)
    assert fountain.min_bundles == 1
    assert fountain.generate(0) == bytes(128)

    _feed_until_complete(fountain, bucket, range(10))
    assert bucket.recover_data() == b""


def test_duplicate_push_replaces_bundle():
    data = _random_bytes(256, seed=8)
    fountain = Fountain(data, 128)
    bucket = Bucket(len(data), 128)

    bucket.push(0, bytes(128))
    bucket.push(0, fountain.generate(0))
    assert len(bucket) == 1

    _feed_until_complete(fountain, bucket, range(1, 10))
    assert bucket.recover_data() == data


def test_index_mismatch_is_rejected():
    data = bytes(range(256)) * 2
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    count = fountain.min_bundles + 1
    for i in range(count):
        bucket.push(count - 1 - i, fountain.generate(i))
    assert bucket.is_complete()

    with pytest.raises(ReconstructionFailed):
        bucket.recover_data()


def test_overshoot_retries_without_highest_bundle(caplog):
    # no zero bytes, so every hunk is exactly hunk_size bytes long
    data = bytes((i % 255) + 1 for i in range(512))
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    good = fountain.min_bundles + 2
    _fill(fountain, bucket, range(good))
    # a bundle filed under the wrong index, highest of the set
    bucket.push(good, fountain.generate(good + 5))

    with caplog.at_level(logging.WARNING, logger="crtfountain"):
        assert bucket.recover_data() == data
    assert f"retrying without bundle {good}" in caplog.text


def test_overshoot_without_surplus_fails():
    data = bytes((i % 255) + 1 for i in range(512))
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)

    good = fountain.min_bundles
    _fill(fountain, bucket, range(good))
    bucket.push(good, fountain.generate(good + 5))
    assert bucket.is_complete()

    with pytest.raises(ReconstructionFailed):
        bucket.recover_data()


def test_generate_with_framing_space():
    data = _random_bytes(300, seed=9)
    fountain = Fountain(data, 128)

    plain = fountain.generate(3)
    framed = fountain.generate(3, extra_size=12, offset=8)
    assert len(framed) == 140
    assert framed[8:136] == plain
    assert framed[:8] == bytes(8)
    assert framed[136:] == bytes(4)


def test_bundle_stream():
    fountain = Fountain(b"stream", 128)
    stream = fountain.bundles(start=5)
    assert next(stream) == (5, fountain.generate(5))
    assert next(stream) == (6, fountain.generate(6))


def test_generate_is_deterministic():
    data = _random_bytes(900, seed=10)
    assert Fountain(data, 64).generate(17) == Fountain(data, 64).generate(17)


@pytest.mark.parametrize("bundle_size", [0, -2, 63])
def test_invalid_bundle_size(bundle_size):
    with pytest.raises(InvalidArgument):
        Fountain(b"abc", bundle_size)
    with pytest.raises(InvalidArgument):
        Bucket(3, bundle_size)


def test_data_too_large():
    with pytest.raises(DataTooLarge):
        Fountain(bytes(128 * 100 + 1), 128)
    with pytest.raises(DataTooLarge):
        Bucket(128 * 100 + 1, 128)
    # exactly 100 bundles is still fine
    assert Fountain(bytes(128 * 100), 128).min_bundles == 100


def test_generate_errors():
    fountain = Fountain(b"abc", 128)
    with pytest.raises(InvalidArgument):
        fountain.generate(-1)
    with pytest.raises(InvalidArgument):
        fountain.generate(0, extra_size=4, offset=5)
    with pytest.raises(InvalidArgument):
        fountain.generate(0, extra_size=-1)


def test_push_errors():
    bucket = Bucket(100, 128)
    with pytest.raises(InvalidArgument):
        bucket.push(-1, bytes(128))
    with pytest.raises(InvalidArgument):
        bucket.push(0, bytes(127))


def test_incomplete_is_a_value_error():
    bucket = Bucket(100, 128)
    with pytest.raises(ValueError):
        bucket.recover_data()


def test_small_residues_fill_both_bytes():
    # a 2-byte bundle holds a single hunk, so its residue is the hunk itself
    assert Fountain(b"\x00\x07", 2).generate(0) == b"\x00\x07"
    assert Fountain(b"\x01\x02", 2).generate(0) == b"\x01\x02"
    assert Fountain(b"\x00\x00", 2).generate(0) == b"\x00\x00"


def test_concurrent_pushes():
    data = _random_bytes(2000, seed=11)
    fountain = Fountain(data, 64)
    bucket = Bucket(len(data), 64)
    bundles = {i: fountain.generate(i) for i in range(60)}

    def worker(start):
        for i in range(start, 60, 4):
            bucket.push(i, bundles[i])

    threads = [threading.Thread(target=worker, args=(k,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert bucket.received == tuple(range(60))
    assert bucket.recover_data() == data


def test_concurrent_generate_matches_serial():
    data = _random_bytes(1500, seed=12)
    expected = [Fountain(data, 64).generate(i) for i in range(80)]

    fountain = Fountain(data, 64, CoprimeSequence())
    results = {}

    def worker(k):
        results[k] = [fountain.generate(i) for i in range(80)]

    threads = [threading.Thread(target=worker, args=(k,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for k in range(4):
        assert results[k] == expected
