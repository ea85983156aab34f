import random
from itertools import islice

import pytest

from crtfountain import Incomplete, InvalidArgument, PacketDecoder, PacketEncoder, data_hash
from crtfountain.framing import CHECKSUM_SIZE, HEADER_SIZE, OVERHEAD


def _random_bytes(n, seed=0):
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(n))


def _frame(index, length, payload):
    body = index.to_bytes(4, "big") + length.to_bytes(4, "big") + payload
    return body + data_hash(body).to_bytes(CHECKSUM_SIZE, "big")


def test_data_hash_basics():
    assert data_hash(b"") == 0x800800
    assert data_hash(b"abcXYZ", 3) == data_hash(b"abc")
    assert data_hash(b"abc") != data_hash(b"abd")
    assert data_hash(b"\x00") != data_hash(b"\x00\x00")
    assert 0 < data_hash(_random_bytes(100)) <= 0xFFFFFFFF


def test_single_byte_changes_move_the_hash():
    data = bytearray(_random_bytes(64, seed=1))
    reference = data_hash(data)
    for pos in range(len(data)):
        damaged = bytearray(data)
        damaged[pos] ^= 0x01
        assert data_hash(damaged) != reference


def test_packet_layout():
    data = _random_bytes(1000, seed=2)
    encoder = PacketEncoder(data)
    assert encoder.bundle_size == 128

    packet = encoder.packet(7)
    assert len(packet) == 128 + OVERHEAD
    assert int.from_bytes(packet[0:4], "big") == 7
    assert int.from_bytes(packet[4:8], "big") == 1000
    checked = len(packet) - CHECKSUM_SIZE
    assert int.from_bytes(packet[checked:], "big") == data_hash(packet[:checked])


def test_encoder_numbering():
    encoder = PacketEncoder(b"hello", first_index=3)
    indices = [int.from_bytes(p[0:4], "big") for p in islice(encoder, 4)]
    assert indices == [3, 4, 5, 6]
    assert encoder.next_packet() == encoder.packet(7)


def test_encoder_errors():
    encoder = PacketEncoder(b"hello")
    with pytest.raises(InvalidArgument):
        encoder.packet(-1)
    with pytest.raises(InvalidArgument):
        encoder.packet(1 << 32)


def test_clean_channel():
    data = _random_bytes(5000, seed=3)
    encoder = PacketEncoder(data)
    decoder = PacketDecoder()

    for packet in islice(encoder, 200):
        assert decoder.deliver(packet)
        if decoder.is_complete():
            break

    assert decoder.length == 5000
    assert decoder.recover_data() == data


def test_corrupted_packets_are_dropped():
    data = _random_bytes(300, seed=4)
    encoder = PacketEncoder(data)
    decoder = PacketDecoder()
    packet = encoder.packet(1)

    for pos in range(len(packet)):
        damaged = bytearray(packet)
        damaged[pos] ^= 0x40
        assert not decoder.deliver(bytes(damaged))

    assert decoder.bucket is None
    assert decoder.length is None
    assert decoder.deliver(packet)
    assert decoder.bucket.received == (1,)


def test_short_packets_are_dropped():
    decoder = PacketDecoder()
    assert not decoder.deliver(b"")
    assert not decoder.deliver(bytes(OVERHEAD))


def test_wrong_payload_size_is_dropped():
    decoder = PacketDecoder()
    data = _random_bytes(300, seed=5)
    assert decoder.deliver(PacketEncoder(data).packet(0))

    assert not decoder.deliver(_frame(1, 300, bytes(64)))
    assert decoder.bucket.received == (0,)


def test_packets_of_another_session_are_dropped():
    first = PacketEncoder(_random_bytes(400, seed=6))
    other = PacketEncoder(_random_bytes(401, seed=7))
    decoder = PacketDecoder()

    assert decoder.deliver(first.packet(0))
    assert not decoder.deliver(other.packet(1))
    assert decoder.length == 400
    assert decoder.bucket.received == (0,)


def test_unusable_session_is_dropped():
    decoder = PacketDecoder(bundle_size=128)
    big = PacketEncoder(bytes(20000), bundle_size=256)
    assert not decoder.deliver(big.packet(0))
    assert decoder.bucket is None


def test_explicit_bundle_size():
    data = _random_bytes(2000, seed=8)
    encoder = PacketEncoder(data, bundle_size=64)
    decoder = PacketDecoder(bundle_size=64)

    for packet in encoder:
        decoder.deliver(packet)
        if decoder.is_complete():
            break
    assert decoder.recover_data() == data


def test_recover_before_any_packet():
    decoder = PacketDecoder()
    assert not decoder.is_complete()
    with pytest.raises(Incomplete):
        decoder.recover_data()


def test_lossy_noisy_disordered_channel():
    rng = random.Random(9)
    data = _random_bytes(6000, seed=9)
    encoder = PacketEncoder(data)
    decoder = PacketDecoder()

    in_flight = []
    dropped = 0
    for packet in islice(encoder, 2000):
        if rng.random() < 0.3:
            continue
        if rng.random() < 0.2:
            damaged = bytearray(packet)
            damaged[rng.randrange(len(damaged))] ^= rng.randrange(1, 256)
            packet = bytes(damaged)

        in_flight.append(packet)
        if len(in_flight) < 8:
            continue
        if not decoder.deliver(in_flight.pop(rng.randrange(len(in_flight)))):
            dropped += 1
        if decoder.is_complete():
            break

    assert decoder.is_complete()
    assert dropped > 0
    assert decoder.recover_data() == data


def test_payload_and_header_share_one_checksum():
    data = _random_bytes(500, seed=10)
    packet = bytearray(PacketEncoder(data).packet(2))
    # claiming another index breaks the checksum too
    packet[3] ^= 0x01
    assert not PacketDecoder().deliver(bytes(packet))
    assert len(packet) - HEADER_SIZE - CHECKSUM_SIZE == 128
