from tinnitusbuilder_core.utils.rng import XorShift32, default_seed


def test_zero_seed_is_remapped():
    assert XorShift32(0).state == 0x12345678
    # seeds are taken modulo 2**32
    assert XorShift32(2 ** 32).state == 0x12345678


def test_first_output_for_seed_one():
    rng = XorShift32(1)
    assert rng.next_uint() == 270369
    assert rng.state == 270369


def test_state_stays_within_32_bits():
    rng = XorShift32(0xFFFFFFFF)
    for _ in range(1000):
        value = rng.next_uint()
        assert 0 < value <= 0xFFFFFFFF


def test_random_and_uniform_ranges():
    rng = XorShift32(12345)
    for _ in range(2000):
        assert 0.0 <= rng.random() < 1.0
        value = rng.uniform(96.0, 256.0)
        assert 96.0 <= value < 256.0


def test_same_seed_reproduces_stream():
    a = XorShift32(987654321)
    b = XorShift32(987654321)
    assert [a.uniform(0, 1) for _ in range(50)] == [b.uniform(0, 1) for _ in range(50)]


def test_different_seeds_diverge():
    a = XorShift32(1)
    b = XorShift32(2)
    assert [a.next_uint() for _ in range(5)] != [b.next_uint() for _ in range(5)]


def test_negative_seed_wraps_to_32_bits():
    assert XorShift32(-1).state == 0xFFFFFFFF


def test_default_seed_is_32_bit():
    assert 0 <= default_seed() <= 0xFFFFFFFF
