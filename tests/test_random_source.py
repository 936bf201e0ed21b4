import statistics

from rsim.random_source import SeededRandom, hash_string_to_seed, shock_sequence, stream, trial_seed


def test_hash_is_stable_fnv1a():
    assert hash_string_to_seed("") == 2166136261
    assert hash_string_to_seed("scenario:2025-01-01") == hash_string_to_seed("scenario:2025-01-01")
    assert hash_string_to_seed("a") != hash_string_to_seed("b")


def test_lcg_first_draw():
    rng = SeededRandom(1)
    assert rng.random() == 1015568748 / 2**32


def test_same_seed_replays_the_same_stream():
    a = stream(42, "returns:h1")
    b = stream(42, "returns:h1")
    assert [a.normal() for _ in range(50)] == [b.normal() for _ in range(50)]
    assert stream(42, "returns:h1").normal() != stream(42, "returns:h2").normal()


def test_trial_zero_keeps_the_base_seed():
    assert trial_seed(99, 0) == 99
    assert trial_seed(99, 1) != 99
    assert trial_seed(99, 1) != trial_seed(99, 2)


def test_shock_sequence_has_unit_variance():
    shocks = shock_sequence(SeededRandom(123), 5000)
    assert abs(statistics.fmean(shocks)) < 0.1
    assert 0.85 < statistics.pvariance(shocks) < 1.15


def test_persistent_shocks_are_autocorrelated():
    shocks = shock_sequence(SeededRandom(7), 4000, persistence=0.9)
    mean = statistics.fmean(shocks)
    numerator = sum((a - mean) * (b - mean) for a, b in zip(shocks, shocks[1:]))
    denominator = sum((value - mean) ** 2 for value in shocks)
    assert numerator / denominator > 0.8
    assert 0.7 < statistics.pvariance(shocks) < 1.3
