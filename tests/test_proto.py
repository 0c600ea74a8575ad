"""
Tests for prototype extraction
"""

import math

import numpy as np
import pytest

from malheur.config import make_config
from malheur.errors import ConfigurationError
from malheur.features import FeatureArray
from malheur.kernel import KernelEngine
from malheur.proto import PrototypeExtractor, PrototypeSet


def members(pset: PrototypeSet):
    return [p.members for p in pset]


class TestScenario:
    def test_reference_output(self, scenario_array):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5)
        pset = extractor.extract(scenario_array)

        assert len(pset) == 2
        assert members(pset) == [[0, 1, 2], [3, 4]]
        assert [p.source for p in pset] == [0, 3]
        assert pset.assignment.tolist() == [0, 0, 0, 1, 1]

        # Radius is the kernel-induced distance of the farthest member
        assert pset[0].radius == pytest.approx(math.sqrt(2 - 2 * 3 / math.sqrt(15)))
        assert pset[1].radius == pytest.approx(math.sqrt(2 - 2 * 2 / math.sqrt(5)))

    def test_representatives_are_fixed(self, scenario_array):
        pset = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5).extract(scenario_array)
        assert pset[0].representative == scenario_array[0].vector
        assert pset[1].representative == scenario_array[3].vector

    def test_distance_metric(self, scenario_array):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=1.0, metric="distance")
        pset = extractor.extract(scenario_array)
        assert members(pset) == [[0, 1, 2], [3, 4]]
        assert pset[1].radius == pytest.approx(math.sqrt(2 - 4 / math.sqrt(5)))

    def test_from_config(self, scenario_array):
        cfg = make_config(prototypes={"threshold": 0.5})
        pset = PrototypeExtractor.from_config(cfg).extract(scenario_array)
        assert members(pset) == [[0, 1, 2], [3, 4]]


class TestProperties:
    def test_deterministic(self, scenario_array):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5)
        first = extractor.extract(scenario_array)
        second = extractor.extract(scenario_array)
        assert members(first) == members(second)
        assert first.distances().tolist() == second.distances().tolist()

    def test_order_sensitive(self, space):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.7)
        reports = {"A": ["a"], "B": ["a", "b"], "C": ["b"]}

        abc = FeatureArray.from_tokens([(k, reports[k]) for k in "ABC"], space)
        bac = FeatureArray.from_tokens([(k, reports[k]) for k in "BAC"], space)

        assert members(extractor.extract(abc)) == [[0, 1], [2]]
        assert members(extractor.extract(bac)) == [[0, 1, 2]]

    def test_earliest_prototype_wins_ties(self, space):
        fa = FeatureArray.from_tokens([("x", ["a"]), ("y", ["b"]), ("xy", ["a", "b"])], space)
        pset = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5).extract(fa)
        assert members(pset) == [[0, 2], [1]]

    def test_assignment_complete_and_disjoint(self, space):
        rng = np.random.default_rng(5)
        items = [
            (f"r{i}", [f"t{t}" for t in rng.integers(0, 12, size=rng.integers(1, 6))])
            for i in range(60)
        ]
        fa = FeatureArray.from_tokens(items, space)
        pset = PrototypeExtractor(KernelEngine("cosine"), threshold=0.6).extract(fa)

        pset.validate(len(fa))
        all_members = sorted(m for p in pset for m in p.members)
        assert all_members == list(range(60))
        assert (pset.assignment >= 0).all()
        np.testing.assert_array_equal(pset.assignment_matrix().sum(axis=1), np.ones(60))

    def test_stricter_threshold_never_decreases_k(self, scenario_array):
        engine = KernelEngine("cosine")
        ks = [
            len(PrototypeExtractor(engine, threshold=t).extract(scenario_array))
            for t in (0.0, 0.3, 0.5, 0.8, 0.95, 1.0)
        ]
        assert ks == sorted(ks)
        assert ks[0] == 1
        assert ks[2] == 2
        assert ks[3] == 3

    def test_degenerate_all_singletons(self, space):
        fa = FeatureArray.from_tokens([(str(i), [f"tok{i}"]) for i in range(8)], space)
        pset = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5).extract(fa)
        assert len(pset) == 8
        assert all(p.members == [p.id] and p.radius == 0.0 for p in pset)

    def test_empty_array(self):
        pset = PrototypeExtractor(KernelEngine()).extract(FeatureArray())
        assert len(pset) == 0
        assert pset.stats()["n_prototypes"] == 0


class TestValidation:
    @pytest.mark.parametrize("threshold,metric", [
        (1.5, "similarity"),
        (-0.1, "similarity"),
        (1.5, "distance"),
        (float("nan"), "similarity"),
        (float("inf"), "distance"),
    ])
    def test_invalid_threshold_cosine(self, threshold, metric):
        with pytest.raises(ConfigurationError):
            PrototypeExtractor(KernelEngine("cosine"), threshold=threshold, metric=metric)

    def test_linear_allows_large_threshold(self):
        extractor = PrototypeExtractor(KernelEngine("linear"), threshold=10.0)
        assert extractor.threshold == 10.0

    def test_unknown_metric(self):
        with pytest.raises(ConfigurationError):
            PrototypeExtractor(KernelEngine(), threshold=0.5, metric="angle")

    def test_validate_detects_overlap(self, scenario_array):
        pset = PrototypeExtractor(KernelEngine(), threshold=0.5).extract(scenario_array)
        pset[1].members.append(0)
        with pytest.raises(ValueError):
            pset.validate()

    def test_validate_detects_missing(self, scenario_array):
        pset = PrototypeExtractor(KernelEngine(), threshold=0.5).extract(scenario_array)
        pset[1].members.remove(4)
        with pytest.raises(ValueError):
            pset.validate()


class TestAssign:
    def test_assign_to_own_prototypes(self, scenario_array):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5)
        pset = extractor.extract(scenario_array)
        again = extractor.assign(scenario_array, pset)
        assert members(again) == members(pset)
        assert [p.source for p in again] == [0, 3]
        np.testing.assert_allclose(again.distances(), pset.distances())
        again.validate()

    def test_assign_ignores_threshold(self, scenario_array, space):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.99)
        pset = extractor.extract(FeatureArray.from_tokens([("p", ["a"]), ("q", ["z"])], space))
        again = extractor.assign(scenario_array, pset)
        assert members(again) == [[0, 1, 2], [3, 4]]
        assert again.n_reports == 5

    def test_unused_prototype_has_no_source(self, space):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5)
        pset = extractor.extract(FeatureArray.from_tokens([("p", ["a"]), ("q", ["z"])], space))
        again = extractor.assign(FeatureArray.from_tokens([("r", ["a", "b"])], space), pset)
        assert members(again) == [[0], []]
        assert [p.source for p in again] == [0, -1]

    def test_assign_without_prototypes(self, scenario_array):
        extractor = PrototypeExtractor(KernelEngine("cosine"), threshold=0.5)
        with pytest.raises(ValueError):
            extractor.assign(scenario_array, PrototypeSet(n_reports=0))


class TestStats:
    def test_stats(self, scenario_array):
        pset = PrototypeExtractor(KernelEngine(), threshold=0.5).extract(scenario_array)
        stats = pset.stats()
        assert stats["n_prototypes"] == 2
        assert stats["max_size"] == 3
        assert stats["min_size"] == 2
        assert stats["compression_ratio"] == pytest.approx(0.4)

    def test_assignment_matrix(self, scenario_array):
        pset = PrototypeExtractor(KernelEngine(), threshold=0.5).extract(scenario_array)
        M = pset.assignment_matrix()
        assert M.shape == (5, 2)
        np.testing.assert_array_equal(M.argmax(axis=1), [0, 0, 0, 1, 1])
