"""Tests for the gauge registry"""
import threading

import pytest

from metrics.errors import RegistrationError
from metrics.models import MetricDef
from metrics.registry import GaugeRegistry

from conftest import make_target


def metric(name, *labels):
    return MetricDef.model_validate({
        "name": name,
        "valueQuery": ".v",
        "labels": [{"name": label, "query": f".{label}"} for label in labels],
    })


class TestRegistration:
    """Gauge registration and label schemas"""

    def test_register_target(self, gauge_registry, evo_target):
        handles = gauge_registry.register(evo_target)

        assert [h.name for h in handles] == ["evo_capacity", "evo_percentage"]
        assert handles[0].label_names == ("target", "location", "max")
        assert gauge_registry.handle("evo_capacity") is handles[0]

    def test_same_schema_is_shared(self, gauge_registry):
        first = gauge_registry.register_metrics([metric("shared", "room")])[0]
        second = gauge_registry.register_metrics([metric("shared", "room")])[0]

        assert first is second
        assert gauge_registry.list_metrics() == ["shared"]

    def test_conflicting_schema_rejected(self, gauge_registry):
        gauge_registry.register_metrics([metric("shared", "room")])

        with pytest.raises(RegistrationError):
            gauge_registry.register_metrics([metric("shared", "floor")])

    def test_user_label_named_target_rejected(self, gauge_registry):
        with pytest.raises(RegistrationError):
            gauge_registry.register_metrics([metric("m", "target")])

    @pytest.mark.parametrize("label", ["bad-label", "1abc", "__reserved", "with space"])
    def test_invalid_label_name_rejected(self, gauge_registry, label):
        with pytest.raises(RegistrationError):
            gauge_registry.register_metrics([metric("m", label)])

    def test_duplicate_label_rejected(self, gauge_registry):
        with pytest.raises(RegistrationError):
            gauge_registry.register_metrics([metric("m", "room", "room")])

    def test_registries_are_independent(self):
        GaugeRegistry().register_metrics([metric("m", "a")])
        GaugeRegistry().register_metrics([metric("m", "b")])


class TestObservations:
    """Setting and reading gauge values"""

    def test_observe_sets_value(self, gauge_registry):
        [handle] = gauge_registry.register_metrics([metric("m", "room")])

        gauge_registry.observe(handle, ("t1", "a"), 1.0)
        gauge_registry.observe(handle, ("t1", "a"), 4.5)
        gauge_registry.observe(handle, ("t1", "b"), 2.0)

        [snapshot] = gauge_registry.gather_all()
        assert snapshot.name == "m"
        assert snapshot.label_names == ("target", "room")
        assert sorted(snapshot.samples) == [(("t1", "a"), 4.5), (("t1", "b"), 2.0)]

    def test_arity_mismatch_is_programming_error(self, gauge_registry):
        [handle] = gauge_registry.register_metrics([metric("m", "room")])

        with pytest.raises(AssertionError):
            gauge_registry.observe(handle, ("t1",), 1.0)

    def test_render_exposition_format(self, gauge_registry):
        [handle] = gauge_registry.register_metrics([metric("evo_capacity", "location")])
        gauge_registry.observe(handle, ("evo", "EVO Zurich Enge"), 35.0)

        text = gauge_registry.render().decode("utf-8")

        assert "# TYPE evo_capacity gauge" in text
        assert 'evo_capacity{target="evo",location="EVO Zurich Enge"} 35.0' in text

    def test_concurrent_writers_lose_nothing(self, gauge_registry):
        [handle] = gauge_registry.register_metrics([metric("m", "i")])

        def writer(target_name):
            for i in range(200):
                gauge_registry.observe(handle, (target_name, str(i)), float(i))

        threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        [snapshot] = gauge_registry.gather_all()
        assert len(snapshot.samples) == 8 * 200


class TestEviction:
    """Optional time-based removal of stale label combinations"""

    def test_evicts_only_stale_combinations(self, gauge_registry):
        [handle] = gauge_registry.register_metrics([metric("m", "room")])
        gauge_registry.observe(handle, ("t", "old"), 1.0)
        gauge_registry.observe(handle, ("t", "new"), 2.0)

        # Pretend "old" was last seen long ago
        gauge_registry._last_seen[("m", ("t", "old"))] -= 1000

        removed = gauge_registry.evict_stale(500)

        assert removed == 1
        [snapshot] = gauge_registry.gather_all()
        assert snapshot.samples == [(("t", "new"), 2.0)]

    def test_nothing_to_evict(self, gauge_registry):
        gauge_registry.register(make_target())
        assert gauge_registry.evict_stale(60) == 0
