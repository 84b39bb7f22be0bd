"""
Property-based tests for the zone delta engine

This module uses hypothesis to check the insert/update/delete laws of
compute_delta against arbitrary fresh and stored catalogs.
"""

import pytest
from datetime import datetime, timedelta, timezone
from hypothesis import given, strategies as st, settings
from hypothesis.strategies import composite
from typing import Dict, List

from weathersync.core.delta import ZoneDelta, compute_delta
from weathersync.core.models import Polygon, Zone


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _zone(uri: str, eff: int, zone_id=None, name: str = "") -> Zone:
    return Zone(
        uri=uri,
        code=uri.upper(),
        type="forecast",
        name=name or uri,
        effective_date=BASE + timedelta(days=eff),
        id=zone_id,
    )


@composite
def catalogs(draw):
    """(fresh list, stored dict) over a shared pool of URIs"""
    uris = draw(st.lists(st.sampled_from([f"z{i}" for i in range(12)]), unique=True, max_size=12))
    fresh_uris = draw(st.lists(st.sampled_from(uris), unique=True)) if uris else []
    stored_uris = draw(st.lists(st.sampled_from(uris), unique=True)) if uris else []

    fresh = [_zone(u, draw(st.integers(min_value=0, max_value=5))) for u in fresh_uris]
    stored = {
        u: _zone(u, draw(st.integers(min_value=0, max_value=5)), zone_id=i + 1)
        for i, u in enumerate(stored_uris)
    }
    return fresh, stored


def _uris(zones: List[Zone]) -> set:
    return {z.uri for z in zones}


def _apply(delta: ZoneDelta, stored: Dict[str, Zone]) -> Dict[str, Zone]:
    after = dict(stored)
    for z in delta.delete:
        del after[z.uri]
    for z in delta.insert_update():
        after[z.uri] = z
    return after


class TestDeltaLaws:
    """compute_delta set laws"""

    @given(catalogs())
    def test_insert_is_fresh_minus_stored(self, data):
        """Insert = fresh without the stored keys"""
        fresh, stored = data
        delta = compute_delta(fresh, stored)

        assert _uris(delta.insert) == _uris(fresh) - set(stored)

    @given(catalogs())
    def test_delete_is_stored_minus_fresh(self, data):
        """Delete = stored keys without the fresh URIs"""
        fresh, stored = data
        delta = compute_delta(fresh, stored)

        assert _uris(delta.delete) == set(stored) - _uris(fresh)

    @given(catalogs())
    def test_update_only_strictly_newer(self, data):
        """Update holds exactly the shared zones with a strictly newer date"""
        fresh, stored = data
        delta = compute_delta(fresh, stored)

        expected = {
            f.uri for f in fresh
            if f.uri in stored and stored[f.uri].effective_date < f.effective_date
        }
        assert _uris(delta.update) == expected

    @given(catalogs())
    def test_sets_are_disjoint(self, data):
        """Insert, update and delete never share a URI"""
        fresh, stored = data
        delta = compute_delta(fresh, stored)

        ins, upd, dele = _uris(delta.insert), _uris(delta.update), _uris(delta.delete)
        assert not ins & upd
        assert not ins & dele
        assert not upd & dele
        assert delta.total_operations() <= len(fresh) + len(stored)

    @given(catalogs())
    def test_update_keeps_stored_identity(self, data):
        """An update carries the stored id and the fresh fields"""
        fresh, stored = data
        delta = compute_delta(fresh, stored)
        by_uri = {f.uri: f for f in fresh}

        for z in delta.update:
            assert z.id == stored[z.uri].id
            assert z.effective_date == by_uri[z.uri].effective_date
            assert z.name == by_uri[z.uri].name

    @given(catalogs())
    def test_stored_mapping_not_mutated(self, data):
        """The caller's stored mapping is left as it was"""
        fresh, stored = data
        before = dict(stored)

        compute_delta(fresh, stored)

        assert stored == before

    @given(catalogs())
    @settings(max_examples=50)
    def test_applied_delta_is_idempotent(self, data):
        """Re-running against the post-state yields an empty delta"""
        fresh, stored = data
        after = _apply(compute_delta(fresh, stored), stored)

        again = compute_delta(fresh, after)

        assert again.is_empty()


class TestDeltaExamples:
    """Worked examples"""

    def test_newer_effective_date_updates(self):
        """fresh z1@2 over stored z1@1 is an update"""
        stored = {"z1": _zone("z1", 1, zone_id=7)}
        delta = compute_delta([_zone("z1", 2)], stored)

        assert [z.uri for z in delta.update] == ["z1"]
        assert delta.update[0].effective_date == BASE + timedelta(days=2)
        assert delta.update[0].id == 7
        assert delta.insert == []
        assert delta.delete == []

    def test_empty_fresh_deletes_everything(self):
        """An empty fresh catalog deletes every stored zone"""
        stored = {"z1": _zone("z1", 1, zone_id=1), "z2": _zone("z2", 1, zone_id=2)}
        delta = compute_delta([], stored)

        assert sorted(z.uri for z in delta.delete) == ["z1", "z2"]
        assert delta.insert == []
        assert delta.update == []

    def test_equal_effective_date_is_noop(self):
        """Same effective date does not update"""
        delta = compute_delta([_zone("z1", 3)], {"z1": _zone("z1", 3, zone_id=1)})

        assert delta.is_empty()

    def test_older_effective_date_is_noop(self):
        """Older fresh effective date does not update"""
        delta = compute_delta([_zone("z1", 1)], {"z1": _zone("z1", 3, zone_id=1)})

        assert delta.is_empty()

    def test_insert_update_lists_zones_needing_geometry(self):
        """insert_update() is insert followed by update"""
        stored = {"z1": _zone("z1", 1, zone_id=1), "z3": _zone("z3", 1, zone_id=3)}
        delta = compute_delta([_zone("z1", 2), _zone("z2", 0)], stored)

        assert [z.uri for z in delta.insert_update()] == ["z2", "z1"]
        assert delta.total_insert_updates() == 2
        assert delta.total_operations() == 3

    def test_update_replaces_geometry(self):
        """Update takes the fresh geometry, not the stored one"""
        old = Polygon(perimeter=[(0, 0), (1, 0), (1, 1), (0, 0)])
        new = Polygon(perimeter=[(5, 5), (6, 5), (6, 6), (5, 5)])
        stored = {"z1": _zone("z1", 1, zone_id=1).model_copy(update={"geometry": [old]})}
        fresh = [_zone("z1", 2).model_copy(update={"geometry": [new]})]

        delta = compute_delta(fresh, stored)

        assert delta.update[0].geometry == [new]
