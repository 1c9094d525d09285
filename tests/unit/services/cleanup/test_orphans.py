"""
Unit tests for services.cleanup.orphans module.

Tests:
- detect_orphans() - reachability from entrypoints, indexes and manifests
- Relays without entrypoints or site-indexes
- OrphanReport views
"""

from nwpublisher.services.cleanup.orphans import (
    OrphanReport,
    detect_orphans,
    detect_orphans_per_relay,
)
from tests.conftest import RELAY_A, RELAY_B, EventFactory


class TestDetectOrphans:
    """Top-down reachability on one relay."""

    def test_fully_reachable(self, factory: EventFactory) -> None:
        events = [*factory.version("site", "1.0.0"), factory.entrypoint("site")]
        assert detect_orphans(events, RELAY_A).is_empty

    def test_unaddressed_site_index_with_entrypoint(self, factory: EventFactory) -> None:
        live = factory.version("v2", "2.0.0", created_at=200)
        old = factory.version("v1", "1.0.0", created_at=100)
        entrypoint = factory.entrypoint("v2", created_at=200)

        report = detect_orphans([*live, *old, entrypoint], RELAY_A)

        assert report.site_indexes == (old[2],)
        assert report.manifests == (old[1],)
        assert report.assets == (old[0],)
        assert report.total == 3

    def test_no_entrypoint_keeps_every_index(self, factory: EventFactory) -> None:
        events = [*factory.version("v1", "1"), *factory.version("v2", "2")]
        assert detect_orphans(events).is_empty

    def test_unreferenced_manifest_and_asset(self, factory: EventFactory) -> None:
        events = factory.version("site", "1.0.0")
        stray_asset = factory.asset("stray")
        stray_manifest = factory.manifest("/old", [factory.asset("gone")])

        report = detect_orphans([*events, stray_manifest, stray_asset])

        assert report.manifests == (stray_manifest,)
        assert report.assets == (stray_asset,)
        assert report.site_indexes == ()

    def test_no_site_index_keeps_manifests(self, factory: EventFactory) -> None:
        asset = factory.asset("a")
        manifest = factory.manifest("/", [asset])
        stray = factory.asset("stray")

        report = detect_orphans([asset, manifest, stray])

        assert report.manifests == ()
        assert report.assets == (stray,)

    def test_assets_only(self, factory: EventFactory) -> None:
        assets = [factory.asset("a"), factory.asset("b")]
        assert detect_orphans(assets).assets == tuple(assets)

    def test_shared_asset_stays_reachable(self, factory: EventFactory) -> None:
        shared = factory.asset("shared")
        live_manifest = factory.manifest("/", [shared])
        live = factory.site_index("live", "2.0.0", [live_manifest], created_at=200)
        old_manifest = factory.manifest("/", [shared], created_at=100)
        old = factory.site_index("old", "1.0.0", [old_manifest], created_at=100)

        report = detect_orphans(
            [shared, live_manifest, live, old_manifest, old, factory.entrypoint("live")]
        )

        assert report.assets == ()
        assert report.manifests == (old_manifest,)
        assert report.site_indexes == (old,)

    def test_duplicates_counted_once(self, factory: EventFactory) -> None:
        stray = factory.asset("stray")
        assert detect_orphans([stray, stray]).total == 1

    def test_entrypoints_never_orphans(self, factory: EventFactory) -> None:
        report = detect_orphans([factory.entrypoint("nowhere")])
        assert report.is_empty


class TestDetectOrphansPerRelay:
    """One report per relay."""

    def test_per_relay(self, factory: EventFactory) -> None:
        stray = factory.asset("stray")
        reports = detect_orphans_per_relay(
            {RELAY_A: factory.version("site", "1.0.0"), RELAY_B: [stray]}
        )
        assert reports[RELAY_A].is_empty
        assert reports[RELAY_B].assets == (stray,)
        assert reports[RELAY_B].relay == RELAY_B


def test_report_to_dict(factory: EventFactory) -> None:
    stray = factory.asset("stray")
    report = OrphanReport(relay=RELAY_A, assets=(stray,))
    assert report.to_dict() == {
        "relay": RELAY_A,
        "site_indexes": [],
        "manifests": [],
        "assets": [stray.id],
        "total": 1,
    }
    assert report.events == [stray]
