from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from renewals.aggregation import (
    SnapshotCache,
    architecture_breakdown,
    bucket_dates,
    build_snapshot,
    combined_customer_rollup,
    customer_rollup,
    expiration_timeline,
    parse_date,
    portfolio_summary,
)
from renewals.models import (
    EXPIRED,
    MONTHS_6_TO_12,
    NO_DATE,
    UNKNOWN_ARCHITECTURE,
    WITHIN_6_MONTHS,
    YEARS_1_TO_2,
    YEARS_2_PLUS,
)


def _in_days(now, days: int) -> str:
    return (now + timedelta(days=days)).date().isoformat()


def test_customer_rollup_sorted_by_opportunity(hw_item) -> None:
    items = [
        hw_item(customer_name="Acme", opportunity=100.0),
        hw_item(customer_name="Acme", opportunity=200.0),
        hw_item(customer_name="Acme", opportunity=0.0),
        hw_item(customer_name="Globex", opportunity=50.0),
    ]

    rollup = customer_rollup(items)

    assert [(s.customer_name, s.total_opportunity) for s in rollup] == [("Acme", 300.0), ("Globex", 50.0)]
    assert [s.item_count for s in rollup] == [3, 1]


def test_customer_rollup_groups_on_trimmed_uppercase_name(hw_item) -> None:
    items = [
        hw_item(customer_name="Acme Corp ", opportunity=10.0, quantity=1),
        hw_item(customer_name="ACME CORP", opportunity=5.0, quantity=2, architecture="Collaboration"),
        hw_item(customer_name="acme corp", opportunity=1.0, quantity=3, architecture="Security"),
    ]

    (summary,) = customer_rollup(items)

    assert summary.customer_name == "Acme Corp"
    assert summary.item_count == 3
    assert summary.total_quantity == 6
    assert summary.architectures == ("Security", "Collaboration")


def test_customer_rollup_skips_empty_names_and_conserves_totals(hw_item) -> None:
    items = [
        hw_item(customer_name="Acme", opportunity=10.0),
        hw_item(customer_name="   ", opportunity=99.0),
        hw_item(customer_name="", opportunity=1.0),
        hw_item(customer_name="Globex", opportunity=20.0, architecture=""),
    ]

    rollup = customer_rollup(items)

    assert sum(s.item_count for s in rollup) == 2
    assert sum(s.total_opportunity for s in rollup) == 30.0
    assert rollup[0].architectures == ()


def test_customer_rollup_ties_keep_first_seen_order(hw_item) -> None:
    items = [
        hw_item(customer_name="Zeta", opportunity=10.0),
        hw_item(customer_name="Alpha", opportunity=10.0),
        hw_item(customer_name="Mid", opportunity=10.0),
    ]

    assert [s.customer_name for s in customer_rollup(items)] == ["Zeta", "Alpha", "Mid"]


def test_software_rollup_sums_list_price(sw_item) -> None:
    items = [
        sw_item(full_term_list_price=100.0, opportunity=40.0),
        sw_item(full_term_list_price=50.0, opportunity=20.0),
    ]

    (summary,) = customer_rollup(items)

    assert summary.total_list_price == 150.0
    assert summary.total_opportunity == 60.0


def test_architecture_breakdown_uses_unknown_for_blank(hw_item) -> None:
    items = [
        hw_item(architecture="", opportunity=5.0, quantity=1),
        hw_item(architecture="Security", opportunity=50.0, quantity=2),
        hw_item(architecture="  ", opportunity=7.0, quantity=3),
        hw_item(architecture="Security", opportunity=1.0, quantity=4, customer_name=""),
    ]

    breakdown = architecture_breakdown(items)

    assert [(b.architecture, b.item_count, b.quantity, b.opportunity) for b in breakdown] == [
        ("Security", 2, 6, 51.0),
        (UNKNOWN_ARCHITECTURE, 2, 4, 12.0),
    ]


def test_timeline_boundaries(now) -> None:
    pairs = [
        (_in_days(now, -1), 1.0),
        (_in_days(now, 0), 2.0),
        (_in_days(now, 182), 3.0),
        (_in_days(now, 183), 4.0),
        (_in_days(now, 365), 5.0),
        (_in_days(now, 366), 6.0),
        (_in_days(now, 730), 7.0),
        (_in_days(now, 731), 8.0),
    ]

    buckets = {b.label: (b.count, b.opportunity) for b in bucket_dates(pairs, now=now)}

    assert buckets[EXPIRED] == (1, 1.0)
    assert buckets[WITHIN_6_MONTHS] == (2, 5.0)
    assert buckets[MONTHS_6_TO_12] == (2, 9.0)
    assert buckets[YEARS_1_TO_2] == (2, 13.0)
    assert buckets[YEARS_2_PLUS] == (1, 8.0)
    assert NO_DATE not in buckets


def test_missing_or_invalid_dates_never_count_as_expired(now) -> None:
    buckets = bucket_dates([("", 10.0), (None, 5.0), ("TBD", 1.0), ("not a date", 2.0)], now=now)

    assert [(b.label, b.count, b.opportunity) for b in buckets] == [(NO_DATE, 4, 18.0)]


def test_timeline_emits_fixed_order_and_omits_empty_buckets(now, sw_item) -> None:
    items = [
        sw_item(end_date="", opportunity=1.0),
        sw_item(end_date=_in_days(now, 900), opportunity=2.0),
        sw_item(end_date=_in_days(now, -30), opportunity=3.0),
        sw_item(end_date=_in_days(now, 10), opportunity=4.0),
    ]

    labels = [b.label for b in expiration_timeline(items, now=now)]

    assert labels == [EXPIRED, WITHIN_6_MONTHS, YEARS_2_PLUS, NO_DATE]


def test_hardware_timeline_uses_ldos(now, hw_item) -> None:
    items = [hw_item(ldos=_in_days(now, 30), eol_date=_in_days(now, -400), opportunity=9.0)]

    (bucket,) = expiration_timeline(items, now=now)

    assert bucket.label == WITHIN_6_MONTHS


def test_parse_date_handles_common_formats() -> None:
    assert parse_date("2025-03-01").date().isoformat() == "2025-03-01"
    assert parse_date("03/15/2025").date().isoformat() == "2025-03-15"
    assert parse_date("2025-03-01T10:00:00+02:00").tzinfo is None
    assert parse_date("   ") is None
    assert parse_date("garbage") is None


def test_aggregation_is_idempotent(now, hw_item) -> None:
    items = [
        hw_item(customer_name="B", architecture="X", opportunity=5.0, ldos="2025-02-01"),
        hw_item(customer_name="A", architecture="Y", opportunity=5.0, ldos=""),
        hw_item(customer_name="C", architecture="", opportunity=9.0, ldos="2030-01-01"),
    ]

    assert customer_rollup(items) == customer_rollup(items)
    assert architecture_breakdown(items) == architecture_breakdown(items)
    assert expiration_timeline(items, now=now) == expiration_timeline(items, now=now)


def test_portfolio_summary_families(hw_item, sw_item) -> None:
    hardware = [
        hw_item(product_family="C9300", quantity=2, opportunity=10.0),
        hw_item(product_family="C9300", quantity=1, opportunity=5.0, architecture="Data Center"),
        hw_item(product_family="", quantity=1, opportunity=1.0),
    ]
    software = [
        sw_item(subscription_offer_type="UNKNOWN", full_term_list_price=30.0, opportunity=10.0),
        sw_item(subscription_offer_type="Umbrella", full_term_list_price=20.0, opportunity=10.0),
    ]

    hw = portfolio_summary(hardware)
    sw = portfolio_summary(software)

    assert (hw.items, hw.quantity, hw.opportunity) == (3, 4, 16.0)
    assert hw.architectures == ("Data Center", "Security")
    assert hw.families == ("C9300",)
    assert sw.list_price == 50.0
    assert sw.families == ("Umbrella",)
    assert portfolio_summary([]).items == 0


def test_combined_customer_rollup(hw_item, sw_item) -> None:
    hardware = [hw_item(customer_name="Acme", opportunity=100.0), hw_item(customer_name="Globex", opportunity=10.0)]
    software = [
        sw_item(customer_name="ACME", opportunity=50.0, full_term_list_price=150.0, architecture="Collaboration"),
        sw_item(customer_name="Initech", opportunity=500.0),
    ]

    combined = combined_customer_rollup(hardware, software)

    assert [c.customer_name for c in combined] == ["Initech", "Acme", "Globex"]
    acme = combined[1]
    assert acme.hw_item_count == 1
    assert acme.sw_item_count == 1
    assert acme.sw_total_list_price == 150.0
    assert acme.sw_architectures == ("Collaboration",)
    assert acme.total_opportunity == 150.0
    assert combined[0].hw_item_count == 0


def test_build_snapshot_bundles_all_aggregates(now, hw_item, sw_item) -> None:
    hardware = [hw_item(opportunity=100.0, ldos="2024-06-01")]
    software = [sw_item(opportunity=40.0, end_date="2025-03-01")]

    snapshot = build_snapshot(" Acme ", hardware, software, now=now)

    assert snapshot.customer_name == "Acme"
    assert snapshot.total_opportunity == 140.0
    assert snapshot.hw_timeline[0].label == EXPIRED
    assert snapshot.sw_timeline[0].label == WITHIN_6_MONTHS
    assert snapshot.hw_breakdown[0].architecture == "Security"
    assert len(snapshot.customers) == 1
    assert snapshot.computed_at == "2025-01-01T00:00:00"


def test_snapshot_cache_refresh_and_invalidate(now, hw_item) -> None:
    cache = SnapshotCache()
    hardware = [hw_item(opportunity=1.0)]

    first = cache.get("Acme", hardware, [], now=now)
    assert cache.get("ACME ", list(hardware), [], now=now) is first
    assert cache.get("Acme", hardware, []) is first
    assert "acme" in cache

    refreshed = cache.get("Acme", hardware, [], refresh=True, now=now)
    assert refreshed is not first
    assert refreshed == first

    cache.invalidate("Acme")
    assert "Acme" not in cache
    rebuilt = cache.get("Acme", hardware, [], now=now)
    assert rebuilt.hw_summary.items == 1

    cache.invalidate()
    assert "Acme" not in cache


def test_snapshot_cache_recomputes_for_different_records(now, hw_item) -> None:
    cache = SnapshotCache()
    small = hw_item(customer_name="Acme", opportunity=100.0)

    first = cache.get("Acme", [small], [], now=now)
    second = cache.get("Acme", [hw_item(customer_name="Acme", opportunity=999.0)], [], now=now)

    assert first.hw_summary.opportunity == 100.0
    assert second.hw_summary.opportunity == 999.0
    assert cache.get("Acme", [], [], now=now).hw_summary.items == 0


def test_snapshot_cache_recomputes_for_status_change(now, hw_item) -> None:
    cache = SnapshotCache()
    item = hw_item(customer_name="Acme", status="")

    first = cache.get("Acme", [item], [], now=now)
    updated = cache.get("Acme", [replace(item, status="Replaced")], [], now=now)

    assert updated is not first
    assert updated.hardware_items[0].status == "Replaced"


def test_snapshot_cache_recomputes_for_new_reference_time(now, hw_item) -> None:
    cache = SnapshotCache()
    hardware = [hw_item(ldos=_in_days(now, 100), opportunity=10.0)]

    first = cache.get("Acme", hardware, [], now=now)
    later = cache.get("Acme", hardware, [], now=now + timedelta(days=200))

    assert first.hw_timeline[0].label == WITHIN_6_MONTHS
    assert later.hw_timeline[0].label == EXPIRED
    assert later.computed_at == "2025-07-20T00:00:00"
