#!/usr/bin/env python3
"""
Customer Resolver and Confidence Aggregator Test Suite

PURPOSE:
    Covers customer-profile learning from order history, fuzzy name lookup
    with honorific stripping, and the weak-link confidence rule.

TEST COVERAGE:
    - strip_honorific / is_unspecified
    - CustomerRegistry.build: counts, averages, reliable payer, skipped orders
    - find / resolve thresholds
    - match rate tiers, unresolved items, transcription cap, assisted cap
    - weakest-link cap from sentence pattern, price/quantity reading, customer

USAGE:
    Run from project root: python -m pytest tests/test_customer_resolver.py -v
"""

import unittest

from catalog_fixtures import DEFAULT_CUSTOMERS, DEFAULT_HISTORY, make_entries, order, profile
from orderbot.data.customer_resolver import CustomerRegistry, is_unspecified, resolve, strip_honorific
from orderbot.nlu.confidence import (
    aggregate,
    customer_tier,
    hint_tier,
    match_rate,
    tier_for_match_rate,
    transcription_tier,
)
from orderbot.schemas.order_models import (
    ConfidenceTier,
    CustomerKind,
    ItemHint,
    LineItem,
    MatchQuality,
    OrderStatus,
    PaymentStatus,
)


class TestHonorifics(unittest.TestCase):

    def test_strip_honorific(self):
        self.assertEqual(strip_honorific("Mr. Somchai"), "somchai")
        self.assertEqual(strip_honorific("Khun Malee"), "malee")
        self.assertEqual(strip_honorific("Somchai"), "somchai")

    def test_unspecified(self):
        self.assertTrue(is_unspecified(None))
        self.assertTrue(is_unspecified("Unspecified"))
        self.assertFalse(is_unspecified("Noi"))


class TestCustomerRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = CustomerRegistry.build(DEFAULT_CUSTOMERS, DEFAULT_HISTORY, version=2)

    def test_profiles_learned_from_history(self):
        somchai, score = self.registry.find("Mr. Somchai")
        self.assertEqual(score, 1.0)
        self.assertEqual(somchai.id, "1")
        self.assertEqual(somchai.total_orders, 3)
        self.assertEqual(somchai.item_history["4"].count, 3)
        self.assertEqual(somchai.item_history["4"].average_quantity, 5)
        self.assertTrue(somchai.reliable_payer)
        self.assertEqual([h.item_name for h in somchai.most_common_items()], ["Coke Can", "Ice Tube"])

    def test_customers_without_history_kept(self):
        malee, _ = self.registry.find("khun malee")
        self.assertEqual(malee.total_orders, 0)
        self.assertFalse(malee.reliable_payer)
        self.assertEqual(len(self.registry), 3)

    def test_history_only_customer_gets_profile(self):
        registry = CustomerRegistry.build([], [order("Uncle Ped", ("1", "Ice Tube", 3))])
        ped, _ = registry.find("uncle ped")
        self.assertIsNone(ped.id)
        self.assertEqual(ped.name, "Uncle Ped")

    def test_cancelled_and_unspecified_orders_skipped(self):
        cancelled = order("Aunt Noi", ("4", "Coke Can", 9))
        cancelled.status = OrderStatus.cancelled
        history = [cancelled, order("unspecified", ("4", "Coke Can", 2)), order(None, ("4", "Coke Can", 2))]
        registry = CustomerRegistry.build([profile("Aunt Noi", "3")], history)
        noi, _ = registry.find("aunt noi")
        self.assertEqual(noi.total_orders, 0)
        self.assertEqual(len(registry), 1)

    def test_unpaid_orders_block_reliable_payer(self):
        history = [order("Noi", ("4", "Coke Can", 1)) for _ in range(3)]
        history.append(order("Noi", ("4", "Coke Can", 1), payment=PaymentStatus.credit))
        noi, _ = CustomerRegistry.build([], history).find("noi")
        self.assertEqual(noi.unpaid_orders, 1)
        self.assertFalse(noi.reliable_payer)

    def test_name_without_honorific_matches(self):
        somchai, score = self.registry.find("somchai")
        self.assertEqual(somchai.name, "Mr. Somchai")
        self.assertGreaterEqual(score, 0.7)

    def test_below_threshold(self):
        self.assertIsNone(self.registry.find("wichai"))
        self.assertIsNone(resolve("wichai", self.registry))
        self.assertIsNone(resolve(None, self.registry))
        self.assertIsNone(CustomerRegistry().find("somchai"))

    def test_threshold_is_tunable(self):
        self.assertIsNone(resolve("somcha", self.registry, threshold=0.99))
        self.assertEqual(resolve("somcha", self.registry).name, "Mr. Somchai")


def line(entry, quality):
    return LineItem(entry=entry, quantity=1, unit_price=entry.price, quality=quality)


class TestConfidence(unittest.TestCase):

    def setUp(self):
        self.entries = make_entries()

    def test_tiers(self):
        self.assertEqual(tier_for_match_rate(0.8), ConfidenceTier.high)
        self.assertEqual(tier_for_match_rate(0.5), ConfidenceTier.medium)
        self.assertEqual(tier_for_match_rate(0.49), ConfidenceTier.low)

    def test_match_rate_counts_strong_matches(self):
        items = [line(self.entries[0], MatchQuality.exact), line(self.entries[1], MatchQuality.medium)]
        self.assertEqual(match_rate(items), 0.5)
        self.assertEqual(match_rate(items, unresolved=2), 0.25)
        self.assertEqual(match_rate([]), 0.0)

    def test_all_strong_is_high(self):
        items = [line(self.entries[0], MatchQuality.exact), line(self.entries[1], MatchQuality.high)]
        self.assertEqual(aggregate(items), (ConfidenceTier.high, 1.0))

    def test_unresolved_forces_low(self):
        items = [line(e, MatchQuality.exact) for e in self.entries[:5]]
        tier, rate = aggregate(items, unresolved=1)
        self.assertEqual(tier, ConfidenceTier.low)
        self.assertGreaterEqual(rate, 0.8)

    def test_no_items_is_low(self):
        self.assertEqual(aggregate([])[0], ConfidenceTier.low)

    def test_transcription_only_lowers(self):
        items = [line(self.entries[0], MatchQuality.exact)]
        self.assertEqual(aggregate(items, transcription_confidence=0.99)[0], ConfidenceTier.high)
        self.assertEqual(aggregate(items, transcription_confidence=0.7)[0], ConfidenceTier.medium)
        self.assertEqual(aggregate(items, transcription_confidence=0.2)[0], ConfidenceTier.low)
        weak = [line(self.entries[0], MatchQuality.medium)]
        self.assertEqual(aggregate(weak, transcription_confidence=0.99)[0], ConfidenceTier.low)

    def test_transcription_tier(self):
        self.assertIsNone(transcription_tier(None))
        self.assertEqual(transcription_tier(0.85), ConfidenceTier.high)
        self.assertEqual(transcription_tier(0.65), ConfidenceTier.medium)

    def test_capped_at_medium(self):
        items = [line(self.entries[0], MatchQuality.exact)]
        self.assertEqual(aggregate(items, capped=True)[0], ConfidenceTier.medium)

    def test_weakest_signal_caps_tier(self):
        items = [line(self.entries[0], MatchQuality.exact)]
        self.assertEqual(aggregate(items, signals=[ConfidenceTier.high])[0], ConfidenceTier.high)
        self.assertEqual(aggregate(items, signals=[ConfidenceTier.high, ConfidenceTier.medium])[0],
                         ConfidenceTier.medium)
        self.assertEqual(aggregate(items, signals=[ConfidenceTier.low, ConfidenceTier.high])[0],
                         ConfidenceTier.low)
        # signals never raise a tier
        weak = [line(self.entries[0], MatchQuality.medium)]
        self.assertEqual(aggregate(weak, signals=[ConfidenceTier.high])[0], ConfidenceTier.low)

    def test_customer_tier(self):
        self.assertEqual(customer_tier(CustomerKind.known), ConfidenceTier.high)
        self.assertEqual(customer_tier(CustomerKind.new), ConfidenceTier.medium)
        self.assertEqual(customer_tier(CustomerKind.unspecified), ConfidenceTier.medium)

    def test_hint_tier(self):
        entry = self.entries[0]

        def hint(confidence, price=None):
            return ItemHint(text="x", keyword="x", price=price, confidence=confidence)

        self.assertEqual(hint_tier(hint(ConfidenceTier.medium, price=entry.price), entry), ConfidenceTier.high)
        self.assertEqual(hint_tier(hint(ConfidenceTier.medium, price=entry.price + 5), entry),
                         ConfidenceTier.medium)
        self.assertEqual(hint_tier(hint(ConfidenceTier.medium), entry), ConfidenceTier.medium)
        self.assertEqual(hint_tier(hint(ConfidenceTier.low, price=entry.price), entry), ConfidenceTier.low)

    def test_high_implies_rate_and_low_implies_gap(self):
        qualities = [MatchQuality.exact, MatchQuality.high, MatchQuality.medium]
        for a in qualities:
            for b in qualities:
                for unresolved in (0, 1):
                    items = [line(self.entries[0], a), line(self.entries[1], b)]
                    tier, rate = aggregate(items, unresolved=unresolved)
                    if tier == ConfidenceTier.high:
                        self.assertGreaterEqual(rate, 0.8)
                    if tier == ConfidenceTier.low:
                        self.assertTrue(unresolved or rate < 0.5)


if __name__ == "__main__":
    unittest.main()
