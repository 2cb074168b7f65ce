import math
import unittest

from errors import InvalidInput
from models.results import VariantResult
from services.significance import (
    compare_variants,
    compare_against_control,
    confidence_label,
    normal_cdf,
    two_tailed_p_value,
    NOT_SIGNIFICANT,
    INCONCLUSIVE_SUMMARY,
)


def variant(name, visitors, conversions):
    rate = conversions / visitors if visitors else 0.0
    return VariantResult(variant_id=name.lower(), variant_name=name, visitors=visitors, conversions=conversions, conversion_rate=rate)


class TestNormalDistribution(unittest.TestCase):

    def test_cdf_known_values(self):
        self.assertAlmostEqual(normal_cdf(0.0), 0.5, places=9)
        self.assertAlmostEqual(normal_cdf(1.959964), 0.975, places=6)
        self.assertAlmostEqual(normal_cdf(-1.644854), 0.05, places=6)

    def test_two_tailed_p_value(self):
        self.assertAlmostEqual(two_tailed_p_value(1.959964), 0.05, places=6)
        self.assertAlmostEqual(two_tailed_p_value(-2.575829), 0.01, places=6)
        self.assertEqual(two_tailed_p_value(0.0), 1.0)

    def test_confidence_tiers(self):
        self.assertEqual(confidence_label(0.001), "99%")
        self.assertEqual(confidence_label(0.03), "95%")
        self.assertEqual(confidence_label(0.07), "90%")
        self.assertEqual(confidence_label(0.2), NOT_SIGNIFICANT)


class TestCompareVariants(unittest.TestCase):

    def test_concrete_scenario(self):
        """10% vs 15% over 1000 visitors each is a clear win at 99%."""
        control = variant("Control", 1000, 100)
        treatment = variant("Variant A", 1000, 150)

        result = compare_variants(control, treatment, min_sample_size=30, significance_level=0.05)

        standard_error = math.sqrt(0.125 * 0.875 * (1 / 1000 + 1 / 1000))
        self.assertAlmostEqual(result.z_score, 0.05 / standard_error, places=6)
        self.assertAlmostEqual(result.z_score, 3.38, delta=0.01)
        self.assertAlmostEqual(result.p_value, 0.00077, delta=1e-4)
        self.assertTrue(result.is_significant)
        self.assertEqual(result.confidence, "99%")
        self.assertEqual(result.winner, "Variant A")
        self.assertAlmostEqual(result.lift, 0.5)
        self.assertFalse(result.insufficient_data)
        self.assertEqual(result.summary, "Variant A outperforms Control with 99% confidence")

    def test_swapping_groups_negates_z_score(self):
        a = variant("A", 1000, 100)
        b = variant("B", 1000, 150)

        forward = compare_variants(a, b, min_sample_size=0)
        backward = compare_variants(b, a, min_sample_size=0)

        self.assertAlmostEqual(forward.z_score, -backward.z_score, places=12)
        self.assertAlmostEqual(forward.p_value, backward.p_value, places=12)
        self.assertEqual(forward.is_significant, backward.is_significant)
        self.assertEqual(forward.winner, backward.winner)

    def test_identical_rates_give_zero_z_score(self):
        result = compare_variants(variant("Control", 400, 40), variant("Variant A", 800, 80), min_sample_size=0)

        self.assertEqual(result.z_score, 0.0)
        self.assertEqual(result.p_value, 1.0)
        self.assertFalse(result.is_significant)
        self.assertIsNone(result.winner)
        self.assertEqual(result.summary, INCONCLUSIVE_SUMMARY)

    def test_z_score_never_decreases_with_more_treatment_conversions(self):
        control = variant("Control", 1000, 100)
        previous = -math.inf
        for conversions in range(0, 1001, 10):
            result = compare_variants(control, variant("Variant A", 1000, conversions), min_sample_size=0)
            self.assertGreaterEqual(result.z_score, previous)
            previous = result.z_score

    def test_zero_visitors_is_not_significant(self):
        for control, treatment in [
            (variant("Control", 0, 0), variant("Variant A", 100, 50)),
            (variant("Control", 100, 50), variant("Variant A", 0, 0)),
            (variant("Control", 0, 0), variant("Variant A", 0, 0)),
        ]:
            result = compare_variants(control, treatment, min_sample_size=0)
            self.assertFalse(result.is_significant)
            self.assertIsNone(result.winner)
            self.assertTrue(result.insufficient_data)
            self.assertIn("Insufficient data", result.summary)

    def test_degenerate_pooled_rate_is_not_significant(self):
        # Everyone converted on both sides, the standard error is zero
        result = compare_variants(variant("Control", 50, 50), variant("Variant A", 60, 60), min_sample_size=0)
        self.assertEqual(result.z_score, 0.0)
        self.assertFalse(result.is_significant)

        result = compare_variants(variant("Control", 50, 0), variant("Variant A", 60, 0), min_sample_size=0)
        self.assertEqual(result.z_score, 0.0)
        self.assertFalse(result.is_significant)

    def test_more_conversions_than_visitors_is_rejected(self):
        with self.assertRaises(InvalidInput):
            compare_variants(variant("Control", 10, 11), variant("Variant A", 10, 5))
        with self.assertRaises(InvalidInput):
            compare_variants(variant("Control", 10, 5), variant("Variant A", 10, 11))

    def test_negative_counts_are_rejected(self):
        bad = VariantResult(variant_name="Variant A", visitors=-1, conversions=0, conversion_rate=0.0)
        with self.assertRaisesRegex(InvalidInput, "negative"):
            compare_variants(variant("Control", 10, 5), bad)

    def test_tiny_sample_is_never_significant(self):
        control = variant("Control", 5, 4)
        treatment = variant("Variant A", 5, 1)

        guarded = compare_variants(control, treatment, min_sample_size=30)
        unguarded = compare_variants(control, treatment, min_sample_size=0, significance_level=0.10)

        self.assertLess(guarded.z_score, -1.8)
        self.assertFalse(guarded.is_significant)
        self.assertTrue(guarded.insufficient_data)
        self.assertIsNone(guarded.winner)
        self.assertEqual(guarded.confidence, NOT_SIGNIFICANT)
        self.assertIn("10 of the required 30", guarded.summary)
        # Same numbers, only the floor differs
        self.assertEqual(guarded.z_score, unguarded.z_score)
        self.assertEqual(guarded.p_value, unguarded.p_value)
        self.assertTrue(unguarded.is_significant)
        self.assertEqual(unguarded.confidence, "90%")
        self.assertEqual(unguarded.winner, "Control")

    def test_stricter_confidence_level(self):
        # p is roughly 0.03: significant at 95%, not at 99%
        control = variant("Control", 1000, 100)
        treatment = variant("Variant A", 1000, 130)
        self.assertTrue(compare_variants(control, treatment, min_sample_size=0, significance_level=0.05).is_significant)
        self.assertFalse(compare_variants(control, treatment, min_sample_size=0, significance_level=0.01).is_significant)

    def test_confidence_tier_at_default_level(self):
        control = variant("Control", 1000, 100)

        clear = compare_variants(control, variant("Variant A", 1000, 130), min_sample_size=30, significance_level=0.05)
        self.assertAlmostEqual(clear.p_value, 0.0355, delta=1e-3)
        self.assertTrue(clear.is_significant)
        self.assertEqual(clear.confidence, "95%")
        self.assertEqual(clear.summary, "Variant A outperforms Control with 95% confidence")

    def test_ninety_percent_tier_is_reported_without_significance(self):
        # p is roughly 0.066, inside the 90% tier but above 0.05
        control = variant("Control", 1000, 100)
        treatment = variant("Variant A", 1000, 126)

        result = compare_variants(control, treatment, min_sample_size=30, significance_level=0.05)

        self.assertGreaterEqual(result.p_value, 0.05)
        self.assertLess(result.p_value, 0.10)
        self.assertFalse(result.is_significant)
        self.assertEqual(result.confidence, "90%")
        self.assertIsNone(result.winner)
        self.assertEqual(result.summary, INCONCLUSIVE_SUMMARY)

    def test_each_treatment_is_compared_with_control(self):
        control = variant("Control", 1000, 100)
        treatments = [variant("Variant A", 1000, 150), variant("Variant B", 1000, 101)]

        comparisons = compare_against_control(control, treatments, min_sample_size=0)

        self.assertEqual([c.treatment for c in comparisons], ["Variant A", "Variant B"])
        self.assertTrue(all(c.control == "Control" for c in comparisons))
        self.assertTrue(comparisons[0].is_significant)
        self.assertFalse(comparisons[1].is_significant)


if __name__ == "__main__":
    unittest.main()
