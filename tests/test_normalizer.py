#!/usr/bin/env python3
"""
Normalizer and Preprocessor Test Suite

PURPOSE:
    Covers the text canonicalisation used as the matching key everywhere and
    the transcript clean-up that runs before segmentation.

TEST COVERAGE:
    - normalize / clean_text / tokenize
    - similarity blend (edit distance + longest common substring)
    - filler removal, spelled-out numbers, mishearings, glued digits
    - sanitation, truncation and spam detection

USAGE:
    Run from project root: python -m pytest tests/test_normalizer.py -v
"""

import unittest

from orderbot.nlu.normalizer import (
    clean_text,
    edit_distance,
    longest_common_substring,
    normalize,
    similarity,
    tokenize,
)
from orderbot.nlu.preprocess import Preprocessor
from orderbot.utils.security import detect_spam, mask_pii, sanitize_input


class TestNormalizer(unittest.TestCase):

    def test_normalize_strips_everything_but_letters_and_digits(self):
        self.assertEqual(normalize("Mr. Somchai"), "mrsomchai")
        self.assertEqual(normalize("ICE-TUBE"), "icetube")
        self.assertEqual(normalize("Coke Can 330ml"), "cokecan330ml")

    def test_normalize_keeps_thai(self):
        self.assertEqual(normalize("คุณ สมชาย"), "คุณสมชาย")

    def test_normalize_empty(self):
        self.assertEqual(normalize(""), "")
        self.assertEqual(normalize(None), "")
        self.assertEqual(normalize("!!!"), "")

    def test_clean_text_splits_on_non_decimal_dots(self):
        self.assertEqual(clean_text("Mr.Somchai orders 12.5"), "mr somchai orders 12.5")
        self.assertEqual(clean_text("coke, pepsi & water"), "coke, pepsi & water")

    def test_tokenize(self):
        self.assertEqual(tokenize("Ice  Tube!"), ["ice", "tube"])

    def test_similarity_identical_and_empty(self):
        self.assertEqual(similarity("Ice Tube", "icetube"), 1.0)
        self.assertEqual(similarity("", "coke"), 0.0)

    def test_similarity_blend(self):
        # somchai vs mrsomchai: distance 2 over 9, common run of 7
        expected = 0.6 * (1 - 2 / 9) + 0.4 * (7 / 9)
        self.assertAlmostEqual(similarity("somchai", "Mr. Somchai"), expected)
        self.assertGreaterEqual(similarity("somchai", "Mr. Somchai"), 0.7)

    def test_primitives(self):
        self.assertEqual(edit_distance("coke", "coak"), 2)
        self.assertEqual(longest_common_substring("icetube", "tube"), 4)
        self.assertEqual(longest_common_substring("", "tube"), 0)


class TestPreprocessor(unittest.TestCase):

    def setUp(self):
        self.pre = Preprocessor()

    def test_fillers_removed(self):
        out = self.pre.preprocess_query("um Mr Somchai uh orders coke please")
        self.assertEqual(out["preprocessed"], "mr somchai orders coke")

    def test_spelled_numbers(self):
        self.assertEqual(self.pre.words_to_numbers("coke twenty five"), "coke 25")
        self.assertEqual(self.pre.words_to_numbers("ice two hundred"), "ice 200")
        self.assertEqual(self.pre.words_to_numbers("coke a dozen"), "coke 12")
        self.assertEqual(self.pre.words_to_numbers("coke three"), "coke 3")

    def test_mishearings(self):
        out = self.pre.preprocess_query("Somchai oders coak 5")
        self.assertEqual(out["preprocessed"], "somchai orders coke 5")

    def test_glued_digits_split(self):
        self.assertEqual(self.pre.normalize_text("coke5"), "coke 5")

    def test_thai_digits(self):
        self.assertEqual(self.pre.normalize_text("โค้ก ๕"), "โค้ก 5")

    def test_truncation_flag(self):
        pre = Preprocessor(max_length=10)
        out = pre.preprocess_query("somchai orders coke can 5")
        self.assertTrue(out["truncated"])
        self.assertEqual(len(out["sanitized"]), 10)

    def test_spam_flag(self):
        self.assertTrue(self.pre.preprocess_query("visit www.example.com now")["spam"])
        self.assertFalse(self.pre.preprocess_query("somchai orders coke 5")["spam"])


class TestSecurity(unittest.TestCase):

    def test_sanitize(self):
        self.assertEqual(sanitize_input("  <b>coke</b>   5 "), "bcoke/b 5")
        self.assertEqual(sanitize_input(None), "")

    def test_spam_rules(self):
        self.assertTrue(detect_spam("aaaaaaaaaaaa"))
        self.assertTrue(detect_spam("coke coke coke coke coke coke"))
        self.assertFalse(detect_spam("coke coke pepsi water ice tube"))

    def test_mask_pii(self):
        self.assertEqual(mask_pii("call 0812345678 now"), "call [REDACTED] now")
        self.assertEqual(mask_pii("coke 5"), "coke 5")


if __name__ == "__main__":
    unittest.main()
