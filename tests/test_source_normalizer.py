import unittest

from newscurator.sources.normalize import normalize_source, same_source


class TestSourceNormalizer(unittest.TestCase):
    def test_strips_protocol_www_case_and_trailing_slashes(self):
        self.assertEqual(normalize_source("HTTPS://WWW.Example.COM/Path/"), "example.com/path")
        self.assertEqual(normalize_source("http://example.com"), "example.com")
        self.assertEqual(normalize_source("example.com///"), "example.com")

    def test_equivalent_forms_share_one_key(self):
        forms = ["https://www.Example.com/", "http://www.example.com", "WWW.Example.com/", "example.com"]
        self.assertEqual({normalize_source(f) for f in forms}, {"example.com"})

    def test_query_and_fragment_are_kept(self):
        self.assertEqual(normalize_source("https://www.example.com/page?id=123"), "example.com/page?id=123")
        self.assertEqual(normalize_source("https://example.com/page#section"), "example.com/page#section")

    def test_plain_labels_only_change_case_and_whitespace(self):
        self.assertEqual(normalize_source("  Report: Q1-2024  "), "report: q1-2024")
        self.assertEqual(normalize_source("Government Report 2024"), "government report 2024")

    def test_missing_blank_and_non_string_input_give_empty_key(self):
        for value in (None, "", "   ", 123, 4.5, ["https://example.com"]):
            self.assertEqual(normalize_source(value), "")

    def test_idempotent(self):
        samples = [
            "https://www.Example.com/",
            "http://http://example.com",
            "https://www.www.example.com",
            "example.com/ /",
            "  WWW.EXAMPLE.COM//  ",
            "Report: Q1-2024",
            "ftp://files.example.com/",
        ]
        for s in samples:
            once = normalize_source(s)
            self.assertEqual(normalize_source(once), once, msg=s)

    def test_only_leading_www_is_removed(self):
        self.assertEqual(normalize_source("news.www.example.com"), "news.www.example.com")

    def test_same_source(self):
        self.assertTrue(same_source("https://www.nature.com/", "nature.com"))
        self.assertFalse(same_source("nature.com", "science.org"))
        self.assertFalse(same_source("", "   "))


if __name__ == "__main__":
    unittest.main()
