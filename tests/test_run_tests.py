from __future__ import annotations

import unittest

from run_tests import select


def _sample_suite() -> unittest.TestSuite:
    # local so discovery skips it
    class Sample(unittest.TestCase):
        def test_layout_alpha(self) -> None:
            pass

        def test_raster_beta(self) -> None:
            pass

    return unittest.TestSuite([unittest.TestLoader().loadTestsFromTestCase(Sample)])


class SelectTests(unittest.TestCase):
    def test_keyword_filters_nested_suites(self) -> None:
        picked = select(_sample_suite(), "LAYOUT")
        self.assertEqual([case.id().rsplit(".", 1)[-1] for case in picked], ["test_layout_alpha"])

    def test_no_keyword_keeps_everything(self) -> None:
        self.assertEqual(select(_sample_suite(), None).countTestCases(), 2)
        self.assertEqual(select(_sample_suite(), "nothing-here").countTestCases(), 0)


if __name__ == "__main__":
    unittest.main()
