from __future__ import annotations

import unittest

from site_content import FAQ_ITEMS, NAV_LINKS, FaqAccordion, footer_text


class TestSiteContent(unittest.TestCase):
    def test_faq_items_toggle_independently(self) -> None:
        faq = FaqAccordion()
        self.assertFalse(any(faq.is_open(i) for i in range(len(FAQ_ITEMS))))
        self.assertTrue(faq.toggle(1))
        self.assertTrue(faq.is_open(1))
        self.assertFalse(faq.is_open(0))
        self.assertFalse(faq.toggle(1))
        self.assertFalse(faq.is_open(1))

    def test_faq_out_of_range(self) -> None:
        faq = FaqAccordion()
        self.assertFalse(faq.is_open(99))
        with self.assertRaises(IndexError):
            faq.toggle(len(FAQ_ITEMS))

    def test_nav_links_point_at_page_sections(self) -> None:
        self.assertEqual([link.anchor for link in NAV_LINKS], ["features", "estimator", "faq", "contact"])

    def test_footer_text(self) -> None:
        self.assertEqual(footer_text(2026), "© 2026 Re:Code Frame. All rights reserved.")


if __name__ == "__main__":
    unittest.main()
