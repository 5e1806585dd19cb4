from __future__ import annotations

import logging
import unittest

from site_logging import setup_logging


class TestSetupLogging(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        saved_lib_levels = {name: logging.getLogger(name).level for name in ("httpx", "httpcore", "openai")}

        def _restore() -> None:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            for name, lvl in saved_lib_levels.items():
                logging.getLogger(name).setLevel(lvl)

        self.addCleanup(_restore)
        root.handlers[:] = []
        for name in saved_lib_levels:
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_second_call_adds_no_handler_but_applies_level(self) -> None:
        root = logging.getLogger()
        setup_logging("INFO")
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.INFO)

        setup_logging("debug")
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(root.handlers[0].level, logging.DEBUG)

    def test_levels_apply_when_another_handler_is_installed(self) -> None:
        root = logging.getLogger()
        foreign = logging.NullHandler()
        root.addHandler(foreign)

        setup_logging("WARNING")
        self.assertEqual(root.handlers, [foreign])
        self.assertEqual(root.level, logging.WARNING)
        for name in ("httpx", "httpcore", "openai"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
