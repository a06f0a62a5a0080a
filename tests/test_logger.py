import logging
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from stockview import settings
from stockview.logger import setup_logger


class LoggerTests(unittest.TestCase):
    def test_console_and_rotating_file_handlers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.object(settings, "LOG_DIR", Path(tmp) / "logs"):
                logger = setup_logger("stockview.test_logger", logging.DEBUG)
                try:
                    kinds = sorted(type(h).__name__ for h in logger.handlers)
                    self.assertEqual(kinds, ["RotatingFileHandler", "StreamHandler"])
                    self.assertTrue((Path(tmp) / "logs" / "stockview.log").exists())

                    # A second call must not stack more handlers
                    setup_logger("stockview.test_logger")
                    self.assertEqual(len(logger.handlers), 2)
                finally:
                    for handler in list(logger.handlers):
                        handler.close()
                        logger.removeHandler(handler)


if __name__ == "__main__":
    unittest.main(verbosity=2)
