"""
Live Classifier — entry point.
Run: python main.py
"""

from __future__ import annotations

import logging
import sys

from PySide6.QtWidgets import QApplication

from core.log import configure_logging
from core.settings import Settings
from ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    logger.info("Model: %s, labels: %s", settings.model_source, settings.metadata_source)
    app = QApplication(sys.argv)
    window = MainWindow(settings)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
