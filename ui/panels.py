"""
Right-side panels: Predictions, Logs, Performance.
"""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtWidgets import (
    QGridLayout,
    QLabel,
    QPlainTextEdit,
    QProgressBar,
    QVBoxLayout,
    QWidget,
)

from core.models import RankedPredictions


def probability_color(probability: float) -> str:
    """Bar colour for a ranked entry: green above 0.7, amber above 0.4, red otherwise."""
    if probability > 0.7:
        return "#4ade80"
    if probability > 0.4:
        return "#fbbf24"
    return "#f87171"


def top_prediction_color(probability: float) -> str:
    return "#4ade80" if probability > 0.5 else "#fbbf24"


class PredictionsPanel(QWidget):
    """Ranked predictions with one probability bar per label."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        self._subtitle = QLabel("Predictions will appear here while detection is running.")
        self._subtitle.setStyleSheet("color: #666; font-size: 11px;")
        layout.addWidget(self._subtitle)
        self._rows_widget = QWidget(self)
        self._grid = QGridLayout(self._rows_widget)
        self._grid.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._rows_widget)
        layout.addStretch()
        self._rows: list[tuple[QLabel, QProgressBar, QLabel]] = []
        self._class_count = 0

    def set_class_count(self, count: int) -> None:
        self._class_count = count

    def update_predictions(self, predictions: RankedPredictions) -> None:
        self._ensure_rows(len(predictions))
        count = self._class_count or len(predictions)
        self._subtitle.setText(f"{count} {'class' if count == 1 else 'classes'}")
        for (name, bar, percent), pred in zip(self._rows, predictions):
            name.setText(pred.label)
            bar.setValue(round(pred.probability * 1000))
            bar.setStyleSheet(
                f"QProgressBar::chunk {{ background-color: {probability_color(pred.probability)}; }}"
            )
            percent.setText(f"{pred.probability * 100:.1f}%")

    def clear(self) -> None:
        self._ensure_rows(0)
        self._subtitle.setText("Predictions will appear here while detection is running.")

    def _ensure_rows(self, count: int) -> None:
        while len(self._rows) > count:
            for widget in self._rows.pop():
                self._grid.removeWidget(widget)
                widget.deleteLater()
        while len(self._rows) < count:
            row = len(self._rows)
            name = QLabel()
            bar = QProgressBar()
            bar.setRange(0, 1000)
            bar.setTextVisible(False)
            percent = QLabel()
            percent.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
            self._grid.addWidget(name, row, 0)
            self._grid.addWidget(bar, row, 1)
            self._grid.addWidget(percent, row, 2)
            self._rows.append((name, bar, percent))

    @property
    def row_count(self) -> int:
        return len(self._rows)


class LogsPanel(QWidget):
    """Shows application log messages and errors."""

    def __init__(self, parent: QWidget | None = None, max_lines: int = 2000) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        self._text = QPlainTextEdit(self)
        self._text.setReadOnly(True)
        self._text.setMaximumBlockCount(max_lines)
        layout.addWidget(self._text)

    def append(self, message: str) -> None:
        self._text.appendPlainText(message)
        # Auto-scroll to bottom
        scrollbar = self._text.verticalScrollBar()
        scrollbar.setValue(scrollbar.maximum())

    def text(self) -> str:
        return self._text.toPlainText()

    def clear(self) -> None:
        self._text.clear()


class _LogBridge(QObject):
    message = Signal(str)


class QtLogHandler(logging.Handler):
    """Forwards log records to the GUI thread through a queued Qt signal."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.bridge = _LogBridge()
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.bridge.message.emit(self.format(record))
        except Exception:
            self.handleError(record)


class PerformancePanel(QWidget):
    """Shows loop rate, per-iteration latency (ms), and rolling average."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        self._fps_label = QLabel()
        self._latency_label = QLabel()
        self._rolling_label = QLabel()
        for w in (self._fps_label, self._latency_label, self._rolling_label):
            layout.addWidget(w)
        layout.addStretch()
        self.reset()

    def update_metrics(self, fps: float, latency_ms: float, rolling_avg_ms: float) -> None:
        self._fps_label.setText(f"Predictions/s: {fps:.1f}")
        self._latency_label.setText(f"Latency (ms): {latency_ms:.1f}")
        self._rolling_label.setText(f"Rolling avg (ms): {rolling_avg_ms:.1f}")

    def reset(self) -> None:
        self._fps_label.setText("Predictions/s: -")
        self._latency_label.setText("Latency (ms): -")
        self._rolling_label.setText("Rolling avg (ms): -")
