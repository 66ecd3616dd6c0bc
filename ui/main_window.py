"""
Main window: left sidebar (camera, model status, start/stop), center live video
with the top prediction, right tabs (Predictions, Logs, Performance).
"""

from __future__ import annotations

import logging

import numpy as np
from PySide6.QtCore import QObject, Qt, QThread, Signal, Slot
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import (
    QComboBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from core.camera_list import get_camera_list
from core.capture import CameraFrameSource
from core.errors import ModelLoadFailure
from core.model_loader import ModelBundle, load_model
from core.models import LoopState, RankedPredictions
from core.preprocess import Preprocessor
from core.runner import DetectionLoop
from core.settings import Settings
from core.tensors import TensorAllocator
from ui.panels import (
    LogsPanel,
    PerformancePanel,
    PredictionsPanel,
    QtLogHandler,
    top_prediction_color,
)

logger = logging.getLogger(__name__)


class ModelLoadWorker(QObject):
    """Runs load_model(settings) in a background thread so the UI stays responsive."""

    load_done = Signal(bool, str, object)  # success, error_message, bundle

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self._settings = settings

    def run(self) -> None:
        try:
            bundle = load_model(self._settings)
        except ModelLoadFailure as e:
            self.load_done.emit(False, str(e), None)
            return
        except Exception as e:
            logger.exception("Unexpected error while loading the model")
            self.load_done.emit(False, f"{type(e).__name__}: {e}", None)
            return
        self.load_done.emit(True, "", bundle)


class MainWindow(QWidget):
    """Main application window with sidebar, video view, and right panels."""

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.setWindowTitle("Live Classifier")
        self._settings = settings
        self._bundle: ModelBundle | None = None
        self._loop: DetectionLoop | None = None
        self._source = CameraFrameSource(
            index=settings.camera_index,
            width=settings.frame_width,
            height=settings.frame_height,
            max_missed_frames=settings.max_missed_frames,
            stop_timeout_ms=settings.shutdown_timeout_ms,
        )
        self._allocator = TensorAllocator()
        self._load_thread: QThread | None = None
        self._load_worker: ModelLoadWorker | None = None
        self._closed = False

        layout = QHBoxLayout(self)
        # --- Left sidebar ---
        sidebar = QWidget()
        sidebar_layout = QVBoxLayout(sidebar)
        sidebar_layout.addWidget(QLabel("Camera"))
        self._camera_combo = QComboBox()
        self._camera_combo.setToolTip("Select the camera to classify.")
        sidebar_layout.addWidget(self._camera_combo)
        refresh_cam_btn = QPushButton("Refresh cameras")
        refresh_cam_btn.setToolTip("Re-detect connected cameras.")
        refresh_cam_btn.clicked.connect(self._refresh_cameras)
        sidebar_layout.addWidget(refresh_cam_btn)
        sidebar_layout.addWidget(QLabel("Model"))
        self._model_status = QLabel()
        self._model_status.setWordWrap(True)
        sidebar_layout.addWidget(self._model_status)
        self._retry_btn = QPushButton("Retry")
        self._retry_btn.clicked.connect(self._load_model)
        self._retry_btn.hide()
        sidebar_layout.addWidget(self._retry_btn)
        self._start_stop_btn = QPushButton("Start detection")
        self._start_stop_btn.setEnabled(False)
        self._start_stop_btn.clicked.connect(self._on_start_stop)
        sidebar_layout.addWidget(self._start_stop_btn)
        sidebar_layout.addStretch()
        layout.addWidget(sidebar)

        # --- Center: video with top prediction underneath ---
        center = QWidget()
        center_layout = QVBoxLayout(center)
        self._video_label = QLabel()
        self._video_label.setMinimumSize(640, 480)
        self._video_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._video_label.setStyleSheet("background-color: #1e1e1e; color: #888;")
        self._video_label.setText("No video")
        center_layout.addWidget(self._video_label, stretch=1)
        self._top_label = QLabel()
        self._top_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._top_label.setStyleSheet("font-size: 20px; font-weight: bold;")
        center_layout.addWidget(self._top_label)
        layout.addWidget(center, stretch=1)

        # --- Right: tabs ---
        tabs = QTabWidget()
        self._predictions_panel = PredictionsPanel()
        tabs.addTab(self._predictions_panel, "Predictions")
        self._logs_panel = LogsPanel()
        tabs.addTab(self._logs_panel, "Logs")
        self._performance_panel = PerformancePanel()
        tabs.addTab(self._performance_panel, "Performance")
        layout.addWidget(tabs)

        self._log_handler = QtLogHandler()
        self._log_handler.bridge.message.connect(self._logs_panel.append)
        logging.getLogger().addHandler(self._log_handler)

        self._refresh_cameras()
        self.resize(1200, 700)
        self._load_model()

    @property
    def loop(self) -> DetectionLoop | None:
        return self._loop

    def _refresh_cameras(self) -> None:
        """Populate camera combo with get_camera_list()."""
        if self._loop is not None and self._loop.state is not LoopState.IDLE:
            logger.info("Stop detection before changing cameras.")
            return
        cameras = get_camera_list()
        self._camera_combo.clear()
        for camera in cameras:
            self._camera_combo.addItem(camera.name, camera.index)
        if not cameras:
            self._camera_combo.addItem("No cameras found", self._settings.camera_index)
            logger.warning("No cameras detected. Connect a camera and click Refresh cameras.")
        else:
            match = self._camera_combo.findData(self._settings.camera_index)
            self._camera_combo.setCurrentIndex(max(match, 0))

    # --- Model loading ---

    def _load_model(self) -> None:
        if self._load_thread is not None:
            return
        self._retry_btn.hide()
        self._start_stop_btn.setEnabled(False)
        self._model_status.setStyleSheet("")
        self._model_status.setText("Loading model...")
        self._load_worker = ModelLoadWorker(self._settings)
        self._load_thread = QThread()
        self._load_worker.moveToThread(self._load_thread)
        self._load_thread.started.connect(self._load_worker.run)
        self._load_worker.load_done.connect(self._on_model_loaded)
        self._load_thread.start()

    def _stop_load_thread(self, timeout_ms: int = 2000) -> None:
        if self._load_thread is None:
            self._load_worker = None
            return
        self._load_thread.quit()
        if not self._load_thread.wait(timeout_ms):
            # Keep the references; a QThread must outlive its running worker
            logger.warning("Model loader thread did not stop within %d ms", timeout_ms)
            return
        self._load_thread = None
        self._load_worker = None

    @Slot(bool, str, object)
    def _on_model_loaded(self, success: bool, error_msg: str, bundle: ModelBundle | None) -> None:
        self._stop_load_thread()
        if self._closed:
            # Load finished after the window closed
            if bundle is not None:
                bundle.engine.close()
            return
        if not success or bundle is None:
            logger.error("Model load failed: %s", error_msg)
            self._model_status.setStyleSheet("color: #f87171;")
            self._model_status.setText(f"Could not load the model. {error_msg}")
            self._retry_btn.show()
            return
        self._install_model(bundle)

    def _install_model(self, bundle: ModelBundle) -> None:
        if self._loop is not None:
            self._loop.stop()
            self._loop.deleteLater()
        if self._bundle is not None:
            self._bundle.engine.close()
        self._bundle = bundle
        preprocessor = Preprocessor(self._allocator, bundle.engine.input_size)
        self._loop = DetectionLoop(
            self._source,
            preprocessor,
            bundle.engine,
            bundle.labels,
            max_backoff_ms=self._settings.max_backoff_ms,
            parent=self,
        )
        self._loop.predictions_ready.connect(self._on_predictions)
        self._loop.frame_presented.connect(self._on_frame)
        self._loop.error_occurred.connect(self._on_loop_error)
        self._loop.state_changed.connect(self._on_state_changed)
        self._loop.stats_updated.connect(self._performance_panel.update_metrics)
        self._predictions_panel.set_class_count(len(bundle.labels))
        self._model_status.setText(
            f"{bundle.engine.display_name}: {len(bundle.labels)} classes"
        )
        self._start_stop_btn.setEnabled(True)

    # --- Detection ---

    def _on_start_stop(self) -> None:
        if self._loop is None:
            return
        if self._loop.state is not LoopState.IDLE:
            self._loop.stop()
            return
        cam_index = self._camera_combo.currentData()
        self._source.camera_index = int(cam_index) if cam_index is not None else 0
        self._performance_panel.reset()
        self._predictions_panel.clear()
        self._top_label.setText("Analyzing...")
        self._top_label.setStyleSheet("font-size: 20px; font-weight: bold;")
        self._loop.start()

    @Slot(object)
    def _on_state_changed(self, state: LoopState) -> None:
        running = state is not LoopState.IDLE
        self._start_stop_btn.setText("Stop detection" if running else "Start detection")
        self._camera_combo.setEnabled(not running)
        if not running:
            self._top_label.setText("")
            self._video_label.clear()
            self._video_label.setText("No video")
            self._performance_panel.reset()

    @Slot(object)
    def _on_predictions(self, predictions: RankedPredictions) -> None:
        self._predictions_panel.update_predictions(predictions)
        if not predictions:
            return
        top = predictions[0]
        self._top_label.setText(f"{top.label}  {top.probability * 100:.1f}%")
        self._top_label.setStyleSheet(
            f"font-size: 20px; font-weight: bold; color: {top_prediction_color(top.probability)};"
        )

    @Slot(object)
    def _on_frame(self, pixels: np.ndarray) -> None:
        # The buffer is reused by the next capture; QPixmap.fromImage copies it now
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            return
        frame = np.ascontiguousarray(pixels)
        h, w = frame.shape[:2]
        qimg = QImage(
            frame.data,
            w,
            h,
            frame.strides[0],
            QImage.Format.Format_BGR888,
        )
        self._video_label.setPixmap(QPixmap.fromImage(qimg).scaled(
            self._video_label.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        ))

    @Slot(str)
    def _on_loop_error(self, message: str) -> None:
        self._top_label.setStyleSheet("font-size: 14px; color: #f87171;")
        self._top_label.setText(message)

    def closeEvent(self, event) -> None:
        self._closed = True
        if self._load_worker is not None:
            self._load_worker.load_done.disconnect(self._on_model_loaded)
        self._stop_load_thread(self._settings.shutdown_timeout_ms)
        if self._loop is not None:
            self._loop.stop()
        self._source.stop()
        if self._bundle is not None:
            self._bundle.engine.close()
        logging.getLogger().removeHandler(self._log_handler)
        event.accept()
