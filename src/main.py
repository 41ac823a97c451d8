"""
Main application: live pill detection with label recognition.

Reads camera frames, runs the perception engine (detector + OCR), serves the
status API and records confirmed scans in the history database.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --no-web: Do not start the status API
    --max-frames: Stop after reading this many frames
"""

import os
import sys
import argparse
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import uvicorn
import yaml

from models.config import Config
from models.frame import PixelFormat
from detection.decoder import OutputLayout
from inference.opencv_backend import OpenCVDnnBackend, OpenCVDnnConfig
from ocr.recognizer import RecognitionService, TesseractRecognizer
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from pipeline.engine import PerceptionEngine
from pipeline.processor import FrameOutcome, create_processor_from_config
from storage.database import MedicineDatabase
from ops.logging import setup_logging
from runtime.context import RuntimeContext
from web.app import create_app
from web.state import state as web_state

# Consecutive empty reads before the capture loop gives up.
MAX_CONSECUTIVE_READ_FAILURES = 10


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if (
            os.path.exists(config_path)
            and os.path.abspath(config_path) != os.path.abspath(local_overrides_path)
            and os.path.abspath(config_path) != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['model', 'detection', 'camera', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Model
    model = config.get('model') or {}
    if not isinstance(model.get('model_path'), str) or not model.get('model_path'):
        return False, "model.model_path must be a non-empty string"
    for key in ('input_size', 'num_classes', 'num_boxes'):
        if key in model and not _is_positive_int(model[key]):
            return False, f"model.{key} must be a positive integer"
    layout = model.get('output_layout', OutputLayout.CHANNEL_MAJOR.value)
    if layout not in [m.value for m in OutputLayout]:
        return False, f"model.output_layout must be one of: {', '.join(m.value for m in OutputLayout)}"
    class_names = model.get('class_names')
    if class_names is not None:
        if not isinstance(class_names, list) or not all(isinstance(n, str) for n in class_names):
            return False, "model.class_names must be a list of strings"
        num_classes = model.get('num_classes', len(class_names))
        if len(class_names) != num_classes:
            return False, "model.class_names length must equal model.num_classes"

    # Detection thresholds
    detection = config.get('detection') or {}
    for key in ('conf_threshold', 'iou_threshold', 'prefilter_ratio', 'min_box_size', 'max_box_size'):
        if key in detection:
            value = detection[key]
            if not _is_number(value) or not (0 <= value <= 1):
                return False, f"detection.{key} must be between 0 and 1"
    for key in ('max_candidates', 'max_display'):
        if key in detection and not _is_positive_int(detection[key]):
            return False, f"detection.{key} must be a positive integer"
    min_aspect = detection.get('min_aspect', 0.2)
    max_aspect = detection.get('max_aspect', 5.0)
    if not _is_number(min_aspect) or not _is_number(max_aspect) or not (0 < min_aspect < max_aspect):
        return False, "detection.min_aspect and max_aspect must satisfy 0 < min_aspect < max_aspect"

    # Fusion
    fusion = config.get('fusion') or {}
    if 'high_confidence_threshold' in fusion:
        value = fusion['high_confidence_threshold']
        if not _is_number(value) or not (0 <= value <= 1):
            return False, "fusion.high_confidence_threshold must be between 0 and 1"
    for key in ('confidence_boost', 'debounce_seconds'):
        if key in fusion and (not _is_number(fusion[key]) or fusion[key] < 0):
            return False, f"fusion.{key} must be a non-negative number"
    keywords = fusion.get('class_keywords')
    if keywords is not None and not isinstance(keywords, dict):
        return False, "fusion.class_keywords must be a mapping of class name to keywords"

    # Schedule
    schedule = config.get('schedule') or {}
    for key in ('min_frame_interval', 'ocr_interval'):
        if key in schedule and (not _is_number(schedule[key]) or schedule[key] < 0):
            return False, f"schedule.{key} must be a non-negative number"
    if 'systemic_failure_threshold' in schedule and not _is_positive_int(schedule['systemic_failure_threshold']):
        return False, "schedule.systemic_failure_threshold must be a positive integer"

    # Display
    display = config.get('display') or {}
    for key in ('viewport_width', 'viewport_height'):
        if key in display and not _is_positive_int(display[key]):
            return False, f"display.{key} must be a positive integer"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (file path)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(_is_positive_int(x) for x in resolution):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and not _is_positive_int(camera['fps']):
        return False, "camera.fps must be a positive integer"
    pixel_format = camera.get('pixel_format', PixelFormat.BGRA8888.value)
    if pixel_format not in (PixelFormat.BGRA8888.value, PixelFormat.YUV420.value):
        return False, "camera.pixel_format must be one of: bgra8888, yuv420"

    # Storage
    storage = config.get('storage') or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    # Log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def load_labels(labels_path: Optional[str], fallback: List[str]) -> List[str]:
    """Read class labels, one per line; fall back to the configured names."""
    if not labels_path or not os.path.exists(labels_path):
        return list(fallback)
    with open(labels_path, "r") as f:
        labels = [line.strip() for line in f if line.strip()]
    logging.info(f"Loaded {len(labels)} labels from {labels_path}")
    return labels or list(fallback)


def make_scan_recorder(db: MedicineDatabase) -> Callable[[FrameOutcome], None]:
    """
    Engine listener that stores each confirmed detection in the scan history.

    The medicine id is the detector class id plus one.
    """
    def record(outcome: FrameOutcome) -> None:
        detection = outcome.notification
        if detection is None:
            return
        medicine_id = detection.class_id + 1
        medicine = db.get_by_id(medicine_id)
        if medicine is not None:
            brand_name, generic_name = medicine.brand_name, medicine.generic_name
        else:
            logging.warning(f"No medicine record for id {medicine_id}")
            brand_name = detection.recognized_brand_name or detection.class_name
            generic_name = ""
        scan_id = db.record_scan(medicine_id, brand_name, generic_name)
        logging.info(f"Scan {scan_id} recorded: {brand_name} (medicine {medicine_id})")

    return record


def create_recognition_service() -> Optional[RecognitionService]:
    try:
        return RecognitionService(TesseractRecognizer())
    except ImportError as e:
        logging.warning(f"Text recognition disabled: {e}")
        return None


def start_web(config: Config) -> threading.Thread:
    def run_web_app():
        uvicorn.run(
            create_app(),
            host=config.web.host,
            port=config.web.port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on port {config.web.port}")
    return web_thread


def run_capture_loop(ctx: RuntimeContext, max_frames: Optional[int] = None) -> int:
    """Feed frames from the source into the engine. Returns frames read."""
    frames_read = 0
    consecutive_failures = 0
    while max_frames is None or frames_read < max_frames:
        frame = ctx.source.read()
        if frame is None:
            consecutive_failures += 1
            if ctx.source.is_file or consecutive_failures >= MAX_CONSECUTIVE_READ_FAILURES:
                logging.info(f"Stopping capture after {consecutive_failures} empty reads")
                break
            time.sleep(0.5)
            continue

        consecutive_failures = 0
        frames_read += 1
        ctx.engine.submit(frame)
    return frames_read


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Pill Scanner - live detection and label recognition')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the status API')
    parser.add_argument('--max-frames', type=int, default=None,
                        help='Stop after reading this many frames')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting Pill Scanner")

    config.model.class_names = load_labels(config.model.labels_path, config.model.class_names)

    ctx: Optional[RuntimeContext] = None
    try:
        db = MedicineDatabase(config.storage.local_database_path)
        db.initialize()

        backend = OpenCVDnnBackend(
            OpenCVDnnConfig(model_path=config.model.model_path, input_size=config.model.input_size)
        )
        processor = create_processor_from_config(config, backend)
        recognition_service = create_recognition_service()
        engine = PerceptionEngine(processor, recognition_service, config.schedule)

        source = OpenCVSource(
            OpenCVSourceConfig.from_camera_config(config.camera.to_dict(), source_id="main-camera")
        )
        ctx = RuntimeContext(
            config=config,
            db=db,
            backend=backend,
            engine=engine,
            source=source,
            recognition_service=recognition_service,
            web_state=web_state,
        )

        web_state.set_database(db)
        web_state.set_config(config)
        web_state.set_engine(engine)
        web_state.update_system_stats({"start_time": time.time()})
        engine.add_listener(web_state.apply_outcome)
        engine.add_listener(make_scan_recorder(db))

        if config.web.enabled and not args.no_web:
            start_web(config)

        source.open()
        engine.start()
        frames = run_capture_loop(ctx, args.max_frames)
        logging.info(f"Capture finished after {frames} frames")

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        raise
    finally:
        if ctx is not None:
            ctx.close()
        logging.info("Pill Scanner stopped")


if __name__ == "__main__":
    main()
