#!/usr/bin/env python3
"""
Run the detection path on a single image and print the fused detections.

Useful to check a model export and the thresholds without a camera. The
viewport is set to the image size so the printed boxes are image pixels.

Usage:
    python tools/scan_image.py --image path/to/pack.jpg
    python tools/scan_image.py --image pack.jpg --config config/config.yaml --ocr
"""

import argparse
import os
import sys

# Add project directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

import cv2

from main import load_config, load_labels
from models.config import Config
from inference.opencv_backend import OpenCVDnnBackend, OpenCVDnnConfig
from observation.frames import frame_from_bgr
from pipeline.processor import create_processor_from_config


def draw(image, detections):
    for det in detections:
        cv2.rectangle(image, (det.x1, det.y1), (det.x2, det.y2), (0, 255, 0), 2)
        label = f"{det.class_name} {det.effective_confidence:.2f}"
        cv2.putText(image, label, (det.x1, max(det.y1 - 6, 12)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 2)
    return image


def main():
    parser = argparse.ArgumentParser(description="Scan a single image")
    parser.add_argument("--image", required=True, help="Path to an image file")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    parser.add_argument("--ocr", action="store_true", help="Also run text recognition")
    parser.add_argument("--output", default=None, help="Where to write the annotated image")
    args = parser.parse_args()

    image = cv2.imread(args.image)
    if image is None:
        print(f"Failed to load image: {args.image}")
        return 1

    config = Config.from_dict(load_config(args.config))
    config.model.class_names = load_labels(config.model.labels_path, config.model.class_names)
    height, width = image.shape[:2]
    config.display.viewport_width = width
    config.display.viewport_height = height

    backend = OpenCVDnnBackend(
        OpenCVDnnConfig(model_path=config.model.model_path, input_size=config.model.input_size)
    )
    processor = create_processor_from_config(config, backend)
    frame = frame_from_bgr(image, source=args.image)

    recognition = None
    if args.ocr:
        from ocr.recognizer import RecognitionService, TesseractRecognizer
        recognition = RecognitionService(TesseractRecognizer()).recognize_frame(frame)
        print(f"Text: {recognition.recognized_text!r}")
        print(f"Brand: {recognition.brand_name}  Expiry: {recognition.expiry_date}")

    outcome = processor.process(frame, recognition)
    print(f"Status: {outcome.status.value}  latency: {outcome.latency * 1000:.1f}ms")
    for det in outcome.detections:
        print(f"  {det.class_name}: conf={det.confidence:.3f} "
              f"adjusted={det.effective_confidence:.3f} box={det.bbox.as_tuple()}")
    if not outcome.detections:
        print("  no detections")

    output = args.output or args.image.rsplit(".", 1)[0] + "_scanned.jpg"
    cv2.imwrite(output, draw(image.copy(), outcome.detections))
    print(f"Saved result to: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
