from __future__ import annotations

import argparse
import logging
from collections import Counter
from pathlib import Path

from detect_kit import DetectionResult, load_pipeline
from Live_Preview import (
    DetectorProfile,
    FrameOutcome,
    LivePreviewSession,
    get_capture_info,
    iter_frames,
    load_detector_profile,
    open_capture,
)


def _announce(result: DetectionResult) -> None:
    print(f"{result.label} detected with {result.confidence * 100:.2f}% confidence")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the live detection preview over a video or webcam.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    src.add_argument("--rtsp", default=None, help="RTSP stream URL.")
    parser.add_argument("--model", default="Models/yolov11n.onnx", help="Path to an ONNX detection model.")
    parser.add_argument("--profile", default=None, help="Detector profile JSON (defaults to the reference model).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--channels-first", action="store_true", help="Feed the model NCHW instead of NHWC.")
    parser.add_argument("--every", type=int, default=1, help="Deliver every Nth frame.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...).")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    profile = load_detector_profile(Path(args.profile)) if args.profile else DetectorProfile()
    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(
        model_path=args.model,
        layout=profile.layout,
        input_size=profile.input_size,
        decoder_cfg=profile.decoder_config(),
        nms_cfg=profile.nms_config(),
        onnx_providers=onnx_providers,
        channels_first=bool(args.channels_first),
    )
    if not pipeline.is_ready:
        logging.getLogger(__name__).warning("Model not loaded; preview runs without detections.")

    webcam = args.webcam
    if args.video is None and args.rtsp is None and webcam is None:
        webcam = 0
    cap = open_capture(video=args.video, webcam=webcam, rtsp=args.rtsp)
    source = args.video or args.rtsp or f"webcam:{webcam}"
    info = get_capture_info(cap, source=source)
    logging.getLogger(__name__).info(
        "Capture %s opened: %sx%s @ %s fps, %s frame(s)", info.source, info.width, info.height, info.fps, info.frame_count
    )

    session = LivePreviewSession(pipeline, profile=profile, on_detection=_announce)
    session.set_detecting(True)

    outcomes: Counter = Counter()
    try:
        for frame in iter_frames(cap, every=args.every, max_frames=args.max_frames):
            outcome = session.on_frame(frame)
            outcomes[outcome] += 1
            if outcome == FrameOutcome.DETECTED:
                for det in session.results:
                    print(det.label, f"{det.confidence:.2f}", det.as_xyxy())
    finally:
        cap.release()
        session.close()

    print({o.value: outcomes[o] for o in FrameOutcome})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
