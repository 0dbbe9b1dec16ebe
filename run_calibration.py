#!/usr/bin/env python3
"""
calibguide Guided Calibration

Live guided capture for single-camera intrinsic calibration. Hold a printed
chessboard in front of the camera and follow the on-screen guidance; views
are accepted automatically once they add new viewing angles.

Usage:
    python run_calibration.py
    python run_calibration.py --camera 1 --pattern 9x6 --square-size 0.025
    python run_calibration.py --generate-board

Keys (preview window):
    ESC/Q: quit | F: calibrate now | R: restart session | C: re-arm calibration
"""

import argparse
import sys
import time
from pathlib import Path

import cv2

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from calibguide.config import CalibGuideConfig
from calibguide.calibration import OpenCVVision, render_chessboard
from calibguide.capture import Camera, CaptureController, TickStatus
from calibguide.errors import ConfigurationError
from calibguide.utils.logging import set_log_level


def parse_pattern(value: str) -> tuple[int, int]:
    """Parse 'COLSxROWS' (inner corners)."""
    s = value.lower().replace(" ", "")
    if "x" not in s:
        raise argparse.ArgumentTypeError("pattern must look like 9x6")
    cols, rows = s.split("x", 1)
    return int(cols), int(rows)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="calibguide guided camera calibration")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--camera", "-c", type=int, default=None, help="Camera index")
    parser.add_argument("--pattern", "-p", type=parse_pattern, default=None,
                        help="Inner corners as COLSxROWS (e.g. 6x6)")
    parser.add_argument("--square-size", "-s", type=float, default=None,
                        help="Square edge length in your chosen units")
    parser.add_argument("--fps", type=float, default=None, help="Capture pipeline rate")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Per-axis novelty threshold in degrees")
    parser.add_argument("--min-samples", "-n", type=int, default=None,
                        help="Samples collected before calibrating")
    parser.add_argument("--trigger", choices=["once", "every_sample"], default=None,
                        help="Calibrate once at the threshold or on every sample past it")
    parser.add_argument("--tracking", action="store_true",
                        help="Track corners between frames with optical flow")
    parser.add_argument("--background", action="store_true",
                        help="Run the calibration solve on a worker thread")
    parser.add_argument("--output-dir", "-o", type=Path, default=None,
                        help="Output directory for calibration data")
    parser.add_argument("--generate-board", "-g", action="store_true",
                        help="Write a printable chessboard image and exit")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log every evaluated pose (DEBUG level)")
    parser.add_argument("--no-preview", action="store_true",
                        help="Run without a preview window (stops after calibration)")
    return parser


def apply_overrides(config: CalibGuideConfig, args) -> CalibGuideConfig:
    """Fold command-line overrides into the loaded configuration."""
    if args.camera is not None:
        config.camera.id = args.camera
    if args.pattern is not None:
        config.pattern.columns, config.pattern.rows = args.pattern
    if args.square_size is not None:
        config.pattern.square_size = args.square_size
    if args.fps is not None:
        config.guidance.fps = args.fps
    if args.threshold is not None:
        config.guidance.novelty_threshold = args.threshold
    if args.min_samples is not None:
        config.guidance.min_samples = args.min_samples
    if args.trigger is not None:
        config.guidance.trigger_policy = args.trigger
    if args.tracking:
        config.guidance.use_tracking = True
    if args.verbose:
        config.log_level = "DEBUG"
    if args.background:
        config.guidance.background_calibration = True
    return config


def draw_status(image, controller: CaptureController) -> None:
    guidance = controller.last_guidance
    text = guidance.message if guidance else "Show the chessboard to the camera"
    color = (0, 255, 0) if guidance else (0, 0, 255)
    cv2.putText(image, text, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2)

    status = f"Samples: {controller.sample_count}/{controller.trigger.min_samples}"
    outcome = controller.last_outcome
    if outcome is not None:
        if outcome.success:
            status += f" | RMS: {outcome.result.rms_error:.3f}px"
        else:
            status += " | Calibration failed, capture more views"
    cv2.putText(image, status, (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 0), 2)


def main():
    args = build_parser().parse_args()

    config = apply_overrides(CalibGuideConfig.load(args.config), args)
    set_log_level(config.log_level)
    config.ensure_dirs()

    output_dir = args.output_dir or config.calibration_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        pattern = config.pattern.to_pattern()
    except ConfigurationError as e:
        print(f"Invalid pattern: {e}")
        return 1

    if args.generate_board:
        board_path = output_dir / f"chessboard_{pattern.columns}x{pattern.rows}.png"
        cv2.imwrite(str(board_path), render_chessboard(pattern))
        print(f"Board saved to: {board_path}")
        print("Print at 100% scale and measure a square to verify its size.")
        return 0

    camera = Camera(config.camera.id, config.camera.resolution, config.camera.fps)
    if not camera.start():
        print(f"Could not open camera {config.camera.id}")
        return 1

    intrinsics_path = output_dir / f"intrinsics_cam{config.camera.id}.json"

    def save_result(outcome):
        if not outcome.success:
            return
        intrinsics = outcome.result.to_intrinsics(config.camera.id, config.camera.name)
        intrinsics.save(intrinsics_path)
        print(f"Saved: {intrinsics_path}")

    vision = OpenCVVision(
        subpix_window=config.guidance.subpix_window,
        subpix_iterations=config.guidance.subpix_iterations,
        subpix_epsilon=config.guidance.subpix_epsilon,
    )

    exit_code = 0
    with vision:
        try:
            controller = CaptureController.from_config(vision, config, source=camera)
        except ConfigurationError as e:
            camera.stop()
            print(f"Invalid configuration: {e}")
            return 1

        controller.add_calibration_callback(save_result)
        controller.add_guidance_callback(lambda g: print(f"> {g.message}") if args.no_preview else None)

        print(f"\n=== Guided calibration, camera {config.camera.id} ===")
        print(f"Pattern {pattern.columns}x{pattern.rows}, need {config.guidance.min_samples} samples")
        print("ESC/Q: quit | F: calibrate now | R: restart | C: re-arm calibration\n")

        try:
            while True:
                result = controller.tick()

                if args.no_preview:
                    outcome = controller.last_outcome
                    if outcome is not None and outcome.success:
                        break
                    if result.status is TickStatus.THROTTLED:
                        time.sleep(0.005)
                    continue

                frame = camera.current_frame()
                if frame is not None:
                    display = frame.image.copy()
                    frame.release()
                    draw_status(display, controller)
                    cv2.imshow(f"Guided Calibration - Camera {config.camera.id}", display)

                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord('q')):
                    break
                elif key == ord('f'):
                    controller.finalize()
                elif key == ord('r'):
                    controller.reset_session()
                elif key == ord('c'):
                    controller.recalibrate()
        except KeyboardInterrupt:
            print("Interrupted")
        finally:
            controller.trigger.wait(timeout=30.0)
            controller.shutdown()
            camera.stop()
            if not args.no_preview:
                cv2.destroyAllWindows()

        outcome = controller.last_outcome
        if outcome is None or not outcome.success:
            print("\nNo calibration produced.")
            exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
