"""
Command-line interface for face2neck.

This module provides the main entry point for the CLI tool.
"""

import logging
import sys
from typing import List, Optional, Tuple, Union

import cv2

from .config import create_argument_parser, Config
from .face import DegenerateLandmarksError, FaceLandmarkIngest
from .pipeline import FacePosePipeline, FrameResult

logger = logging.getLogger(__name__)


def open_capture(source: str, resolution: Tuple[int, int]) -> cv2.VideoCapture:
    """
    Open a camera index or video file.

    Args:
        source: Camera index as a digit string, or a file path/URL
        resolution: Requested (width, height); cameras may ignore it

    Returns:
        Opened cv2.VideoCapture

    Raises:
        FileNotFoundError: If the source cannot be opened
    """
    target: Union[int, str] = int(source) if source.isdigit() else source
    capture = cv2.VideoCapture(target)
    if not capture.isOpened():
        raise FileNotFoundError(f"Could not open video source: {source}")

    if isinstance(target, int):
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, resolution[0])
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, resolution[1])
    return capture


def print_result(frame_count: int, result: FrameResult) -> None:
    print(f"  [{frame_count:5d}] pitch={result.pitch:7.2f} yaw={result.yaw:7.2f} "
          f"roll={result.roll:7.2f} ({result.outcome.value})")


def replay_landmarks(
    pipeline: FacePosePipeline,
    paths: List[str],
    max_frames: Optional[int] = None,
    verbose: bool = False
) -> int:
    """
    Feed recorded landmark files through the pipeline, one file per frame.

    Args:
        pipeline: Pipeline used through process_landmarks()
        paths: Landmark JSON files in frame order
        max_frames: Stop after this many files (None = all)
        verbose: Print the shaped angles of each frame

    Returns:
        Number of frames processed

    Raises:
        FileNotFoundError: If a file is missing
        ValueError: If a file is not a supported landmark format
    """
    frame_count = 0
    for path in paths:
        if max_frames is not None and frame_count >= max_frames:
            break

        landmarks = FaceLandmarkIngest.from_json(path)
        frame_count += 1
        try:
            result = pipeline.process_landmarks(landmarks)
        except DegenerateLandmarksError as e:
            logger.error("Frame %d (%s) dropped: %s", frame_count, path, e)
            continue

        if verbose:
            print_result(frame_count, result)

    return frame_count


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        argv: Command-line arguments (None = sys.argv)

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    # Parse arguments
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    # Handle --save-config
    if args.save_config:
        template = Config.generate_default_config_template()
        with open(args.save_config, 'w') as f:
            f.write(template)
        print(f"Default configuration saved to: {args.save_config}")
        print(f"Edit this file and use with: face2neck --config {args.save_config}")
        return 0

    # Create config
    try:
        config = Config.from_args(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("\nUse --help for usage information or --save-config to generate a template.", file=sys.stderr)
        return 1

    # Configure logging
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Print banner
    if args.verbose:
        print("=" * 60)
        print("face2neck - Head Pose to Neck Joint")
        print("=" * 60)
        if args.landmarks:
            print(f"Landmark files: {len(args.landmarks)}")
        else:
            print(f"Source: {config.capture.source}")
        print(f"Resolution: {config.capture.resolution[0]}x{config.capture.resolution[1]}")
        print(f"Filter: alpha={config.filter.alpha} deadband={config.filter.deadband_deg} "
              f"median={config.filter.median_window}")
        print("=" * 60)

    capture = None
    pipeline = None
    frame_count = 0
    try:
        if args.landmarks:
            # Recorded landmarks are in pixels of a frame of the configured resolution
            pipeline = FacePosePipeline.from_config(config, detectors=False)
            frame_count = replay_landmarks(
                pipeline, args.landmarks, config.capture.max_frames, args.verbose
            )
            if args.verbose:
                print(f"\nProcessed {frame_count} frames")
            return 0

        capture = open_capture(config.capture.source, config.capture.resolution)

        while config.capture.max_frames is None or frame_count < config.capture.max_frames:
            ok, frame = capture.read()
            if not ok:
                break

            if pipeline is None:
                # Intrinsics follow the size the camera actually delivers
                height, width = frame.shape[:2]
                pipeline = FacePosePipeline.from_config(config, image_size=(width, height))
                if args.verbose:
                    print(f"  Frame size: {width}x{height}")

            frame_count += 1
            try:
                result = pipeline.process_frame(frame)
            except DegenerateLandmarksError as e:
                logger.error("Frame %d dropped: %s", frame_count, e)
                continue

            if args.verbose:
                print_result(frame_count, result)

        if args.verbose:
            print(f"\nProcessed {frame_count} frames")
        return 0

    except KeyboardInterrupt:
        if args.verbose:
            print(f"\nInterrupted after {frame_count} frames")
        return 0
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if pipeline is not None:
            pipeline.close()
        if capture is not None:
            capture.release()


if __name__ == "__main__":
    sys.exit(main())
