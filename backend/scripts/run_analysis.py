#!/usr/bin/env python3
"""
Run Analysis Script
===================
Command-line interface for running the video analysis pipeline without
the HTTP server.

Usage:
    python scripts/run_analysis.py --video path/to/video.mp4 --api-key sk-...
    python scripts/run_analysis.py --video video.mp4 --demo
    python scripts/run_analysis.py --video video.mp4 --api-key AIza... --backend gemini --output result.json
"""

import argparse
import os
import shutil
import sys
import threading
import uuid
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from videoinsight.config import load_runtime_config
from videoinsight.exceptions import InputValidationError, StageExecutionError
from videoinsight.logging_config import get_app_logger
from videoinsight.models import generate_session_id
from videoinsight.pipeline import AnalysisPipeline, AnalysisRequest, SessionRegistry

logger = get_app_logger("cli", log_to_file=False)


def main():
    parser = argparse.ArgumentParser(
        description="Analyze a video: transcript, sentiment, objects and QA pairs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with an OpenAI key
    python scripts/run_analysis.py --video clip.mp4 --api-key sk-...

    # Run the zero-cost demo path
    python scripts/run_analysis.py --video clip.mp4 --demo

    # Use the Gemini backend and save the result
    python scripts/run_analysis.py --video clip.mp4 --api-key AIza... --backend gemini -o result.json
        """
    )

    parser.add_argument(
        '--video', '-v',
        type=str,
        required=True,
        help='Path to the MP4 file to analyze'
    )

    parser.add_argument(
        '--api-key', '-k',
        type=str,
        default=None,
        help='Inference API key (or "demo"); defaults to $OPENAI_API_KEY / $GEMINI_API_KEY'
    )

    parser.add_argument(
        '--demo',
        action='store_true',
        help='Force demo mode (no API calls)'
    )

    parser.add_argument(
        '--session-id',
        type=str,
        default=None,
        help='Session id to report in the result'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Write the JSON result to this file instead of stdout'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='JSON configuration file written by AppConfig.save'
    )

    parser.add_argument(
        '--profile',
        type=str,
        choices=['development', 'production'],
        default=None,
        help='Configuration preset (ignored when --config is given)'
    )

    parser.add_argument(
        '--backend', '-b',
        type=str,
        choices=['openai', 'gemini'],
        default=None,
        help='Inference backend (default: from configuration)'
    )

    args = parser.parse_args()

    return run_analysis_cli(
        video_path=args.video,
        api_key=args.api_key,
        demo=args.demo,
        session_id=args.session_id,
        output_path=args.output,
        backend=args.backend,
        config_file=args.config,
        profile=args.profile,
    )


def _print_progress(channel):
    for message in channel.listen():
        if message and message.get('type') == 'progress':
            print(f"  [{message['progress']:>3}%] {message['message']}")


def run_analysis_cli(
    video_path: str,
    api_key: str = None,
    demo: bool = False,
    session_id: str = None,
    output_path: str = None,
    backend: str = None,
    config_file: str = None,
    profile: str = None
) -> int:
    """Run the pipeline on one video and print or save the result."""

    if not os.path.exists(video_path):
        print(f"Error: Video file not found: {video_path}")
        return 1

    config = load_runtime_config(config_file, profile)
    if backend:
        config.inference.backend = backend

    if api_key is None:
        env_name = "GEMINI_API_KEY" if config.inference.backend == "gemini" else "OPENAI_API_KEY"
        api_key = os.getenv(env_name, "")

    # The pipeline deletes its input, so work on a copy
    config.paths.uploads.mkdir(parents=True, exist_ok=True)
    working_copy = config.paths.uploads / f"{uuid.uuid4().hex}{Path(video_path).suffix.lower()}"
    shutil.copyfile(video_path, working_copy)

    session_id = session_id or generate_session_id()

    print("=" * 60)
    print("VIDEO ANALYSIS")
    print("=" * 60)
    print(f"Video: {video_path}")
    print(f"Backend: {config.inference.backend}")
    print(f"Mode: {'demo' if demo or api_key in config.demo.sentinels else 'live'}")
    print(f"Session: {session_id}")
    print("=" * 60)

    registry = SessionRegistry()
    channel = registry.subscribe(session_id)
    printer = threading.Thread(target=_print_progress, args=(channel,), daemon=True)
    printer.start()

    pipeline = AnalysisPipeline(registry=registry, config=config)
    request = AnalysisRequest(
        video_path=str(working_copy),
        original_filename=os.path.basename(video_path),
        mime_type="video/mp4" if Path(video_path).suffix.lower() == ".mp4" else None,
        credential=api_key,
        session_id=session_id,
        demo=demo,
    )

    try:
        result = pipeline.run(request)
    except InputValidationError as e:
        print(f"Error: {e.message}")
        return 2
    except StageExecutionError as e:
        logger.error(f"Pipeline failed at stage {e.stage}: {e.message}")
        print(f"Error: {e.message}")
        return 1
    finally:
        registry.close(session_id)
        printer.join(timeout=1.0)

    if output_path:
        result.save(output_path)
        print()
        print(f"Result saved to: {output_path}")
    else:
        print(result.to_json())

    print()
    print(f"Transcript segments: {len(result.transcript.segments)}")
    print(f"Objects detected: {len(result.objects_detected)}")
    print(f"QA pairs: {len(result.qa_pairs)}")
    print(f"Processing time: {result.metadata.processing_time}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
