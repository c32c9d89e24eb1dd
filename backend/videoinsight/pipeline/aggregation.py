"""
Object Aggregation Module
=========================
Turns per-frame detections into per-object appearance statistics.

Algorithm:
1. Sample the frame sequence at ordinals 1, 1+stride, 1+2*stride, ...
2. Run detection on every sampled frame (bounded thread pool). A failing
   frame contributes zero detections.
3. Group detections by lower-cased name, recording
   frame_id=ordinal and timestamp=(ordinal-1)/fps for each hit. A name
   counts at most once per frame.
4. appearance_percentage = hits / N * 100 with N the FULL frame count, to
   one decimal; avg_confidence = mean to two decimals. Halves round up.
5. Sort by appearance_percentage descending, then first frame ordinal,
   then name.

Results are merged in ordinal order after all detections finish, so the
output does not depend on which detection call returns first.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from statistics import mean
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config import DetectionConfig, get_config
from ..logging_config import log_collaborator_fallback
from ..models import DetectedObjectFrame, DetectedObjectSummary, FrameDetection

logger = logging.getLogger(__name__)


def round_half_up(value: float, digits: int) -> float:
    """Round with halves going up (31.25 -> 31.3), unlike round()'s half-to-even."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def select_sampling_stride(frame_count: int, config: Optional[DetectionConfig] = None) -> int:
    """Return 1 for up to full_sampling_max_frames frames, the reduced stride above it."""
    cfg = config or get_config().detection
    if frame_count <= cfg.full_sampling_max_frames:
        return 1
    return cfg.reduced_sampling_stride


def sampled_ordinals(frame_count: int, stride: int) -> List[int]:
    """1-based ordinals of the frames submitted for detection."""
    if stride < 1:
        raise ValueError(f"Sampling stride must be a positive integer, got {stride}")
    return list(range(1, frame_count + 1, stride))


class ObjectAggregator:
    """
    Aggregates vision detections over an extracted frame sequence.

    Attributes:
        detect: Callable taking a frame path and returning FrameDetection
            values, usually VisionService.detect
        max_workers: Upper bound on concurrent detection calls
    """

    def __init__(
        self,
        detect: Callable[[str], List[FrameDetection]],
        max_workers: Optional[int] = None,
    ):
        self.detect = detect
        self.max_workers = max(1, max_workers or get_config().detection.max_workers)

    def _detect_frame(self, ordinal: int, frame_path: str) -> List[FrameDetection]:
        try:
            return list(self.detect(frame_path) or [])
        except Exception as e:
            log_collaborator_fallback("detection", f"frame #{ordinal} ({frame_path}): {e}", "no detections")
            return []

    def _run_detections(self, jobs: List[Tuple[int, str]]) -> List[List[FrameDetection]]:
        """Detections per job, in job order."""
        if self.max_workers == 1 or len(jobs) <= 1:
            return [self._detect_frame(ordinal, path) for ordinal, path in jobs]

        workers = min(self.max_workers, len(jobs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detect") as executor:
            return list(executor.map(lambda job: self._detect_frame(*job), jobs))

    def aggregate(
        self,
        frame_paths: Sequence[str],
        sampling_stride: int,
        frames_per_second: float,
    ) -> List[DetectedObjectSummary]:
        """
        Aggregate detections for one frame sequence.

        Args:
            frame_paths: Extracted frames in ordinal order (ordinal = index + 1)
            sampling_stride: Positive stride between sampled ordinals
            frames_per_second: Extraction rate, used to recover timestamps

        Returns:
            Object summaries sorted by appearance_percentage descending
        """
        total_frames = len(frame_paths)
        if total_frames == 0:
            return []
        if frames_per_second <= 0:
            raise ValueError(f"frames_per_second must be positive, got {frames_per_second}")

        ordinals = sampled_ordinals(total_frames, sampling_stride)
        jobs = [(ordinal, frame_paths[ordinal - 1]) for ordinal in ordinals]
        logger.info(
            f"Detecting objects in {len(jobs)}/{total_frames} frames "
            f"(stride {sampling_stride}, {self.max_workers} workers)"
        )

        per_frame = self._run_detections(jobs)

        groups: Dict[str, List[DetectedObjectFrame]] = {}
        for (ordinal, _), detections in zip(jobs, per_frame):
            timestamp = (ordinal - 1) / frames_per_second
            for detection in detections:
                name = detection.name.strip().lower()
                if not name:
                    continue
                frames = groups.setdefault(name, [])
                # One appearance per frame; the first detection of a name wins
                if frames and frames[-1].frame_id == ordinal:
                    continue
                frames.append(DetectedObjectFrame(
                    frame_id=ordinal,
                    timestamp=timestamp,
                    confidence=min(max(float(detection.confidence), 0.0), 1.0),
                    context=detection.context,
                ))

        summaries = [
            DetectedObjectSummary(
                name=name,
                appearance_percentage=round_half_up(len(frames) / total_frames * 100, 1),
                avg_confidence=round_half_up(mean(f.confidence for f in frames), 2),
                frames=frames,
            )
            for name, frames in groups.items()
        ]
        summaries.sort(key=lambda s: (-s.appearance_percentage, s.first_frame_id, s.name))

        logger.info(f"Object detection complete: {len(summaries)} unique objects")
        return summaries
