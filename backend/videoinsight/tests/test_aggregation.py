"""
Object Aggregation Tests
========================
Verifies frame sampling, per-object statistics and deterministic ordering.
"""

import os
import sys
import threading
import time

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from videoinsight.config import DetectionConfig
from videoinsight.models import FrameDetection
from videoinsight.pipeline.aggregation import (
    ObjectAggregator,
    round_half_up,
    sampled_ordinals,
    select_sampling_stride,
)


# =============================================================================
# MOCK DATA
# =============================================================================

def create_frame_paths(count):
    return [f"/frames/frame_{i:04d}.jpg" for i in range(1, count + 1)]


def ordinal_of(frame_path):
    return int(frame_path.rsplit('_', 1)[1].split('.')[0])


class RecordingDetector:
    """Detector stub returning canned detections per ordinal and recording calls."""

    def __init__(self, detections_by_ordinal=None, fail_ordinals=(), delay_by_ordinal=None):
        self.detections_by_ordinal = detections_by_ordinal or {}
        self.fail_ordinals = set(fail_ordinals)
        self.delay_by_ordinal = delay_by_ordinal or {}
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, frame_path):
        ordinal = ordinal_of(frame_path)
        with self._lock:
            self.calls.append(ordinal)
        if ordinal in self.delay_by_ordinal:
            time.sleep(self.delay_by_ordinal[ordinal])
        if ordinal in self.fail_ordinals:
            raise RuntimeError(f"vision call failed for frame {ordinal}")
        return list(self.detections_by_ordinal.get(ordinal, []))


# =============================================================================
# TESTS
# =============================================================================

def test_stride_two_samples_odd_ordinals():
    """Test that 4 frames at stride 2 submit exactly frames 1 and 3."""
    detector = RecordingDetector({
        1: [FrameDetection(name="cup", confidence=0.8)],
        3: [FrameDetection(name="cup", confidence=0.6)],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(4), sampling_stride=2, frames_per_second=1.0
    )

    assert sorted(detector.calls) == [1, 3]
    assert len(detector.calls) == 2
    assert [f.frame_id for f in summaries[0].frames] == [1, 3]

    print("[PASS] Stride sampling test passed")


def test_all_detections_fail_returns_empty():
    """Test that failing detection calls contribute nothing and do not raise."""
    detector = RecordingDetector(fail_ordinals=range(1, 6))

    summaries = ObjectAggregator(detector, max_workers=3).aggregate(
        create_frame_paths(5), sampling_stride=1, frames_per_second=1.0
    )

    assert summaries == []
    assert sorted(detector.calls) == [1, 2, 3, 4, 5]

    print("[PASS] All-failing detection test passed")


def test_partial_failure_keeps_other_frames():
    """Test that one failing frame leaves the rest of the aggregation intact."""
    detector = RecordingDetector(
        {1: [FrameDetection(name="dog", confidence=0.9)], 3: [FrameDetection(name="dog", confidence=0.7)]},
        fail_ordinals=[2],
    )

    summaries = ObjectAggregator(detector, max_workers=2).aggregate(
        create_frame_paths(4), sampling_stride=1, frames_per_second=1.0
    )

    assert len(summaries) == 1
    assert summaries[0].appearance_percentage == 50.0
    assert summaries[0].avg_confidence == 0.8

    print("[PASS] Partial failure test passed")


def test_percentage_uses_full_frame_count():
    """Test that percentages are relative to all extracted frames, not sampled ones."""
    detector = RecordingDetector({
        ordinal: [FrameDetection(name="person", confidence=0.9)] for ordinal in range(1, 41, 2)
    })

    summaries = ObjectAggregator(detector, max_workers=4).aggregate(
        create_frame_paths(40), sampling_stride=2, frames_per_second=1.0
    )

    # 20 sampled frames out of 40 extracted
    assert summaries[0].appearance_percentage == 50.0
    assert len(summaries[0].frames) == 20

    print("[PASS] Full frame count percentage test passed")


def test_rounding():
    """Test one-decimal percentages and two-decimal confidences."""
    detector = RecordingDetector({
        1: [FrameDetection(name="lamp", confidence=0.9), FrameDetection(name="mug", confidence=0.9)],
        2: [FrameDetection(name="lamp", confidence=0.7), FrameDetection(name="mug", confidence=0.8)],
        3: [FrameDetection(name="mug", confidence=0.8)],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(3), sampling_stride=1, frames_per_second=1.0
    )

    by_name = {s.name: s for s in summaries}
    assert by_name["lamp"].appearance_percentage == 66.7
    assert by_name["lamp"].avg_confidence == 0.8
    assert by_name["mug"].appearance_percentage == 100.0
    assert by_name["mug"].avg_confidence == 0.83

    print("[PASS] Rounding test passed")


def test_rounding_halves_go_up():
    """Test that exact halves round up for both statistics."""
    detections = {ordinal: [FrameDetection(name="cup", confidence=0.5)] for ordinal in range(1, 6)}
    detections[6] = [FrameDetection(name="lamp", confidence=0.6)]
    detections[7] = [FrameDetection(name="lamp", confidence=0.65)]
    detector = RecordingDetector(detections)

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(16), sampling_stride=1, frames_per_second=1.0
    )

    by_name = {s.name: s for s in summaries}
    # 5 of 16 frames is 31.25%
    assert by_name["cup"].appearance_percentage == 31.3
    # mean(0.6, 0.65) is 0.625
    assert by_name["lamp"].avg_confidence == 0.63
    assert by_name["lamp"].appearance_percentage == 12.5

    assert round_half_up(2.5, 0) == 3.0
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(66.66666, 1) == 66.7

    print("[PASS] Half-up rounding test passed")


def test_timestamps_follow_ordinal_and_fps():
    """Test that timestamp = (ordinal - 1) / fps."""
    detector = RecordingDetector({
        1: [FrameDetection(name="car", confidence=0.5)],
        3: [FrameDetection(name="car", confidence=0.5)],
        5: [FrameDetection(name="car", confidence=0.5)],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(5), sampling_stride=2, frames_per_second=2.0
    )

    assert [f.timestamp for f in summaries[0].frames] == [0.0, 1.0, 2.0]

    print("[PASS] Timestamp test passed")


def test_names_are_case_normalized():
    """Test that detections differing only in case are one object."""
    detector = RecordingDetector({
        1: [FrameDetection(name="Laptop", confidence=0.8)],
        2: [FrameDetection(name="LAPTOP ", confidence=0.6)],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(2), sampling_stride=1, frames_per_second=1.0
    )

    assert [s.name for s in summaries] == ["laptop"]
    assert summaries[0].appearance_percentage == 100.0

    print("[PASS] Case normalization test passed")


def test_name_counts_once_per_frame():
    """Test that repeated detections of a name in one frame count once."""
    detector = RecordingDetector({
        1: [
            FrameDetection(name="chair", confidence=0.7, context="left"),
            FrameDetection(name="Chair", confidence=0.3, context="right"),
        ],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(1), sampling_stride=1, frames_per_second=1.0
    )

    assert summaries[0].appearance_percentage == 100.0
    assert len(summaries[0].frames) == 1
    assert summaries[0].frames[0].context == "left"

    print("[PASS] Once-per-frame test passed")


def test_sorted_by_percentage_then_first_frame_then_name():
    """Test the ordering of summaries, including ties."""
    detector = RecordingDetector({
        1: [FrameDetection(name="zebra", confidence=0.5), FrameDetection(name="person", confidence=0.9)],
        2: [FrameDetection(name="apple", confidence=0.5), FrameDetection(name="person", confidence=0.9),
            FrameDetection(name="banana", confidence=0.5)],
    })

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(2), sampling_stride=1, frames_per_second=1.0
    )

    assert [s.name for s in summaries] == ["person", "zebra", "apple", "banana"]
    percentages = [s.appearance_percentage for s in summaries]
    assert percentages == sorted(percentages, reverse=True)

    print("[PASS] Sort order test passed")


def test_result_independent_of_completion_order():
    """Test that concurrent and sequential runs agree even when calls finish out of order."""
    detections = {
        ordinal: [FrameDetection(name=f"obj{ordinal % 3}", confidence=0.5 + ordinal / 100)]
        for ordinal in range(1, 9)
    }
    # Early frames finish last
    delays = {ordinal: (9 - ordinal) * 0.01 for ordinal in range(1, 9)}

    sequential = ObjectAggregator(RecordingDetector(detections), max_workers=1).aggregate(
        create_frame_paths(8), sampling_stride=1, frames_per_second=1.0
    )
    concurrent = ObjectAggregator(RecordingDetector(detections, delay_by_ordinal=delays), max_workers=4).aggregate(
        create_frame_paths(8), sampling_stride=1, frames_per_second=1.0
    )

    assert [s.to_dict() for s in sequential] == [s.to_dict() for s in concurrent]
    for summary in concurrent:
        frame_ids = [f.frame_id for f in summary.frames]
        assert frame_ids == sorted(frame_ids)

    print("[PASS] Completion order independence test passed")


def test_confidence_clamped():
    """Test that out-of-range confidences are clamped into [0, 1]."""
    detector = RecordingDetector({1: [FrameDetection(name="sun", confidence=1.7)]})

    summaries = ObjectAggregator(detector, max_workers=1).aggregate(
        create_frame_paths(1), sampling_stride=1, frames_per_second=1.0
    )

    assert summaries[0].avg_confidence == 1.0

    print("[PASS] Confidence clamp test passed")


def test_empty_frame_sequence():
    """Test that no frames means no detection calls and no objects."""
    detector = RecordingDetector()

    assert ObjectAggregator(detector, max_workers=2).aggregate([], 1, 1.0) == []
    assert detector.calls == []

    print("[PASS] Empty frame sequence test passed")


def test_select_sampling_stride():
    """Test the stride threshold."""
    config = DetectionConfig()

    assert select_sampling_stride(0, config) == 1
    assert select_sampling_stride(30, config) == 1
    assert select_sampling_stride(31, config) == 2

    print("[PASS] Sampling stride selection test passed")


def test_sampled_ordinals():
    """Test ordinal sampling and stride validation."""
    assert sampled_ordinals(4, 2) == [1, 3]
    assert sampled_ordinals(5, 2) == [1, 3, 5]
    assert sampled_ordinals(3, 1) == [1, 2, 3]

    try:
        sampled_ordinals(3, 0)
        assert False, "Expected ValueError"
    except ValueError:
        pass

    print("[PASS] Sampled ordinals test passed")


def run_all_tests():
    """Run all aggregation tests."""
    print("\n" + "="*60)
    print("OBJECT AGGREGATION TESTS")
    print("="*60 + "\n")

    test_stride_two_samples_odd_ordinals()
    test_all_detections_fail_returns_empty()
    test_partial_failure_keeps_other_frames()
    test_percentage_uses_full_frame_count()
    test_rounding()
    test_rounding_halves_go_up()
    test_timestamps_follow_ordinal_and_fps()
    test_names_are_case_normalized()
    test_name_counts_once_per_frame()
    test_sorted_by_percentage_then_first_frame_then_name()
    test_result_independent_of_completion_order()
    test_confidence_clamped()
    test_empty_frame_sequence()
    test_select_sampling_stride()
    test_sampled_ordinals()

    print("\n" + "="*60)
    print("ALL AGGREGATION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
