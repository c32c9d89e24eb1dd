"""
Pipeline Package
================
Stage orchestrator and the components it drives.

This package provides:
- The session progress registry (best-effort SSE delivery)
- Segment enrichment and object aggregation
- The demo engine
- Individual stages and the orchestrator that runs them in sequence

Usage:
    from videoinsight.pipeline import AnalysisPipeline, AnalysisRequest, SessionRegistry

    registry = SessionRegistry()
    pipeline = AnalysisPipeline(registry=registry)
    result = pipeline.run(AnalysisRequest(video_path="clip.mp4", credential="demo"))
"""

from .progress import ProgressChannel, SessionRegistry
from .enrichment import enrich_segments
from .aggregation import ObjectAggregator, select_sampling_stride, sampled_ordinals
from .demo import DemoEngine, DEMO_PROGRESS_SCHEDULE
from .context import AnalysisRequest, PipelineContext
from .base import PipelineStage
from .pipeline import AnalysisPipeline

__all__ = [
    'ProgressChannel',
    'SessionRegistry',
    'enrich_segments',
    'ObjectAggregator',
    'select_sampling_stride',
    'sampled_ordinals',
    'DemoEngine',
    'DEMO_PROGRESS_SCHEDULE',
    'AnalysisRequest',
    'PipelineContext',
    'PipelineStage',
    'AnalysisPipeline',
]
