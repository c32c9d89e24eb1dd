"""
Video Insight
=============
Turns an uploaded video into a structured multi-modal analysis: transcript
with per-segment sentiment, overall mood, detected objects and generated
question/answer pairs, with progress streamed per session.
"""

__version__ = "1.0.0"
