"""
doomless - offline fact extraction and quiz generation.

Turns topic text into short, deduplicated facts and a handful of validated
multiple-choice quizzes using a local completion model, degrading to naive
sentence segmentation when no model is available.

Usage:
    from doomless.service import build_service

    service = build_service()
    await service.process_topic_file("animals")
"""

__version__ = "0.3.0"
