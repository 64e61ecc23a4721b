"""Topic processing: loading topic text and running it through the pipeline."""

from .topic_processor import TopicProcessor, TopicRunResult, TopicState
from .topic_source import DirectoryTopicSource, TopicSource

__all__ = [
    "DirectoryTopicSource",
    "TopicProcessor",
    "TopicRunResult",
    "TopicSource",
    "TopicState",
]
