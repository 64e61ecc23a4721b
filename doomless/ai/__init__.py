"""
Local AI pipeline: completion gateway, model provisioning, fact extraction,
quiz generation and progress events.
"""

from .errors import (
    DoomlessError,
    InferenceError,
    InferenceFailure,
    InferenceUnavailable,
    ModelInitializationFailed,
)
from .events import ProgressBus, ProgressEvent, ProgressEventType, ProgressLog
from .extraction import FactExtractionPipeline
from .gateway import CompletionBackend, CompletionGateway, CompletionOptions
from .provisioning import ModelCandidate, ModelProvisioningManager, ProvisioningState
from .quiz import QuizGenerationStage

__all__ = [
    "CompletionBackend",
    "CompletionGateway",
    "CompletionOptions",
    "DoomlessError",
    "FactExtractionPipeline",
    "InferenceError",
    "InferenceFailure",
    "InferenceUnavailable",
    "ModelCandidate",
    "ModelInitializationFailed",
    "ModelProvisioningManager",
    "ProgressBus",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressLog",
    "ProvisioningState",
    "QuizGenerationStage",
]
