"""Intake pipeline: classification and per-message coordination."""

from .classifier import CONFIRMATION_PHRASE, classify, decide
from .coordinator import PipelineCoordinator

__all__ = ["CONFIRMATION_PHRASE", "PipelineCoordinator", "classify", "decide"]
