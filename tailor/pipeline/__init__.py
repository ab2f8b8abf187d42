"""Customization pipeline exports."""

from tailor.pipeline.contracts import CustomizationJobPayload, GenerationRequest, PipelineResult
from tailor.pipeline.orchestrator import CustomizationPipeline

__all__ = ["CustomizationJobPayload", "CustomizationPipeline", "GenerationRequest", "PipelineResult"]
