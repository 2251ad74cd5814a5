"""Model-backed agents for the IDX Watch triage pipeline.

ClassifierAgent:
    Judges whether an announcement's documents describe an
    investor-relevant event, with retry/backoff around the model call.

GeminiGenerator:
    Default text generation backend (PydanticAI agent, Gemini or a
    local OpenAI-compatible server).

Example:
    >>> from agents import ClassifierAgent
    >>> classifier = ClassifierAgent(config)
    >>> verdict = await classifier.classify(text, scanned, title)
"""

from agents.classifier import ClassifierAgent, GeminiGenerator

__all__ = [
    "ClassifierAgent",
    "GeminiGenerator",
]
