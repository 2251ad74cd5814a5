"""Verdict models for announcement triage.

Every announcement in a batch ends with exactly one Verdict. The verdict
carries an explicit Outcome tag, so bucketing never has to compare
reasoning text against fixed strings.

Outcome Design:
    INTERESTING: The classifier judged the documents investor-relevant.
    UNINTERESTING: Analyzed (or nothing to analyze) and not relevant.
    SKIPPED: Title matched a noise pattern, no documents were read.
    FAILED: Downloads or classification did not produce a judgement.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Outcome(str, Enum):
    """Mutually exclusive result buckets for a triaged announcement."""

    INTERESTING = "interesting"
    UNINTERESTING = "uninteresting"
    SKIPPED = "skipped"
    FAILED = "failed"


# User-facing reasoning for verdicts synthesized without the classifier.
# Indonesian matches the language of the disclosures themselves.
REASONING_TEXT: dict[str, dict[str, str]] = {
    "id": {
        "noise": "Difilter berdasarkan pola judul.",
        "no_pdf": "Tidak ada PDF untuk dianalisis.",
        "download_failed": "Gagal mengunduh PDF.",
        "no_content": "Tidak ada konten untuk dianalisis.",
        "analysis_failed": "Analisis gagal.",
        "no_reasoning": "Tidak ada alasan yang diberikan.",
        "processing_error": "Terjadi kesalahan saat memproses pengumuman.",
    },
    "en": {
        "noise": "Filtered out by title noise pattern.",
        "no_pdf": "No PDF to analyze.",
        "download_failed": "Failed to download PDF.",
        "no_content": "No content to analyze.",
        "analysis_failed": "Analysis failed.",
        "no_reasoning": "No reasoning provided.",
        "processing_error": "An error occurred while processing the announcement.",
    },
}


def reasoning_text(key: str, language: str = "id") -> str:
    """Look up a fixed reasoning string, falling back to Indonesian."""
    messages = REASONING_TEXT.get(language, REASONING_TEXT["id"])
    return messages[key]


class Verdict(BaseModel):
    """Interesting/uninteresting decision plus rationale for one announcement.

    Attributes:
        is_interesting: Whether the announcement describes an investor-relevant event
        reasoning: Short explanation, from the classifier or a fixed message
        outcome: Bucket the announcement belongs to

    Example:
        >>> Verdict.interesting("Rencana akuisisi 60% saham PT Y")
        Verdict(INTERESTING, 'Rencana akuisisi 60% saham PT Y')
    """

    model_config = ConfigDict(frozen=True)

    is_interesting: bool = Field(description="Whether the event matters to investors")
    reasoning: str = Field(default="", description="Brief explanation of the decision")
    outcome: Outcome = Field(description="Result bucket")

    @model_validator(mode="after")
    def _check_outcome(self) -> "Verdict":
        if self.is_interesting != (self.outcome == Outcome.INTERESTING):
            raise ValueError(
                f"is_interesting={self.is_interesting} contradicts outcome={self.outcome.value}"
            )
        return self

    @classmethod
    def interesting(cls, reasoning: str) -> "Verdict":
        return cls(is_interesting=True, reasoning=reasoning, outcome=Outcome.INTERESTING)

    @classmethod
    def uninteresting(cls, reasoning: str) -> "Verdict":
        return cls(is_interesting=False, reasoning=reasoning, outcome=Outcome.UNINTERESTING)

    @classmethod
    def skipped(cls, reasoning: str) -> "Verdict":
        return cls(is_interesting=False, reasoning=reasoning, outcome=Outcome.SKIPPED)

    @classmethod
    def failed(cls, reasoning: str) -> "Verdict":
        return cls(is_interesting=False, reasoning=reasoning, outcome=Outcome.FAILED)

    def __repr__(self) -> str:
        return f"Verdict({self.outcome.name}, {self.reasoning[:60]!r})"
