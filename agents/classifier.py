"""Classifier agent for judging announcement documents.

This module implements the ClassifierAgent, which asks a language model
whether an announcement's documents describe an investor-relevant event.

Design Philosophy:
    - Never raises: every path ends in a Verdict
    - Multimodal when needed: scanned PDFs are attached as binary parts,
      and that path wins over text-only whenever any scan is present
    - Patient with quotas: 429/503 responses are retried with exponential
      backoff; anything else fails the announcement immediately

Response Contract:
    The model must answer with a JSON object, optionally inside a
    ```json fence:
        {"isInteresting": true, "reasoning": "..."}
"""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Sequence

from openai import AsyncOpenAI
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.profiles.openai import OpenAIModelProfile
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from config import Config
from models.verdict import Verdict, reasoning_text
from pacing import SleepFn

logger = logging.getLogger(__name__)

PromptPart = str | BinaryContent
GenerateFn = Callable[[list[PromptPart]], Awaitable[str]]

# HTTP statuses worth waiting out: quota exhaustion and overload
RETRYABLE_STATUSES = frozenset({429, 503})

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_PLACEHOLDER_PATTERN = re.compile(r"\{(title|content)\}")


# === Instruction Templates ===
# {title} and {content} are substituted in one pass; other braces are left alone.

PROMPT_TEMPLATES = {
    "id": """Anda adalah analis pasar modal yang membaca keterbukaan informasi emiten di Bursa Efek Indonesia.
Tugas Anda: tentukan apakah pengumuman berikut memuat peristiwa yang relevan bagi investor.

## Tandai MENARIK (isInteresting=true) jika dokumen memuat:
- Akuisisi, merger, pengambilalihan, atau penjualan aset/anak usaha yang material
- Penawaran tender, go private, delisting, atau perubahan pengendali
- Right issue / HMETD, private placement, pembelian kembali saham (buyback), stock split
- Kontrak, proyek, atau kerja sama baru yang bernilai material
- Perkara hukum, PKPU, pailit, atau sanksi regulator yang material
- Perubahan kegiatan usaha utama atau ekspansi besar

## Tandai TIDAK MENARIK (isInteresting=false) jika dokumen hanya:
- Laporan rutin, panggilan/hasil RUPS tanpa aksi korporasi material
- Perubahan pengurus administratif, koreksi dokumen, atau penjelasan umum
- Informasi yang tidak memengaruhi nilai perusahaan

## Format jawaban
Jawab HANYA dengan objek JSON:
{"isInteresting": true/false, "reasoning": "1-2 kalimat alasan dalam Bahasa Indonesia"}

Judul pengumuman: {title}

Isi dokumen:
{content}""",

    "en": """You are a capital-markets analyst reading company disclosures published on the Indonesia Stock Exchange.
Your task: decide whether the following announcement describes an event that matters to investors.

## Mark INTERESTING (isInteresting=true) when the documents contain:
- Material acquisitions, mergers, takeovers, or disposals of assets/subsidiaries
- Tender offers, going private, delisting, or a change of control
- Rights issues, private placements, share buybacks, stock splits
- New contracts, projects, or partnerships of material value
- Material litigation, debt restructuring (PKPU), bankruptcy, or regulatory sanctions
- A change of core business or a major expansion

## Mark NOT INTERESTING (isInteresting=false) when the documents only contain:
- Routine reports, AGM notices/results without a material corporate action
- Administrative management changes, document corrections, or general clarifications
- Information that does not affect company value

## Response format
Reply ONLY with a JSON object:
{"isInteresting": true/false, "reasoning": "1-2 sentence explanation in English"}

Announcement title: {title}

Document contents:
{content}""",
}

SCANNED_NOTE = {
    "id": "Dokumen hasil pindaian terlampir sebagai PDF. Baca lampiran tersebut.",
    "en": "Scanned documents are attached as PDFs. Read the attachments.",
}

EXTRACTED_TEXT_LABEL = {
    "id": "Teks dari dokumen lain:",
    "en": "Text from other documents:",
}


def _parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[7:]  # Remove "openai:" prefix
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


def _create_model(model_str: str, api_key: str = ""):
    """Create the appropriate model based on the model string.

    Supports:
    - Local OpenAI-compatible servers: 'openai:{model_name}@http://127.0.0.1:8080/v1'
    - Gemini with an explicit key: 'google-gla:gemini-2.5-flash'
    - Any other PydanticAI model string (resolved from the environment)

    Returns:
        PydanticAI model instance or model string
    """
    parsed = _parse_local_model(model_str)
    if parsed:
        model_name, base_url = parsed
        logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
        client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        profile = OpenAIModelProfile(supports_json_object_output=False)
        return OpenAIChatModel(
            model_name=model_name,
            provider=OpenAIProvider(openai_client=client),
            profile=profile,
        )
    if model_str.startswith("google-gla:") and api_key:
        return GoogleModel(model_str.split(":", 1)[1], provider=GoogleProvider(api_key=api_key))
    return model_str


class GeminiGenerator:
    """Text generation backend built on a PydanticAI agent.

    Called with prompt parts (strings and PDF BinaryContent) and returns
    the model's raw text reply. The agent is built on first use so that
    constructing the pipeline never touches credentials.
    """

    def __init__(self, model: str | Model, api_key: str = ""):
        self.model = model
        self._api_key = api_key
        self._agent: Agent[None, str] | None = None

    def _get_agent(self) -> Agent[None, str]:
        if self._agent is None:
            model = _create_model(self.model, self._api_key) if isinstance(self.model, str) else self.model
            self._agent = Agent(model, output_type=str)
        return self._agent

    async def __call__(self, parts: list[PromptPart]) -> str:
        result = await self._get_agent().run(parts)
        return result.output


def _status_code(error: BaseException) -> int | None:
    """HTTP status carried by a client exception, if any."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable(error: BaseException) -> bool:
    """Rate limits and overloads are transient; everything else is fatal."""
    return _status_code(error) in RETRYABLE_STATUSES


def parse_verdict_response(text: str, language: str = "id") -> Verdict:
    """Turn the model's reply into a Verdict.

    Strips a surrounding ```json fence, then reads `isInteresting`
    (falsy, missing, or the string "false" means False) and `reasoning`
    (missing means a fixed placeholder).

    Raises:
        ValueError: If the reply is not a JSON object
    """
    cleaned = _FENCE_PATTERN.sub("", text.strip())
    data: Any = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    reasoning = data.get("reasoning") or reasoning_text("no_reasoning", language)
    if not isinstance(reasoning, str):
        reasoning = str(reasoning)
    flag = data.get("isInteresting")
    if isinstance(flag, str):
        flag = flag.strip().lower() == "true"
    if flag:
        return Verdict.interesting(reasoning)
    return Verdict.uninteresting(reasoning)


class ClassifierAgent:
    """Judges announcement content with a language model.

    Assembles the request from the aggregated text of text PDFs and the raw
    bytes of scanned PDFs, sends it with bounded retries, and interprets
    the JSON reply.

    Retry Policy:
        Up to `max_attempts` calls. After failed attempt n (starting at 1)
        with status 429 or 503, wait 3^n * retry_base_delay seconds:
        7.5s, 22.5s, 67.5s, 202.5s with the defaults.

    Example:
        >>> classifier = ClassifierAgent(config)
        >>> verdict = await classifier.classify(text, [], "Akuisisi PT Y")
        >>> verdict.outcome
        <Outcome.INTERESTING: 'interesting'>
    """

    def __init__(
        self,
        config: Config,
        generate: GenerateFn | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initialize the classifier agent.

        Args:
            config: Application configuration (template, bounds, retry policy)
            generate: Text generation backend; defaults to GeminiGenerator
            sleep: Awaitable used for backoff waits
        """
        self.config = config
        self.language = config.language if config.language in PROMPT_TEMPLATES else "id"
        self.template = config.prompt_template or PROMPT_TEMPLATES[self.language]
        self._generate = generate or GeminiGenerator(config.classifier_model, config.gemini_api_key)
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt `attempt` (1-based)."""
        return (3 ** attempt) * self.config.retry_base_delay

    def _render(self, title: str, content: str) -> str:
        if _PLACEHOLDER_PATTERN.search(self.template):
            values = {"title": title, "content": content}
            return _PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], self.template)
        return f"{self.template}\n\n{title}\n\n{content}"

    def build_prompt(
        self,
        combined_text: str,
        scanned_buffers: Sequence[bytes],
        title: str,
    ) -> list[PromptPart]:
        """Assemble prompt parts for the model.

        With any scanned buffer the request is multimodal: the instruction,
        a shorter text excerpt, and one PDF part per scan. Otherwise it is a
        single text part with a longer excerpt.
        """
        if scanned_buffers:
            content = SCANNED_NOTE[self.language]
            if combined_text:
                excerpt = combined_text[: self.config.multimodal_text_limit]
                content = f"{content}\n\n{EXTRACTED_TEXT_LABEL[self.language]}\n{excerpt}"
            parts: list[PromptPart] = [self._render(title, content)]
            parts.extend(
                BinaryContent(data=buffer, media_type="application/pdf")
                for buffer in scanned_buffers
            )
            return parts

        return [self._render(title, combined_text[: self.config.text_limit])]

    async def _generate_with_retry(self, parts: list[PromptPart], title: str) -> str | None:
        """Call the model, retrying transient failures.

        Returns:
            Raw reply text, or None once retries are exhausted or a fatal
            error occurs
        """
        max_attempts = self.config.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return await self._generate(parts)
            except Exception as e:
                if not is_retryable(e):
                    logger.error(
                        "Classification failed | title=%s attempt=%d error=%s",
                        title[:50], attempt, e, exc_info=True,
                    )
                    return None
                if attempt == max_attempts:
                    logger.error(
                        "Classification retries exhausted | title=%s attempts=%d status=%s",
                        title[:50], attempt, _status_code(e),
                    )
                    return None
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Model busy, retrying | title=%s attempt=%d/%d status=%s wait=%.1fs",
                    title[:50], attempt, max_attempts, _status_code(e), delay,
                )
                await self._sleep(delay)
        return None

    async def classify(
        self,
        combined_text: str,
        scanned_buffers: Sequence[bytes],
        title: str,
    ) -> Verdict:
        """Judge one announcement's content.

        Args:
            combined_text: Concatenated text from text PDFs (may be empty)
            scanned_buffers: Raw bytes of scanned PDFs (may be empty)
            title: Announcement headline

        Returns:
            Verdict; FAILED when the model could not produce a usable answer
        """
        if not combined_text and not scanned_buffers:
            return Verdict.uninteresting(reasoning_text("no_content", self.language))

        parts = self.build_prompt(combined_text, scanned_buffers, title)
        logger.debug(
            "Classifying | title=%s text_chars=%d scanned=%d",
            title[:50], len(combined_text), len(scanned_buffers),
        )

        reply = await self._generate_with_retry(parts, title)
        if reply is None:
            return Verdict.failed(reasoning_text("analysis_failed", self.language))

        try:
            verdict = parse_verdict_response(reply, self.language)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            logger.error("Unparseable model reply | title=%s error=%s reply=%s", title[:50], e, reply[:200])
            return Verdict.failed(reasoning_text("analysis_failed", self.language))

        logger.debug("Classified: %s... -> %s", title[:50], verdict.outcome.value)
        return verdict
