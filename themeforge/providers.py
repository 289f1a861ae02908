"""Language-model providers used for theme extraction.

Each provider knows how to send one prompt and how to classify its own
failures.  Recognising "input too large" is provider specific and purely
textual, so it lives here and nowhere else.
"""

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import APIError, OpenAI

from themeforge.errors import ErrorKind, MalformedResponseError, raise_for_kind
from themeforge.prompts import THEME_EXTRACTION_SYSTEM_MESSAGE, build_theme_prompt

LOGGER = logging.getLogger("themeforge.providers")

PROVIDERS = ("openai", "google")
DEFAULT_MODELS = {"openai": "gpt-4o-mini", "google": "gemini-2.0-flash"}


class ThemeProvider:
    """Base class: subclasses implement ``_complete`` and list their markers."""

    name = "provider"
    capacity_markers: tuple[str, ...] = ()
    malformed_markers: tuple[str, ...] = ()
    api_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, model: str):
        self.model = model

    def classify_error(self, message: str) -> ErrorKind:
        text = message.lower()
        if any(marker in text for marker in self.capacity_markers):
            return ErrorKind.CAPACITY
        if any(marker in text for marker in self.malformed_markers):
            return ErrorKind.MALFORMED
        return ErrorKind.FATAL

    def _complete(self, system: str, prompt: str) -> str:
        raise NotImplementedError

    def request(self, subtitles: str) -> str:
        """Ask the model for themes in *subtitles* and return its raw text.

        Raises CapacityExceededError when the model reports the input was too
        long, MalformedResponseError for an empty answer, and CollaboratorError
        for everything else the API reports.
        """
        try:
            content = self._complete(
                THEME_EXTRACTION_SYSTEM_MESSAGE, build_theme_prompt(subtitles)
            )
        except self.api_errors as exc:
            raise_for_kind(self.classify_error(str(exc)), str(exc), self.name)
        if not content:
            raise MalformedResponseError(f"{self.name} returned an empty response")
        return content


class OpenAIProvider(ThemeProvider):
    name = "openai"
    capacity_markers = (
        "context_length_exceeded",
        "maximum context length",
        "context length",
        "too long",
    )
    malformed_markers = ("could not parse the json body",)
    api_errors = (APIError,)

    def __init__(self, api_key: str, model: str = DEFAULT_MODELS["openai"], temperature: float = 0.3):
        super().__init__(model)
        self.client = OpenAI(api_key=api_key)
        self.temperature = temperature

    def _complete(self, system: str, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()


class GeminiProvider(ThemeProvider):
    name = "google"
    capacity_markers = (
        "content too long",
        "exceeds maximum context length",
        "exceeds the maximum number of tokens",
        "input token count",
        "too long",
    )
    api_errors = (genai_errors.APIError,)

    def __init__(self, api_key: str, model: str = DEFAULT_MODELS["google"], temperature: float = 0.2):
        super().__init__(model)
        self.client = genai.Client(api_key=api_key)
        self.temperature = temperature

    def _complete(self, system: str, prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system,
                temperature=self.temperature,
            ),
        )
        return (response.text or "").strip()


def make_provider(name: str, api_key: str | None, model: str | None = None) -> ThemeProvider:
    """Build the provider called *name* (``openai`` or ``google``)."""
    if name not in PROVIDERS:
        raise ValueError(f"Unknown provider {name!r}; expected one of {', '.join(PROVIDERS)}")
    if not api_key:
        env = "GOOGLE_API_KEY" if name == "google" else "OPENAI_API_KEY"
        raise ValueError(f"An API key is required for {name}; pass --api-key or set {env}")

    model = model or DEFAULT_MODELS[name]
    LOGGER.debug("Using %s model %s", name, model)
    if name == "google":
        return GeminiProvider(api_key=api_key, model=model)
    return OpenAIProvider(api_key=api_key, model=model)
