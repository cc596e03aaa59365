"""
Generative AI Client with Provider Abstraction

One interface for every model call the app makes: plain text, JSON
constrained by a response schema, JSON extracted from an audio clip, and
image generation. Default provider is Gemini; set GENAI_PROVIDER=openai to
route through OpenAI instead.

Providers raise GenAIError for any failure so callers have one exception to
catch when they fall back.
"""

import base64
import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

CODE_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class GenAIError(Exception):
    """Raised when the model provider fails or returns something unusable."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


def parse_json_response(text: str) -> Any:
    """
    Parse model output as JSON.

    Models sometimes wrap JSON in markdown fences or add prose around it, so
    try the raw text, then a fenced block, then the outermost {...} span.
    """
    text = (text or "").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = CODE_BLOCK.search(text)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass

    raise GenAIError(f"Model response is not valid JSON: {text[:200]}")


class GenerativeProvider(ABC):
    """Abstract base for model providers."""

    name = "base"

    @abstractmethod
    def generate_text(self, prompt: str) -> str:
        pass

    @abstractmethod
    def generate_json(self, prompt: str, schema: Optional[Dict[str, Any]] = None) -> Any:
        pass

    @abstractmethod
    def generate_json_from_audio(
        self,
        audio: bytes,
        mime_type: str,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        pass

    @abstractmethod
    def generate_image(self, prompt: str, aspect_ratio: str = "16:9") -> Optional[str]:
        """Return the image as a data URL, or None if the model produced none."""
        pass


class GeminiProvider(GenerativeProvider):
    """Google Gemini via the google-genai SDK."""

    name = "gemini"

    def __init__(self):
        from google import genai

        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        if not api_key:
            raise GenAIError("GEMINI_API_KEY not set", provider=self.name)
        self.client = genai.Client(api_key=api_key)
        self.model = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.image_model = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")

    def _generate(self, contents, config=None, model: str = None):
        try:
            return self.client.models.generate_content(
                model=model or self.model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise GenAIError(f"Gemini request failed: {type(e).__name__}: {e}", provider=self.name) from e

    def _json_config(self, schema: Optional[Dict[str, Any]]):
        from google.genai import types

        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )

    def generate_text(self, prompt: str) -> str:
        response = self._generate(prompt)
        return (response.text or "").strip()

    def generate_json(self, prompt: str, schema: Optional[Dict[str, Any]] = None) -> Any:
        response = self._generate(prompt, config=self._json_config(schema))
        return parse_json_response(response.text or "")

    def generate_json_from_audio(
        self,
        audio: bytes,
        mime_type: str,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        from google.genai import types

        contents = [types.Part.from_bytes(data=audio, mime_type=mime_type), prompt]
        response = self._generate(contents, config=self._json_config(schema))
        return parse_json_response(response.text or "")

    def generate_image(self, prompt: str, aspect_ratio: str = "16:9") -> Optional[str]:
        from google.genai import types

        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
        )
        response = self._generate(prompt, config=config, model=self.image_model)

        for candidate in response.candidates or []:
            for part in candidate.content.parts or []:
                if part.inline_data and part.inline_data.data:
                    mime = part.inline_data.mime_type or "image/png"
                    encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                    return f"data:{mime};base64,{encoded}"
        return None


# OpenAI image sizes closest to each requested aspect ratio
OPENAI_IMAGE_SIZES = {
    "16:9": "1536x1024",
    "4:3": "1536x1024",
    "1:1": "1024x1024",
    "3:4": "1024x1536",
    "9:16": "1024x1536",
}

AUDIO_EXTENSIONS = {
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/wav": ".wav",
    "audio/webm": ".webm",
}


class OpenAIProvider(GenerativeProvider):
    """OpenAI chat completions, Whisper transcription and image generation."""

    name = "openai"

    def __init__(self):
        from openai import OpenAI

        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise GenAIError("OPENAI_API_KEY not set", provider=self.name)
        self.client = OpenAI(api_key=api_key)
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.image_model = os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1")

    def _chat(self, prompt: str, json_mode: bool, schema: Optional[Dict[str, Any]] = None) -> str:
        messages = []
        if json_mode:
            system = "Output valid JSON only."
            if schema:
                system += f" The JSON must match this schema: {json.dumps(schema)}"
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs = {"model": self.model, "messages": messages}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except Exception as e:
            raise GenAIError(f"OpenAI request failed: {type(e).__name__}: {e}", provider=self.name) from e
        return (response.choices[0].message.content or "").strip()

    def generate_text(self, prompt: str) -> str:
        return self._chat(prompt, json_mode=False)

    def generate_json(self, prompt: str, schema: Optional[Dict[str, Any]] = None) -> Any:
        return parse_json_response(self._chat(prompt, json_mode=True, schema=schema))

    def _transcribe(self, audio: bytes, mime_type: str) -> str:
        ext = AUDIO_EXTENSIONS.get(mime_type.split(";")[0].strip(), ".webm")

        # Whisper API needs a named file
        with tempfile.NamedTemporaryFile(suffix=ext, delete=False) as tmp:
            tmp.write(audio)
            tmp_path = tmp.name

        try:
            with open(tmp_path, "rb") as audio_file:
                transcript = self.client.audio.transcriptions.create(
                    model="whisper-1",
                    file=audio_file,
                    response_format="text",
                )
        except Exception as e:
            raise GenAIError(f"Whisper transcription failed: {e}", provider=self.name) from e
        finally:
            os.unlink(tmp_path)

        return (transcript or "").strip()

    def generate_json_from_audio(
        self,
        audio: bytes,
        mime_type: str,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        transcript = self._transcribe(audio, mime_type)
        if not transcript:
            raise GenAIError("Empty transcription", provider=self.name)
        return self.generate_json(f"{prompt}\n\nTranscript:\n{transcript}", schema=schema)

    def generate_image(self, prompt: str, aspect_ratio: str = "16:9") -> Optional[str]:
        try:
            response = self.client.images.generate(
                model=self.image_model,
                prompt=prompt,
                size=OPENAI_IMAGE_SIZES.get(aspect_ratio, "1024x1024"),
                n=1,
            )
        except Exception as e:
            raise GenAIError(f"OpenAI image request failed: {e}", provider=self.name) from e

        if not response.data or not response.data[0].b64_json:
            return None
        return f"data:image/png;base64,{response.data[0].b64_json}"


# Provider factory
def get_provider() -> GenerativeProvider:
    provider = os.getenv("GENAI_PROVIDER", "gemini")
    if provider == "gemini":
        return GeminiProvider()
    elif provider == "openai":
        return OpenAIProvider()
    else:
        raise ValueError(f"Unknown GENAI_PROVIDER: {provider}")
