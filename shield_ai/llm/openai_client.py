from __future__ import annotations

import json
from typing import Dict, Any, Tuple

from openai import OpenAI

from shield_ai.llm.utils.config_utils import AgentConfig, API_KEY_ENV, resolve_api_key
from shield_ai.llm.utils.json_utils import JSONExtractionError, parse_model_json


# ----------------------------------------------------------------------
# Exceptions
# ----------------------------------------------------------------------

class OpenAIClientError(RuntimeError):
    """Base class for OpenAI client errors."""


class MissingAPIKeyError(OpenAIClientError):
    """Raised when no API key is available."""


class EmptyResponseError(OpenAIClientError):
    """Raised when the model returns no textual output."""


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class OpenAIClient:
    """
    Thin wrapper over the OpenAI Responses API.

    The rest of SHIELD AI only needs one operation from the model:
    send a prompt, get text back. JSON handling is layered on top with
    the tolerant cleanup from json_utils, since models often wrap their
    answer in code fences or leave trailing commas behind.
    """

    # ============================================================
    # Construction
    # ============================================================

    def __init__(
        self,
        api_key: str,
        timeout: int = 60,
    ):
        if not api_key or not api_key.strip():
            raise MissingAPIKeyError(
                f"{API_KEY_ENV} not provided or empty."
            )

        self.client = OpenAI(
            api_key=api_key.strip(),
            timeout=timeout,
        )

    @classmethod
    def from_config(cls, config: AgentConfig) -> "OpenAIClient":
        """
        Construct client from the configured key, or OPENAI_API_KEY.
        """
        api_key = resolve_api_key(config)
        if not api_key:
            raise MissingAPIKeyError(
                "No API key configured. "
                f"Set it with 'config' or the {API_KEY_ENV} environment variable."
            )
        return cls(api_key=api_key, timeout=config.request_timeout)

    # ============================================================
    # Public API
    # ============================================================

    def generate_text(
        self,
        *,
        model: str,
        system_prompt: Any,
        user_prompt: Any,
        temperature: float = 0.0,
    ) -> str:
        """
        Send one prompt and return the model's text output.
        """
        response = self.client.responses.create(
            model=model,
            input=[
                {
                    "role": "system",
                    "content": self._ensure_str(system_prompt),
                },
                {
                    "role": "user",
                    "content": self._ensure_str(user_prompt),
                },
            ],
            temperature=temperature,
        )
        return self._extract_text(response)

    def generate_json(
        self,
        *,
        model: str,
        system_prompt: Any,
        user_prompt: Any,
        temperature: float = 0.0,
        return_raw: bool = False,
    ) -> Dict[str, Any] | Tuple[Dict[str, Any], str]:
        """
        Generate a JSON object from the model.

        Parameters
        ----------
        model : str
            Model name.
        system_prompt : Any
            System prompt (string or structured object).
        user_prompt : Any
            User prompt (string or structured object).
        temperature : float
            Sampling temperature.
        return_raw : bool
            If True, also return raw model output text.

        Returns
        -------
        dict or (dict, str)
            Parsed JSON object (and optional raw text).

        Raises
        ------
        JSONExtractionError
            If no JSON object survives cleanup.
        """
        raw_text = self.generate_text(
            model=model,
            system_prompt=(
                self._ensure_str(system_prompt)
                + "\n\n"
                + "You MUST output a SINGLE valid JSON object. "
                + "Do NOT include any extra text."
            ),
            user_prompt=user_prompt,
            temperature=temperature,
        )

        json_obj = parse_model_json(raw_text)

        if return_raw:
            return json_obj, raw_text
        return json_obj

    # ============================================================
    # Internals
    # ============================================================

    def _ensure_str(self, value: Any) -> str:
        """
        Ensure prompt content is a string.

        Structured objects (dict / list) are JSON-serialized.
        """
        if value is None:
            return ""

        if isinstance(value, str):
            return value

        try:
            return json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            return str(value)

    @staticmethod
    def _extract_text(response) -> str:
        if not response.output:
            raise EmptyResponseError("Empty OpenAI response.")

        raw_text_parts = []

        for message in response.output:
            for block in getattr(message, "content", None) or []:
                if block.type == "output_text":
                    raw_text_parts.append(block.text)

        raw_text = "".join(raw_text_parts).strip()

        if not raw_text:
            raise EmptyResponseError("No textual output found in response.")

        return raw_text


__all__ = [
    "OpenAIClient",
    "OpenAIClientError",
    "MissingAPIKeyError",
    "EmptyResponseError",
    "JSONExtractionError",
]
