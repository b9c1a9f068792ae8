import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

API_KEY_VARIABLE = "OPENAI_KEY"
ENDPOINT_VARIABLE = "OPENAI_ENDPOINT"


class CompletionError(Exception):
    """Base class for anything that prevents a command from being generated."""


class ConfigurationError(CompletionError):
    """The API key or the endpoint is not configured."""


class TransportError(CompletionError):
    """The request could not be built or sent."""


class ProtocolError(CompletionError):
    """The endpoint answered with something we could not decode."""


@dataclass(frozen=True)
class CompletionSettings:
    api_key: str
    endpoint: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CompletionSettings":
        """
        Resolves the settings from the process environment.

        Raises:
            ConfigurationError: if either value is missing or empty.
        """
        environ = os.environ if environ is None else environ

        api_key = environ.get(API_KEY_VARIABLE, "")
        if not api_key:
            raise ConfigurationError(f"{API_KEY_VARIABLE} environment variable is not set")

        endpoint = environ.get(ENDPOINT_VARIABLE, "")
        if not endpoint:
            raise ConfigurationError(f"{ENDPOINT_VARIABLE} environment variable is not set")

        return cls(api_key=api_key, endpoint=endpoint)


class LLMClient:
    """
    A thin client for a chat-completion endpoint that answers in JSON mode.

    Only one request is made per call. There are no retries and no timeout
    besides whatever the transport does by default, so a hung endpoint hangs
    the generation.
    """

    def __init__(self, settings: CompletionSettings):
        self.settings = settings

    @staticmethod
    def format_system_message(content: str) -> Dict:
        return {"role": "system", "content": content}

    @staticmethod
    def format_user_message(content: str) -> Dict:
        return {"role": "user", "content": content}

    @staticmethod
    def build_request_body(system_prompt: str, prompt: str) -> bytes:
        messages: List[Dict] = [
            LLMClient.format_system_message(system_prompt),
            LLMClient.format_user_message(prompt),
        ]
        body = {
            "messages": messages,
            "response_format": {"type": "json_object"},
        }
        # Same inputs must always produce the same bytes.
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": self.settings.api_key,
        }

    def completion(self, system_prompt: str, prompt: str) -> str:
        """Sends the conversation and returns the raw response body."""
        body = self.build_request_body(system_prompt, prompt)
        logger.debug("Posting %d bytes to %s", len(body), self.settings.endpoint)
        try:
            response = requests.post(self.settings.endpoint, data=body, headers=self._headers())
        except (requests.RequestException, ValueError) as e:
            raise TransportError(f"failed to make HTTP request: {e}") from e

        logger.debug("Completion endpoint answered with HTTP %s", response.status_code)
        return response.text

    def request_command(self, system_prompt: str, prompt: str) -> str:
        return parse_command(self.completion(system_prompt, prompt))


def parse_command(response_text: str) -> str:
    """
    Extracts the command out of a chat-completion response body.

    The body must hold a non-empty `choices` list and the first choice's message
    content must itself be a JSON object with a `command` string.

    Raises:
        ProtocolError: naming the stage that failed.
    """
    try:
        data = json.loads(response_text)
    except ValueError as e:
        raise ProtocolError(f"failed to decode completion response: {e}") from e

    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices or not isinstance(choices, list):
        raise ProtocolError(f"no choices returned from completion endpoint: {response_text}")

    first_choice = choices[0] if isinstance(choices[0], dict) else {}
    message = first_choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None

    try:
        suggestion = json.loads(content)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"failed to decode command: {e}") from e

    command = suggestion.get("command") if isinstance(suggestion, dict) else None
    if not isinstance(command, str) or not command:
        raise ProtocolError(f"completion content has no command: {content}")

    return command


def request_command(system_prompt: str, prompt: str) -> str:
    """
    Asks the configured endpoint for a single shell command.

    Configuration is resolved on every call, so a missing key fails here,
    before anything goes over the network.
    """
    settings = CompletionSettings.from_env()
    return LLMClient(settings).request_command(system_prompt, prompt)
