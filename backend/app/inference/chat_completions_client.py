import logging

import requests

from app.inference.base import LLMClient
from app.utils.fences import strip_code_fences

logger = logging.getLogger(__name__)


class ChatCompletionsClient(LLMClient):
    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = 0.2,
        timeout: float = 300,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def generate(self, messages):
        url = f"{self.base_url}/chat/completions"

        response = requests.post(
            url,
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()

        content = response.json()["choices"][0]["message"]["content"]
        logger.debug("[LLM] %s returned %d chars", self.model, len(content or ""))

        return strip_code_fences(content)
