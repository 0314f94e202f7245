# backend/questionnaire_ai/models/llm/ollama_generator.py

from __future__ import annotations
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
import asyncio, base64, json, time, logging

import requests
from pypdf import PdfReader

from questionnaire_ai.core.entities import Attachment
from questionnaire_ai.core.errors import GenerationFailure
from questionnaire_ai.core.ports.generator import IStructuredGenerator, ITextGenerator

logger = logging.getLogger("qa.llm.ollama")


def pdf_text_layer(data: bytes) -> str:
    """Text of every page of a PDF, page-separated with blank lines."""
    reader = PdfReader(BytesIO(data))
    pages = [(page.extract_text() or "").strip() for page in reader.pages]
    return "\n\n".join(p for p in pages if p)


class OllamaChatClient:
    """Blocking client for Ollama's /api/chat with one retry."""

    def __init__(self, host: str, model: str, timeout: int = 180):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout

    def check_connectivity(self) -> bool:
        try:
            r = requests.get(f"{self.host}/api/tags", timeout=5)
            r.raise_for_status()
            models = [m.get("model") or m.get("name") for m in r.json().get("models", [])]
            logger.info(f"✅ Ollama reachable at {self.host}")
            if self.model not in models and f"{self.model}:latest" not in models:
                logger.warning(f"⚠️ Model '{self.model}' not registered. Available: {models}")
            return True
        except requests.RequestException as e:
            logger.error(f"❌ Cannot contact Ollama at {self.host}: {e}")
            return False

    def chat(self, messages: List[Dict[str, Any]], fmt: Optional[Dict[str, Any]] = None) -> str:
        url = f"{self.host}/api/chat"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": 0},
        }
        if fmt is not None:
            payload["format"] = fmt

        for attempt in range(2):
            try:
                r = requests.post(url, json=payload, timeout=self.timeout)
                if r.status_code == 404:
                    raise GenerationFailure(f"404: model '{self.model}' not registered in Ollama.")
                r.raise_for_status()
                data = r.json()
                return (data.get("message") or {}).get("content") or ""
            except requests.RequestException as e:
                if attempt == 0:
                    logger.warning(f"⚠️ Ollama request failed ({e}); retrying...")
                    time.sleep(1.0)
                    continue
                logger.error(f"❌ Ollama request permanently failed: {e}")
                raise GenerationFailure(f"Ollama request failed: {e}") from e
        raise GenerationFailure("Ollama request failed")


def _messages(system_prompt: Optional[str], user: Dict[str, Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.append(user)
    return out


class OllamaTextGenerator(ITextGenerator):
    """
    Free-text generation. Image attachments go to the model as base64
    ``images``; PDFs are reduced to their text layer since the chat API
    only takes raster images.
    """

    def __init__(self, client: OllamaChatClient):
        self.client = client

    def _user_message(self, prompt: str, attachments: Sequence[Attachment]) -> Dict[str, Any]:
        images: List[str] = []
        documents: List[str] = []
        for att in attachments:
            if att.media_type.startswith("image/"):
                images.append(base64.b64encode(att.data).decode("ascii"))
            elif att.media_type == "application/pdf":
                try:
                    documents.append(pdf_text_layer(att.data))
                except Exception as e:
                    raise GenerationFailure(f"Could not read PDF: {e}") from e
            else:
                raise GenerationFailure(f"Unsupported attachment type: {att.media_type}")

        content = prompt
        for i, doc in enumerate(documents, 1):
            content += f"\n\n[Document {i}]\n{doc}"
        message: Dict[str, Any] = {"role": "user", "content": content}
        if images:
            message["images"] = images
        return message

    async def generate_text(self, prompt, system_prompt=None, attachments=()) -> str:
        message = self._user_message(prompt, attachments)
        return await asyncio.to_thread(self.client.chat, _messages(system_prompt, message))


class OllamaStructuredGenerator(IStructuredGenerator):
    """Schema-constrained generation through Ollama's ``format`` parameter."""

    def __init__(self, client: OllamaChatClient):
        self.client = client

    async def generate_object(self, schema, system_prompt, user_prompt) -> Dict[str, Any]:
        raw = await asyncio.to_thread(
            self.client.chat,
            _messages(system_prompt, {"role": "user", "content": user_prompt}),
            schema,
        )
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError as e:
            raise GenerationFailure(f"Model returned invalid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise GenerationFailure("Model returned a non-object JSON value")
        return obj
