# vidbrief/services/gemini_service.py

import logging

import google.generativeai as genai

from vidbrief.core.config import Settings
from vidbrief.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class GeminiService:
    """
    Thin wrapper around a Gemini GenerativeModel that turns a prompt into text.
    """
    def __init__(self, settings: Settings):
        genai.configure(api_key=settings.GEMINI_API_KEY)
        self.model = genai.GenerativeModel(settings.GEMINI_MODEL)
        self.timeout = settings.GEMINI_TIMEOUT_SECONDS

    def complete(self, prompt: str) -> str:
        try:
            response = self.model.generate_content(prompt, request_options={"timeout": self.timeout})
            # response.text จะ raise ValueError ถ้าคำตอบถูก block หรือไม่มี candidate
            text = response.text
        except Exception as e:
            raise UpstreamError(f"Gemini completion failed: {e}") from e
        if not text or not text.strip():
            raise UpstreamError("Gemini returned an empty completion")
        return text.strip()
