"""
Gemini client for the tutor chat, timetable image parsing and content moderation.

The SDK is blocking, so every call runs in a worker thread. The service is built
on first use; the API key is only needed once an AI endpoint is called.
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import google.generativeai as genai

from planner_micro.config import config
from planner_micro.tools.inline_attachment import build_inline_part_from_base64, build_text_part

logger = logging.getLogger(__name__)

TUTOR_EMPTY_REPLY = "I'm having trouble thinking right now. Try again?"
TUTOR_OFFLINE_REPLY = "I am currently offline or experiencing issues. Please check your connection."

TEACHER_INSTRUCTION = (
    "You are an instructional design assistant inside a school's teacher portal. "
    "Be practical and concise: use headings, bullet points and Markdown tables. "
    "Suggest differentiation for advanced and struggling learners where it helps. "
    "Never ask for student personal information. Use $...$ and $$...$$ for math."
)

STUDENT_INSTRUCTION = (
    "You are a patient, encouraging tutor for school students. Guide students to answers "
    "with hints and questions instead of handing out solutions, check understanding after "
    "explaining, and never write whole essays or homework for them. Use $...$ for math."
)

SCHEDULE_PARSER_INSTRUCTION = (
    "Extract a weekly class timetable from the image. The school day has 8 periods "
    "indexed 0-7 and the days are Mon, Tue, Wed, Thu, Fri. Leave out lunch, assemblies "
    "and enrichment blocks, and do not count the lunch break as a free period. "
    "Keep partial teacher names as written. Respond with JSON only: a list of objects "
    "with day, periodIndex, subject, teacher and room."
)

CONTENT_CHECK_PROMPT = (
    "Check the following text for profanity, hate speech, bullying, self-harm promotion "
    "or sexual content unsuitable for a K-12 school.\n\nText: \"{text}\"\n\n"
    "Respond with JSON only: {{\"isSafe\": boolean, \"reason\": \"short explanation if unsafe, otherwise null\"}}"
)


class ScheduleParseError(RuntimeError):
    """Timetable image could not be analyzed"""


ModelFactory = Callable[..., Any]


class GeminiService:
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, model_factory: Optional[ModelFactory] = None):
        self.model_name = model_name or config.GEMINI_MODEL
        if model_factory is None:
            api_key = api_key or config.GEMINI_API_KEY
            if not api_key:
                raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY environment variable not set")
            genai.configure(api_key=api_key)
            logger.info(f"Gemini configured with model {self.model_name}")
            model_factory = genai.GenerativeModel
        self._model_factory = model_factory

    def _model(self, system_instruction: Optional[str] = None, json_output: bool = False):
        kwargs: Dict[str, Any] = {}
        if system_instruction:
            kwargs["system_instruction"] = system_instruction
        if json_output:
            kwargs["generation_config"] = genai.types.GenerationConfig(response_mime_type="application/json")
        return self._model_factory(self.model_name, **kwargs)

    @staticmethod
    def _response_text(response: Any) -> str:
        # .text raises when the candidate was blocked or has no parts
        try:
            return (response.text or "").strip()
        except ValueError:
            return ""

    @staticmethod
    def _parse_json(text: str) -> Any:
        cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", text.strip())
        return json.loads(cleaned)

    async def tutor_reply(
        self,
        history: List[Dict[str, str]],
        message: str,
        file: Optional[Dict[str, str]] = None,
        mode: str = "teacher",
    ) -> str:
        """Chat turn for the tutor. Never raises: failures come back as a fallback reply."""
        instruction = TEACHER_INSTRUCTION if mode == "teacher" else STUDENT_INSTRUCTION
        try:
            model = self._model(system_instruction=instruction)
            chat = model.start_chat(history=[
                {"role": turn["role"], "parts": [turn["text"]]} for turn in history
            ])
            parts = [build_text_part(message)]
            if file:
                parts.append(build_inline_part_from_base64(data=file["data"], mime_type=file["mimeType"]))
            response = await asyncio.to_thread(chat.send_message, parts)
            return self._response_text(response) or TUTOR_EMPTY_REPLY
        except Exception as e:
            logger.error(f"Gemini tutor error: {e}")
            return TUTOR_OFFLINE_REPLY

    async def parse_schedule_image(self, image: str, mime_type: str) -> List[Dict[str, Any]]:
        """Rows of {day, periodIndex, subject, teacher, room}. Raises ScheduleParseError."""
        try:
            model = self._model(system_instruction=SCHEDULE_PARSER_INSTRUCTION, json_output=True)
            parts = [
                build_inline_part_from_base64(data=image, mime_type=mime_type),
                build_text_part(
                    "Extract the schedule from this image into a JSON list of objects with "
                    "day (Mon-Fri), periodIndex (integer 0-7), subject, teacher, room."
                ),
            ]
            response = await asyncio.to_thread(model.generate_content, parts)
            text = self._response_text(response)
            if not text:
                return []
            rows = self._parse_json(text)
            if not isinstance(rows, list):
                raise ValueError("Expected a JSON list of timetable rows")
            return [row for row in rows if isinstance(row, dict)]
        except Exception as e:
            logger.error(f"Schedule parse error: {e}")
            raise ScheduleParseError("Failed to analyze schedule image.") from e

    async def check_content_safety(self, text: str) -> Dict[str, Any]:
        """{isSafe, reason}; any failure counts as safe so posting is never blocked by an outage"""
        try:
            model = self._model(json_output=True)
            response = await asyncio.to_thread(model.generate_content, CONTENT_CHECK_PROMPT.format(text=text))
            body = self._response_text(response)
            if not body:
                return {"isSafe": True, "reason": None}
            verdict = self._parse_json(body)
            return {"isSafe": bool(verdict.get("isSafe", True)), "reason": verdict.get("reason")}
        except Exception as e:
            logger.error(f"Content check error: {e}")
            return {"isSafe": True, "reason": None}


_gemini_service: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    global _gemini_service
    if _gemini_service is None:
        _gemini_service = GeminiService()
    return _gemini_service


def configure_gemini_service(service: Optional[GeminiService]) -> Optional[GeminiService]:
    global _gemini_service
    _gemini_service = service
    return service
