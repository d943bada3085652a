"""
Summary facade: turns aggregated numbers into short narratives via Gemini.

``narrate`` never raises. Any failure of the text generator (missing key,
timeout, HTTP error, quota, malformed body) yields the fixed fallback for the
kind of summary that was asked for.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import requests
from eduos.config import settings

logger = logging.getLogger(__name__)


class SummaryKind(str, Enum):
    STUDENT = "student"
    CLASS = "class"
    INSTITUTION = "institution"
    ADMIN_QUESTION = "admin_question"
    MEDICAL_REQUEST = "medical_request"
    STUDENT_QUESTION = "student_question"


PROMPTS = {
    SummaryKind.STUDENT: (
        "You are an AI assistant for a student ERP system. Analyze this student data and "
        "provide a brief, friendly summary (2-3 sentences max):\n\n"
        "Name: {name}\nOverall Attendance: {attendance}%\nSubjects: {subjects}\nMarks: {marks}\n\n"
        "State how the student is doing overall, highlight one area that needs attention "
        "(if any), and be encouraging and constructive."
    ),
    SummaryKind.CLASS: (
        "You are an AI assistant for a teacher dashboard. Analyze this class data and provide "
        "a brief summary (2-3 sentences):\n\n"
        "Average Attendance: {avg_attendance}%\nAverage Marks: {avg_marks}\n"
        "Total Students: {total_students}\nStudents Needing Attention: {students_needing_attention}\n\n"
        "Cover overall class performance, key areas of concern and what the teacher should focus on."
    ),
    SummaryKind.INSTITUTION: (
        "You are an AI assistant for an admin dashboard. Analyze this institution data and "
        "provide a brief summary (2-3 sentences):\n\n"
        "Overall Attendance: {overall_attendance}%\nOverall Performance: {overall_performance}\n"
        "Total Classes: {total_classes}\nTotal Students: {total_students}\nRisk Areas: {risk_areas}\n\n"
        "Cover overall institution health, key risk areas and priority actions."
    ),
    SummaryKind.ADMIN_QUESTION: (
        "You are an AI assistant for an educational institution admin. Answer this question "
        "based on the available data:\n\nQuestion: {question}\n\nAvailable Data:\n"
        "- Overall Attendance: {overall_attendance}%\n- Overall Performance: {overall_performance}\n"
        "- Risk Areas: {risk_areas}\n\n"
        "Provide a clear, concise answer (2-4 sentences). If the data cannot answer the "
        "question, say so politely."
    ),
    SummaryKind.MEDICAL_REQUEST: (
        "Summarize this medical request reason in 1-2 sentences for clarity "
        "(this is NOT a diagnosis, just a summary):\n\n{reason}"
    ),
    SummaryKind.STUDENT_QUESTION: (
        "You are a friendly AI tutor for students. Answer academic questions clearly, give "
        "practical study guidance and explain concepts simply.\n\n"
        "Student Context:\n- Name: {name}\n- Average Attendance: {attendance}%\n"
        "- Average Marks: {marks}%\n- Subjects: {subjects}\n\n"
        "Student Question: {question}"
    ),
}

FALLBACKS = {
    SummaryKind.STUDENT: "Unable to generate summary at the moment. Please try again later.",
    SummaryKind.CLASS: "Class data analysis is currently unavailable. Please check back later.",
    SummaryKind.INSTITUTION: "Institution analysis is currently unavailable. Please check back later.",
    SummaryKind.ADMIN_QUESTION: "I'm unable to process your question at the moment. Please try again later.",
    SummaryKind.MEDICAL_REQUEST: None,  # the reason itself
    SummaryKind.STUDENT_QUESTION: (
        "I'm having trouble processing your question right now. Please try again in a moment, "
        "or rephrase your question."
    ),
}


class TextGenerationError(Exception):
    pass


class GeminiClient:
    """Minimal Gemini ``generateContent`` client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.session = session or requests.Session()

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise TextGenerationError("GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TextGenerationError(str(e)) from e

        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts).strip()
        except (KeyError, IndexError, TypeError) as e:
            raise TextGenerationError(f"Unexpected response shape: {e}") from e
        if not text:
            raise TextGenerationError("Empty response")
        return text


def _format_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


class SummaryService:
    def __init__(self, generator=None):
        self.generator = generator or GeminiClient()

    def fallback(self, kind: SummaryKind, data: Dict[str, Any]) -> str:
        text = FALLBACKS[kind]
        if text is None:
            return str(data.get("reason", ""))
        return text

    def narrate(self, kind: SummaryKind, data: Dict[str, Any]) -> str:
        kind = SummaryKind(kind)
        try:
            prompt = PROMPTS[kind].format(**{k: _format_value(v) for k, v in data.items()})
            return self.generator.generate(prompt)
        except Exception as e:
            # text generation is never fatal to the request that asked for it
            logger.warning(f"Text generation failed for {kind.value} summary, using fallback: {e}")
            return self.fallback(kind, data)

    def narrate_many(self, kind: SummaryKind, items: Sequence[Dict[str, Any]]) -> List[str]:
        """Narrate several items at once; the batch takes about as long as its slowest call."""
        if not items:
            return []
        workers = min(len(items), settings.GEMINI_MAX_CONCURRENCY)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda data: self.narrate(kind, data), items))


_summary_service: Optional[SummaryService] = None


def get_summary_service() -> SummaryService:
    global _summary_service
    if _summary_service is None:
        _summary_service = SummaryService()
    return _summary_service
