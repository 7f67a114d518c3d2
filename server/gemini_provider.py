"""Gemini AI provider implementation."""

import json
import logging
import time
import google.generativeai as genai

from core.config import DIFFICULTIES
from core.interfaces import AIProvider
from core.utils import grade_label

logger = logging.getLogger(__name__)


def fallback_enrichment(word: str) -> dict:
    """Used when the model cannot describe a word."""
    return {
        'definition': 'Definition unavailable.',
        'example': f'Please spell {word}.',
        'difficulty': 'Medium'
    }


class GeminiProvider(AIProvider):
    """Gemini AI provider implementation."""

    def __init__(self, api_key: str, model_name: str = 'gemini-2.0-flash'):
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)
        self.model_name = model_name

    def _generate(self, prompt: str) -> tuple[str, int]:
        start_time = time.time()
        response = self.model.generate_content(
            prompt,
            generation_config={'response_mime_type': 'application/json'}
        )
        ms = int((time.time() - start_time) * 1000)
        return (response.text, ms)

    def _parse_enrichment(self, text: str, word: str) -> dict:
        data = json.loads(text[text.find('{'):text.rfind('}') + 1])
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        result = fallback_enrichment(word)
        missing = [k for k in ('definition', 'example') if not data.get(k)]
        if missing:
            logger.warning(f"AI response missing keys: {missing}")
        result.update({k: str(data[k]).strip() for k in ('definition', 'example') if data.get(k)})

        difficulty = str(data.get('difficulty', '')).capitalize()
        if difficulty in DIFFICULTIES:
            result['difficulty'] = difficulty
        else:
            logger.warning(f"Invalid difficulty {data.get('difficulty')!r}, using Medium")
        return result

    def enrich_word(self, word: str, grade: int) -> dict:
        prompt = f"""
            Provide a clear definition and a simple example sentence for the spelling bee word: "{word}".
            The target audience is a {grade_label(grade)} student.
            Rate how hard the word is to spell for that student as Easy, Medium or Hard.

            Respond with ONLY a JSON object in this exact format:
            {{
                "definition": "A concise definition suitable for the grade level.",
                "example": "A sentence using the word in context, without an 'Example:' prefix.",
                "difficulty": "Easy" | "Medium" | "Hard"
            }}
        """
        try:
            response, ms = self._generate(prompt)
        except Exception as e:
            logger.error(f"Gemini request failed for {word!r}: {e}")
            return fallback_enrichment(word)

        try:
            result = self._parse_enrichment(response, word)
        except ValueError as e:
            logger.error(f"Failed to parse enrichment: {e}")
            logger.error(f"Raw response:\n{response}")
            return fallback_enrichment(word)

        logger.info(f"Enriched {word!r} in {ms}ms ({self.model_name})")
        return result
