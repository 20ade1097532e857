from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from openai import OpenAI, OpenAIError

from ..utils.errors import ConfigurationError, VendorError
from . import prompts

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class OutfitCritique:
    positive_comments: List[str]
    suggestions: List[str]
    style_rating: int
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop('fallback')
        return data


@dataclass
class BodyCritique:
    strengths: str
    weaknesses: str
    workout_plan: str
    nutrition_advice: str
    motivational_message: str
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop('fallback')
        return data


@dataclass
class InsightRecap:
    summaryText: str
    motivationalMessage: str
    recommendations: List[str] = field(default_factory=list)
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop('fallback')
        return data


class AIService:
    """Thin wrapper around the OpenAI chat completions API.

    Image critiques and insight recaps ask for JSON output and validate the
    parsed shape. When the model answers with something unusable the caller
    receives the canned fallback variant (``fallback=True``) instead of an
    error. The API key is read on every call so a key added to the
    environment takes effect without a restart.
    """

    _ENV_KEY_PRIORITY = ('OPENAI_API_KEY',)
    _DEFAULT_MODEL = 'gpt-4o-mini'

    def __init__(self) -> None:
        self._client: Optional[OpenAI] = None
        self._client_key: Optional[str] = None

    @property
    def model(self) -> str:
        return os.getenv('OPENAI_MODEL') or self._DEFAULT_MODEL

    # --- Outfit ----------------------------------------------------------

    def analyze_outfit(self, image: bytes, mime_type: str) -> OutfitCritique:
        encoded = base64.b64encode(image).decode('ascii')
        messages = [
            {'role': 'system', 'content': prompts.OUTFIT_SYSTEM_PROMPT},
            {
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': prompts.OUTFIT_USER_PROMPT},
                    {
                        'type': 'image_url',
                        'image_url': {'url': f'data:{mime_type};base64,{encoded}', 'detail': 'high'},
                    },
                ],
            },
        ]
        try:
            raw = self._complete(messages, temperature=0.7, max_tokens=1000, json_mode=True)
        except VendorError as exc:
            raise VendorError(f'Fashion analysis failed: {exc.message}') from exc

        critique = self._parse_outfit(raw)
        if critique is None:
            logger.warning('ai.outfit.parse_failed')
            return OutfitCritique(**prompts.OUTFIT_FALLBACK, fallback=True)
        return critique

    def _parse_outfit(self, raw: Optional[str]) -> Optional[OutfitCritique]:
        data = self._load_json(raw)
        if not data:
            return None
        comments = data.get('positive_comments')
        suggestions = data.get('suggestions')
        rating = data.get('style_rating')
        if not isinstance(comments, list) or not isinstance(suggestions, list):
            return None
        if isinstance(rating, bool) or not isinstance(rating, (int, float)):
            return None

        comments = [str(comment) for comment in comments]
        while len(comments) < 3:
            comments.append(prompts.OUTFIT_PADDING_COMMENT)
        return OutfitCritique(
            positive_comments=comments[:3],
            suggestions=[str(item) for item in suggestions][:3],
            style_rating=int(round(max(1, min(10, rating)))),
        )

    # --- Body ------------------------------------------------------------

    def analyze_body(
        self,
        front_image_url: str,
        back_image_url: str,
        preferences: Mapping[str, Any],
    ) -> BodyCritique:
        messages = [
            {'role': 'system', 'content': prompts.BODY_SYSTEM_PROMPT},
            {
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': prompts.build_body_prompt(preferences)},
                    {'type': 'image_url', 'image_url': {'url': front_image_url, 'detail': 'high'}},
                    {'type': 'image_url', 'image_url': {'url': back_image_url, 'detail': 'high'}},
                ],
            },
        ]
        try:
            raw = self._complete(messages, temperature=0.65, max_tokens=1500, json_mode=True)
        except VendorError as exc:
            raise VendorError(f'Body analysis failed: {exc.message}') from exc

        data = self._load_json(raw)
        if not data or not all(data.get(name) for name in prompts.BODY_FIELDS):
            logger.warning('ai.body.parse_failed')
            return BodyCritique(**prompts.body_fallback(preferences), fallback=True)

        values = {
            name: data[name] if isinstance(data[name], str) else json.dumps(data[name])
            for name in prompts.BODY_FIELDS
        }
        return BodyCritique(**values)

    # --- Insights ----------------------------------------------------------

    def generate_insight_recap(
        self,
        texts: List[str],
        time_frame: str,
        reflection_count: int,
        mood_average: float,
        sentiment_counts: Mapping[str, int],
    ) -> InsightRecap:
        """Write the summary, motivation and recommendations for a period.

        Request failures and malformed answers both produce the canned recap;
        only a missing API key is raised.
        """

        messages = [
            {'role': 'system', 'content': prompts.INSIGHT_SYSTEM_PROMPT},
            {
                'role': 'user',
                'content': prompts.build_insight_prompt(
                    texts, time_frame, reflection_count, mood_average, sentiment_counts
                ),
            },
        ]
        fallback = prompts.insight_fallback(time_frame, reflection_count, mood_average)
        try:
            raw = self._complete(messages, temperature=0.85, max_tokens=1000, json_mode=True)
        except VendorError:
            logger.warning('ai.insight.request_failed', exc_info=True)
            return InsightRecap(**fallback, fallback=True)

        data = self._load_json(raw)
        if (
            not data
            or not data.get('summaryText')
            or not data.get('motivationalMessage')
            or not isinstance(data.get('recommendations'), list)
        ):
            logger.warning('ai.insight.parse_failed')
            return InsightRecap(**fallback, fallback=True)

        return InsightRecap(
            summaryText=str(data['summaryText']),
            motivationalMessage=str(data['motivationalMessage']),
            recommendations=[str(item) for item in data['recommendations']][:3],
        )

    # --- Video script ----------------------------------------------------

    def generate_video_script(self, texts: List[str], first_name: str) -> str:
        messages = [{'role': 'user', 'content': prompts.build_video_script_prompt(texts, first_name)}]
        script = self._complete(messages, temperature=0.85, max_tokens=500)
        if not script or not script.strip():
            raise VendorError('Generated script is empty or invalid')
        return script.strip()

    # --- Private helpers -------------------------------------------------

    def _get_client(self) -> OpenAI:
        api_key = self._get_env_value(*self._ENV_KEY_PRIORITY)
        if not api_key:
            raise ConfigurationError('OpenAI API key not configured')
        if self._client is None or self._client_key != api_key:
            self._client = OpenAI(api_key=api_key)
            self._client_key = api_key
        return self._client

    def _complete(
        self,
        messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        client = self._get_client()
        options: Dict[str, Any] = {}
        if json_mode:
            options['response_format'] = {'type': 'json_object'}
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **options,
            )
        except OpenAIError as exc:
            logger.warning('ai.openai.request_failed: %s', exc)
            raise VendorError(f'OpenAI API error: {exc}') from exc

        if not completion.choices:
            raise VendorError('OpenAI API returned no choices')
        return completion.choices[0].message.content or ''

    def _load_json(self, raw: Optional[str]) -> Optional[Dict[str, Any]]:
        if not raw:
            return None
        cleaned = self._strip_code_fences(raw)
        try:
            parsed = json.loads(cleaned)
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return self._extract_json_fragment(cleaned)

    def _extract_json_fragment(self, text: str) -> Optional[Dict[str, Any]]:
        start = text.find('{')
        end = text.rfind('}')
        if start == -1 or end == -1 or end <= start:
            return None
        try:
            parsed = json.loads(text[start : end + 1])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

    def _strip_code_fences(self, raw: str) -> str:
        cleaned = raw.strip()
        if cleaned.startswith('```') and cleaned.endswith('```'):
            lines = [line for line in cleaned.splitlines() if not line.strip().startswith('```')]
            return '\n'.join(lines).strip()
        return cleaned

    @staticmethod
    def _get_env_value(*names: str) -> Optional[str]:
        for name in names:
            value = os.getenv(name)
            if value:
                return value
        return None
