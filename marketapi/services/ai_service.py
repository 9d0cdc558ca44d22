"""
Gemini AI 서비스 - 퀴즈 문제 생성 & 댓글 채점

두 기능 모두 외부 API가 없거나 실패해도 동작해야 하므로
API 키가 없거나 호출/파싱에 실패하면 샘플 문제 / 길이 기반 점수로 대체합니다.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from marketapi.config import Settings
from marketapi.models.event import QuestionType
from marketapi.schemas.event import CommentScore, QuizGenerateRequest, QuizQuestionDraft

logger = logging.getLogger(__name__)

GRADE_NAMES = {
    "elementary_1": "초등학교 1학년",
    "elementary_2": "초등학교 2학년",
    "elementary_3": "초등학교 3학년",
    "elementary_4": "초등학교 4학년",
    "elementary_5": "초등학교 5학년",
    "elementary_6": "초등학교 6학년",
    "middle_1": "중학교 1학년",
    "middle_2": "중학교 2학년",
    "middle_3": "중학교 3학년",
    "high_1": "고등학교 1학년",
    "high_2": "고등학교 2학년",
    "high_3": "고등학교 3학년",
}

SUBJECT_NAMES = {
    "korean": "국어",
    "math": "수학",
    "english": "영어",
    "science": "과학",
    "social": "사회",
}

DIFFICULTY_NAMES = {"easy": "쉬움", "normal": "보통", "hard": "어려움"}

CHOICE_KEYS = ["A", "B", "C", "D"]

PENDING_REVIEW_FEEDBACK = "댓글이 접수되었습니다. 관리자 검토 후 포인트가 지급됩니다."


class AiServiceError(Exception):
    """Gemini 호출/응답 처리 실패"""


def build_quiz_prompt(params: QuizGenerateRequest) -> str:
    grade_name = GRADE_NAMES.get(params.grade, params.grade)
    subject_name = SUBJECT_NAMES.get(params.subject, params.subject)
    difficulty_name = DIFFICULTY_NAMES.get(params.difficulty.value, params.difficulty.value)

    if params.type == "ox":
        type_instruction = 'OX 퀴즈만 생성하세요. correctAnswer는 "O" 또는 "X"입니다.'
    elif params.type == "multiple_choice":
        type_instruction = (
            "4지선다 객관식만 생성하세요. choices에 A, B, C, D 선택지를 포함하고 "
            'correctAnswer는 "A", "B", "C", "D" 중 하나입니다.'
        )
    else:
        type_instruction = "OX와 객관식을 섞어서 생성하세요."

    return f"""당신은 한국 {grade_name} {subject_name} 교사입니다.
학생들을 위한 퀴즈 문제 {params.count}개를 생성하세요.

【조건】
- 학년: {grade_name}
- 과목: {subject_name}
- 난이도: {difficulty_name}
- {type_instruction}

【필수 응답 형식 - JSON 배열만 출력】
[
  {{
    "question": "문제 내용",
    "questionType": "ox 또는 multiple_choice",
    "correctAnswer": "정답",
    "choices": {{"A": "선택지1", "B": "선택지2", "C": "선택지3", "D": "선택지4"}},
    "explanation": "정답 해설"
  }}
]

주의: OX 퀴즈는 choices를 포함하지 마세요.
반드시 JSON 배열만 출력하세요."""


def build_score_prompt(title: str, description: Optional[str], comment: str) -> str:
    return f"""당신은 이벤트 댓글을 평가하는 AI입니다.

【이벤트 정보】
- 제목: {title}
- 설명: {description or '없음'}

【평가할 댓글】
{comment}

【평가 기준 (각 항목 0-25점, 총 100점)】
1. relevance: 이벤트 주제와의 관련성
2. quality: 내용의 깊이와 품질
3. length: 적정 길이 (너무 짧거나 길지 않은지)
4. creativity: 창의적인 표현과 독창성

【필수 응답 형식 - JSON만 출력】
{{
  "score": 총점(0-100),
  "feedback": "한국어로 1-2문장 피드백",
  "criteria": {{"relevance": 점수, "quality": 점수, "length": 점수, "creativity": 점수}}
}}"""


def sample_questions(params: QuizGenerateRequest) -> List[QuizQuestionDraft]:
    """API 키가 없거나 생성 실패 시 사용하는 샘플 문제"""
    subject_name = SUBJECT_NAMES.get(params.subject, params.subject)
    samples = []
    for i in range(params.count):
        if params.type == "ox" or (params.type == "mixed" and i % 2 == 0):
            samples.append(
                QuizQuestionDraft(
                    question=f"[샘플] {subject_name} OX 문제 {i + 1}",
                    question_type=QuestionType.OX,
                    correct_answer="O" if i % 2 == 0 else "X",
                    explanation="이것은 샘플 문제입니다. Gemini API 키를 설정하면 실제 문제가 생성됩니다.",
                )
            )
        else:
            samples.append(
                QuizQuestionDraft(
                    question=f"[샘플] {subject_name} 객관식 문제 {i + 1}",
                    question_type=QuestionType.MULTIPLE_CHOICE,
                    correct_answer=CHOICE_KEYS[i % len(CHOICE_KEYS)],
                    choices={key: f"선택지 {key}" for key in CHOICE_KEYS},
                    explanation="이것은 샘플 문제입니다.",
                )
            )
    return samples


def heuristic_score(comment: str) -> CommentScore:
    """길이 기반 기본 점수 (AI 채점 불가 시)"""
    length_score = min(25, len(comment.strip()) // 4)
    relevance, quality, creativity = 15, 15, 12
    return CommentScore(
        score=min(100, relevance + quality + creativity + length_score),
        feedback=PENDING_REVIEW_FEEDBACK,
        relevance=relevance,
        quality=quality,
        length=length_score,
        creativity=creativity,
    )


def _extract_json(text: str, pattern: str) -> Any:
    match = re.search(pattern, text)
    if not match:
        raise AiServiceError("JSON 파싱 실패")
    try:
        return json.loads(match.group(0))
    except ValueError as exc:
        raise AiServiceError("JSON 파싱 실패") from exc


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class AiService:
    """Gemini generateContent 클라이언트"""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._api_key = settings.GEMINI_API_KEY
        self._api_url = settings.GEMINI_API_URL

    async def _generate(
        self, prompt: str, temperature: float, max_tokens: int, timeout: float
    ) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            },
        }
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0)) as client:
                response = await client.post(
                    self._api_url, params={"key": self._api_key}, json=body
                )
        except httpx.TimeoutException as exc:
            raise AiServiceError("Gemini 요청 시간 초과") from exc
        except httpx.RequestError as exc:
            raise AiServiceError(f"Gemini 요청 실패: {exc}") from exc

        if response.status_code != 200:
            raise AiServiceError(f"Gemini API 오류: {response.status_code}")

        try:
            data: Dict[str, Any] = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AiServiceError("Gemini 응답 형식 오류") from exc

    async def generate_quiz_questions(
        self, params: QuizGenerateRequest
    ) -> List[QuizQuestionDraft]:
        """퀴즈 문제 초안 생성 (저장하지 않음)"""
        logger.info(f"Quiz generation requested: {params.grade}/{params.subject} x{params.count}")
        if not self._api_key:
            logger.info("Gemini API key not set, returning sample questions")
            return sample_questions(params)

        try:
            text = await self._generate(
                build_quiz_prompt(params),
                temperature=0.7,
                max_tokens=4096,
                timeout=self._settings.GEMINI_QUIZ_TIMEOUT_SECONDS,
            )
            parsed = _extract_json(text, r"\[[\s\S]*\]")
            return [
                QuizQuestionDraft(
                    question=item["question"],
                    question_type=item["questionType"],
                    correct_answer=str(item["correctAnswer"]),
                    choices=item.get("choices") or None,
                    explanation=item.get("explanation") or "",
                )
                for item in parsed
            ]
        except (AiServiceError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Quiz generation failed: {str(e)}")
            return sample_questions(params)

    async def score_comment(
        self, title: str, description: Optional[str], comment: str
    ) -> CommentScore:
        """이벤트 댓글 채점 (0~100점, 항목별 0~25점)"""
        if not self._api_key:
            return heuristic_score(comment)

        try:
            text = await self._generate(
                build_score_prompt(title, description, comment),
                temperature=0.3,
                max_tokens=1024,
                timeout=self._settings.GEMINI_SCORE_TIMEOUT_SECONDS,
            )
            parsed = _extract_json(text, r"\{[\s\S]*\}")
            criteria = parsed.get("criteria") or {}
            return CommentScore(
                score=_clamp(parsed.get("score"), 0, 100, 50),
                feedback=parsed.get("feedback") or "평가 완료",
                relevance=_clamp(criteria.get("relevance"), 0, 25, 15),
                quality=_clamp(criteria.get("quality"), 0, 25, 15),
                length=_clamp(criteria.get("length"), 0, 25, 15),
                creativity=_clamp(criteria.get("creativity"), 0, 25, 15),
            )
        except (AiServiceError, AttributeError, ValueError) as e:
            logger.error(f"Comment scoring failed: {str(e)}")
            return heuristic_score(comment)
