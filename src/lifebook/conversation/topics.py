"""Keyword tables used to tag interview questions with a life topic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from .models import ConversationTurn

GENERAL_TOPIC = "general"
UNKNOWN_TOPIC = "unknown"

# Table order is the tie-break: the first topic with any keyword hit wins.
TOPIC_KEYWORDS: Mapping[str, Sequence[str]] = {
    "family": ("가족", "부모", "형제", "자매", "어머니", "아버지"),
    "childhood": ("어린", "유년", "초등학교", "어릴 때", "학교"),
    "education": ("학교", "공부", "대학", "교육", "선생님"),
    "career": ("직업", "회사", "일", "직장", "커리어"),
    "relationship": ("친구", "연인", "결혼", "사랑", "인간관계"),
    "hobby": ("취미", "좋아하는", "즐기는", "여가"),
    "values": ("가치관", "신념", "철학", "생각", "중요한"),
}

TOPIC_WINDOW = 3


def classify_topic(text: str, table: Mapping[str, Sequence[str]] = TOPIC_KEYWORDS) -> str:
    if text:
        for topic, keywords in table.items():
            if any(keyword in text for keyword in keywords):
                return topic
    return GENERAL_TOPIC


def identify_current_topic(turns: Sequence[ConversationTurn]) -> str:
    """Classify the topic of the last :data:`TOPIC_WINDOW` questions taken together."""

    if not turns:
        return UNKNOWN_TOPIC
    recent = " ".join(turn.question for turn in turns[-TOPIC_WINDOW:])
    return classify_topic(recent)


def count_consecutive_same_topic(turns: Sequence[ConversationTurn], topic: str) -> int:
    """Count trailing turns on ``topic``.

    A ``general`` question neither matches nor breaks the streak: it is counted
    and the walk continues.
    """

    count = 0
    for turn in reversed(turns):
        turn_topic = classify_topic(turn.question)
        if turn_topic == topic or turn_topic == GENERAL_TOPIC:
            count += 1
        else:
            break
    return count


@dataclass(slots=True, frozen=True)
class LifeArea:
    """A broad life area an autobiography should eventually cover."""

    key: str
    name: str
    keywords: tuple[str, ...]
    sub_topics: tuple[str, ...] = ()


LIFE_AREAS: tuple[LifeArea, ...] = (
    LifeArea("childhood", "유년기와 성장", ("어린시절", "가족", "첫 기억", "놀이", "학교 입학", "부모님", "형제자매"),
             ("가족의 영향", "첫 학교 경험", "어린 시절 꿈", "놀이와 친구들")),
    LifeArea("education", "교육과 학습", ("학교생활", "공부", "선생님", "성적", "진로", "대학", "전공"),
             ("인상 깊은 선생님", "학창시절 도전", "전공 선택", "학교 밖 배움")),
    LifeArea("relationships", "인간관계", ("친구", "연인", "결혼", "동료", "멘토", "갈등", "만남", "이별"),
             ("평생 친구", "첫사랑", "결혼과 가정", "인생의 멘토")),
    LifeArea("career", "직업과 커리어", ("첫 직장", "승진", "이직", "창업", "성취", "상사"),
             ("첫 직장 적응", "커리어 전환", "창업 경험", "일과 삶의 균형")),
    LifeArea("challenges", "시련과 극복", ("어려움", "실패", "극복", "교훈", "위기", "좌절"),
             ("경제적 어려움", "건강 문제", "실패에서 배운 것", "인생의 전환점")),
    LifeArea("hobbies", "취미와 여가", ("취미", "여행", "독서", "운동", "문화생활", "특기", "음악"),
             ("특별한 여행", "좋아하는 책/영화", "예술 활동", "새로운 도전")),
    LifeArea("values", "가치관과 철학", ("신념", "가치관", "철학", "종교", "인생관", "원칙", "신앙"),
             ("인생 철학", "종교와 신앙", "삶의 우선순위")),
    LifeArea("achievements", "성취와 자부심", ("성공", "자랑스러운", "보람", "인정", "수상", "칭찬"),
             ("학업 성취", "직업적 성공", "사회적 인정")),
    LifeArea("community", "사회와 공동체", ("봉사", "사회활동", "공동체", "이웃", "기부", "참여"),
             ("봉사 활동", "사회 참여", "이웃과의 관계")),
    LifeArea("health", "건강과 웰빙", ("건강", "다이어트", "병원", "치료", "회복", "정신건강"),
             ("건강 관리", "질병 극복", "스트레스 관리")),
    LifeArea("culture", "문화와 예술", ("문화", "예술", "전통", "축제", "공연", "전시", "창작"),
             ("전통 문화", "창작 활동", "문화 체험")),
    LifeArea("future", "현재와 미래", ("현재", "미래", "계획", "꿈", "목표", "희망", "전망"),
             ("미래 계획", "꿈과 목표", "후세에게 남기고 싶은 것")),
)


def unexplored_areas(turns: Iterable[ConversationTurn], areas: Sequence[LifeArea] = LIFE_AREAS) -> list[LifeArea]:
    """Return the life areas none of the questions or answers have touched yet."""

    corpus = " ".join(f"{turn.question} {turn.answer or ''}" for turn in turns)
    return [area for area in areas if not any(keyword in corpus for keyword in area.keywords)]


__all__ = [
    "GENERAL_TOPIC",
    "LIFE_AREAS",
    "LifeArea",
    "TOPIC_KEYWORDS",
    "UNKNOWN_TOPIC",
    "classify_topic",
    "count_consecutive_same_topic",
    "identify_current_topic",
    "unexplored_areas",
]
