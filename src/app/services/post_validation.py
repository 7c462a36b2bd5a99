"""
생성 글 후처리 검증.

저장 전에 품질 확인:
1. 금지 패턴: 마크다운 헤딩/볼드, 이모지, 하이픈 목록 과다
2. 구조: 구분선, 이미지 태그, CTA, 최소 글자 수
3. 수치 오염: facts에 없는 "숫자+단위"
4. 의료 단정 표현

점수: 100 - 20*critical - 5*warning (최소 0). critical 없으면 통과.
자동 수정 가능한 이슈가 있으면 auto_fixed에 정리본.
"""

import re
from typing import Any

from src.app.providers.cleanup import clean_generated_text
from src.domain.schemas import Severity, ValidationIssue, ValidationReport

MIN_CHAR_COUNT = 800
MIN_DIVIDERS = 3
MAX_HYPHEN_LINES = 10

CTA_KEYWORDS = ("문의", "예약", "상담", "전화", "카톡", "카카오", "DM", "연락", "방문", "등록")
MEDICAL_CLAIMS = (
    "완치", "치료됩니다", "100% 효과", "무조건 좋아",
    "반드시 낫", "확실히 치료", "완벽하게 회복",
)
FIXABLE_CODES = frozenset({"MARKDOWN_HEADING", "MARKDOWN_BOLD", "EMOJI_FOUND"})

_HEADING_RE = re.compile(r"^#{1,6}\s", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*[^*]+\*\*")
_EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF☀-⛿✀-➿]"
)
_HYPHEN_LINE_RE = re.compile(r"^- .+$", re.MULTILINE)
_DIVIDER_RE = re.compile(r"^[─━═\-]{4,}$", re.MULTILINE)
_IMAGE_TAG_RE = re.compile(r"\[이미지[:\s]")
_FACT_NUMBER_RE = re.compile(r"\d[\d,.]*\d|\d")
_NUMBER_WITH_UNIT_RE = re.compile(
    r"\d[\d,.]*\d?\s*(?:원|만원|천원|회|개월|개|평|대|명|kg|cm|분|시간|%)"
)
_LEADING_NUMBER_RE = re.compile(r"\d[\d,.]*\d?")


def _issue(code: str, severity: Severity, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, severity=severity, message=message, fixable=code in FIXABLE_CODES)


def check_forbidden_patterns(text: str) -> list[ValidationIssue]:
    issues = []

    heading_count = len(_HEADING_RE.findall(text))
    if heading_count:
        issues.append(_issue("MARKDOWN_HEADING", Severity.WARNING, f"마크다운 헤딩(#) {heading_count}개 발견"))

    bold_count = len(_BOLD_RE.findall(text))
    if bold_count:
        issues.append(_issue("MARKDOWN_BOLD", Severity.WARNING, f"마크다운 볼드(**) {bold_count}개 발견"))

    emoji_count = len(_EMOJI_RE.findall(text))
    if emoji_count:
        issues.append(_issue("EMOJI_FOUND", Severity.WARNING, f"이모지 {emoji_count}개 발견"))

    hyphen_lines = len(_HYPHEN_LINE_RE.findall(text))
    if hyphen_lines > MAX_HYPHEN_LINES:
        issues.append(
            _issue(
                "EXCESSIVE_LIST",
                Severity.WARNING,
                f"하이픈 목록이 {hyphen_lines}줄로 과다 (네이버 블로그 스타일에 맞지 않음)",
            )
        )

    return issues


def check_structure(text: str) -> list[ValidationIssue]:
    issues = []

    divider_count = len(_DIVIDER_RE.findall(text))
    if divider_count < MIN_DIVIDERS:
        issues.append(
            _issue("FEW_DIVIDERS", Severity.WARNING, f"구분선 {divider_count}개 (최소 {MIN_DIVIDERS}개 권장)")
        )

    if not _IMAGE_TAG_RE.search(text):
        issues.append(_issue("NO_IMAGE_TAG", Severity.WARNING, "이미지 배치 태그 없음"))

    if not any(keyword in text for keyword in CTA_KEYWORDS):
        issues.append(_issue("NO_CTA", Severity.WARNING, "CTA(행동유도) 표현 없음 (문의/예약/상담 등)"))

    char_count = count_chars(text)
    if char_count < MIN_CHAR_COUNT:
        issues.append(
            _issue("TOO_SHORT", Severity.CRITICAL, f"글자 수 {char_count}자 (최소 {MIN_CHAR_COUNT}자 권장)")
        )

    return issues


def check_number_contamination(text: str, facts: dict[str, Any]) -> list[ValidationIssue]:
    """
    facts에 없는 구체 수치 탐지.

    31 이상이거나 3자리 이상인 숫자만 의심 (1~30 같은 일반 숫자 제외).
    """
    facts_text = " ".join(str(value) for value in facts.values() if value)
    facts_numbers = {n.replace(",", "") for n in _FACT_NUMBER_RE.findall(facts_text)}

    suspicious = []
    for match in _NUMBER_WITH_UNIT_RE.findall(text):
        number_match = _LEADING_NUMBER_RE.match(match)
        number = number_match.group(0).replace(",", "") if number_match else ""
        if not number or number in facts_numbers:
            continue
        integer_part = int(re.match(r"\d+", number).group(0))
        if integer_part > 30 or len(number) >= 3:
            suspicious.append(match.strip())

    if not suspicious:
        return []
    return [
        _issue(
            "SUSPICIOUS_NUMBERS",
            Severity.WARNING,
            f"facts에 없는 수치 발견: {', '.join(suspicious[:5])}",
        )
    ]


def check_medical_claims(text: str) -> list[ValidationIssue]:
    found = [term for term in MEDICAL_CLAIMS if term in text]
    if not found:
        return []
    return [_issue("MEDICAL_CLAIM", Severity.CRITICAL, f"의료 단정 표현: {', '.join(found)}")]


def count_chars(text: str) -> int:
    """공백 제외 글자 수."""
    return len(re.sub(r"\s", "", text))


def auto_fix(text: str) -> str:
    """마크다운/이모지/영어 레이블 제거."""
    return clean_generated_text(text)


def validate_generated_content(text: str, facts: dict[str, Any] | None = None) -> ValidationReport:
    """
    생성 글 검증.

    Args:
        text: 생성된 본문
        facts: 사용자 입력 사실 (수치 오염 판단 기준)
    """
    issues = [
        *check_forbidden_patterns(text),
        *check_structure(text),
        *check_number_contamination(text, facts or {}),
        *check_medical_claims(text),
    ]

    critical = sum(1 for issue in issues if issue.severity == Severity.CRITICAL)
    warning = len(issues) - critical

    report = ValidationReport(
        passed=critical == 0,
        score=max(0, 100 - critical * 20 - warning * 5),
        issues=issues,
        char_count=count_chars(text),
    )
    if report.has_fixable:
        report.auto_fixed = auto_fix(text)
    return report
