"""
생성 텍스트 후처리.

블로그 본문에 남으면 안 되는 패턴 제거:
- 마크다운 (볼드, 언더스코어, 헤딩, 이탤릭). 내용은 유지
- 영어 괄호 레이블 (Fact)/(I)/(R&E) 등
- 이모지
"""

import re

_LABEL_PATTERNS = (
    re.compile(r"\s*\((?:Fact|Interpretation|Real|Experience)\)", re.IGNORECASE),
    re.compile(r"\s*\((?:R&E|F\+I|Real & Experience|Fact\+Interpretation)\)", re.IGNORECASE),
    # 한 글자 레이블은 대문자만
    re.compile(r"\s*\([FIRE]\)"),
)

_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "☀-⛿"
    "✀-➿"
    "]"
)


def clean_generated_text(text: str) -> str:
    """마크다운/영어 레이블/이모지 제거."""
    cleaned = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    cleaned = re.sub(r"__([^_]+)__", r"\1", cleaned)
    cleaned = re.sub(r"^#{1,6}\s+", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"\*([^*\n]+)\*", r"\1", cleaned)

    for pattern in _LABEL_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    return _EMOJI_RE.sub("", cleaned)
