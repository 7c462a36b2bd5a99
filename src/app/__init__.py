"""
App layer: API 서버 (FastAPI).

역할:
- routes: HTTP 요청 검증, 인증, 사용량 차감, 에러 → JSON 응답
- providers: Gemini/OpenAI 호출 (모델 fallback, 재시도)
- services: Firestore/Supabase/네이버/토스 연동 + 프롬프트 조립
- ⚠️ 결제 가드/ID/시간 규칙은 core에 위임
"""
