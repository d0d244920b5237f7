"""Per-mode system instructions and generation config."""

from ..config import RESEARCH_THINKING_BUDGET, WEB_SEARCH_MAX_USES
from ..models import AppMode, GenerationConfig

LANGUAGES = {
    "en": "English",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "zh": "中文 (Chinese)",
    "ja": "日本語 (Japanese)",
    "ko": "한국어 (Korean)",
    "hi": "हिन्दी (Hindi)",
    "ar": "العربية (Arabic)",
    "pt": "Português",
    "ru": "Русский (Russian)",
    "it": "Italiano",
    "nl": "Nederlands (Dutch)",
    "tr": "Türkçe (Turkish)",
    "pl": "Polski (Polish)",
    "id": "Bahasa Indonesia",
    "vi": "Tiếng Việt (Vietnamese)",
    "th": "ไทย (Thai)",
}

WEB_SEARCH_TOOL = {
    "type": "web_search_20250305",
    "name": "web_search",
    "max_uses": WEB_SEARCH_MAX_USES,
}

_INSTRUCTIONS = {
    AppMode.STANDARD: """You are BorAI. Synthesise information from all available sources on the web to provide the ultimate best answer.
Instructions:
1. SEARCH: Use search extensively.
2. MULTIMODAL: Analyze provided images.
3. KEY FINDINGS: For research queries, start with "## Key Findings" (translated).
4. OUTPUT: Answer in {language}.""",
    AppMode.TUTOR: """You are BorAI Tutor.
Instructions:
1. IDENTIFY: Determine subject and concept.
2. STEP-BY-STEP: Break down solutions. Explain *why*.
3. ENCOURAGE: Maintain academic tone.
4. OUTPUT: Answer in {language}.""",
    AppMode.RESEARCH: """You are BorAI Researcher.
Instructions:
1. DEEP SEARCH: Granular, recent data.
2. CROSS-REFERENCE: Verify facts.
3. REPORT FORMAT: Executive Summary, Detailed Analysis, Data/Stats.
4. CITATIONS: Required.
5. OUTPUT: Answer in {language}.""",
}


def language_name(code: str) -> str:
    """Display name of a language code; unknown codes fall back to English."""
    return LANGUAGES.get(code, LANGUAGES["en"])


def system_instruction(mode: AppMode, language: str = "en") -> str:
    return _INSTRUCTIONS[mode].format(language=language_name(language))


def generation_config(mode: AppMode, language: str = "en") -> GenerationConfig:
    """Build the turn config: web search always, thinking in research mode."""
    return GenerationConfig(
        system_instruction=system_instruction(mode, language),
        tools=[dict(WEB_SEARCH_TOOL)],
        thinking_budget=RESEARCH_THINKING_BUDGET if mode == AppMode.RESEARCH else None,
    )
