"""
Supported target languages and the per-role system instructions.

Instruction text is configuration: each 'ChatRole' has one template that is
rendered for the selected target language and its writing system. Some
languages carry extra tutoring rules that are appended to the advisor
instruction. The extractor instruction defines 'NO_TARGET_LANGUAGE_TEXT' as
the reply meaning "the message contains no target-language text".
"""

from enum import StrEnum
from functools import lru_cache
from textwrap import dedent

from language_tutor.errors import UnsupportedLanguageError

NO_TARGET_LANGUAGE_TEXT = "NO_TARGET_LANGUAGE_TEXT"


class ChatRole(StrEnum):
    """The closed set of jobs the chat model is asked to do."""

    ADVISOR = "advisor"
    EXTRACTOR = "extractor"
    TITLER = "titler"


LANGUAGE_WRITING_SYSTEMS: dict[str, str] = {
    "Afrikaans": "Afrikaans alphabet",
    "Arabic": "Arabic script",
    "Armenian": "Armenian script",
    "Azerbaijani": "Azerbaijani alphabet",
    "Belarusian": "Belarusian Cyrillic script",
    "Bosnian": "Bosnian alphabet",
    "Bulgarian": "Bulgarian Cyrillic script",
    "Catalan": "Catalan alphabet",
    "Chinese": "Chinese characters",
    "Croatian": "Croatian alphabet",
    "Czech": "Czech alphabet",
    "Danish": "Danish alphabet",
    "Dutch": "Dutch alphabet",
    "English": "English alphabet",
    "Estonian": "Estonian alphabet",
    "Finnish": "Finnish alphabet",
    "French": "French alphabet",
    "Galician": "Galician alphabet",
    "German": "German alphabet",
    "Greek": "Greek script",
    "Hebrew": "Hebrew script",
    "Hindi": "Devanagari script",
    "Hungarian": "Hungarian alphabet",
    "Icelandic": "Icelandic alphabet",
    "Indonesian": "Indonesian alphabet",
    "Italian": "Italian alphabet",
    "Japanese": "Japanese characters (Kanji, Hiragana and Katakana)",
    "Kannada": "Kannada script",
    "Kazakh": "Kazakh alphabet",
    "Korean": "Hangul",
    "Latvian": "Latvian alphabet",
    "Lithuanian": "Lithuanian alphabet",
    "Macedonian": "Macedonian Cyrillic script",
    "Malay": "Malay alphabet",
    "Marathi": "Devanagari script",
    "Maori": "Maori alphabet",
    "Nepali": "Devanagari script",
    "Norwegian": "Norwegian alphabet",
    "Persian": "Persian script",
    "Polish": "Polish alphabet",
    "Portuguese": "Portuguese alphabet",
    "Romanian": "Romanian alphabet",
    "Russian": "Russian Cyrillic script",
    "Serbian": "Serbian Cyrillic and Latin scripts",
    "Slovak": "Slovak alphabet",
    "Slovenian": "Slovenian alphabet",
    "Spanish": "Spanish alphabet",
    "Swahili": "Swahili alphabet",
    "Swedish": "Swedish alphabet",
    "Tagalog": "Tagalog alphabet",
    "Tamil": "Tamil script",
    "Thai": "Thai script",
    "Turkish": "Turkish alphabet",
    "Ukrainian": "Ukrainian Cyrillic script",
    "Urdu": "Urdu script",
    "Vietnamese": "Vietnamese alphabet",
    "Welsh": "Welsh alphabet",
}

LANGUAGE_SPECIFIC_RULES: dict[str, str] = {
    "Korean": dedent("""
        * Use only the polite 요 form, not the formal 니다 form, unless the student used a formal 니다 form themselves.
        * Not using the polite form, with 요 in the right places, counts as a mistake you should correct.
    """).strip(),
}

_ADVISOR_TEMPLATE = dedent("""
    You are to act as a teacher of {language} language and grammar, for a student who speaks English as their first language.
    The student will send you text in {language}. It is often a transcript of them speaking aloud, produced by a
    transcription algorithm, so it may contain recognition errors. Do your best to interpret what they are trying to say.

    * If there are no problems with the {language} you receive, respond with the English translation of what you received.
    * If there are problems:
      * respond with the corrected word, sentence or paragraph, written in {writing_system}
      * give a breakdown (in English) of the corrections you made, listing what you added, removed or changed and why
      * finally, give the English translation.
    {rules}
""")

_EXTRACTOR_TEMPLATE = dedent("""
    You will receive a message written partly in English and partly in {language}.
    Reply with only the {language} text ({writing_system}) that the message presents as the correct sentence,
    exactly as written, with no translation, commentary, quotes or formatting.
    If the message contains no {language} text at all, reply with exactly {sentinel}.
""")

_TITLER_TEMPLATE = dedent("""
    You will receive a conversation between a student of {language} and their tutor.
    Reply with a short English title for the conversation, at most six words, with no punctuation at the end.
""")


def supported_languages() -> list[str]:
    return sorted(LANGUAGE_WRITING_SYSTEMS)


def validate_language(language: str) -> str:
    """Return 'language' if it is supported, otherwise raise 'UnsupportedLanguageError'."""
    if language not in LANGUAGE_WRITING_SYSTEMS:
        raise UnsupportedLanguageError(f"Unsupported language {language!r}")
    return language


@lru_cache(maxsize=None)
def system_instruction(language: str, role: ChatRole) -> str:
    """Render the system instruction for 'role' in the given target language."""
    writing_system = LANGUAGE_WRITING_SYSTEMS[validate_language(language)]
    match role:
        case ChatRole.ADVISOR:
            rules = LANGUAGE_SPECIFIC_RULES.get(language, "")
            return _ADVISOR_TEMPLATE.format(language=language, writing_system=writing_system, rules=rules).strip()
        case ChatRole.EXTRACTOR:
            return _EXTRACTOR_TEMPLATE.format(
                language=language, writing_system=writing_system, sentinel=NO_TARGET_LANGUAGE_TEXT
            ).strip()
        case ChatRole.TITLER:
            return _TITLER_TEMPLATE.format(language=language).strip()
