"""
Word-type-specific grammar payloads.

WordData is a closed union of frozen dataclasses, one per part of speech.
Each variant carries a ``word_type`` discriminator used for serialization.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from .errors import ValidationError


@dataclass(frozen=True)
class VerbData:
    """
    Verb conjugation forms.

    Only irregular forms need to be stored; regular forms can be computed.
    """

    is_regular: bool = True
    is_separable: bool = False
    separable_prefix: str | None = None  # e.g. "auf" for aufmachen
    auxiliary: str = "haben"  # Perfekt auxiliary: haben or sein
    present_second_person: str | None = None  # du sprichst
    present_third_person: str | None = None  # er spricht
    past_simple: str | None = None  # sprach
    past_participle: str | None = None  # gesprochen
    word_type: Literal["verb"] = field(default="verb", init=False)


@dataclass(frozen=True)
class NounData:
    gender: str  # der, die or das
    plural: str | None = None
    genitive: str | None = None
    word_type: Literal["noun"] = field(default="noun", init=False)


@dataclass(frozen=True)
class AdjectiveData:
    comparative: str | None = None
    superlative: str | None = None
    word_type: Literal["adjective"] = field(default="adjective", init=False)


@dataclass(frozen=True)
class AdverbData:
    usage_note: str | None = None
    word_type: Literal["adverb"] = field(default="adverb", init=False)


WordData = VerbData | NounData | AdjectiveData | AdverbData

_VARIANTS: dict[str, type] = {
    "verb": VerbData,
    "noun": NounData,
    "adjective": AdjectiveData,
    "adverb": AdverbData,
}


def _filled(value: str | None) -> bool:
    return bool(value and value.strip())


def has_conjugation_data(data: WordData | None) -> bool:
    """Whether the payload holds the forms a conjugation drill needs."""
    match data:
        case VerbData():
            return any(
                _filled(v)
                for v in (
                    data.present_second_person,
                    data.present_third_person,
                    data.past_simple,
                    data.past_participle,
                )
            )
        case NounData():
            return _filled(data.gender)
        case AdjectiveData():
            return _filled(data.comparative) or _filled(data.superlative)
        case _:
            return False


def word_data_to_dict(data: WordData) -> dict[str, Any]:
    return asdict(data)


def word_data_from_dict(raw: dict[str, Any]) -> WordData:
    """
    Build a WordData variant from its plain-dict form.

    Raises:
        ValidationError: if the discriminator is missing/unknown or required
            fields are absent.
    """
    kind = raw.get("word_type")
    cls = _VARIANTS.get(kind)  # type: ignore[arg-type]
    if cls is None:
        raise ValidationError(f"Unknown word_type: {kind!r}")

    kwargs = {k: v for k, v in raw.items() if k != "word_type"}
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(f"Invalid {kind} data: {e}") from e


def conjugation_forms(data: WordData | None) -> list[tuple[str, str]]:
    """(prompt label, expected answer) pairs a conjugation drill can ask for."""
    forms: list[tuple[str, str | None]]
    match data:
        case VerbData():
            forms = [
                ("du (present)", data.present_second_person),
                ("er/sie/es (present)", data.present_third_person),
                ("past simple", data.past_simple),
                ("past participle", data.past_participle),
            ]
        case NounData():
            forms = [("article", data.gender), ("plural", data.plural)]
        case AdjectiveData():
            forms = [("comparative", data.comparative), ("superlative", data.superlative)]
        case _:
            forms = []
    return [(label, value.strip()) for label, value in forms if value and value.strip()]
