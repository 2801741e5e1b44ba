"""Name derivation for generated GraphQL types and fields."""

import re
from typing import List

import inflection

_WORD_BOUNDARY = re.compile(r"[^0-9A-Za-z]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_LAST_WORD = re.compile(r"[A-Z]?[a-z]+$|[A-Z]+$")
_KEY_SUFFIX = re.compile(r"(?<=[0-9A-Za-z])(_id|Id|ID)$")


def split_words(text: str) -> List[str]:
    """Split an identifier on punctuation and camelCase boundaries."""
    words = []
    for chunk in _WORD_BOUNDARY.split(text):
        if chunk:
            words.extend(word for word in _CAMEL_BOUNDARY.split(chunk) if word)
    return words


def to_pascal_case(text: str) -> str:
    """'dog_owner' and 'public.dogOwner' become 'DogOwner' / 'PublicDogOwner'."""
    return "".join(word[:1].upper() + word[1:] for word in split_words(text))


def to_snake_case(text: str) -> str:
    """'DogOwners' becomes 'dog_owners'."""
    return "_".join(word.lower() for word in split_words(text))


def _pluralize_word(word: str) -> str:
    plural = inflection.pluralize(word)
    if len(word) > 1 and word.isupper():
        return plural.upper()
    return plural


def pluralize(text: str) -> str:
    """Pluralize the last word of an identifier, keeping the rest intact."""
    match = _LAST_WORD.search(text)
    if not match:
        return text + "s"
    return text[:match.start()] + _pluralize_word(match.group(0))


def type_name(table_name: str) -> str:
    """GraphQL type name for a (possibly schema-qualified) table."""
    return to_pascal_case(table_name)


def relation_name(table_name: str) -> str:
    """snake_case plural name used for list relation fields."""
    return to_snake_case(pluralize(table_name))


def related_field_name(column_name: str) -> str:
    """Single-valued relationship field for a foreign-key column: 'dogId' -> 'dog'."""
    return _KEY_SUFFIX.sub("", column_name)


def junction_field_name(far_table: str, junction_relation: str) -> str:
    return f"{relation_name(far_table)}_via_{junction_relation}"


def list_field_name(entity_type_name: str) -> str:
    return "list" + pluralize(entity_type_name)
