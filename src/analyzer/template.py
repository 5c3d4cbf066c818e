# src/analyzer/template.py - Placeholder templates
"""
Templates are literal text with embedded placeholders:

- ``##{name}##``        capture anything as ``name``
- ``##{name:regex}##``  capture text matching ``regex`` as ``name``
- ``##{:regex}##``      match ``regex`` without capturing (``##{}##`` matches anything)

Everything outside placeholders is matched literally. A template always has
to match the whole subject.

Compilation is done in two stages: ``parse_template`` splits the text into
literal and placeholder parts, ``build_regex`` turns the parts into a regular
expression and the ordered list of capture names.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Tuple, Union


GROUP_MARKER_START = '##{'
GROUP_MARKER_END = '}##'

ANYTHING = '.*'


class TemplateError(ValueError):
    """Raised for a malformed template."""


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    name: str
    regex: str = ANYTHING

    @property
    def capturing(self) -> bool:
        return bool(self.name)


TemplatePart = Union[Literal, Placeholder]


def parse_template(text: str) -> List[TemplatePart]:
    """
    Split template text into literal and placeholder parts.

    Raises:
        TemplateError: On unbalanced placeholder markers
    """
    parts: List[TemplatePart] = []
    current = 0
    while current < len(text):
        start = text.find(GROUP_MARKER_START, current)
        literal = text[current:] if start < 0 else text[current:start]
        if GROUP_MARKER_END in literal:
            raise TemplateError(f"Unexpected '{GROUP_MARKER_END}' in template: {text}")
        if literal:
            parts.append(Literal(literal))
        if start < 0:
            break

        end = text.find(GROUP_MARKER_END, start + len(GROUP_MARKER_START))
        if end < 0:
            raise TemplateError(f"Malformed template (missing '{GROUP_MARKER_END}'): {text}")

        wildcard = text[start + len(GROUP_MARKER_START):end]
        name, colon, regex = wildcard.partition(':')
        parts.append(Placeholder(name, regex if colon else ANYTHING))
        current = end + len(GROUP_MARKER_END)
    return parts


def build_regex(parts: List[TemplatePart]) -> Tuple[str, List[str]]:
    """
    Turn template parts into a regular expression.

    Returns:
        Tuple (regex, capture names in order of appearance)

    Raises:
        TemplateError: On invalid or duplicate capture names
    """
    chunks = []
    names: List[str] = []
    for part in parts:
        if isinstance(part, Literal):
            chunks.append(re.escape(part.text))
        elif part.capturing:
            if not part.name.isidentifier():
                raise TemplateError(f"Invalid placeholder name: {part.name!r}")
            if part.name in names:
                raise TemplateError(f"Duplicate placeholder name: {part.name!r}")
            chunks.append(f"(?P<{part.name}>{part.regex})")
            names.append(part.name)
        else:
            chunks.append(f"(?:{part.regex})")
    return ''.join(chunks), names


@dataclass(frozen=True)
class TemplateMatch:
    """
    Successful match of a template: captured values by placeholder name.
    """
    groups: Dict[str, Optional[str]] = field(default_factory=dict)


class Template:
    """
    A compiled template.
    """

    def __init__(self, pattern: Pattern, groups: List[str], source: Optional[str] = None):
        self.pattern = pattern
        self.groups = groups
        self.source = source

    @classmethod
    def compile(cls, text: Optional[str]) -> 'Template':
        """
        Compile template text; None gives a template matching anything.

        Raises:
            TemplateError: If the template is malformed
        """
        if text is None:
            return cls(re.compile(ANYTHING, re.DOTALL), [], None)

        regex, names = build_regex(parse_template(text))
        try:
            pattern = re.compile(regex)
        except re.error as e:
            raise TemplateError(f"Invalid regular expression in template {text!r}: {e}") from e
        return cls(pattern, names, text)

    def match(self, text: str) -> Optional[TemplateMatch]:
        """
        Match the whole text.

        Returns:
            TemplateMatch, or None if the text does not match
        """
        m = self.pattern.fullmatch(text)
        if m is None:
            return None
        return TemplateMatch({name: m.group(name) for name in self.groups})

    def __repr__(self):
        return f"Template({self.source!r}, pattern={self.pattern.pattern!r}, groups={self.groups})"
