"""Document-type validation for component specification files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

# A required entry is either a section title or a tuple of acceptable alternatives.
SectionRule = Union[str, Tuple[str, ...]]

_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")


@dataclass(frozen=True)
class DocumentType:
    """Section requirements for one kind of specification document."""

    name: str
    required_sections: Tuple[SectionRule, ...]
    optional_sections: Tuple[str, ...] = ()


DOCUMENT_TYPES: Dict[str, DocumentType] = {
    "spec": DocumentType(
        name="spec",
        required_sections=("Purpose", ("Functions", "Public API"), "Dependencies"),
        optional_sections=("Fields", "Test Assertions", "Notes"),
    ),
    "context_spec": DocumentType(
        name="context_spec",
        required_sections=("Purpose", ("Functions", "Public API"), "Components", "Dependencies"),
        optional_sections=("Delegates", "Notes"),
    ),
    "schema": DocumentType(
        name="schema",
        required_sections=("Purpose", "Fields"),
        optional_sections=("Validations", "Associations", "Notes"),
    ),
}


@dataclass(frozen=True)
class DocumentValidation:
    """Outcome of validating one document against its type."""

    valid: bool
    score: float
    error: Optional[str] = None
    missing_sections: Tuple[str, ...] = ()


class DocumentValidator(Protocol):
    """Validates raw document text against a registered document type."""

    def validate(self, text: str, document_type: str) -> DocumentValidation:
        """Return the validation outcome; never raises for malformed text."""


class MarkdownDocumentValidator:
    """Checks that a Markdown document declares the required H2 sections."""

    def __init__(self, document_types: Mapping[str, DocumentType] | None = None) -> None:
        self._types = dict(document_types) if document_types is not None else dict(DOCUMENT_TYPES)

    def known_types(self) -> List[str]:
        return sorted(self._types)

    def validate(self, text: str, document_type: str) -> DocumentValidation:
        doc_type = self._types.get(document_type)
        if doc_type is None:
            return DocumentValidation(
                valid=False, score=0.0, error=f"Unknown document type: {document_type}"
            )
        if not text.strip():
            return DocumentValidation(valid=False, score=0.0, error="Document is empty")

        titles = {title.lower() for title in section_titles(text, level=2)}
        missing = [
            _rule_label(rule)
            for rule in doc_type.required_sections
            if not any(option.lower() in titles for option in _rule_options(rule))
        ]
        total = len(doc_type.required_sections)
        score = 1.0 if total == 0 else (total - len(missing)) / total
        if missing:
            return DocumentValidation(
                valid=False,
                score=score,
                error=f"Missing required sections: {', '.join(missing)}",
                missing_sections=tuple(missing),
            )
        return DocumentValidation(valid=True, score=score)


def section_titles(markdown: str, *, level: int = 2) -> List[str]:
    """Return heading titles at `level`, ignoring fenced code blocks."""
    titles: List[str] = []
    in_code = False
    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            continue
        match = _HEADING_PATTERN.match(stripped)
        if match and len(match.group(1)) == level:
            titles.append(match.group(2).strip())
    return titles


def _rule_options(rule: SectionRule) -> Sequence[str]:
    return (rule,) if isinstance(rule, str) else rule


def _rule_label(rule: SectionRule) -> str:
    return rule if isinstance(rule, str) else " or ".join(rule)


__all__ = [
    "DOCUMENT_TYPES",
    "DocumentType",
    "DocumentValidation",
    "DocumentValidator",
    "MarkdownDocumentValidator",
    "section_titles",
]
