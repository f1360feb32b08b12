"""A computed value together with how it was derived."""

from dataclasses import dataclass
from typing import Optional

FORMULA = "formula"
NOTE = "note"


@dataclass(frozen=True)
class Metric:
    """
    ``provenance`` is either a spreadsheet formula that recomputes the
    value (``kind == FORMULA``) or free text shown as a cell comment
    (``kind == NOTE``).
    """
    value: float
    provenance: Optional[str] = None
    kind: str = NOTE

    @classmethod
    def formula(cls, value: float, formula: str) -> "Metric":
        return cls(value, formula, FORMULA)

    @classmethod
    def note(cls, value: float, text: str) -> "Metric":
        return cls(value, text, NOTE)
