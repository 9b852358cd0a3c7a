"""
Structured Output Models for Categorizer Responses

Pydantic models describing the JSON a language-model categorizer must
return, plus tolerant parsing of the raw response text.
"""

import json
import re
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from ..utils.error_handler import CategorizationError


class CategoryAssignments(BaseModel):
    """Category label -> 1-based bookmark numbers within one batch."""

    categories: Dict[str, List[int]] = Field(
        default_factory=dict,
        description="Mapping of category label to bookmark numbers",
    )

    @field_validator("categories")
    @classmethod
    def clean_labels(cls, v: Dict[str, List[int]]) -> Dict[str, List[int]]:
        """Trim labels and merge labels that only differ by whitespace."""
        cleaned: Dict[str, List[int]] = {}
        for label, numbers in v.items():
            label = " ".join(label.split())
            cleaned.setdefault(label, []).extend(numbers)
        return cleaned


# OpenAI JSON mode response format
OPENAI_RESPONSE_FORMAT = {"type": "json_object"}


def parse_assignments_response(response_text: str) -> CategoryAssignments:
    """
    Parse categorizer response text into CategoryAssignments.

    Accepts a bare JSON object, one wrapped in a markdown code block, an
    object nested under "assignments", or a flat ``{label: [numbers]}``
    object.

    Raises:
        CategorizationError: If the text is not a usable JSON object
    """
    text = response_text.strip()
    code_block = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if code_block:
        text = code_block.group(1)

    try:
        data = json.loads(text)
    except ValueError as e:
        raise CategorizationError(f"Categorizer returned invalid JSON: {e}")

    if not isinstance(data, dict):
        raise CategorizationError(
            f"Categorizer returned {type(data).__name__}, expected an object"
        )

    if "assignments" in data and isinstance(data["assignments"], dict):
        data = data["assignments"]
    if "categories" not in data:
        data = {"categories": data}

    try:
        return CategoryAssignments(**data)
    except ValueError as e:
        raise CategorizationError(f"Categorizer response has wrong shape: {e}")


__all__ = [
    "CategoryAssignments",
    "OPENAI_RESPONSE_FORMAT",
    "parse_assignments_response",
]
