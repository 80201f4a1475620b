"""
Strict JSON Parser - Helper for parsing and validating model responses
Handles markdown fences and surrounding prose, validates against schema
"""

import json
import re
import logging
from typing import Any, Dict, Iterator, Optional, Tuple, Type
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

JSON_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.DOTALL | re.IGNORECASE)
RESPONSE_PREFIXES = ("Here is the JSON:", "JSON:", "Response:", "Output:")


class StrictJSONParser:
    """Parse and validate JSON objects embedded in model completions"""

    @staticmethod
    def extract_json(
        content: str,
        schema_class: Optional[Type[BaseModel]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Extract a JSON object from response content, handling markdown fences

        Args:
            content: Raw completion text
            schema_class: When given, prefer the first candidate object that
                validates against it over objects that merely parse

        Returns:
            Parsed JSON dictionary or None if parsing fails
        """
        first = None
        for candidate in StrictJSONParser._candidates(content):
            if schema_class is None:
                return candidate
            if first is None:
                first = candidate
            is_valid, _, _ = StrictJSONParser.validate_against_schema(candidate, schema_class)
            if is_valid:
                return candidate

        if first is None:
            logger.warning(f"Could not extract valid JSON from response (first 200 chars): {(content or '')[:200]}")
        return first

    @staticmethod
    def _candidates(content: str) -> Iterator[Dict[str, Any]]:
        """JSON objects found in content, most explicit framing first"""
        if not content or not content.strip():
            return

        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                yield parsed
        except json.JSONDecodeError:
            pass

        # ```json ... ```
        for match in JSON_FENCE_PATTERN.finditer(content):
            try:
                parsed = json.loads(match.group(1))
            except json.JSONDecodeError as e:
                logger.debug(f"Failed to parse JSON from markdown fence: {e}")
                continue
            if isinstance(parsed, dict):
                yield parsed

        content = content.strip()
        for prefix in RESPONSE_PREFIXES:
            if content.startswith(prefix):
                content = content[len(prefix):].strip()

        # Balanced-brace scan over every '{', ignoring braces inside strings
        start = content.find('{')
        while start != -1:
            end = StrictJSONParser._matching_brace(content, start)
            if end is not None:
                try:
                    parsed = json.loads(content[start:end + 1])
                    if isinstance(parsed, dict):
                        yield parsed
                except json.JSONDecodeError:
                    pass
            start = content.find('{', start + 1)

    @staticmethod
    def _matching_brace(content: str, start: int) -> Optional[int]:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(content)):
            char = content[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return i
        return None

    @staticmethod
    def validate_against_schema(
        data: Dict[str, Any],
        schema_class: Type[BaseModel]
    ) -> Tuple[bool, Optional[BaseModel], Optional[str]]:
        """
        Validate JSON data against a Pydantic schema

        Args:
            data: Parsed JSON dictionary
            schema_class: Pydantic model class to validate against

        Returns:
            Tuple of (is_valid, validated_object, error_message)
        """
        try:
            validated = schema_class.model_validate(data)
            return True, validated, None
        except ValidationError as e:
            error_details = []
            for error in e.errors():
                field_path = " -> ".join(str(x) for x in error['loc'])
                error_details.append(f"{field_path}: {error['msg']}")

            error_message = "Schema validation failed: " + "; ".join(error_details)
            logger.debug(f"Validation errors: {error_message}")
            return False, None, error_message
