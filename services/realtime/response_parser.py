"""Helpers to extract structured data from Responses API output and model text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from models.sign_models import AlternativeSign, ClassificationResult, ShortlistFeatures
from services.realtime.errors import ResponseParseError

LOGGER = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_ANY = re.compile(r"```\s*")
_NULL_SIGNS = {"null", "none", ""}
REQUIRED_FIELDS = ("detectedSign", "confidence", "reasoning")


def extract_text(response: Any) -> str:
	"""Extract the first output_text entry from the response."""
	for item in getattr(response, "output", None) or []:
		if getattr(item, "type", None) != "message":
			continue
		for content in getattr(item, "content", None) or []:
			content_type = content.get("type") if isinstance(content, dict) else getattr(content, "type", None)
			if content_type != "output_text":
				continue
			if isinstance(content, dict):
				return content.get("text", "")
			return getattr(content, "text", "") or ""
	return getattr(response, "output_text", "") or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
	"""Return token usage if present."""
	usage = getattr(response, "usage", None)
	return {
		"input_tokens": getattr(usage, "input_tokens", None) if usage else None,
		"output_tokens": getattr(usage, "output_tokens", None) if usage else None,
	}


def strip_code_fences(text: str) -> str:
	"""Remove markdown code fences and surrounding whitespace."""
	cleaned = _FENCE_OPEN.sub("", (text or "").strip())
	return _FENCE_ANY.sub("", cleaned).strip()


def extract_first_json_object(text: str) -> str:
	"""Return the first balanced ``{...}`` block in ``text``.

	Braces inside string literals (including escaped quotes) are ignored, so
	prose before or after the object does not matter.
	"""
	source = strip_code_fences(text)
	start = source.find("{")
	if start == -1:
		raise ResponseParseError("No JSON object start '{' found in model response.", text)

	depth = 0
	in_string = False
	escaped = False
	for index in range(start, len(source)):
		char = source[index]
		if in_string:
			if escaped:
				escaped = False
			elif char == "\\":
				escaped = True
			elif char == '"':
				in_string = False
			continue
		if char == '"':
			in_string = True
		elif char == "{":
			depth += 1
		elif char == "}":
			depth -= 1
			if depth == 0:
				return source[start : index + 1]
	raise ResponseParseError("Unterminated JSON object in model response.", text)


def load_json_object(text: str) -> Dict[str, Any]:
	"""Parse the first JSON object in ``text`` or raise ResponseParseError."""
	block = extract_first_json_object(text)
	try:
		data = json.loads(block)
	except json.JSONDecodeError as exc:
		LOGGER.error("JSON parse failed. Raw model output: %s", text)
		raise ResponseParseError(f"Model returned invalid JSON: {exc}", text) from exc
	if not isinstance(data, dict):
		raise ResponseParseError("Model JSON is not an object.", text)
	return data


def _string_list(value: Any) -> List[str]:
	if not isinstance(value, list):
		return []
	return [str(item) for item in value if item is not None]


def _number(value: Any, default: float = 0.0) -> float:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return default
	return float(value)


def parse_features(text: str) -> ShortlistFeatures:
	"""Parse Stage A output, normalizing missing or malformed fields."""
	data = load_json_object(text)
	return ShortlistFeatures(
		hand_shape_keywords=_string_list(data.get("handShapeKeywords")),
		location_keywords=_string_list(data.get("locationKeywords")),
		motion_keywords=_string_list(data.get("motionKeywords")),
		candidate_labels=_string_list(data.get("candidateLabels")),
		confidence=_number(data.get("confidence")),
	)


def _normalize_sign(value: Any) -> Optional[str]:
	if value is None:
		return None
	sign = str(value).strip().lower()
	return None if sign in _NULL_SIGNS else sign


def _alternatives(value: Any) -> List[AlternativeSign]:
	if not isinstance(value, list):
		return []
	rows = []
	for item in value:
		if not isinstance(item, dict) or not item.get("sign"):
			continue
		rows.append(
			AlternativeSign(
				sign=str(item["sign"]),
				confidence=_number(item.get("confidence")),
				reason=str(item.get("reason") or ""),
			)
		)
	return rows


def _text(data: Dict[str, Any], key: str) -> str:
	value = data.get(key)
	return "" if value is None else str(value)


def parse_classification(text: str, candidates: Sequence[str]) -> ClassificationResult:
	"""Parse Stage C output into a ClassificationResult.

	The required fields must be present; a missing one is a hard failure.
	A detected sign outside ``candidates`` is also rejected.
	"""
	data = load_json_object(text)
	missing = [name for name in REQUIRED_FIELDS if name not in data]
	if missing:
		LOGGER.error("Classification output missing %s. Raw: %s", ", ".join(missing), text)
		raise ResponseParseError(f"Missing required field: {missing[0]}", text)

	sign = _normalize_sign(data.get("detectedSign"))
	allowed = {name.lower() for name in candidates}
	if sign is not None and sign not in allowed:
		LOGGER.error("Model answered %r outside the shortlist %s", sign, list(candidates))
		raise ResponseParseError(f"Detected sign '{sign}' is not in the shortlist.", text)

	correction = data.get("correction")
	return ClassificationResult(
		detected_sign=sign,
		confidence=min(max(_number(data.get("confidence")), 0.0), 1.0),
		reasoning=_text(data, "reasoning"),
		hand_shape=_text(data, "handShape"),
		hand_location=_text(data, "handLocation"),
		hand_orientation=_text(data, "handOrientation"),
		motion=_text(data, "motion"),
		spatial_analysis=_text(data, "spatialAnalysis"),
		temporal_analysis=_text(data, "temporalAnalysis"),
		context_relevance=_text(data, "contextRelevance"),
		correction=str(correction) if correction else None,
		alternative_signs=_alternatives(data.get("alternativeSigns")),
		differentiation_notes=_text(data, "differentiationNotes"),
		candidates=list(candidates),
	)
