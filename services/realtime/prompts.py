"""Prompt helpers for feature extraction and final sign classification."""

from __future__ import annotations

from typing import Iterable, Sequence

from models.session_models import ConversationEntry
from models.sign_models import VocabularyEntry


def context_signs(conversation: Iterable[ConversationEntry]) -> str:
	"""Return the previously detected signs as a comma separated list."""
	return ", ".join(entry.sign for entry in conversation)


def context_text(conversation: Sequence[ConversationEntry], window: int = 5) -> str:
	"""Return the last ``window`` detections as an arrow-joined narrative."""
	recent = list(conversation)[-window:] if window else list(conversation)
	if not recent:
		return "This is the first sign in the conversation."
	return " -> ".join(
		f'{index}. "{entry.sign}" ({round(entry.confidence * 100)}% confidence)'
		for index, entry in enumerate(recent, start=1)
	)


def vocabulary_block(candidates: Iterable[VocabularyEntry]) -> str:
	"""Describe each shortlisted sign for the classification prompt."""
	blocks = []
	for sign in candidates:
		text = (
			f"\n{sign.sign_name.upper()}:\n"
			f"    Description: {sign.description}\n"
			f"    Hand shape: {sign.hand_shape or 'n/a'}\n"
			f"    Location: {sign.location or 'n/a'}\n"
			f"    Motion: {sign.motion or 'n/a'}\n"
			f"    Orientation: {sign.orientation or 'n/a'}"
		)
		if sign.similar_signs:
			text += f"\n  Similar to: {', '.join(sign.similar_signs)}"
			if sign.difference_from_similar:
				text += f"\n  KEY DIFFERENCE: {sign.difference_from_similar}"
		if sign.common_mistakes:
			text += f"\n  Common mistakes: {'; '.join(sign.common_mistakes)}"
		blocks.append(text)
	return "\n---".join(blocks)


def feature_prompt(previous_signs: str) -> str:
	"""Return the Stage A prompt asking for compact hand features."""
	return (
		"You are analyzing ASL frames from a webcam (oldest to newest, the last frame is current).\n\n"
		"Return ONLY valid JSON (no markdown, no backticks).\n"
		"Do NOT guess centimeters. Use HH/SW or normalized coords if you mention magnitude.\n\n"
		"JSON schema:\n"
		"{\n"
		'  "handShapeKeywords": ["..."],\n'
		'  "locationKeywords": ["..."],\n'
		'  "motionKeywords": ["..."],\n'
		'  "candidateLabels": ["..."],\n'
		'  "confidence": 0.0\n'
		"}\n\n"
		"Rules:\n"
		'- handShapeKeywords: short phrases like "fist", "thumb extended", "flat hand"\n'
		'- locationKeywords: short phrases like "chin", "forehead", "center chest"\n'
		'- motionKeywords: short phrases like "circular", "side-to-side wave", "tap"\n'
		"- candidateLabels: 3-5 likely labels based on what you see; if unsure, return []\n"
		"- confidence: 0..1 for your own certainty in these features\n\n"
		f"Conversation context (previous detected signs): {previous_signs or '(none)'}\n"
	)


def classification_prompt(vocabulary_text: str, previous: str) -> str:
	"""Return the Stage C prompt constrained to the shortlisted vocabulary."""
	return (
		"Analyze ASL frames (oldest to newest, last is current).\n\n"
		f"VOCABULARY (choose from these):\n{vocabulary_text}\n\n"
		f"PREVIOUS: {previous}\n\n"
		"Return JSON only (no markdown):\n"
		"{\n"
		'  "detectedSign": "name OR null",\n'
		'  "confidence": 0.85,\n'
		'  "reasoning": "Hand: [shape] at [location]. Motion: [description]. '
		"This is '[SIGN]' because: [why]. Not '[SIMILAR]' because: [difference].\",\n"
		'  "handShape": "...", "handLocation": "...", "handOrientation": "...", "motion": "...",\n'
		'  "correction": null,\n'
		'  "alternativeSigns": [{"sign": "...", "confidence": 0.1, "reason": "..."}]\n'
		"}\n\n"
		"Rules:\n"
		"- Use HH (head-height) / SW (shoulder-width) units\n"
		"- Track motion across frames\n"
		"- Explain differentiation from similar signs\n"
		"- Only detect from vocabulary or null\n"
		"- Be concise but clear"
	)
