"""Domain models for sign vocabulary, shortlist features and classifications."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class VocabularyEntry:
	"""One sign the classifier is allowed to answer with."""

	sign_name: str
	description: str
	hand_shape: Optional[str] = None
	location: Optional[str] = None
	motion: Optional[str] = None
	orientation: Optional[str] = None
	similar_signs: tuple = ()
	difference_from_similar: Optional[str] = None
	common_mistakes: tuple = ()
	is_phrase: bool = False

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "VocabularyEntry":
		"""Build an entry from a camelCase or snake_case mapping."""

		def pick(*keys: str) -> Any:
			for key in keys:
				if data.get(key) is not None:
					return data[key]
			return None

		name = (pick("signName", "sign_name") or "").strip().lower()
		if not name:
			raise ValueError("Vocabulary entry requires a sign name.")
		return cls(
			sign_name=name,
			description=pick("description") or "",
			hand_shape=pick("handShape", "hand_shape"),
			location=pick("location"),
			motion=pick("motion"),
			orientation=pick("orientation"),
			similar_signs=tuple(pick("similarSigns", "similar_signs") or ()),
			difference_from_similar=pick("differenceFromSimilar", "difference_from_similar"),
			common_mistakes=tuple(pick("commonMistakes", "common_mistakes") or ()),
			is_phrase=bool(pick("isPhrase", "is_phrase") or False),
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"signName": self.sign_name,
			"description": self.description,
			"handShape": self.hand_shape,
			"location": self.location,
			"motion": self.motion,
			"orientation": self.orientation,
			"similarSigns": list(self.similar_signs),
			"differenceFromSimilar": self.difference_from_similar,
			"commonMistakes": list(self.common_mistakes),
			"isPhrase": self.is_phrase,
		}


@dataclass
class ShortlistFeatures:
	"""Compact Stage A features used to narrow the vocabulary."""

	hand_shape_keywords: List[str] = field(default_factory=list)
	location_keywords: List[str] = field(default_factory=list)
	motion_keywords: List[str] = field(default_factory=list)
	candidate_labels: List[str] = field(default_factory=list)
	confidence: float = 0.0

	def to_dict(self) -> Dict[str, Any]:
		return {
			"handShapeKeywords": list(self.hand_shape_keywords),
			"locationKeywords": list(self.location_keywords),
			"motionKeywords": list(self.motion_keywords),
			"candidateLabels": list(self.candidate_labels),
			"confidence": self.confidence,
		}


@dataclass
class AlternativeSign:
	sign: str
	confidence: float = 0.0
	reason: str = ""


@dataclass
class ClassificationResult:
	"""Final Stage C answer, annotated with the shortlist that was offered."""

	detected_sign: Optional[str]
	confidence: float
	reasoning: str
	hand_shape: str = ""
	hand_location: str = ""
	hand_orientation: str = ""
	motion: str = ""
	spatial_analysis: str = ""
	temporal_analysis: str = ""
	context_relevance: str = ""
	correction: Optional[str] = None
	alternative_signs: List[AlternativeSign] = field(default_factory=list)
	differentiation_notes: str = ""
	candidates: List[str] = field(default_factory=list)
	stage_a: Optional[ShortlistFeatures] = None

	@property
	def text(self) -> str:
		"""Label shown to the user; empty when nothing was detected."""
		return self.detected_sign or ""

	def to_dict(self) -> Dict[str, Any]:
		return {
			"detectedSign": self.detected_sign,
			"confidence": self.confidence,
			"reasoning": self.reasoning,
			"handShape": self.hand_shape,
			"handLocation": self.hand_location,
			"handOrientation": self.hand_orientation,
			"motion": self.motion,
			"spatialAnalysis": self.spatial_analysis,
			"temporalAnalysis": self.temporal_analysis,
			"contextRelevance": self.context_relevance,
			"correction": self.correction,
			"alternativeSigns": [asdict(alt) for alt in self.alternative_signs],
			"differentiationNotes": self.differentiation_notes,
			"candidates": list(self.candidates),
			"stageA": self.stage_a.to_dict() if self.stage_a else None,
		}
