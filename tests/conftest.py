import json
from types import SimpleNamespace
from typing import Any, List, Tuple

import pytest

from models.sign_models import VocabularyEntry

STAGE_A_HELLO = json.dumps(
    {
        "handShapeKeywords": ["open palm"],
        "locationKeywords": ["head level"],
        "motionKeywords": ["side to side wave"],
        "candidateLabels": ["hello"],
        "confidence": 0.8,
    }
)
STAGE_C_HELLO = 'Sure!\n```json\n{"detectedSign": "hello", "confidence": 0.9, "reasoning": "Open palm waving at head level."}\n```'


class FakeResponses:
    def __init__(self, model: "ScriptedModel", api_key: str) -> None:
        self._model = model
        self._api_key = api_key

    async def create(self, **kwargs: Any) -> Any:
        self._model.calls.append((self._api_key, kwargs))
        if not self._model.script:
            raise AssertionError("Unexpected model call")
        item = self._model.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return SimpleNamespace(output=[], output_text=item, usage=None)


class FakeOpenAI:
    def __init__(self, model: "ScriptedModel", api_key: str) -> None:
        self.api_key = api_key
        self.responses = FakeResponses(model, api_key)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class ScriptedModel:
    """Stand-in for AsyncOpenAI that replays queued replies or exceptions."""

    def __init__(self, *script: Any) -> None:
        self.script: List[Any] = list(script)
        self.calls: List[Tuple[str, dict]] = []
        self.created: List[str] = []

    def factory(self, api_key: str) -> FakeOpenAI:
        self.created.append(api_key)
        return FakeOpenAI(self, api_key)

    @property
    def keys_used(self) -> List[str]:
        return [key for key, _ in self.calls]


@pytest.fixture
def scripted():
    return ScriptedModel


@pytest.fixture
def vocabulary():
    return [
        VocabularyEntry(
            sign_name="hello",
            description="Open hand with palm facing out, wave side to side at head level",
            hand_shape="open palm, fingers together",
            location="head level, near temple",
            motion="side to side wave",
            orientation="palm facing forward",
            similar_signs=("goodbye",),
        ),
        VocabularyEntry(
            sign_name="goodbye",
            description="Open hand, fingers fold down and up",
            hand_shape="open palm",
            location="head level or higher",
            motion="fingers bend down to palm and back up",
            orientation="palm facing forward",
            similar_signs=("hello",),
        ),
        VocabularyEntry(
            sign_name="mother",
            description="Thumb touches chin, fingers pointing up",
            hand_shape="all 5 fingers extended",
            location="chin",
            motion="static, thumb taps chin twice",
        ),
    ]
