from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, Union

from lademittel.llm.vision_client import VisionClient

Canned = Union[str, Exception]


@dataclass
class MockVisionClient(VisionClient):
    """
    Canned answers for offline runs and tests.

    ``queue`` is consumed first, in call order. Then the first ``responses``
    key found in the prompt picks the answer. An Exception value is raised
    instead of returned. Every call is recorded in ``calls``.
    """

    responses: Dict[str, Canned] = field(default_factory=dict)
    queue: List[Canned] = field(default_factory=list)
    default: str = "{}"
    calls: List[Tuple[str, int]] = field(default_factory=list)

    def generate_raw(self, prompt: str, *, images: Sequence[str] = ()) -> str:
        self.calls.append((prompt, len(images)))
        if self.queue:
            answer = self.queue.pop(0)
        else:
            answer = next((v for k, v in self.responses.items() if k in prompt), self.default)
        if isinstance(answer, Exception):
            raise answer
        return answer
