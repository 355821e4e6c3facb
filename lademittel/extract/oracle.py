"""
Extraction oracle: prompt building, vision call, JSON parsing and retry.

Every call goes through ``_call``: the client is asked, the answer parsed,
and any OracleFailure (transport error or unparseable text) is retried with
exponential backoff. When the attempts are used up the last failure is
re-raised with the attempt count.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from lademittel.config import Settings, get_settings
from lademittel.errors import OracleFailure
from lademittel.extract.adapters import (
    adapt_group_response,
    adapt_page,
    adapt_settlement_response,
    normalize_document_type,
)
from lademittel.extract.parse import parse_json_response
from lademittel.extract.prompts import (
    CLASSIFICATION_PROMPT,
    GROUP_PROMPT,
    PAGE_PROMPTS,
    build_settlement_prompt,
)
from lademittel.extract.schema import ClassificationResponse
from lademittel.ledger.model import DocumentType, SourceExtraction
from lademittel.ledger.settlement import SettlementRecord
from lademittel.llm.vision_client import VisionClient

logger = logging.getLogger(__name__)


@dataclass
class PageClassification:
    page_number: int
    document_type: DocumentType
    response: ClassificationResponse


@dataclass
class ExtractionOracle:
    client: VisionClient
    max_attempts: int = 3
    backoff_s: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_settings(cls, client: VisionClient, settings: Optional[Settings] = None) -> "ExtractionOracle":
        cfg = settings or get_settings()
        return cls(client=client, max_attempts=cfg.oracle_max_attempts, backoff_s=cfg.oracle_backoff_s)

    def _call(self, prompt: str, images: Sequence[str], what: str) -> Any:
        last: Optional[OracleFailure] = None
        for attempt in range(self.max_attempts):
            try:
                raw = self.client.generate_raw(prompt, images=images)
                return parse_json_response(raw)
            except OracleFailure as e:
                last = e
                logger.warning("%s: attempt %d/%d failed: %s", what, attempt + 1, self.max_attempts, e)
                if attempt < self.max_attempts - 1:
                    self.sleep(self.backoff_s * 2**attempt)
        raise OracleFailure(f"{what}: {last}", attempts=self.max_attempts) from last

    def classify(self, image: str, *, page_number: int) -> PageClassification:
        data = self._call(CLASSIFICATION_PROMPT, [image], f"classify page {page_number}")
        if not isinstance(data, dict):
            data = {}
        response = ClassificationResponse.model_validate(data)
        return PageClassification(
            page_number=page_number,
            document_type=normalize_document_type(response.document_type),
            response=response,
        )

    def extract_page(self, image: str, *, page_number: int) -> SourceExtraction:
        """Classify one page, then run the extraction prompt for its document type."""
        pc = self.classify(image, page_number=page_number)
        prompt = PAGE_PROMPTS.get(pc.document_type)
        if prompt is None:
            return adapt_page("unknown", {}, pc.response, page_number=page_number)
        data = self._call(prompt, [image], f"extract page {page_number} ({pc.document_type})")
        if not isinstance(data, dict):
            raise OracleFailure(f"extract page {page_number}: expected a JSON object")
        return adapt_page(pc.document_type, data, pc.response, page_number=page_number)

    def extract_group(self, images: Sequence[str], *, first_page: int = 1) -> List[SourceExtraction]:
        """Single pass over all pages of a document group."""
        data = self._call(GROUP_PROMPT, images, f"extract group ({len(images)} pages)")
        return adapt_group_response(data, page_number=first_page)

    def extract_settlements(
        self, images: Sequence[str], *, first_page: int = 1
    ) -> Tuple[List[PageClassification], List[SettlementRecord]]:
        """
        Two passes: classify every page, then settle per pallet type over the
        pages that are not unknown, with the classifications as context.
        """
        classifications = [
            self.classify(image, page_number=first_page + i) for i, image in enumerate(images)
        ]
        relevant = [
            (pc, image)
            for pc, image in zip(classifications, images)
            if pc.document_type != "unknown"
        ]
        if not relevant:
            raise OracleFailure("no relevant pages to settle")
        context = "\n".join(
            f"Page {pc.page_number}: {pc.document_type} "
            f"(confidence {pc.response.confidence:.2f}; "
            f"references: {', '.join(pc.response.identifiers.order_numbers) or '-'})"
            for pc, _ in relevant
        )
        data = self._call(
            build_settlement_prompt(context),
            [image for _, image in relevant],
            f"settle {len(relevant)} pages",
        )
        return classifications, adapt_settlement_response(data)
