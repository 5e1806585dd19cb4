from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from ai_proposal import Proposal
from estimate_engine import SelectionState
from pricing_catalog import PricingCatalog


def format_jpy(amount: int) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}¥{abs(int(amount)):,}"


@dataclass(frozen=True)
class EstimationRecord:
    state: SelectionState
    total_jpy: int
    proposal: Optional[Proposal] = None
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordId": self.record_id,
            "state": self.state.to_dict(),
            "totalPrice": self.total_jpy,
            "proposal": self.proposal.to_dict() if self.proposal is not None else None,
        }


def build_estimation_record(
    state: SelectionState, total_jpy: int, proposal: Optional[Proposal]
) -> EstimationRecord:
    return EstimationRecord(state=state, total_jpy=total_jpy, proposal=proposal)


CONTACT_MESSAGE_TEMPLATE = """以下の見積もり結果について相談したいです。

【見積もり概要】
・開発タイプ: {category}
・規模感: {scale}
・デザイン素材: {design}
・機能: {features}
・保守サポート: {maintenance}
・概算費用: {total}~

【相談詳細】
(ここに具体的な相談内容を記載してください)
"""


def render_contact_message(record: EstimationRecord, catalog: PricingCatalog) -> str:
    state = record.state
    features = ", ".join(catalog.feature_labels(state.selected_features))
    return CONTACT_MESSAGE_TEMPLATE.format(
        category=catalog.category_label(state.category),
        scale=catalog.scale_label(state.scale),
        design="支給あり" if state.design_provided else "制作希望",
        features=features or "特になし",
        maintenance="希望する" if state.wants_maintenance else "希望しない",
        total=format_jpy(record.total_jpy),
    )


@dataclass
class ContactDraft:
    """
    Contact form fields.

    A newly received record always rewrites `message`, including over anything the
    visitor typed; the same record arriving again leaves the message alone.
    """

    company: str = ""
    name: str = ""
    email: str = ""
    message: str = ""
    applied_record_id: Optional[str] = None
    submitted: bool = False

    def apply_record(self, record: Optional[EstimationRecord], catalog: PricingCatalog) -> bool:
        if record is None or record.record_id == self.applied_record_id:
            return False
        self.message = render_contact_message(record, catalog)
        self.applied_record_id = record.record_id
        self.submitted = False
        return True

    def submit(self) -> None:
        # No backend: submission only flips the local confirmation flag.
        self.submitted = True
