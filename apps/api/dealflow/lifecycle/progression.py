"""Derive a deal's lifecycle status from the data collected so far.

``evaluate`` is pure: it looks only at data fields, never at the stored
status or milestone timestamps. ``apply`` layers the only-advance rule on
top of it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, NamedTuple

from dealflow.lifecycle.catalog import LIFECYCLE_ORDER, TERMINAL_STEP, DealStatus, StatusCatalog, status_catalog
from dealflow.lifecycle.milestones import MilestoneRecorder, milestone_recorder


APPROVING_TYPES = frozenset({"full", "partial", "homeowner_pays"})

Snapshot = Mapping[str, Any]
Rule = Callable[[Snapshot], list[str]]


def _filled(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


def _any_filled(snapshot: Snapshot, *fields: str) -> bool:
    return any(_filled(snapshot.get(name)) for name in fields)


def _unmet(snapshot: Snapshot, *fields: str) -> list[str]:
    return [name for name in fields if not _filled(snapshot.get(name))]


def has_agreement(snapshot: Snapshot) -> bool:
    return _any_filled(snapshot, "contract_signed", "insurance_agreement_url", "signature_url")


def has_approval(snapshot: Snapshot) -> bool:
    return snapshot.get("approval_type") in APPROVING_TYPES


def is_invoiced(snapshot: Snapshot) -> bool:
    return _any_filled(snapshot, "invoice_url", "invoice_sent_date")


def _inspection_scheduled(snapshot: Snapshot) -> list[str]:
    return [] if _any_filled(snapshot, "inspection_images", "inspection_date") else ["inspection_images|inspection_date"]


def _claim_filed(snapshot: Snapshot) -> list[str]:
    return _unmet(snapshot, "insurance_company", "claim_number")


def _adjuster_met(snapshot: Snapshot) -> list[str]:
    if has_agreement(snapshot) or _filled(snapshot.get("adjuster_meeting_date")):
        return []
    return ["contract_signed|insurance_agreement_url|signature_url|adjuster_meeting_date"]


def _approved(snapshot: Snapshot) -> list[str]:
    return [] if has_approval(snapshot) else ["approval_type"]


def _signed(snapshot: Snapshot) -> list[str]:
    missing = _approved(snapshot)
    if not has_agreement(snapshot):
        missing.append("contract_signed|insurance_agreement_url|signature_url")
    if snapshot.get("approval_type") == "full":
        missing.extend(_unmet(snapshot, "lost_statement_url"))
    return missing


def _collect_acv(snapshot: Snapshot) -> list[str]:
    return [] if _any_filled(snapshot, "acv_check_collected", "acv_receipt_url") else ["acv_check_collected|acv_receipt_url"]


def _collect_deductible(snapshot: Snapshot) -> list[str]:
    if _any_filled(snapshot, "deductible_receipt_url", "deductible_collected_date"):
        return []
    return ["deductible_receipt_url|deductible_collected_date"]


def _materials_selected(snapshot: Snapshot) -> list[str]:
    return _unmet(snapshot, "material_type", "material_color")


def _install_scheduled(snapshot: Snapshot) -> list[str]:
    return _unmet(snapshot, "install_date")


def _installed(snapshot: Snapshot) -> list[str]:
    return [] if _any_filled(snapshot, "install_images", "completion_date") else ["install_images|completion_date"]


def _invoice_sent(snapshot: Snapshot) -> list[str]:
    return [] if is_invoiced(snapshot) else ["invoice_url|invoice_sent_date"]


def _depreciation_collected(snapshot: Snapshot) -> list[str]:
    return _invoice_sent(snapshot) + _unmet(snapshot, "depreciation_receipt_url")


def _complete(snapshot: Snapshot) -> list[str]:
    missing = _depreciation_collected(snapshot) + _unmet(snapshot, "depreciation_check_collected")
    missing.extend(name for name in ("acv", "depreciation", "deductible") if snapshot.get(name) is None)
    if not has_agreement(snapshot):
        missing.append("contract_signed|insurance_agreement_url|signature_url")
    return missing


RULES: dict[DealStatus, Rule] = {
    DealStatus.LEAD: lambda snapshot: [],
    DealStatus.INSPECTION_SCHEDULED: _inspection_scheduled,
    DealStatus.CLAIM_FILED: _claim_filed,
    DealStatus.ADJUSTER_MET: _adjuster_met,
    DealStatus.APPROVED: _approved,
    DealStatus.SIGNED: _signed,
    DealStatus.COLLECT_ACV: _collect_acv,
    DealStatus.COLLECT_DEDUCTIBLE: _collect_deductible,
    DealStatus.MATERIALS_SELECTED: _materials_selected,
    DealStatus.INSTALL_SCHEDULED: _install_scheduled,
    DealStatus.INSTALLED: _installed,
    DealStatus.INVOICE_SENT: _invoice_sent,
    DealStatus.DEPRECIATION_COLLECTED: _depreciation_collected,
    DealStatus.COMPLETE: _complete,
}


class Progression(NamedTuple):
    status: DealStatus
    timestamp_patch: dict[str, datetime]


class ProgressionEvaluator:
    def __init__(
        self,
        catalog: StatusCatalog = status_catalog,
        milestones: MilestoneRecorder = milestone_recorder,
    ) -> None:
        self.catalog = catalog
        self.milestones = milestones
        self._walk = tuple(reversed(LIFECYCLE_ORDER[:TERMINAL_STEP]))

    def evaluate(self, snapshot: Snapshot) -> DealStatus:
        for status in self._walk:
            if not RULES[status](snapshot):
                return status
        return DealStatus.LEAD

    def missing_requirements(self, snapshot: Snapshot, status: DealStatus | str) -> list[str]:
        rule = RULES.get(DealStatus(status))
        if rule is None:
            return [f"{status} is not reachable from deal data"]
        return rule(snapshot)

    def apply(
        self,
        current_status: DealStatus | str,
        snapshot: Snapshot,
        updates: Snapshot,
        now: datetime,
    ) -> Progression:
        current = DealStatus(current_status)
        merged = {**snapshot, **updates}
        if self.catalog.is_parked(current):
            return Progression(current, {})

        evaluated = self.evaluate(merged)
        if self.catalog.step(evaluated) <= self.catalog.step(current):
            return Progression(current, {})
        return Progression(evaluated, self.milestones.stamp(merged, evaluated, now))


progression_evaluator = ProgressionEvaluator()
