"""Ordered catalog of deal lifecycle statuses.

The position of a status in ``LIFECYCLE_ORDER`` is its step number. Step
numbers only ever move forward through automatic progression; parked
statuses (cancelled, on hold) sit outside the sequence at step 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class DealStatus(StrEnum):
    LEAD = "lead"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    CLAIM_FILED = "claim_filed"
    ADJUSTER_MET = "adjuster_met"
    APPROVED = "approved"
    SIGNED = "signed"
    COLLECT_ACV = "collect_acv"
    COLLECT_DEDUCTIBLE = "collect_deductible"
    MATERIALS_SELECTED = "materials_selected"
    INSTALL_SCHEDULED = "install_scheduled"
    INSTALLED = "installed"
    INVOICE_SENT = "invoice_sent"
    DEPRECIATION_COLLECTED = "depreciation_collected"
    COMPLETE = "complete"
    PAID = "paid"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class Phase(StrEnum):
    SIGN = "sign"
    BUILD = "build"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class StatusDefinition:
    status: DealStatus
    step: int
    phase: Phase
    label: str
    color: str
    description: str
    action_label: str | None = None
    next_status: DealStatus | None = None
    requirements: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_parked(self) -> bool:
        return self.step == 0


LIFECYCLE_ORDER: tuple[DealStatus, ...] = (
    DealStatus.LEAD,
    DealStatus.INSPECTION_SCHEDULED,
    DealStatus.CLAIM_FILED,
    DealStatus.ADJUSTER_MET,
    DealStatus.APPROVED,
    DealStatus.SIGNED,
    DealStatus.COLLECT_ACV,
    DealStatus.COLLECT_DEDUCTIBLE,
    DealStatus.MATERIALS_SELECTED,
    DealStatus.INSTALL_SCHEDULED,
    DealStatus.INSTALLED,
    DealStatus.INVOICE_SENT,
    DealStatus.DEPRECIATION_COLLECTED,
    DealStatus.COMPLETE,
    DealStatus.PAID,
)

# Step of the last status the progression evaluator can reach on its own.
TERMINAL_STEP = LIFECYCLE_ORDER.index(DealStatus.COMPLETE) + 1

_DEFINITIONS: tuple[tuple[DealStatus, Phase, str, str, str, str | None, tuple[str, ...]], ...] = (
    (DealStatus.LEAD, Phase.SIGN, "Lead", "#4A6FA5", "Initial contact made", "Schedule Inspection",
     ("Upload inspection photos or set an inspection date",)),
    (DealStatus.INSPECTION_SCHEDULED, Phase.SIGN, "Inspection Scheduled", "#5C6BC0", "Roof inspection booked",
     "File Claim", ("Fill insurance company and claim number",)),
    (DealStatus.CLAIM_FILED, Phase.SIGN, "Claim Filed", "#7E57C2", "Insurance claim submitted", "Adjuster Met",
     ("Sign agreement or upload insurance agreement",)),
    (DealStatus.ADJUSTER_MET, Phase.SIGN, "Awaiting Approval", "#EC407A", "Waiting on the insurer decision",
     "Mark Approved", ("Select an approving approval type",)),
    (DealStatus.APPROVED, Phase.SIGN, "Approved", "#26A69A", "Claim approved by insurance", "Mark Signed",
     ("Signed agreement on file", "Upload lost statement (required for full approval)")),
    (DealStatus.SIGNED, Phase.SIGN, "Signed", "#66BB6A", "Contract signed with homeowner", "Collect ACV",
     ("Mark ACV check collected or upload the ACV receipt",)),
    (DealStatus.COLLECT_ACV, Phase.BUILD, "Collect ACV", "#FFA726", "First insurance check collected",
     "Collect Deductible", ("Upload the deductible receipt",)),
    (DealStatus.COLLECT_DEDUCTIBLE, Phase.BUILD, "Collect Deductible", "#FF7043", "Homeowner deductible collected",
     "Select Materials", ("Choose material type and color",)),
    (DealStatus.MATERIALS_SELECTED, Phase.BUILD, "Materials Selected", "#A1887F", "Materials chosen for install",
     "Schedule Install", ("Schedule install date",)),
    (DealStatus.INSTALL_SCHEDULED, Phase.BUILD, "Install Scheduled", "#8D6E63", "Install date set",
     "Mark Installed", ("Upload install photos or set completion date",)),
    (DealStatus.INSTALLED, Phase.BUILD, "Installed", "#78909C", "Work completed on site", "Send Invoice",
     ("Generate and send the RCV invoice",)),
    (DealStatus.INVOICE_SENT, Phase.FINALIZING, "RCV Sent", "#5C6BC0", "Invoice sent to the insurer",
     "Collect Depreciation", ("Upload the depreciation receipt",)),
    (DealStatus.DEPRECIATION_COLLECTED, Phase.FINALIZING, "Depreciation Collected", "#26A69A",
     "Depreciation check received", "Mark Complete",
     ("Mark depreciation check collected", "All financial fields and agreement on file")),
    (DealStatus.COMPLETE, Phase.COMPLETE, "Complete", "#2E7D32", "Job complete", None, ("Request payment",)),
    (DealStatus.PAID, Phase.COMPLETE, "Paid", "#1B5E20", "Commission paid out", None, ()),
)


def _build_catalog() -> dict[DealStatus, StatusDefinition]:
    catalog: dict[DealStatus, StatusDefinition] = {}
    for status, phase, label, color, description, action_label, requirements in _DEFINITIONS:
        step = LIFECYCLE_ORDER.index(status) + 1
        next_status = LIFECYCLE_ORDER[step] if action_label and step < TERMINAL_STEP else None
        catalog[status] = StatusDefinition(
            status=status,
            step=step,
            phase=phase,
            label=label,
            color=color,
            description=description,
            action_label=action_label if next_status else None,
            next_status=next_status,
            requirements=requirements,
        )
    catalog[DealStatus.CANCELLED] = StatusDefinition(
        DealStatus.CANCELLED, 0, Phase.OTHER, "Cancelled", "#B71C1C", "Deal cancelled"
    )
    catalog[DealStatus.ON_HOLD] = StatusDefinition(
        DealStatus.ON_HOLD, 0, Phase.OTHER, "On Hold", "#757575", "Deal paused"
    )
    return catalog


class StatusCatalog:
    def __init__(self) -> None:
        self._definitions = _build_catalog()

    def get(self, status: DealStatus | str) -> StatusDefinition:
        try:
            return self._definitions[DealStatus(status)]
        except ValueError:
            raise KeyError(f"unknown deal status: {status}") from None

    def step(self, status: DealStatus | str) -> int:
        return self.get(status).step

    def next_status(self, status: DealStatus | str) -> DealStatus | None:
        return self.get(status).next_status

    def is_parked(self, status: DealStatus | str) -> bool:
        return self.get(status).is_parked

    def ordered(self) -> list[StatusDefinition]:
        return [self._definitions[status] for status in LIFECYCLE_ORDER]

    def phase_statuses(self, phase: Phase | str) -> list[DealStatus]:
        return [item.status for item in self._definitions.values() if item.phase == Phase(phase)]

    def requirements(self, status: DealStatus | str) -> list[str]:
        return list(self.get(status).requirements)

    def progress_percentage(self, status: DealStatus | str) -> int:
        step = self.step(status)
        if step == 0:
            return 0
        return min(100, round(step / TERMINAL_STEP * 100))


status_catalog = StatusCatalog()
