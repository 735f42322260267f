from studio_scheduling.scheduling.availability import AvailabilityExpander, weekday_index
from studio_scheduling.scheduling.booking_flow import BookingFlow, FlowState, FlowTrigger
from studio_scheduling.scheduling.conflicts import ConflictDetector
from studio_scheduling.scheduling.ledger import EntitlementLedger
from studio_scheduling.scheduling.orchestrator import BookingOrchestrator
from studio_scheduling.scheduling.policies import PolicyPipeline
from studio_scheduling.scheduling.trainer_schedule import TrainerSchedule

__all__ = [
    "AvailabilityExpander",
    "weekday_index",
    "BookingFlow",
    "FlowState",
    "FlowTrigger",
    "ConflictDetector",
    "EntitlementLedger",
    "BookingOrchestrator",
    "PolicyPipeline",
    "TrainerSchedule",
]
