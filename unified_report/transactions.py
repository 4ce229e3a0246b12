"""
Transaction reconstruction from a flat JMeter sample log.

JMeter writes a transaction controller's summary row next to the sampler rows
that ran inside it, with no parent/child link other than log proximity and
the count declared in the controller's response message
(``Number of samples in transaction : N``). The scanner walks the samples once
and claims at most N following request rows for each controller row.

The scan state is an immutable ``ScanState`` value; ``advance`` computes the
next state for one sample so the machine can be tested without any file I/O.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from .models import SampleRecord, TransactionGroup


@dataclass(frozen=True)
class ScanState:
    transaction_name: Optional[str] = None
    execution_index: int = -1
    expected_count: int = 0
    collected_count: int = 0

    @property
    def capturing(self) -> bool:
        return self.transaction_name is not None

    @property
    def exhausted(self) -> bool:
        return self.collected_count >= self.expected_count


IDLE = ScanState()


def advance(state: ScanState, sample: SampleRecord, groups: Dict[str, TransactionGroup]) -> ScanState:
    """Apply one sample to ``groups`` and return the next scan state."""
    if sample.is_controller:
        group = groups.get(sample.label)
        if group is None:
            group = TransactionGroup(name=sample.label)
            groups[sample.label] = group
        execution = group.add_execution(sample)
        return ScanState(
            transaction_name=sample.label,
            execution_index=execution.index,
            expected_count=execution.expected_count,
            collected_count=0,
        )

    if not state.capturing:
        return state

    # quota filled: the window closes before this row is looked at
    if state.exhausted:
        return IDLE

    if sample.is_request:
        groups[state.transaction_name].capture_child(state.execution_index, sample)
        return replace(state, collected_count=state.collected_count + 1)

    return state


class TransactionScanner:
    """Feeds samples through ``advance`` and owns the resulting groups."""

    def __init__(self):
        self.groups: Dict[str, TransactionGroup] = {}
        self.controllers: List[SampleRecord] = []
        self.state = IDLE

    def feed(self, sample: SampleRecord) -> None:
        if sample.is_controller:
            self.controllers.append(sample)
        self.state = advance(self.state, sample, self.groups)

    def finish(self) -> Dict[str, TransactionGroup]:
        for group in self.groups.values():
            group.finalize()
        self.state = IDLE
        return self.groups


def reconstruct_transactions(samples: Iterable[SampleRecord]) -> Dict[str, TransactionGroup]:
    scanner = TransactionScanner()
    for sample in samples:
        scanner.feed(sample)
    return scanner.finish()
