"""Reconciles recovered questions with the exact counts an exam requires."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from app.models.exam_models import (
    MARK_BUCKETS,
    BloomsLevel,
    ExamSpecification,
    QuestionType,
    TypeShare,
)
from app.models.paper_models import DistributionReport
from app.models.question_models import QUESTION_VARIANTS, QuestionBase, retype

logger = logging.getLogger(__name__)

LONG_FORM_TYPE = QuestionType.LONG_ANSWER
FIVE_MARK_TYPES = frozenset({QuestionType.LONG_ANSWER, QuestionType.DRAWING_DIAGRAM})


def compute_quotas(
    shares: Sequence[TypeShare], count: int, marks: int
) -> List[Tuple[QuestionType, int]]:
    """
    Split a bucket's target count across its declared types.

    Every type but the last gets floor(percentage / 100 * count); the last
    declared type takes the remainder so the bucket total is always exact.
    In the 5-mark bucket, types outside the long-form set are folded into
    the long-answer type.

    Args:
        shares: Declared (type, percentage) pairs, in declaration order
        count: Target number of questions in the bucket
        marks: Mark value of the bucket

    Returns:
        Ordered (type, quota) pairs summing to ``count``
    """
    merged: Dict[QuestionType, float] = {}
    for share in shares:
        question_type = share.type
        if marks == 5 and question_type not in FIVE_MARK_TYPES:
            question_type = LONG_FORM_TYPE
        merged[question_type] = merged.get(question_type, 0) + share.percentage

    if not merged:
        return [(LONG_FORM_TYPE if marks == 5 else QuestionType.SHORT_ANSWER, count)]

    quotas: List[Tuple[QuestionType, int]] = []
    assigned = 0
    items = list(merged.items())
    for position, (question_type, percentage) in enumerate(items):
        if position == len(items) - 1:
            quota = count - assigned
        else:
            quota = int(percentage * count // 100)
            assigned += quota
        quotas.append((question_type, quota))
    return quotas


class _BucketPlan:
    """Type slots for one mark bucket, filled in type-assignment order."""

    def __init__(self, marks: int, quotas: List[Tuple[QuestionType, int]]):
        self.marks = marks
        self.quotas: Dict[QuestionType, int] = dict(quotas)
        self.slots: Dict[QuestionType, List[QuestionBase]] = {t: [] for t, _ in quotas}
        self.placed: List[QuestionBase] = []

    @property
    def types(self) -> List[QuestionType]:
        return list(self.slots)

    def deficit(self, question_type: QuestionType) -> int:
        return self.quotas.get(question_type, 0) - len(self.slots.get(question_type, []))

    def next_open_type(self) -> Optional[QuestionType]:
        for question_type in self.slots:
            if self.deficit(question_type) > 0:
                return question_type
        return None

    def place(self, question: QuestionBase) -> None:
        self.slots[question.question_type].append(question)
        self.placed.append(question)

    def last_of_type(self, question_type: QuestionType) -> Optional[QuestionBase]:
        slot = self.slots.get(question_type)
        return slot[-1] if slot else None

    def ordered(self) -> List[QuestionBase]:
        return [question for slot in self.slots.values() for question in slot]


@dataclass
class EnforcementResult:
    questions: List[QuestionBase]
    report: DistributionReport = field(default_factory=DistributionReport)


class DistributionEnforcer:
    """
    Enforces total, per-bucket and per-type counts on candidate questions.

    Shortfalls are never reported to the caller: surplus candidates from
    other buckets are reassigned first, then the last assigned candidate of
    the needed type is duplicated with a numbered suffix.
    """

    duplicate_suffix = " (variant {number})"

    def enforce(
        self, candidates: Sequence[QuestionBase], spec: ExamSpecification
    ) -> EnforcementResult:
        """
        Reconcile candidates with the specification's distribution.

        Args:
            candidates: Recovered questions in generator order
            spec: Exam specification with the target counts

        Returns:
            EnforcementResult with exactly ``spec.total_questions`` questions
            in bucket order (1, 2, 3, 5)
        """
        report = DistributionReport(
            requested_total=spec.total_questions, parsed_count=len(candidates)
        )

        plans: Dict[int, _BucketPlan] = {}
        for marks in MARK_BUCKETS:
            count = spec.mark_distribution.count_for(marks)
            if count > 0:
                plans[marks] = _BucketPlan(
                    marks, compute_quotas(spec.type_shares_for(marks), count, marks)
                )

        pools: Dict[int, List[QuestionBase]] = {marks: [] for marks in MARK_BUCKETS}
        stray: List[QuestionBase] = []
        for candidate in candidates:
            pools.get(candidate.marks, stray).append(candidate)

        # Same-mark candidates: exact type matches first, then the rest retyped.
        for marks, plan in plans.items():
            leftovers: List[QuestionBase] = []
            for candidate in pools[marks]:
                if plan.deficit(candidate.question_type) > 0:
                    plan.place(candidate)
                else:
                    leftovers.append(candidate)

            unused: List[QuestionBase] = []
            for candidate in leftovers:
                open_type = plan.next_open_type()
                if open_type is None:
                    unused.append(candidate)
                    continue
                plan.place(self._convert(candidate, open_type, marks, report))
            pools[marks] = unused

        # Surplus from unknown mark values, then other buckets, fills deficits.
        surplus = stray + [c for marks in MARK_BUCKETS for c in pools[marks]]
        for marks, plan in plans.items():
            for question_type in plan.types:
                while plan.deficit(question_type) > 0 and surplus:
                    index = next(
                        (i for i, c in enumerate(surplus) if c.question_type == question_type),
                        0,
                    )
                    candidate = surplus.pop(index)
                    logger.info(
                        f"Reassigning {candidate.marks}-mark candidate to "
                        f"{marks}-mark {question_type.value}"
                    )
                    plan.place(self._convert(candidate, question_type, marks, report))
                    report.reassigned += 1

        if surplus:
            logger.info(f"Discarding {len(surplus)} surplus candidates")

        # Whatever is still missing is duplicated.
        base_texts: Dict[int, str] = {}
        last_placed: Optional[QuestionBase] = None
        for plan in plans.values():
            if plan.placed:
                last_placed = plan.placed[-1]
                break

        for marks, plan in plans.items():
            for question_type in plan.types:
                missing = plan.deficit(question_type)
                if missing > 0:
                    logger.info(
                        f"Short {missing} {marks}-mark {question_type.value} "
                        f"question(s); duplicating"
                    )
                while plan.deficit(question_type) > 0:
                    source = (
                        plan.last_of_type(question_type)
                        or (plan.placed[-1] if plan.placed else None)
                        or last_placed
                    )
                    number = len(plan.slots[question_type]) + 1
                    if source is None:
                        duplicate = self._placeholder(spec, question_type, marks, number)
                    else:
                        duplicate = self._duplicate(
                            source, question_type, marks, number, base_texts
                        )
                    plan.place(duplicate)
                    report.duplicated += 1
            if plan.placed:
                last_placed = plan.placed[-1]

        questions: List[QuestionBase] = []
        for marks, plan in plans.items():
            ordered = plan.ordered()
            report.per_bucket[marks] = {
                question_type.value: len(slot) for question_type, slot in plan.slots.items()
            }
            questions.extend(ordered)

        report.delivered_total = len(questions)
        logger.info(
            f"Enforced distribution: {report.delivered_total}/{report.requested_total} "
            f"questions (reassigned={report.reassigned}, retyped={report.retyped}, "
            f"duplicated={report.duplicated})"
        )
        return EnforcementResult(questions=questions, report=report)

    @staticmethod
    def _convert(
        candidate: QuestionBase,
        question_type: QuestionType,
        marks: int,
        report: DistributionReport,
    ) -> QuestionBase:
        if candidate.question_type != question_type:
            report.retyped += 1
            return retype(candidate, question_type, marks=marks)
        candidate.marks = marks
        return candidate

    def _duplicate(
        self,
        source: QuestionBase,
        question_type: QuestionType,
        marks: int,
        number: int,
        base_texts: Dict[int, str],
    ) -> QuestionBase:
        base_text = base_texts.get(id(source), source.question_text)
        duplicate = retype(source, question_type, marks=marks)
        duplicate.question_text = base_text + self.duplicate_suffix.format(number=number)
        base_texts[id(duplicate)] = base_text
        return duplicate

    @staticmethod
    def _placeholder(
        spec: ExamSpecification, question_type: QuestionType, marks: int, number: int
    ) -> QuestionBase:
        blooms_level = (
            spec.blooms_distribution[0].level
            if spec.blooms_distribution
            else BloomsLevel.REMEMBER
        )
        return QUESTION_VARIANTS[question_type](
            question_text=f"{spec.subject_name} {marks}-mark question {number}",
            marks=marks,
            blooms_level=blooms_level,
            difficulty=spec.difficulty_level,
            correct_answer="No answer provided",
        )
