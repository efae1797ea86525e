"""Compiles an exam specification into a single generator instruction."""

from typing import List, Optional

from app.config import GeneratorConfig
from app.models.diagram_models import DiagramPool
from app.models.exam_models import MARK_BUCKETS, ExamSpecification, QuestionType

QUESTION_TYPE_NAMES = {
    QuestionType.CHOOSE_BEST_ANSWER: "Choose the best answer",
    QuestionType.FILL_BLANKS: "Fill in the blanks",
    QuestionType.ONE_WORD_ANSWER: "One word answer",
    QuestionType.TRUE_FALSE: "True or False",
    QuestionType.CHOOSE_MULTIPLE_ANSWERS: "Choose multiple answers",
    QuestionType.MATCHING_PAIRS: "Matching pairs",
    QuestionType.DRAWING_DIAGRAM: "Drawing/Diagram",
    QuestionType.MARKING_PARTS: "Marking parts",
    QuestionType.SHORT_ANSWER: "Short answer",
    QuestionType.LONG_ANSWER: "Long answer",
}

SYSTEM_PROMPT = (
    "You are an expert educational content creator specializing in creating "
    "high-quality academic questions based on Bloom's Taxonomy. Generate "
    "questions that are pedagogically sound, age-appropriate, and aligned "
    "with educational standards. Respond with a JSON array only."
)

OUTPUT_FORMAT = """**OUTPUT FORMAT:**
Return a JSON array of questions with the following structure:
[
  {
    "questionText": "The complete question text",
    "questionType": "QUESTION_TYPE",
    "marks": number,
    "bloomsLevel": "BLOOMS_LEVEL",
    "difficulty": "DIFFICULTY_LEVEL",
    "isTwisted": boolean,
    "options": ["option1", "option2", "option3", "option4"],
    "correctAnswer": "correct answer",
    "explanation": "explanation of the answer",
    "matchingPairs": [{"left": "item1", "right": "item2"}],
    "multipleCorrectAnswers": ["answer1", "answer2"],
    "drawingInstructions": "instructions for drawing",
    "markingInstructions": "instructions for marking",
    "visualAids": ["description of any diagram the question needs"],
    "tags": ["tag1", "tag2"]
  }
]"""

MAX_EXEMPLARS = 5

# Rough output size of one question record, used to warn the generator
# when the paper may not fit into the configured output length.
TOKENS_PER_QUESTION = 150


class RequestCompiler:
    """Formats specifications into opaque instruction text."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """
        Initialize request compiler.

        Args:
            config: Generator configuration (provider-specific formatting)
        """
        self.config = config or GeneratorConfig()

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def compile(
        self,
        spec: ExamSpecification,
        exemplars: Optional[List[str]] = None,
        diagram_pool: Optional[DiagramPool] = None,
    ) -> str:
        """
        Render the instruction payload for one question paper.

        Args:
            spec: Exam specification
            exemplars: Prior exemplar questions used as style references
            diagram_pool: Pool diagrams to describe as hints

        Returns:
            Instruction text for the generator
        """
        sections = [
            "You are an expert educational content creator specializing in creating "
            "comprehensive question papers based on Bloom's Taxonomy. Generate a "
            "complete question paper with the following specifications:",
            self._exam_details(spec),
            self._mark_distribution(spec),
            self._blooms_distribution(spec),
            self._type_distribution(spec),
            f"**DIFFICULTY LEVEL:** {spec.difficulty_level.value}\n"
            f"**TWISTED QUESTIONS:** {spec.twisted_questions_percentage:g}% of questions "
            "should be twisted/challenging",
        ]

        reference = self._reference_material(spec)
        if reference:
            sections.append(reference)
        if exemplars:
            sections.append(self._exemplars(exemplars))
        if diagram_pool is not None and not diagram_pool.is_empty:
            sections.append(self._diagram_hints(diagram_pool))
        if spec.custom_instructions:
            sections.append(f"**CUSTOM INSTRUCTIONS:**\n{spec.custom_instructions.strip()}")

        sections.append(self._requirements(spec))
        if spec.total_questions * TOKENS_PER_QUESTION > self.config.max_tokens:
            sections.append(
                "**LENGTH LIMIT:** Keep every explanation to one short sentence and "
                "omit empty fields so the complete array fits in the response."
            )
        sections.append(OUTPUT_FORMAT)
        sections.append("Generate the question paper now:")
        return "\n\n".join(sections)

    @staticmethod
    def _exam_details(spec: ExamSpecification) -> str:
        lines = [
            "**EXAM DETAILS:**",
            f"- Subject: {spec.subject_name}",
        ]
        if spec.class_name:
            lines.append(f"- Class: {spec.class_name}")
        lines += [
            f"- Exam Title: {spec.exam_title}",
            f"- Total Questions: {spec.total_questions}",
            f"- Total Marks: {spec.total_marks}",
            f"- Language: {spec.language.value}",
        ]
        return "\n".join(lines)

    @staticmethod
    def _mark_distribution(spec: ExamSpecification) -> str:
        counts = ", ".join(
            f"{marks}-mark questions: {spec.mark_distribution.count_for(marks)}"
            for marks in MARK_BUCKETS
        )
        return f"**MARK DISTRIBUTION:**\n{counts}"

    @staticmethod
    def _blooms_distribution(spec: ExamSpecification) -> str:
        if not spec.blooms_distribution:
            return "**BLOOM'S TAXONOMY DISTRIBUTION:**\nBalanced across levels"
        text = ", ".join(
            f"{share.level.value}: {share.percentage:g}%" for share in spec.blooms_distribution
        )
        return f"**BLOOM'S TAXONOMY DISTRIBUTION:**\n{text}"

    @staticmethod
    def _type_distribution(spec: ExamSpecification) -> str:
        lines = ["**QUESTION TYPE DISTRIBUTION (per mark bucket):**"]
        for marks in MARK_BUCKETS:
            if spec.mark_distribution.count_for(marks) == 0:
                continue
            shares = ", ".join(
                f"{QUESTION_TYPE_NAMES[share.type]} ({share.type.value}): {share.percentage:g}%"
                for share in spec.type_shares_for(marks)
            )
            lines.append(f"- {marks}-mark: {shares}")
        return "\n".join(lines)

    @staticmethod
    def _reference_material(spec: ExamSpecification) -> str:
        reference = spec.reference_material
        if reference is None:
            return ""
        lines = ["**REFERENCE BOOK INFORMATION:**", f"- Book Name: {reference.name}"]
        if reference.file_size is not None:
            lines.append(f"- File Size: {reference.file_size / 1024 / 1024:.2f} MB")
        if reference.uploaded_at is not None:
            lines.append(f"- Uploaded: {reference.uploaded_at.isoformat()}")
        lines.append("- Note: Use this book as the primary source for generating questions.")
        return "\n".join(lines)

    @staticmethod
    def _exemplars(exemplars: List[str]) -> str:
        lines = ["**SIMILAR EXAM QUESTIONS FOR REFERENCE:**"]
        for i, exemplar in enumerate(exemplars[:MAX_EXEMPLARS], 1):
            lines.append(f"{i}. {exemplar.strip()}")
        return "\n".join(lines)

    @staticmethod
    def _diagram_hints(pool: DiagramPool) -> str:
        lines = [
            "**DIAGRAMS AND GRAPHS FOUND IN PATTERN:**",
            f"Total diagrams found: {len(pool)}",
        ]
        for index, entry in enumerate(pool.entries, 1):
            lines.append(f"Diagram {index}:")
            lines.append(f"- Type: {entry.category.value}")
            if entry.description:
                lines.append(f"- Description: {entry.description}")
            if entry.location:
                lines.append(f"- Location: {entry.location}")
        lines.append(
            "Generate questions that use similar diagrams and describe each "
            "required diagram in the 'visualAids' field."
        )
        return "\n".join(lines)

    @staticmethod
    def _requirements(spec: ExamSpecification) -> str:
        return "\n".join(
            [
                "**REQUIREMENTS:**",
                f"1. Generate exactly {spec.total_questions} questions",
                "2. Follow the mark distribution precisely",
                "3. Distribute questions according to Bloom's taxonomy percentages",
                "4. Follow the question type percentages within each mark bucket",
                "5. 5-mark questions must be long-form answers without options",
                f"6. Include {spec.twisted_questions_percentage:g}% twisted/challenging questions",
                "7. Provide correct answers and explanations",
                "8. For matching pairs, provide clear left and right items",
                "9. For drawing and marking questions, provide clear instructions",
                "10. Use questionType values exactly as listed, never Bloom's levels",
            ]
        )
