"""End-to-end composition of a question paper from a specification."""

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional

from app.config import GeneratorConfig, settings
from app.models.diagram_models import DiagramPool
from app.models.exam_models import ExamSpecification
from app.models.paper_models import FinalizedQuestionSet
from app.models.question_models import ReadyDiagram
from app.services.diagram_assignment import DiagramAssigner
from app.services.diagram_generator import DiagramGenerator, PlaceholderDiagramGenerator
from app.services.distribution_enforcer import DistributionEnforcer
from app.services.generator_client import GeneratorClient
from app.services.recovery_parser import RecoveryParser
from app.services.request_compiler import RequestCompiler
from app.utils.image_utils import RasterConverter

logger = logging.getLogger(__name__)


class QuestionPaperPipeline:
    """
    Runs compile, generate, parse, enforce and diagram assignment in order.

    Every collaborator can be injected; the defaults are built from the
    given generator configuration and the application settings.
    """

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        compiler: Optional[RequestCompiler] = None,
        client: Optional[GeneratorClient] = None,
        parser: Optional[RecoveryParser] = None,
        enforcer: Optional[DistributionEnforcer] = None,
        diagram_generator: Optional[DiagramGenerator] = None,
        converter: Optional[RasterConverter] = None,
        output_dir: Optional[Path] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Generator configuration (defaults to application settings)
            compiler: Request compiler
            client: Generator client
            parser: Recovery parser
            enforcer: Distribution enforcer
            diagram_generator: Fallback diagram producer
            converter: Raster converter for diagram images
            output_dir: Directory for converted and generated diagrams
        """
        self.config = config or GeneratorConfig.from_settings(settings)
        output_dir = Path(output_dir or settings.diagram_output_dir)

        self.compiler = compiler or RequestCompiler(self.config)
        self.client = client or GeneratorClient(self.config)
        self.parser = parser or RecoveryParser(settings.parse_excerpt_chars)
        self.enforcer = enforcer or DistributionEnforcer()
        self.diagram_generator = diagram_generator or PlaceholderDiagramGenerator(output_dir)
        self.converter = converter or RasterConverter(output_dir)

    async def compose(
        self,
        spec: ExamSpecification,
        exemplars: Optional[List[str]] = None,
        diagram_pool: Optional[DiagramPool] = None,
    ) -> FinalizedQuestionSet:
        """
        Compose a finalized question set for one specification.

        Args:
            spec: Exam specification
            exemplars: Prior exemplar questions used as style references
            diagram_pool: Reusable diagrams (loaded from
                ``spec.diagram_pool_path`` when not given)

        Returns:
            FinalizedQuestionSet with exactly ``spec.total_questions`` questions

        Raises:
            NoStructuredDataFound: If the generator output has no array
            UnparsableGeneratorOutput: If the array cannot be repaired
            EmptyGeneratorResponse: If the generator returned nothing
        """
        start_time = time.time()

        if diagram_pool is None and spec.diagram_pool_path:
            diagram_pool = await asyncio.to_thread(
                DiagramPool.from_manifest, Path(spec.diagram_pool_path)
            )

        payload = self.compiler.compile(spec, exemplars=exemplars, diagram_pool=diagram_pool)
        raw = await self.client.generate(
            payload, spec=spec, system_prompt=self.compiler.system_prompt
        )
        candidates = self.parser.parse(raw, default_difficulty=spec.difficulty_level)
        result = self.enforcer.enforce(candidates, spec)

        assigner = DiagramAssigner(
            self.converter, pool=diagram_pool, generator=self.diagram_generator
        )
        await assigner.assign(result.questions)

        report = result.report
        for question in result.questions:
            if question.diagram is None:
                continue
            if isinstance(question.diagram, ReadyDiagram):
                report.diagrams_ready += 1
            else:
                report.diagrams_pending += 1

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Composed '{spec.exam_title}' with {report.delivered_total} questions "
            f"in {elapsed_ms}ms"
        )
        return FinalizedQuestionSet(questions=result.questions, report=report)
