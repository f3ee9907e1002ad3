"""Per-session orchestrator tying transcript, phase engine and suggestions together."""

import asyncio
import logging
import threading
import uuid
from typing import NamedTuple, Optional

from config.settings import Settings
from schemas.insights import Insight, Vote, Votes
from schemas.rubric import (
    CardReadinessStatus,
    ConversationAssessment,
    ConversationPhase,
    ConversationRubric,
    PhaseDecision,
    RubricEvaluation,
)
from schemas.suggestions import Suggestion
from schemas.transcript import ConversationTurn, Role, TranscriptItem

# LLM components
from llm.factory import create_llm_client, LLMProvider
from llm.base_client import BaseLLMClient

# Engines
from conversation.phases import assess_conversation
from conversation.llm_rubric import LLMRubricEvaluator
from suggestions.engine import SuggestionEngine, create_suggestion_engine
from suggestions.errors import SuggestionConfigurationError

# Realtime
from realtime.credentials import SessionConfig
from realtime.errors import AcknowledgmentError
from realtime.session import ACTIVE_STATUSES, RealtimeSessionManager, SessionStatus

logger = logging.getLogger(__name__)


class GenerationPlan(NamedTuple):
    """One pending suggestion run, decided on the caller's thread."""
    limit: int
    version: int
    teaser: bool
    votes: Votes
    previous_titles: list[str]


class ConversationOrchestrator:
    """
    Owns one conversation session.

    Final transcript turns trigger a rubric + phase re-evaluation; when the
    rubric reports card readiness (or the phase decision asks for a teaser)
    the suggestion engine runs and its cards join the session.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[RealtimeSessionManager] = None,
        suggestion_engine: Optional[SuggestionEngine] = None,
        rubric_evaluator: Optional[LLMRubricEvaluator] = None,
        session_id: Optional[str] = None
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            session: Realtime session manager; None for offline use
            suggestion_engine: Suggestion engine (built from settings if omitted)
            rubric_evaluator: Rubric evaluator (built from settings if omitted)
            session_id: Conversation session id (random if omitted)
        """
        self.settings = settings or Settings()
        self.session_id = session_id or uuid.uuid4().hex
        self.session = session

        self.suggestion_engine = suggestion_engine or create_suggestion_engine(self.settings)
        self.rubric_evaluator = rubric_evaluator or LLMRubricEvaluator(self._init_llm_client())

        # Session state
        self.phase = ConversationPhase.WARMUP
        self.rubric = ConversationRubric()
        self.last_decision: Optional[PhaseDecision] = None
        self.turns: list[ConversationTurn] = []
        self.insights: list[Insight] = []
        self.suggestions: list[Suggestion] = []
        self.votes: Votes = {}

        self._recorded_turn_ids: set[str] = set()
        self._insight_keys: set[tuple[str, str]] = set()
        self._insights_version = 0
        self._generated_version = -1
        self._teaser_version = -1
        self._abort = threading.Event()
        self._evaluation_lock: Optional[asyncio.Lock] = None
        self._tasks: set[asyncio.Task] = set()

        if self.session is not None:
            self.session.on_transcript = self.handle_transcript

    def _init_llm_client(self) -> Optional[BaseLLMClient]:
        """Rubric LLM client, or None to use the transcript heuristic."""
        if not self.settings.rubric_llm_enabled:
            logger.info("LLM rubric disabled; using heuristic rubric")
            return None

        api_key = self.settings.get_llm_api_key()
        if not api_key:
            logger.warning(
                f"No API key for {self.settings.llm_provider}. "
                "Rubric will use the transcript heuristic."
            )
            return None

        try:
            client = create_llm_client(
                provider=LLMProvider(self.settings.llm_provider),
                api_key=api_key,
                model=self.settings.llm_model
            )
            logger.info(
                f"Rubric LLM initialized: {self.settings.llm_provider} "
                f"({client.get_model_name()})"
            )
            return client
        except Exception as e:
            logger.error(f"Failed to initialize rubric LLM client: {e}")
            return None

    # -- profile signals -----------------------------------------------------

    def add_insights(self, insights: list[Insight]) -> int:
        """
        Accumulate insights, skipping ones already seen.

        Returns:
            Number of insights actually added
        """
        added = 0
        for insight in insights:
            key = (insight.kind.value, insight.value.strip().casefold())
            if not key[1] or key in self._insight_keys:
                continue
            self._insight_keys.add(key)
            self.insights.append(insight)
            added += 1

        if added:
            self._insights_version += 1
            logger.info(f"Added {added} insight(s), {len(self.insights)} total")
        return added

    def record_vote(self, suggestion_id: str, vote: Vote):
        self.votes[suggestion_id] = Vote(vote)

    # -- transcript ----------------------------------------------------------

    def handle_transcript(self, item: TranscriptItem):
        """Record each final turn once and schedule a re-evaluation."""
        if not item.is_final or item.id in self._recorded_turn_ids:
            return

        self._recorded_turn_ids.add(item.id)
        self.turns.append(ConversationTurn(role=item.role, text=item.text))
        self._schedule_evaluation()

    def _schedule_evaluation(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.evaluate()
            return

        task = loop.create_task(self.evaluate_async())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def evaluate_async(self) -> ConversationAssessment:
        """
        Serialized evaluation for use on the event loop.

        Only the blocking rubric and generation calls run in worker threads;
        their results are applied here, on the loop.
        """
        if self._evaluation_lock is None:
            self._evaluation_lock = asyncio.Lock()
        async with self._evaluation_lock:
            turns, insights, version = list(self.turns), list(self.insights), self._insights_version

            evaluation = await asyncio.to_thread(
                self.rubric_evaluator.evaluate,
                turns, insights, list(self.suggestions), dict(self.votes)
            )
            assessment = self._apply_evaluation(evaluation, turns, insights)

            plan = self._plan_generation(assessment, version)
            if plan is not None:
                cards = await asyncio.to_thread(self._generate_cards, plan, insights)
                self._apply_cards(plan, cards)
            return assessment

    async def wait_for_evaluations(self):
        """Wait for every scheduled evaluation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- evaluation ----------------------------------------------------------

    def evaluate(self) -> ConversationAssessment:
        """
        Re-derive the rubric and phase, then request cards if warranted.

        Returns:
            The assessment that was applied
        """
        turns, insights, version = list(self.turns), list(self.insights), self._insights_version

        evaluation = self.rubric_evaluator.evaluate(
            turns, insights, list(self.suggestions), dict(self.votes)
        )
        assessment = self._apply_evaluation(evaluation, turns, insights)

        plan = self._plan_generation(assessment, version)
        if plan is not None:
            self._apply_cards(plan, self._generate_cards(plan, insights))
        return assessment

    def _apply_evaluation(
        self,
        evaluation: RubricEvaluation,
        turns: list[ConversationTurn],
        insights: list[Insight]
    ) -> ConversationAssessment:
        assessment = assess_conversation(
            self.phase,
            turns,
            insights,
            len(self.suggestions),
            len(self.votes),
            evaluation.rubric
        )

        self.phase = assessment.decision.next_phase
        self.rubric = assessment.rubric
        self.last_decision = assessment.decision

        if self.settings.verbose:
            logger.info(f"Rationale: {' '.join(assessment.decision.rationale)}")
        return assessment

    def _plan_generation(
        self,
        assessment: ConversationAssessment,
        version: int
    ) -> Optional[GenerationPlan]:
        """Full run once per insight set when ready, else a single teaser if asked for."""
        previous_titles = [card.title for card in self.suggestions]

        if (
            self.rubric.card_readiness.status == CardReadinessStatus.READY
            and version != self._generated_version
        ):
            return GenerationPlan(
                limit=self.settings.suggestion_limit,
                version=version,
                teaser=False,
                votes=dict(self.votes),
                previous_titles=previous_titles,
            )

        if assessment.decision.should_seed_teaser_card and version != self._teaser_version:
            return GenerationPlan(
                limit=1,
                version=version,
                teaser=True,
                votes=dict(self.votes),
                previous_titles=previous_titles,
            )

        return None

    def _generate_cards(
        self,
        plan: GenerationPlan,
        insights: list[Insight]
    ) -> Optional[list[Suggestion]]:
        try:
            return self.suggestion_engine.generate(
                insights,
                plan.votes,
                limit=plan.limit,
                abort=self._abort,
                previous_titles=plan.previous_titles
            )
        except SuggestionConfigurationError as e:
            logger.warning(f"Suggestion generation unavailable: {e}")
            return None

    def _apply_cards(self, plan: GenerationPlan, cards: Optional[list[Suggestion]]):
        if cards is None:
            return
        if plan.teaser:
            self._teaser_version = plan.version
        else:
            self._generated_version = plan.version
        self._merge_suggestions(cards)

    def _merge_suggestions(self, cards: list[Suggestion]):
        known = {card.id for card in self.suggestions}
        fresh = [card for card in cards if card.id not in known]
        self.suggestions.extend(fresh)
        if fresh:
            logger.info(f"Added {len(fresh)} suggestion card(s): {[card.title for card in fresh]}")

    # -- outbound ------------------------------------------------------------

    async def send_user_text(self, text: str, voice: bool = False) -> Optional[str]:
        """
        Send a typed message over the realtime session.

        Connects first if needed, waits (bounded by the acknowledgment
        timeout) for the item to be acknowledged, then asks for a response.

        Returns:
            The conversation item id, or None for blank text
        """
        if self.session is None:
            raise RuntimeError("No realtime session configured")

        text = text.strip()
        if not text:
            return None

        if self.session.status not in ACTIVE_STATUSES:
            await self.session.connect(SessionConfig(
                session_id=self.session_id,
                phase=self.phase,
                capture_enabled=voice,
                playback_enabled=voice,
            ))
            if self.session.status == SessionStatus.ERROR:
                logger.warning(f"Realtime connection failed, message queued: {self.session.error}")

        item_id = uuid.uuid4().hex[:32]
        acknowledgment = self.session.wait_for_acknowledgment(item_id)
        self.session.send_event({
            "type": "conversation.item.create",
            "item": {
                "id": item_id,
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}],
            },
        })

        item = self.session.transcript.apply_final(item_id, Role.USER, text)
        if item is not None:
            self.handle_transcript(item)

        try:
            await asyncio.wait_for(acknowledgment, timeout=self.settings.acknowledgment_timeout)
        except (asyncio.TimeoutError, AcknowledgmentError) as e:
            logger.warning(f"Message {item_id} not acknowledged: {str(e) or 'timeout'}")

        self.session.send_event({
            "type": "response.create",
            "response": {"output_modalities": ["audio", "text"] if voice else ["text"]},
        })
        return item_id

    async def close(self):
        """Abort pending generation and tear the session down."""
        self._abort.set()
        if self.session is not None:
            await self.session.disconnect()
        await self.wait_for_evaluations()
