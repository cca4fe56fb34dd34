"""
Background job payloads and dispatch.

The engine only fires jobs; it never waits for them. Transport is pluggable:
`InMemoryJobQueue` keeps jobs in a list, which is enough for the CLI, the API
process, and tests.
"""
import logging
import threading
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Queue names
REPORT_QUEUE = "report-generation"
RUBRIC_QUEUE = "rubric-generation"
EMBEDDING_QUEUE = "embedding-generation"
ROADMAP_QUEUE = "roadmap-generation"

QUEUES = [REPORT_QUEUE, RUBRIC_QUEUE, EMBEDDING_QUEUE, ROADMAP_QUEUE]

DEFAULT_MAX_PENDING = 1000


class ReportJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str


class RubricJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    question_text: str
    domain: str


class EmbeddingJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_type: str  # "question" or "answer"
    entity_id: str
    text: str


class RoadmapJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str


_QUEUE_FOR_JOB = {
    ReportJob: REPORT_QUEUE,
    RubricJob: RUBRIC_QUEUE,
    EmbeddingJob: EMBEDDING_QUEUE,
    RoadmapJob: ROADMAP_QUEUE,
}


class JobDispatcher:
    """Fire-and-forget job sink."""

    def dispatch(self, queue: str, job: BaseModel) -> None:
        raise NotImplementedError

    def drain(self, queue: str) -> List[BaseModel]:
        """Take pending jobs for an in-process worker. External transports have their own workers."""
        return []


class InMemoryJobQueue(JobDispatcher):
    """
    Jobs held in process memory until a worker drains them.

    Each queue keeps at most `max_pending` jobs; dispatching to a full queue
    drops that queue's oldest job.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self._jobs: List[Tuple[str, BaseModel]] = []
        self._lock = threading.Lock()

    def dispatch(self, queue: str, job: BaseModel) -> None:
        if queue not in QUEUES:
            raise ValueError(f"Unknown queue: {queue}")
        dropped = None
        with self._lock:
            pending = [i for i, (name, _) in enumerate(self._jobs) if name == queue]
            if len(pending) >= self.max_pending:
                _, dropped = self._jobs.pop(pending[0])
            self._jobs.append((queue, job))
        if dropped is not None:
            logger.warning("Queue %s is full (%d pending), dropped oldest job %s", queue, self.max_pending, dropped)
        logger.info("Dispatched %s job to %s", type(job).__name__, queue)

    def jobs(self, queue: str) -> List[BaseModel]:
        with self._lock:
            return [job for name, job in self._jobs if name == queue]

    def drain(self, queue: str) -> List[BaseModel]:
        """Remove and return every pending job on a queue."""
        with self._lock:
            taken = [job for name, job in self._jobs if name == queue]
            self._jobs = [(name, job) for name, job in self._jobs if name != queue]
            return taken

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {queue: sum(1 for name, _ in self._jobs if name == queue) for queue in QUEUES}


def enqueue(dispatcher: JobDispatcher, job: BaseModel) -> None:
    """Dispatch a job to the queue for its payload type."""
    queue = _QUEUE_FOR_JOB.get(type(job))
    if queue is None:
        raise ValueError(f"No queue for job type {type(job).__name__}")
    dispatcher.dispatch(queue, job)


def enqueue_report(dispatcher: JobDispatcher, session_id: str) -> None:
    enqueue(dispatcher, ReportJob(session_id=session_id))


def enqueue_rubric(dispatcher: JobDispatcher, question_id: str, question_text: str, domain: str) -> None:
    enqueue(dispatcher, RubricJob(question_id=question_id, question_text=question_text, domain=domain))


def enqueue_embedding(dispatcher: JobDispatcher, entity_type: str, entity_id: str, text: str) -> None:
    enqueue(dispatcher, EmbeddingJob(entity_type=entity_type, entity_id=entity_id, text=text))


def enqueue_roadmap(dispatcher: JobDispatcher, user_id: str) -> None:
    enqueue(dispatcher, RoadmapJob(user_id=user_id))
