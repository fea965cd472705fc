import random
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tutor_engine.client.executor import RetryOrchestrator
from tutor_engine.credential_pool import CredentialPool
from tutor_engine.db_models import Base
from tutor_engine.fallback_chain import ModelFallbackChain
from tutor_engine.features import FeatureExecutor, LearnerContext, UserPreferences
from tutor_engine.usage_gate import UsageGate


class ScriptedCall:
    """
    Provider-call stub for the orchestrator.

    Each attempt consumes the next scripted outcome: exceptions are raised,
    anything else is returned. Once the script runs out, ``default`` is
    returned. Every (model, credential) pair tried is recorded.
    """

    def __init__(self, outcomes=None, default="ok"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls = []

    @property
    def count(self) -> int:
        return len(self.calls)

    async def __call__(self, model, credential):
        self.calls.append((model.name, credential.index))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        else:
            outcome = self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_pool(size: int, seed: int = 0) -> CredentialPool:
    return CredentialPool(
        [f"test-key-{i:04d}" for i in range(size)], rng=random.Random(seed)
    )


def make_chain(size: int, name: str = "text") -> ModelFallbackChain:
    return ModelFallbackChain([f"test/model-{i}" for i in range(size)], name=name)


def make_orchestrator(models: int, credentials: int, **kwargs) -> RetryOrchestrator:
    kwargs.setdefault("attempt_timeout", 1.0)
    kwargs.setdefault("retry_delay", 0.0)
    return RetryOrchestrator(make_pool(credentials), make_chain(models), **kwargs)


@pytest.fixture
def scripted_call():
    return ScriptedCall


@pytest.fixture
def orchestrator_factory():
    return make_orchestrator


@pytest_asyncio.fixture
async def session_maker() -> async_sessionmaker:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield maker
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def gate(session_maker: async_sessionmaker) -> UsageGate:
    return UsageGate(session_maker)


@pytest.fixture
def executor_factory(gate: UsageGate):
    def factory(models: int = 1, credentials: int = 1, **kwargs) -> FeatureExecutor:
        return FeatureExecutor(gate, {"text": make_orchestrator(models, credentials, **kwargs)})

    return factory


@pytest.fixture
def learner() -> LearnerContext:
    return LearnerContext(
        username="alice",
        preferences=UserPreferences(target_language="English", level="A2"),
        credits=5,
    )
