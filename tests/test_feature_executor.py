import asyncio

import pytest

from tutor_engine.errors import (
    AccountUnavailable,
    ErrorKind,
    InsufficientCredits,
    MalformedResponse,
    ProviderError,
    ProviderExhausted,
)
from tutor_engine.features import Feature


def text_feature(call, parse=str.strip) -> Feature:
    return Feature(name="chat_turn", chain="text", call=call, parse=parse)


def quota() -> ProviderError:
    return ProviderError(ErrorKind.QUOTA_EXCEEDED, "429")


@pytest.mark.asyncio
async def test_success_charges_exactly_once(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=3)
    executor = executor_factory(models=2, credentials=2)
    call = scripted_call([quota(), quota()], default="  bonjour ")

    result = await executor.execute("alice", text_feature(call))

    assert result == "bonjour"
    assert call.count == 3
    assert (await gate.get_account("alice")).credit_balance == 2


@pytest.mark.asyncio
async def test_ledger_conservation(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=10)
    executor = executor_factory(models=2, credentials=2)

    for _ in range(4):
        await executor.execute("alice", text_feature(scripted_call(default="ok")))
    for _ in range(3):
        with pytest.raises(ProviderExhausted):
            await executor.execute("alice", text_feature(scripted_call(default=quota())))

    assert (await gate.get_account("alice")).credit_balance == 6


@pytest.mark.asyncio
async def test_zero_balance_never_reaches_provider(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=0)
    executor = executor_factory()
    call = scripted_call()

    with pytest.raises(InsufficientCredits):
        await executor.execute("alice", text_feature(call))

    assert call.count == 0


@pytest.mark.asyncio
async def test_unknown_account_never_reaches_provider(executor_factory, scripted_call) -> None:
    executor = executor_factory()
    call = scripted_call()

    with pytest.raises(AccountUnavailable):
        await executor.execute("ghost", text_feature(call))

    assert call.count == 0


@pytest.mark.asyncio
async def test_last_credit_then_denied(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=1)
    executor = executor_factory()
    call = scripted_call(default="ok")

    await executor.execute("alice", text_feature(call))
    assert (await gate.get_account("alice")).credit_balance == 0

    with pytest.raises(InsufficientCredits):
        await executor.execute("alice", text_feature(call))
    assert call.count == 1


@pytest.mark.asyncio
async def test_admin_with_zero_balance_is_served_for_free(
    gate, executor_factory, scripted_call
) -> None:
    await gate.ensure_account("root", credits=0, role="admin")
    executor = executor_factory()

    for _ in range(3):
        assert await executor.execute("root", text_feature(scripted_call(default="ok"))) == "ok"

    assert (await gate.get_account("root")).credit_balance == 0


@pytest.mark.asyncio
async def test_exhaustion_is_not_charged(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=5)
    executor = executor_factory(models=3, credentials=3)
    call = scripted_call(
        [quota(), ProviderError(ErrorKind.MODEL_UNAVAILABLE)] * 2, default=quota()
    )

    with pytest.raises(ProviderExhausted) as excinfo:
        await executor.execute("alice", text_feature(call))

    assert isinstance(excinfo.value.__cause__, ProviderError)
    assert call.count <= 9
    assert (await gate.get_account("alice")).credit_balance == 5


@pytest.mark.asyncio
async def test_every_combination_failing_tries_all_pairs_without_charge(
    gate, executor_factory, scripted_call
) -> None:
    await gate.ensure_account("alice", credits=5)
    executor = executor_factory(models=3, credentials=3)
    call = scripted_call(default=quota())

    with pytest.raises(ProviderExhausted):
        await executor.execute("alice", text_feature(call))

    assert call.count == 9
    assert (await gate.get_account("alice")).credit_balance == 5


@pytest.mark.asyncio
async def test_parser_failure_is_malformed_but_charged(
    gate, executor_factory, scripted_call
) -> None:
    await gate.ensure_account("alice", credits=3)
    executor = executor_factory()

    def broken_parser(raw):
        raise ValueError("not json")

    with pytest.raises(MalformedResponse):
        await executor.execute(
            "alice", text_feature(scripted_call(default="{oops"), parse=broken_parser)
        )

    assert (await gate.get_account("alice")).credit_balance == 2


@pytest.mark.asyncio
async def test_transport_malformed_is_charged_and_not_retried(
    gate, executor_factory, scripted_call
) -> None:
    await gate.ensure_account("alice", credits=3)
    executor = executor_factory(models=2, credentials=2)
    call = scripted_call([ProviderError(ErrorKind.MALFORMED, "no choices")])

    with pytest.raises(MalformedResponse):
        await executor.execute("alice", text_feature(call))

    assert call.count == 1
    assert (await gate.get_account("alice")).credit_balance == 2


@pytest.mark.asyncio
async def test_unknown_chain_is_rejected(gate, executor_factory, scripted_call) -> None:
    await gate.ensure_account("alice", credits=3)
    executor = executor_factory()
    feature = Feature(name="image", chain="image", call=scripted_call(), parse=str)

    with pytest.raises(KeyError):
        await executor.execute("alice", feature)


@pytest.mark.asyncio
async def test_cancelled_request_is_not_charged(gate, executor_factory) -> None:
    await gate.ensure_account("alice", credits=2)
    executor = executor_factory(models=2, credentials=2, attempt_timeout=None)
    started = asyncio.Event()

    async def hang(model, credential):
        started.set()
        await asyncio.sleep(10)

    task = asyncio.create_task(executor.execute("alice", text_feature(hang)))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert (await gate.get_account("alice")).credit_balance == 2


@pytest.mark.asyncio
async def test_concurrent_requests_for_last_credit_reach_provider_once(
    gate, executor_factory
) -> None:
    await gate.ensure_account("alice", credits=1)
    executor = executor_factory()
    started = asyncio.Event()
    release = asyncio.Event()
    calls = []

    async def held(model, credential):
        calls.append(model.name)
        started.set()
        await release.wait()
        return "ok"

    first = asyncio.create_task(executor.execute("alice", text_feature(held)))
    await started.wait()

    with pytest.raises(InsufficientCredits):
        await executor.execute("alice", text_feature(held))
    assert len(calls) == 1

    release.set()
    assert await first == "ok"
    assert len(calls) == 1
    assert (await gate.get_account("alice")).credit_balance == 0


@pytest.mark.asyncio
async def test_exhausted_request_frees_credit_for_the_next_one(
    gate, executor_factory, scripted_call
) -> None:
    await gate.ensure_account("alice", credits=1)
    executor = executor_factory(models=2, credentials=1)

    with pytest.raises(ProviderExhausted):
        await executor.execute("alice", text_feature(scripted_call(default=quota())))

    assert await executor.execute("alice", text_feature(scripted_call(default="ok"))) == "ok"
    assert (await gate.get_account("alice")).credit_balance == 0
