"""One-shot audio warm-up."""

from __future__ import annotations

import asyncio

from audioguide.services.audio_unlock import AudioUnlockGate
from audioguide.services.collaborators import BufferedAudioOutput

from conftest import settle


def test_five_unlocks_run_a_single_warm_up():
    warm_ups = []

    async def warm_up():
        warm_ups.append(True)
        await asyncio.sleep(0)

    async def scenario():
        gate = AudioUnlockGate(warm_up)
        results = await asyncio.gather(*(gate.unlock() for _ in range(3)))
        results.append(await gate.unlock())
        results.append(await gate.unlock())
        return gate, results

    gate, results = asyncio.run(scenario())

    assert len(warm_ups) == 1
    assert results == [True] * 5
    assert gate.done is True


def test_failed_warm_up_is_remembered_and_not_raised():
    attempts = []

    async def warm_up():
        attempts.append(True)
        raise RuntimeError("NotAllowedError")

    async def scenario():
        gate = AudioUnlockGate(warm_up)
        first = await gate.unlock()
        second = await gate.unlock()
        return gate, first, second

    gate, first, second = asyncio.run(scenario())

    assert (first, second) == (False, False)
    assert gate.done is True and gate.outcome is False
    assert len(attempts) == 1


def test_trigger_schedules_without_waiting():
    output = BufferedAudioOutput()

    async def scenario():
        gate = AudioUnlockGate(output.play_silence)
        gate.trigger()
        gate.trigger()
        assert gate.done is False
        await settle()
        return gate

    gate = asyncio.run(scenario())

    assert gate.outcome is True
    assert output.primed_with is not None and output.primed_with.startswith(b"RIFF")
