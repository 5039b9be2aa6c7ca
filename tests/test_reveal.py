"""Tests for wizard.reveal — cancellable typewriter."""

import asyncio

import pytest

from wizard.reveal import TextReveal


@pytest.mark.asyncio
async def test_prefixes_grow_one_character_at_a_time():
    reveal = TextReveal(lambda _: None, tick=0)
    assert [p async for p in reveal.prefixes("abc")] == ["a", "ab", "abc"]


@pytest.mark.asyncio
async def test_reveal_pushes_every_prefix_to_sink():
    frames = []
    reveal = TextReveal(frames.append, tick=0)
    reveal.reveal("hey")
    await reveal.wait()
    assert frames == ["h", "he", "hey"]
    assert not reveal.active


@pytest.mark.asyncio
async def test_empty_text_completes_with_empty_frame():
    frames = []
    reveal = TextReveal(frames.append, tick=0)
    reveal.reveal("")
    await reveal.wait()
    assert frames == [""]


@pytest.mark.asyncio
async def test_cancel_stops_frames_immediately():
    frames = []
    reveal = TextReveal(frames.append, tick=0)
    reveal.reveal("hello world")
    await asyncio.sleep(0)
    reveal.cancel()
    seen = len(frames)
    await asyncio.sleep(0.01)
    assert len(frames) == seen
    assert seen < len("hello world")
    assert not reveal.active


@pytest.mark.asyncio
async def test_new_reveal_supersedes_old_one():
    frames = []
    old_text = "abcdefghij" * 4
    reveal = TextReveal(frames.append, tick=0.005)
    reveal.reveal(old_text)
    await asyncio.sleep(0.012)
    reveal.reveal("xyz")
    await reveal.wait()

    start = frames.index("x")
    assert all("xyz".startswith(f) for f in frames[start:])
    assert frames[-1] == "xyz"
    assert old_text not in frames


@pytest.mark.asyncio
async def test_on_complete_runs_after_hold():
    done = []
    reveal = TextReveal(lambda _: None, tick=0)
    reveal.reveal("hi", hold=0.01, on_complete=lambda: done.append(True))
    await reveal.wait()
    assert done == [True]


@pytest.mark.asyncio
async def test_cancelled_reveal_never_completes():
    done = []
    reveal = TextReveal(lambda _: None, tick=0)
    reveal.reveal("hello", on_complete=lambda: done.append(True))
    reveal.cancel()
    await asyncio.sleep(0.01)
    assert done == []


@pytest.mark.asyncio
async def test_on_complete_may_chain_next_reveal():
    frames = []
    reveal = TextReveal(frames.append, tick=0)
    reveal.reveal("ab", on_complete=lambda: reveal.reveal("cd"))
    await reveal.wait()
    assert frames == ["a", "ab", "c", "cd"]
