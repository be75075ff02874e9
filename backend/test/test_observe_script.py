"""감독관 스크립트(scripts/observe.py)의 Supervisor 테스트."""

import asyncio

import pytest

from modules.signaling import MessageType
from scripts.observe import Supervisor

from conftest import wait_for


@pytest.fixture
async def supervisor(signaling):
    supervisor = Supervisor(signaling, refresh_interval=0.01)
    yield supervisor
    await supervisor.close()


async def test_roster_is_requested_periodically_after_auth(supervisor, signaling):
    await asyncio.sleep(0.05)
    assert signaling.sent_of(MessageType.GET_USER_LIST) == []

    await signaling.deliver(MessageType.AUTH_SUCCESS, {})

    assert await supervisor.auth_result is True
    await wait_for(lambda: len(signaling.sent_of(MessageType.GET_USER_LIST)) >= 2)


async def test_refresh_stops_on_close(supervisor, signaling):
    await signaling.deliver(MessageType.AUTH_SUCCESS, {})
    await wait_for(lambda: len(signaling.sent_of(MessageType.GET_USER_LIST)) >= 1)
    task = supervisor._refresh_task

    await supervisor.close()
    await wait_for(task.done)
    sent = len(signaling.sent_of(MessageType.GET_USER_LIST))
    await asyncio.sleep(0.05)

    assert len(signaling.sent_of(MessageType.GET_USER_LIST)) == sent


async def test_refresh_stops_when_connection_lost(supervisor, signaling):
    await signaling.deliver(MessageType.AUTH_SUCCESS, {})
    task = supervisor._refresh_task

    await signaling.drop()

    await wait_for(task.done)
    assert supervisor.auth_result.result() is True
