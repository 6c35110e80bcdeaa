import asyncio

import pytest
from parkease.utils.request_id import ensure_request_id, generate_request_id, get_request_id, set_request_id


def test_request_id_set_and_get() -> None:
    set_request_id("req-abc")
    assert get_request_id() == "req-abc"
    set_request_id(None)
    assert get_request_id() is None


def test_generate_request_id_is_not_empty() -> None:
    value = generate_request_id()
    assert isinstance(value, str)
    assert len(value) > 0


@pytest.mark.asyncio
async def test_ensure_request_id_is_scoped_to_task() -> None:
    async def worker() -> tuple[str, str]:
        return ensure_request_id(), ensure_request_id()

    set_request_id(None)
    (a1, a2), (b1, _) = await asyncio.gather(worker(), worker())
    assert a1 == a2
    assert a1 != b1
