"""Tests for task enqueueing helpers."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from subscription_engine.tasks import enqueue_lifecycle_run, enqueue_task, get_redis_pool


class TestTasks:
    @pytest.mark.asyncio
    async def test_get_redis_pool(self):
        mock_pool = MagicMock()

        with patch("subscription_engine.tasks.create_pool", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_pool

            result = await get_redis_pool()

            assert result == mock_pool
            mock_create.assert_called_once()

    @pytest.mark.asyncio
    async def test_enqueue_task_closes_pool_on_error(self):
        mock_pool = MagicMock()
        mock_pool.enqueue_job = AsyncMock(side_effect=Exception("Redis error"))
        mock_pool.close = AsyncMock()

        with patch(
            "subscription_engine.tasks.get_redis_pool", new_callable=AsyncMock
        ) as mock_get_pool:
            mock_get_pool.return_value = mock_pool

            with pytest.raises(Exception, match="Redis error"):
                await enqueue_task("failing_task")

            mock_pool.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_enqueue_lifecycle_run_now(self):
        with patch("subscription_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_lifecycle_run()

        mock_enqueue.assert_called_once_with("process_subscription_lifecycle_task", None)

    @pytest.mark.asyncio
    async def test_enqueue_lifecycle_run_simulated_instant(self):
        when = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

        with patch("subscription_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_lifecycle_run(when)

        mock_enqueue.assert_called_once_with(
            "process_subscription_lifecycle_task", "2026-03-15T12:00:00+00:00"
        )
