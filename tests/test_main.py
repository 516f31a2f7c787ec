"""Tests for the CLI entrypoint."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from newsdesk.__main__ import cmd_run
from newsdesk.config import get_db_path
from newsdesk.db import init_db
from newsdesk.errors import SchemaError


@pytest.mark.asyncio
async def test_run_refuses_uninitialized_database(sample_config):
    with patch("uvicorn.Server") as server_cls:
        with pytest.raises(SchemaError, match="init-db"):
            await cmd_run(sample_config)
    server_cls.assert_not_called()


@pytest.mark.asyncio
async def test_run_serves_api_after_init(sample_config):
    init_db(get_db_path(sample_config))
    sample_config["scheduler"] = {"enabled": False}

    with patch("uvicorn.Server") as server_cls:
        server_cls.return_value.serve = AsyncMock()
        await cmd_run(sample_config)

    server_cls.return_value.serve.assert_awaited_once()
