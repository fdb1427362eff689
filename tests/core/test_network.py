"""Tests for the connectivity probe."""

import socket

import pytest

from apkbuilder.core.network import is_online


class TestIsOnline:
    @pytest.mark.asyncio
    async def test_resolvable_host(self) -> None:
        assert await is_online("localhost") is True

    @pytest.mark.asyncio
    async def test_resolution_failure_means_offline(self, monkeypatch) -> None:
        async def fail(self, *args, **kwargs):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

        monkeypatch.setattr("asyncio.BaseEventLoop.getaddrinfo", fail)

        assert await is_online("example.invalid") is False

    @pytest.mark.asyncio
    async def test_invalid_hostname_means_offline(self) -> None:
        assert await is_online("a" * 300 + ".example") is False
