"""Tests for ``POST /api/v1/webhooks/github``."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repo_gateway.core.webhook_security import compute_signature
from repo_gateway.models import Activity, Repository, User
from tests.conftest import WEBHOOK_SECRET

URL = "/api/v1/webhooks/github"


def _signed_headers(body: bytes, event: str, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "72d3162e-cc78-11e3-81ab-4c9367dc0958",
        "X-Hub-Signature-256": f"sha256={compute_signature(body, secret)}",
    }


def _body(payload: Any) -> bytes:
    return json.dumps(payload).encode("utf-8")


CREATED = {
    "action": "created",
    "repository": {"id": 555, "name": "hello-world", "stargazers_count": 0},
    "sender": {"id": 123},
}


class TestSignatureGate:
    """Deliveries are authenticated before anything else happens."""

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, async_client: AsyncClient) -> None:
        resp = await async_client.post(
            URL,
            content=_body(CREATED),
            headers={"X-GitHub-Event": "repository"},
        )
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Invalid signature"}

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, async_client: AsyncClient) -> None:
        body = _body(CREATED)
        resp = await async_client.post(
            URL,
            content=body,
            headers=_signed_headers(body, "repository", secret="not-the-secret"),
        )
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Invalid signature"}

    @pytest.mark.asyncio
    async def test_body_modified_after_signing_rejected(self, async_client: AsyncClient) -> None:
        body = _body(CREATED)
        headers = _signed_headers(body, "repository")
        resp = await async_client.post(URL, content=body + b" ", headers=headers)
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_rejected_delivery_is_not_processed(self, async_client: AsyncClient) -> None:
        with patch(
            "repo_gateway.api.v1.webhooks.EventSynchronizer.handle",
            new_callable=AsyncMock,
        ) as handle:
            await async_client.post(
                URL,
                content=b"not even json",
                headers={"X-GitHub-Event": "repository", "X-Hub-Signature-256": "sha256=00"},
            )
        handle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_json_with_valid_signature(self, async_client: AsyncClient) -> None:
        body = b"{not json"
        resp = await async_client.post(URL, content=body, headers=_signed_headers(body, "push"))
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Invalid payload"}

    @pytest.mark.asyncio
    async def test_non_object_json_rejected(self, async_client: AsyncClient) -> None:
        body = _body([1, 2, 3])
        resp = await async_client.post(URL, content=body, headers=_signed_headers(body, "push"))
        assert resp.status_code == 400


class TestDeliveryProcessing:
    """Authenticated deliveries reach the mirror."""

    @pytest.mark.asyncio
    async def test_created_event_mirrors_repository(
        self,
        db_client: AsyncClient,
        db_session: AsyncSession,
        local_user: User,
    ) -> None:
        body = _body(CREATED)
        resp = await db_client.post(URL, content=body, headers=_signed_headers(body, "repository"))

        assert resp.status_code == 200
        assert resp.json() == {"message": "Webhook processed successfully"}

        repos = (await db_session.execute(select(Repository))).scalars().all()
        assert [r.github_repo_id for r in repos] == ["555"]
        activities = (await db_session.execute(select(Activity))).scalars().all()
        assert [a.action for a in activities] == ["CREATE_REPOSITORY"]

    @pytest.mark.asyncio
    async def test_redelivery_does_not_duplicate_rows(
        self,
        db_client: AsyncClient,
        db_session: AsyncSession,
        local_user: User,
    ) -> None:
        body = _body(CREATED)
        for _ in range(2):
            resp = await db_client.post(
                URL, content=body, headers=_signed_headers(body, "repository")
            )
            assert resp.status_code == 200

        repos = (await db_session.execute(select(Repository))).scalars().all()
        assert len(repos) == 1

    @pytest.mark.asyncio
    async def test_unknown_event_acknowledged(
        self,
        db_client: AsyncClient,
        db_session: AsyncSession,
        local_user: User,
    ) -> None:
        body = _body(CREATED)
        resp = await db_client.post(URL, content=body, headers=_signed_headers(body, "issues"))

        assert resp.status_code == 200
        repos = (await db_session.execute(select(Repository))).scalars().all()
        assert repos == []

    @pytest.mark.asyncio
    async def test_unknown_sender_acknowledged(
        self,
        db_client: AsyncClient,
        db_session: AsyncSession,
        local_user: User,
    ) -> None:
        payload = dict(CREATED, sender={"id": 999999})
        body = _body(payload)
        resp = await db_client.post(URL, content=body, headers=_signed_headers(body, "repository"))

        assert resp.status_code == 200
        assert (await db_session.execute(select(Repository))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_ping_acknowledged(self, db_client: AsyncClient) -> None:
        body = _body({"zen": "Design for failure.", "hook_id": 42})
        resp = await db_client.post(URL, content=body, headers=_signed_headers(body, "ping"))
        assert resp.status_code == 200
