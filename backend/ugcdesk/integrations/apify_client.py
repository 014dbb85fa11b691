from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ugcdesk.errors import ExternalServiceFailure
from ugcdesk.settings import get_settings

APIFY_ACTOR_RUN_URL = "https://api.apify.com/v2/acts/{actor_id}/runs"
APIFY_RUN_STATUS_URL = "https://api.apify.com/v2/actor-runs/{run_id}"
APIFY_DATASET_ITEMS_URL = "https://api.apify.com/v2/datasets/{dataset_id}/items"

TERMINAL_RUN_STATUSES = {"SUCCEEDED", "FAILED", "ABORTED", "TIMED-OUT"}


def _json_body(resp: httpx.Response, what: str, **context: Any) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise ExternalServiceFailure(f"{what}: non-JSON response", body=resp.text[:400], **context) from exc


def _json_data(resp: httpx.Response, what: str, **context: Any) -> dict:
    body = _json_body(resp, what, **context)
    if not isinstance(body, dict):
        raise ExternalServiceFailure(f"{what}: unexpected response", body=str(body)[:400], **context)
    return body.get("data") or {}


def _normalize_actor_id(actor_id: str) -> str:
    """Apify expects username~actor-name."""
    if "~" in actor_id:
        return actor_id
    if "/" in actor_id:
        return actor_id.replace("/", "~", 1)
    return actor_id


async def run_actor_and_get_dataset_items(
    actor_id: str,
    payload: dict[str, Any],
    *,
    clean: bool = True,
    limit: int = 100,
    timeout_s: int = 120,
    poll_interval_s: float = 1.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[list[dict], dict]:
    """
    Start an actor run, wait for it to finish, then read items from its dataset.
    Returns (items, meta).
    """
    settings = get_settings()
    if not settings.apify_token:
        raise ExternalServiceFailure("APIFY_TOKEN missing")

    normalized_id = _normalize_actor_id(actor_id)
    params = {"token": settings.apify_token}

    async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
        # start the run
        try:
            run_resp = await client.post(APIFY_ACTOR_RUN_URL.format(actor_id=normalized_id), params=params, json=payload)
        except httpx.HTTPError as exc:
            raise ExternalServiceFailure("Apify run start failed", reason=str(exc), actor=normalized_id) from exc

        if run_resp.status_code >= 400:
            raise ExternalServiceFailure(
                "Apify run start failed",
                status=run_resp.status_code,
                body=run_resp.text[:400],
                actor=normalized_id,
                input_keys=list(payload.keys()),
            )

        run_data = _json_data(run_resp, "Apify run start failed", actor=normalized_id)
        run_id = run_data.get("id")
        if not run_id:
            raise ExternalServiceFailure("Apify run id missing", actor=normalized_id, body=run_resp.text[:400])

        # poll run status
        final_status = None
        run_error = None
        dataset_id = None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        while True:
            try:
                status_resp = await client.get(APIFY_RUN_STATUS_URL.format(run_id=run_id), params=params)
            except httpx.HTTPError as exc:
                raise ExternalServiceFailure(
                    "Apify run status failed", reason=str(exc), actor=normalized_id, runId=run_id
                ) from exc
            if status_resp.status_code >= 400:
                raise ExternalServiceFailure(
                    "Apify run status failed",
                    status=status_resp.status_code,
                    body=status_resp.text[:400],
                    actor=normalized_id,
                    runId=run_id,
                )
            data = _json_data(status_resp, "Apify run status failed", actor=normalized_id, runId=run_id)
            final_status = data.get("status")
            dataset_id = data.get("defaultDatasetId")
            run_error = data.get("errorMessage")
            if final_status in TERMINAL_RUN_STATUSES:
                break
            if loop.time() > deadline:
                raise ExternalServiceFailure(
                    "Apify run timed out", actor=normalized_id, runId=run_id, status=final_status
                )
            await asyncio.sleep(poll_interval_s)

        if final_status != "SUCCEEDED":
            raise ExternalServiceFailure(
                "Apify run failed",
                actor=normalized_id,
                runId=run_id,
                status=final_status,
                errorMessage=run_error,
            )
        if not dataset_id:
            raise ExternalServiceFailure("Apify dataset missing", actor=normalized_id, runId=run_id)

        # read dataset page by page
        items: list[dict] = []
        page_size = min(limit, 1000)
        offset = 0
        while len(items) < limit:
            try:
                ds_resp = await client.get(
                    APIFY_DATASET_ITEMS_URL.format(dataset_id=dataset_id),
                    params={
                        "token": settings.apify_token,
                        "clean": "true" if clean else "false",
                        "limit": page_size,
                        "offset": offset,
                    },
                )
            except httpx.HTTPError as exc:
                raise ExternalServiceFailure(
                    "Apify dataset fetch failed", actor=normalized_id, runId=run_id, reason=str(exc)
                ) from exc
            if ds_resp.status_code >= 400:
                raise ExternalServiceFailure(
                    "Apify dataset fetch failed",
                    actor=normalized_id,
                    runId=run_id,
                    status=ds_resp.status_code,
                    body=ds_resp.text[:400],
                )
            page_items = _json_body(ds_resp, "Apify dataset fetch failed", actor=normalized_id, runId=run_id)
            if not isinstance(page_items, list):
                raise ExternalServiceFailure(
                    "Invalid dataset response", actor=normalized_id, runId=run_id, body=str(page_items)[:400]
                )
            items.extend(page_items)
            if len(page_items) < page_size:
                break
            offset += page_size

        items = items[:limit]
        meta = {"actorId": normalized_id, "runId": run_id, "datasetId": dataset_id, "status": final_status}
        return items, meta
