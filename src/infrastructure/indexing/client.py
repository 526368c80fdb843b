"""
TwelveLabs indexing client (the secondary sink).

Clips are submitted as indexing tasks; the service processes them
asynchronously and we poll the task until it finishes. The wrapper is
intentionally thin: find-or-create one index, upload, report status.

Whether this sink is used at all is decided by is_configured, which only
looks at the key's format. A bad or missing key means "skip", not "fail".
"""

import asyncio
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from ...config.settings import secondary_key_is_valid
from ...core.pipeline.delivery import SecondarySink
from ...core.pipeline.models import SecondaryJobState

logger = logging.getLogger(__name__)


class IndexingError(Exception):
    """Raised when an indexing API call fails."""
    pass


_SUCCEEDED_STATUSES = {"ready", "completed"}
_FAILED_STATUSES = {"failed"}


@dataclass
class IndexingConfig:
    """Configuration for the indexing service."""
    api_key: str
    base_url: str = "https://api.twelvelabs.io/v1.3"
    index_name: str = "Zeus Videos"
    request_timeout_seconds: int = 30
    upload_timeout_seconds: int = 600


def map_task_status(payload: dict[str, Any]) -> SecondaryJobState:
    """
    Translate a task payload into a job state.

    A task counts as done when either its own status or its HLS
    rendition says so.
    """
    status = str(payload.get("status") or "").lower()
    hls_status = str((payload.get("hls") or {}).get("status") or "").upper()

    if status in _SUCCEEDED_STATUSES or hls_status == "COMPLETE":
        return SecondaryJobState.SUCCEEDED
    if status in _FAILED_STATUSES:
        return SecondaryJobState.FAILED
    return SecondaryJobState.PENDING


class TwelveLabsIndexClient:
    """
    Implementation of SecondarySink over the TwelveLabs REST API.

    requests is synchronous, so each call runs in a worker thread.
    """

    def __init__(self, config: IndexingConfig, session: Optional[requests.Session] = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update({"x-api-key": config.api_key})
        self._index_lock = threading.Lock()
        self.index_id: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return secondary_key_is_valid(self._config.api_key)

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, timeout: Optional[int] = None, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._session.request(
                method,
                self._url(path),
                timeout=timeout or self._config.request_timeout_seconds,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise IndexingError(f"Indexing API unreachable: {e}") from e

        if response.status_code == 401:
            raise IndexingError("Indexing API rejected the key (401 unauthorized)")
        if not response.ok:
            raise IndexingError(
                f"Indexing API error {response.status_code} on {method} {path}: {response.text[:300]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise IndexingError(f"Indexing API returned invalid JSON on {method} {path}") from e

    def _ensure_index(self) -> str:
        """Use the first existing index, or create one if the account has none."""
        with self._index_lock:
            if self.index_id:
                return self.index_id

            listing = self._request("GET", "/indexes")
            indexes = listing.get("data") or []
            if indexes:
                self.index_id = indexes[0].get("_id") or indexes[0].get("id")
                logger.info(
                    "Using existing index",
                    extra={"index_id": self.index_id, "index_name": indexes[0].get("index_name")}
                )
            else:
                created = self._request(
                    "POST",
                    "/indexes",
                    json={
                        "index_name": self._config.index_name,
                        "models": [
                            {
                                "model_name": "marengo2.7",
                                "model_options": ["visual", "audio"],
                            }
                        ],
                    },
                )
                self.index_id = created.get("_id") or created.get("id")
                logger.info("Created index", extra={"index_id": self.index_id})

            if not self.index_id:
                raise IndexingError("Indexing API returned no index id")
            return self.index_id

    def _submit_sync(self, local_path: str, file_name: str) -> str:
        index_id = self._ensure_index()
        metadata = json.dumps({
            "original_file_name": file_name,
            "upload_date": datetime.now(timezone.utc).isoformat(),
        })

        # The multipart filename carries our naming convention; no renamed copy needed
        with open(local_path, "rb") as video_file:
            task = self._request(
                "POST",
                "/tasks",
                timeout=self._config.upload_timeout_seconds,
                data={"index_id": index_id, "user_metadata": metadata},
                files={"video_file": (file_name, video_file, "video/mp4")},
            )

        task_id = task.get("_id") or task.get("id") or task.get("task_id")
        if not task_id:
            raise IndexingError("Indexing API returned no task id")

        logger.info("Indexing task created", extra={"task_id": task_id, "index_id": index_id})
        return task_id

    async def submit(self, local_path: str, file_name: str) -> str:
        return await asyncio.to_thread(self._submit_sync, local_path, file_name)

    async def poll_status(self, job_id: str) -> SecondaryJobState:
        payload = await asyncio.to_thread(self._request, "GET", f"/tasks/{job_id}")
        state = map_task_status(payload)
        logger.debug(
            "Indexing task status",
            extra={"task_id": job_id, "status": payload.get("status"), "state": state.value}
        )
        return state


# ---------------------------------------------------------------------------
# Mock Indexer for Local Development
# ---------------------------------------------------------------------------

class MockIndexClient:
    """
    In-memory indexer.

    Jobs report PENDING for a configurable number of polls and then
    SUCCEEDED, which is enough to exercise the polling path locally.
    """

    def __init__(self, polls_until_ready: int = 1) -> None:
        self._polls_until_ready = polls_until_ready
        self._polls: dict[str, int] = {}
        self.index_id: Optional[str] = "mock-index"
        logger.info("Initialized mock indexing client (in-memory)")

    @property
    def is_configured(self) -> bool:
        return True

    async def submit(self, local_path: str, file_name: str) -> str:
        job_id = f"mock-task-{uuid.uuid4().hex[:12]}"
        self._polls[job_id] = 0
        logger.debug("Mock indexing task created", extra={"task_id": job_id})
        return job_id

    async def poll_status(self, job_id: str) -> SecondaryJobState:
        if job_id not in self._polls:
            raise IndexingError(f"Unknown task: {job_id}")
        self._polls[job_id] += 1
        if self._polls[job_id] >= self._polls_until_ready:
            return SecondaryJobState.SUCCEEDED
        return SecondaryJobState.PENDING


def create_secondary_sink(
    config: Optional[IndexingConfig] = None,
    mock_mode: bool = False,
) -> Optional[SecondarySink]:
    """
    Create the secondary sink, or None when there is nothing to configure.

    A config with a malformed key still produces a client; the
    orchestrator's precondition check is what skips it.
    """
    if mock_mode:
        return MockIndexClient()

    if config is None:
        return None

    return TwelveLabsIndexClient(config)
