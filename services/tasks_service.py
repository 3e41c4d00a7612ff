from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from models.extraction import TaskDraft
from models.report import ItemResult
from services.auth_service import PROVIDER_ERRORS, GoogleSession
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)
END_OF_DAY_UTC = "T23:59:59.000Z"


class TaskListNotFound(LookupError):
    """No task list matches the configuration (or the account has none)."""


def build_task_body(draft: TaskDraft) -> Dict[str, Any]:
    body: Dict[str, Any] = {"title": draft.title, "notes": draft.description}
    if draft.due_date:
        body["due"] = draft.due_date + END_OF_DAY_UTC
    return body


class TasksService:
    """Creates Google Tasks entries.

    The destination is the list named by ``TASK_LIST`` (id or title) or, when
    unset, the first list the API returns. The API does not document its list
    ordering, so accounts with several lists should set ``TASK_LIST``.
    """

    def __init__(self, config: AppConfig, session: Optional[GoogleSession] = None, client: Any = None):
        self._task_list = config.task_list
        if client is None:
            if session is None:
                raise ValueError("TasksService needs a GoogleSession or an API client")
            client = session.build("tasks", "v1")
        self._client = client

    def _list_task_lists(self) -> List[Dict[str, Any]]:
        response = self._client.tasklists().list().execute()
        return response.get("items", [])

    def resolve_task_list(self) -> str:
        lists = self._list_task_lists()
        if not lists:
            raise TaskListNotFound("the account has no task lists")
        if not self._task_list:
            return lists[0]["id"]
        wanted = self._task_list.lower()
        for item in lists:
            if item.get("id") == self._task_list or (item.get("title") or "").lower() == wanted:
                return item["id"]
        raise TaskListNotFound(f"no task list with id or title {self._task_list!r}")

    def create_task(self, draft: TaskDraft) -> ItemResult:
        try:
            task_list_id = self.resolve_task_list()
            created = (
                self._client.tasks()
                .insert(tasklist=task_list_id, body=build_task_body(draft))
                .execute()
            )
        except (*PROVIDER_ERRORS, TaskListNotFound) as exc:
            LOGGER.error("Failed to create task %r: %s", draft.title, exc)
            return ItemResult(kind="task", title=draft.title, ok=False, error=str(exc))

        LOGGER.info("Created task %r in list %s", draft.title, task_list_id)
        return ItemResult(kind="task", title=draft.title, ok=True, reference=created.get("id"))
