"""HTTP-клиент для Google Tasks API."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests

from google_tasks_sync.clients.errors import FatalError, TransientError, error_for_status
from google_tasks_sync.clients.retry import retry_transient
from google_tasks_sync.clients.task_mapper import TaskMapper
from google_tasks_sync.config import AccountCredentials, RetryOptions
from google_tasks_sync.models import Task, TaskList

LOGGER = logging.getLogger(__name__)

USER_AGENT = "google-tasks-sync/0.1"
# Запас до истечения access token, секунды
TOKEN_EXPIRY_MARGIN = 60


@dataclass
class TaskPage:
    """Контейнер для страницы задач."""

    items: List[Task]
    next_page_token: Optional[str]


class GoogleTasksClient:
    """Клиент Google Tasks API для одного аккаунта.

    Учётные данные передаются явно; access token получается по refresh token
    и хранится только в экземпляре клиента.
    """

    def __init__(
        self,
        credentials: AccountCredentials,
        *,
        retry: Optional[RetryOptions] = None,
        page_size: int = 100,
        page_delay: float = 0.0,
        session: Optional[requests.Session] = None,
        mapper: Optional[TaskMapper] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._credentials = credentials
        self.retry_options = retry or RetryOptions()
        self._page_size = page_size
        self._page_delay = page_delay
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
            }
        )
        self._mapper = mapper or TaskMapper()
        self._sleep = sleep
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def label(self) -> str:
        return self._credentials.label

    @property
    def base_url(self) -> str:
        return self._credentials.base_url.rstrip("/")

    # region low-level helpers
    def authenticate(self, force: bool = False) -> str:
        """Возвращает действующий access token, при необходимости обновляя его."""
        if not force and self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        data = {
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
            "refresh_token": self._credentials.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = self._session.post(self._credentials.token_uri, data=data, timeout=30)
        except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as exc:
            raise TransientError(f"Не удалось получить токен аккаунта {self.label}: {exc}") from exc
        except requests.RequestException as exc:
            raise FatalError(f"Ошибка запроса токена аккаунта {self.label}: {exc}") from exc
        if response.status_code in (400, 401):
            raise FatalError(
                f"Ошибка авторизации аккаунта {self.label}: {response.text}", response.status_code
            )
        if response.status_code >= 400:
            raise error_for_status(
                response.status_code,
                f"Ошибка получения токена {response.status_code} для аккаунта {self.label}: {response.text}",
                self._error_reasons(response),
            )
        payload = self._json(response, "на запрос токена")
        try:
            self._access_token = str(payload["access_token"])
            expires_in = int(payload.get("expires_in", 3600))
        except (KeyError, TypeError, ValueError) as exc:
            raise FatalError(f"В ответе нет access token для аккаунта {self.label}: {exc}") from exc
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        LOGGER.debug("Получен access token для аккаунта %s", self.label)
        return self._access_token

    def _request(self, method: str, endpoint: str, *, retry_auth: bool = True, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        token = self.authenticate()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._session.request(method, url, headers=headers, timeout=30, **kwargs)
        except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as exc:
            raise TransientError(f"Сбой соединения при запросе {method} {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise FatalError(f"Ошибка запроса {method} {url}: {exc}") from exc
        if response.status_code == 401 and retry_auth:
            LOGGER.info("Токен аккаунта %s отклонён, обновляем", self.label)
            self._access_token = None
            return self._request(method, endpoint, retry_auth=False, **kwargs)
        if response.status_code >= 400:
            raise error_for_status(
                response.status_code,
                f"Ошибка Google Tasks {response.status_code} при запросе {method} {url}: {response.text}",
                self._error_reasons(response),
            )
        return response

    @staticmethod
    def _json(response: requests.Response, context: str) -> Dict:
        """Тело ответа как JSON-объект; оборванный ответ повторяется, битый нет."""
        try:
            payload = response.json()
        except requests.exceptions.ChunkedEncodingError as exc:
            raise TransientError(f"Ответ {context} оборван: {exc}", response.status_code) from exc
        except ValueError as exc:
            raise FatalError(f"Некорректный JSON в ответе {context}: {exc}", response.status_code) from exc
        if not isinstance(payload, dict):
            raise FatalError(f"Ожидался JSON-объект в ответе {context}", response.status_code)
        return payload

    @staticmethod
    def _error_reasons(response: requests.Response) -> List[str]:
        """Значения ``error.errors[].reason`` из тела ответа с ошибкой."""
        try:
            payload = response.json()
        except (ValueError, requests.RequestException):
            return []
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            return []
        return [
            str(item["reason"])
            for item in error.get("errors") or []
            if isinstance(item, dict) and item.get("reason")
        ]

    def _map_task(self, payload: Dict) -> Task:
        try:
            return self._mapper.map_task(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise FatalError(f"Некорректная задача в ответе для аккаунта {self.label}: {exc}") from exc

    # endregion

    # region task lists
    @retry_transient
    def _list_task_lists_page(self, page_token: Optional[str]) -> Dict:
        params: Dict[str, object] = {"maxResults": 100}
        if page_token:
            params["pageToken"] = page_token
        response = self._request("GET", "/users/@me/lists", params=params)
        return self._json(response, "со списками задач")

    def list_task_lists(self) -> List[TaskList]:
        """Все списки задач аккаунта в порядке, который отдаёт API."""
        lists: List[TaskList] = []
        page_token = None
        while True:
            payload = self._list_task_lists_page(page_token)
            try:
                lists.extend(self._mapper.map_task_list(item) for item in payload.get("items") or [])
            except (KeyError, TypeError) as exc:
                raise FatalError(f"Некорректный список задач аккаунта {self.label}: {exc}") from exc
            page_token = payload.get("nextPageToken")
            if not page_token:
                break
        return lists

    def find_task_list_by_name(self, name: str) -> Optional[TaskList]:
        for task_list in self.list_task_lists():
            if task_list.title == name:
                return task_list
        return None

    # endregion

    # region tasks
    @retry_transient
    def list_tasks(self, task_list_id: str, *, page_token: Optional[str] = None) -> TaskPage:
        """Возвращает страницу задач списка, включая выполненные и скрытые."""
        params: Dict[str, object] = {
            "showCompleted": "true",
            "showHidden": "true",
            "maxResults": self._page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        response = self._request("GET", f"/lists/{task_list_id}/tasks", params=params)
        payload = self._json(response, "со страницей задач")
        items = [self._map_task(item) for item in payload.get("items") or []]
        return TaskPage(items=items, next_page_token=payload.get("nextPageToken"))

    def list_all_tasks(self, task_list_id: str) -> List[Task]:
        """Итерирует страницы, пока API возвращает nextPageToken."""
        tasks: List[Task] = []
        page_token = None
        while True:
            page = self.list_tasks(task_list_id, page_token=page_token)
            tasks.extend(page.items)
            if not page.next_page_token:
                break
            page_token = page.next_page_token
            if self._page_delay:
                self._sleep(self._page_delay)
        return tasks

    @retry_transient
    def get_task(self, task_list_id: str, task_id: str) -> Task:
        response = self._request("GET", f"/lists/{task_list_id}/tasks/{task_id}")
        return self._map_task(self._json(response, "с задачей"))

    @retry_transient
    def create_task(self, task_list_id: str, task: Task) -> Task:
        payload = self._mapper.to_payload(task)
        response = self._request("POST", f"/lists/{task_list_id}/tasks", json=payload)
        return self._map_task(self._json(response, "на создание задачи"))

    @retry_transient
    def update_task(self, task_list_id: str, task_id: str, task: Task) -> Task:
        if not task_id:
            raise ValueError("Не задан идентификатор обновляемой задачи")
        payload = self._mapper.to_payload(task, task_id=task_id)
        response = self._request("PUT", f"/lists/{task_list_id}/tasks/{task_id}", json=payload)
        return self._map_task(self._json(response, "на обновление задачи"))

    @retry_transient
    def delete_task(self, task_list_id: str, task_id: str) -> None:
        self._request("DELETE", f"/lists/{task_list_id}/tasks/{task_id}")

    # endregion
