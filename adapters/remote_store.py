"""원격 문서 저장소 어댑터 (HTTP/JSON, requests 사용)

엔드포인트 형식:
    GET    {base_url}/documents/{collection}/{id}        -> 문서 필드 (JSON 객체)
    PATCH  {base_url}/documents/{collection}/{id}        -> 필드 병합 저장
    PUT    {base_url}/documents/{collection}/{id}        -> 문서 덮어쓰기
    POST   {base_url}/documents/{collection}             -> {"id": "..."}
    DELETE {base_url}/documents/{collection}/{id}
    GET    {base_url}/documents/{collection}             -> {"documents": [{"id": ..., "fields": {...}}]}

구독은 주기적 폴링으로 구현하며, 내용이 바뀐 경우에만 콜백을 호출합니다.
"""

import json
import logging
import queue
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from core.models import QueueItem
from utils.exceptions import RemoteSyncError, TimeTrackerError

log = logging.getLogger(__name__)

KIOSK_COLLECTION = "ipads"
QUEUE_COLLECTION = "project_queue"
WORKER_COLLECTION = "workers"
REPORT_COLLECTION = "reports"


class _Poller:
    """fetch 결과가 바뀔 때마다 callback 을 호출하는 폴링 스레드"""

    def __init__(self, fetch: Callable[[], Any], callback: Callable[[Any], None], interval: float, name: str):
        self._fetch = fetch
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()
        self._last: Any = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self):
        self._thread.start()

    def poll_once(self):
        try:
            value = self._fetch()
        except RemoteSyncError as e:
            log.warning("원격 구독 조회 실패: %s", e)
            return
        if value is None or value == self._last:
            return
        self._last = value
        try:
            self._callback(value)
        except (TimeTrackerError, TypeError, ValueError, KeyError, AttributeError):
            log.exception("원격 구독 콜백 처리 실패 (%s)", self._thread.name)

    def _run(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self._interval)

    def stop(self):
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self._interval + 1)


class RemoteDocumentStore:

    def __init__(self, base_url: str, timeout: float = 5.0, poll_interval: float = 2.0,
                 retry_delay: float = 3.0, max_retries: int = 3, session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("base_url 이 비어 있습니다")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self.http = session or requests.Session()
        self._outbox: queue.Queue = queue.Queue()
        self._pollers: List[_Poller] = []
        self._sender_running = True
        self._sender = threading.Thread(target=self._send_loop, name="remote-sender", daemon=True)
        self._sender.start()

    # ---- HTTP ----

    def _url(self, collection: str, doc_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/documents/{collection}"
        return f"{url}/{doc_id}" if doc_id else url

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise RemoteSyncError(f"{method} {url} 실패: {e}") from e
        if response.status_code == 404:
            return response
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise RemoteSyncError(f"{method} {url} 응답 오류: {e}") from e
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteSyncError(f"응답을 JSON 으로 해석할 수 없습니다: {e}") from e

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        response = self._request('GET', self._url(collection, doc_id))
        if response.status_code == 404:
            return None
        data = self._json(response)
        return data if isinstance(data, dict) else None

    def set_document(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = True):
        self._request('PATCH' if merge else 'PUT', self._url(collection, doc_id), json=fields)

    def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        response = self._request('POST', self._url(collection), json=data)
        body = self._json(response)
        if not isinstance(body, dict) or not body.get('id'):
            raise RemoteSyncError(f"{collection} 문서 생성 응답에 id 가 없습니다")
        return str(body['id'])

    def delete_document(self, collection: str, doc_id: str):
        self._request('DELETE', self._url(collection, doc_id))

    def list_documents(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        response = self._request('GET', self._url(collection))
        if response.status_code == 404:
            return []
        body = self._json(response)
        docs = body.get('documents', []) if isinstance(body, dict) else []
        return [(str(d['id']), d.get('fields') or {}) for d in docs
                if isinstance(d, dict) and 'id' in d and isinstance(d.get('fields') or {}, dict)]

    # ---- 전송 (fire-and-forget) ----

    def push(self, document_id: str, fields: Dict[str, Any], merge: bool = True):
        """키오스크 문서에 상태를 보냅니다. 호출자는 완료를 기다리지 않습니다."""
        self.enqueue_set(KIOSK_COLLECTION, document_id, fields, merge=merge)

    def enqueue_set(self, collection: str, doc_id: str, fields: Dict[str, Any], merge: bool = True):
        self._outbox.put(('set', collection, doc_id, fields, merge))

    def enqueue_delete(self, collection: str, doc_id: str):
        self._outbox.put(('delete', collection, doc_id, None, False))

    @staticmethod
    def new_document_id() -> str:
        """문서 id 를 클라이언트에서 만듭니다. 생성 요청이 응답을 기다리지 않도록 합니다."""
        return uuid.uuid4().hex

    def _send_loop(self):
        while self._sender_running:
            try:
                item = self._outbox.get(timeout=1)
            except queue.Empty:
                continue
            if item is None:
                self._outbox.task_done()
                break
            self._send_with_retry(*item)
            self._outbox.task_done()

    def _send_with_retry(self, action: str, collection: str, doc_id: str,
                         fields: Optional[Dict[str, Any]], merge: bool):
        for attempt in range(1, self.max_retries + 1):
            try:
                if action == 'delete':
                    self.delete_document(collection, doc_id)
                else:
                    self.set_document(collection, doc_id, fields, merge=merge)
                return
            except RemoteSyncError as e:
                log.warning("원격 전송 실패 (%d/%d): %s", attempt, self.max_retries, e)
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
        log.error("원격 전송을 포기합니다: %s %s/%s %s", action, collection, doc_id,
                  json.dumps(fields, ensure_ascii=False) if fields is not None else "")

    def flush(self):
        self._outbox.join()

    # ---- 구독 ----

    def subscribe(self, document_id: str, on_snapshot: Callable[[Dict[str, Any]], None],
                  collection: str = KIOSK_COLLECTION) -> _Poller:
        poller = _Poller(lambda: self.get_document(collection, document_id), on_snapshot,
                         self.poll_interval, name=f"poll-{collection}-{document_id}")
        self._pollers.append(poller)
        poller.start()
        return poller

    def subscribe_collection(self, collection: str,
                             on_list: Callable[[List[Tuple[str, Dict[str, Any]]]], None]) -> _Poller:
        poller = _Poller(lambda: self.list_documents(collection), on_list,
                         self.poll_interval, name=f"poll-{collection}")
        self._pollers.append(poller)
        poller.start()
        return poller

    def stop(self):
        for poller in self._pollers:
            poller.stop()
        self._pollers = []
        self._outbox.put(None)
        self._sender.join(timeout=self.timeout + 1)
        self._sender_running = False
        self.http.close()


class QueueStore:
    """작업 대기열 (project_queue 컬렉션)"""

    def __init__(self, remote: RemoteDocumentStore):
        self.remote = remote

    def insert(self, item: QueueItem) -> str:
        """항목 id 를 먼저 정하고 전송은 송신 스레드에 맡깁니다."""
        item_id = item.id or self.remote.new_document_id()
        self.remote.enqueue_set(QUEUE_COLLECTION, item_id, item.to_dict(), merge=False)
        return item_id

    def delete(self, item_id: str):
        self.remote.enqueue_delete(QUEUE_COLLECTION, item_id)

    def subscribe(self, on_list: Callable[[List[QueueItem]], None]) -> _Poller:
        def convert(docs: List[Tuple[str, Dict[str, Any]]]):
            on_list(queue_items_from_documents(docs))
        return self.remote.subscribe_collection(QUEUE_COLLECTION, convert)


def queue_items_from_documents(docs: List[Tuple[str, Dict[str, Any]]]) -> List[QueueItem]:
    """대기열 문서를 QueueItem 으로 변환합니다. 형식이 잘못된 문서는 건너뜁니다."""
    items = []
    for doc_id, fields in docs:
        try:
            items.append(QueueItem.from_dict(fields, item_id=doc_id))
        except (TypeError, ValueError, AttributeError) as e:
            log.warning("잘못된 대기열 문서를 건너뜁니다 (%s): %s", doc_id, e)
    return items


def worker_names_from_documents(docs: List[Tuple[str, Dict[str, Any]]]) -> Dict[str, str]:
    """workers 컬렉션 문서 목록을 카드ID -> 이름 매핑으로 변환합니다."""
    return {doc_id: str(fields.get('name') or "Unknown") for doc_id, fields in docs}
