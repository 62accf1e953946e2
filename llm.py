"""Chat-completions client and an explicit, injectable LLM session."""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Union

import requests

try:
    from .models import SessionState, SessionStatus
except Exception:
    from models import SessionState, SessionStatus

logger = logging.getLogger("takahashi")

Messages = List[Dict[str, str]]
ProgressCallback = Callable[[float, str], None]

SANITY_PROMPT = "Reply with exactly: OK"


class SessionNotReadyError(RuntimeError):
    pass


class SessionFailedError(RuntimeError):
    pass


@dataclass
class LLMConfig:
    model: str = "meta/llama-3.1-8b-instruct"
    api_key: str = ""
    base_url: str = "https://integrate.api.nvidia.com/v1"
    temperature: float = 0.7
    top_p: float = 0.95
    presence_penalty: float = 0.5
    max_tokens: int = 1024
    timeout: float = 60.0


def _as_messages(prompt: Union[str, Messages]) -> Messages:
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return list(prompt)


class ChatClient:
    """Minimal OpenAI-compatible chat client (NVIDIA NIM by default)."""

    def __init__(self, cfg: LLMConfig, http: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.http = http or requests.Session()

    @property
    def url(self) -> str:
        return self.cfg.base_url.rstrip("/") + "/chat/completions"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.cfg.api_key:
            headers["Authorization"] = f"Bearer {self.cfg.api_key}"
        return headers

    def _payload(self, messages: Messages, stream: bool) -> dict:
        return {
            "model": self.cfg.model,
            "messages": messages,
            "temperature": self.cfg.temperature,
            "top_p": self.cfg.top_p,
            "presence_penalty": self.cfg.presence_penalty,
            "max_tokens": self.cfg.max_tokens,
            "stream": stream,
        }

    def invoke(self, prompt: Union[str, Messages]) -> str:
        r = self.http.post(
            self.url,
            headers=self._headers(),
            json=self._payload(_as_messages(prompt), stream=False),
            timeout=self.cfg.timeout,
        )
        r.raise_for_status()
        data = r.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    def stream(self, prompt: Union[str, Messages]) -> Iterator[str]:
        """Yield content deltas from a server-sent-events response."""
        with self.http.post(
            self.url,
            headers=self._headers(),
            json=self._payload(_as_messages(prompt), stream=True),
            timeout=self.cfg.timeout,
            stream=True,
        ) as r:
            r.raise_for_status()
            r.encoding = "utf-8"
            for line in r.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    obj = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed stream chunk: %r", data[:80])
                    continue
                for choice in obj.get("choices") or []:
                    delta = (choice.get("delta") or {}).get("content")
                    if delta:
                        yield delta


def init_llm(cfg: LLMConfig) -> ChatClient:
    logger.debug("Chat endpoint: %s (model %s)", cfg.base_url, cfg.model)
    return ChatClient(cfg)


def safe_invoke(logger, llm, prompt, retries: int = 3, debug: bool = False) -> str:
    """Invoke ``llm`` with exponential backoff; ``""`` once retries run out."""
    for attempt in range(1, max(1, retries) + 1):
        try:
            out = llm.invoke(prompt)
            if debug:
                logger.debug("LLM raw output (attempt %s): %r", attempt, out[:400])
            return out or ""
        except Exception as exc:
            logger.warning("LLM call failed (attempt %s/%s): %s", attempt, retries, exc)
            if attempt < retries:
                time.sleep(min(8.0, 0.5 * (2 ** (attempt - 1))))
    logger.error("LLM call failed after %s attempts.", retries)
    return ""


class LLMSession:
    """Owns the chat client and its initialization lifecycle.

    States: uninitialized -> initializing(progress) -> ready | failed(error).
    Callers query :meth:`status`, listen to progress events, or block on
    :meth:`wait_until_ready` with a timeout.
    """

    def __init__(
        self,
        cfg: LLMConfig,
        client_factory: Callable[[LLMConfig], ChatClient] = init_llm,
        skip_sanity: bool = False,
        sanity_retries: int = 3,
    ) -> None:
        self.cfg = cfg
        self.client_factory = client_factory
        self.skip_sanity = skip_sanity
        self.sanity_retries = sanity_retries
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._done = threading.Event()
        self._status = SessionStatus()
        self._client: Optional[ChatClient] = None
        self._progress_listeners: List[ProgressCallback] = []

    def status(self) -> SessionStatus:
        with self._lock:
            return self._status.model_copy()

    @property
    def state(self) -> SessionState:
        return self.status().state

    @property
    def client(self) -> ChatClient:
        with self._lock:
            if self._status.state != SessionState.READY or self._client is None:
                raise SessionNotReadyError(
                    f"LLM session is not ready (state: {self._status.state.value})."
                )
            return self._client

    def add_progress_listener(self, callback: ProgressCallback) -> Callable[[], None]:
        self._progress_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._progress_listeners:
                self._progress_listeners.remove(callback)

        return unsubscribe

    def _report(self, fraction: float, label: str) -> None:
        with self._lock:
            self._status.progress = fraction
            self._status.label = label
        for cb in list(self._progress_listeners):
            cb(fraction, label)

    def initialize(self) -> None:
        with self._lock:
            if self._status.state == SessionState.INITIALIZING:
                raise RuntimeError("LLM session initialization is already running.")
            if self._status.state == SessionState.READY:
                return
            self._status = SessionStatus(state=SessionState.INITIALIZING)
            self._done.clear()

        try:
            self._report(0.0, "connecting")
            client = self.client_factory(self.cfg)
            if not self.skip_sanity:
                self._report(0.5, "sanity check")
                reply = safe_invoke(logger, client, SANITY_PROMPT, retries=self.sanity_retries)
                logger.info("LLM sanity: %r", reply[:50])
                if "OK" not in reply:
                    raise RuntimeError(
                        "LLM sanity check failed. Check NVIDIA_API_KEY and the model name."
                    )
        except Exception as exc:
            with self._lock:
                self._status = SessionStatus(state=SessionState.FAILED, error=str(exc))
            self._done.set()
            logger.error("LLM initialization failed: %s", exc)
            raise

        with self._lock:
            self._client = client
            self._status.state = SessionState.READY
        self._ready.set()
        self._report(1.0, "ready")
        self._done.set()

    def _initialize_in_background(self) -> None:
        try:
            self.initialize()
        except Exception:
            logger.debug("Background LLM initialization failed.", exc_info=True)

    def start(self) -> threading.Thread:
        t = threading.Thread(target=self._initialize_in_background, name="llm-init", daemon=True)
        t.start()
        return t

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until ready; ``False`` on timeout, raises if initialization failed."""
        self._done.wait(timeout)
        status = self.status()
        if status.state == SessionState.FAILED:
            raise SessionFailedError(status.error or "LLM initialization failed.")
        return status.state == SessionState.READY
