"""Local web surface: forwarding endpoints plus the task memo page."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse

from src.taskmemo.core.config_loader import get_log_level, get_relay_settings
from src.taskmemo.core.log_setup import configure_logging
from src.taskmemo.core.upstream_relay import (
    TOKEN_HEADER,
    RelayResult,
    create_task,
    fetch_identity,
    fetch_rooms,
    parse_task_form,
)

logger = logging.getLogger("taskmemo.app")

app = FastAPI(title="Chatwork Task Memo")


def _respond(result: RelayResult) -> JSONResponse:
    return JSONResponse(content=result.payload, status_code=result.status_code)


@app.on_event("startup")
def _init_logging() -> None:
    configure_logging(get_log_level())


@app.get("/health")
def health() -> dict:
    return {"ok": True, "service": "taskmemo", "upstream_base_url": get_relay_settings()["base_url"]}


@app.get("/identity")
def identity(request: Request) -> JSONResponse:
    return _respond(fetch_identity(request.headers.get(TOKEN_HEADER)))


@app.get("/rooms")
def rooms(request: Request) -> JSONResponse:
    return _respond(fetch_rooms(request.headers.get(TOKEN_HEADER)))


@app.post("/rooms/{room_id}/tasks")
async def room_tasks(room_id: str, request: Request) -> JSONResponse:
    token = request.headers.get(TOKEN_HEADER)
    fields = parse_task_form(await request.body())
    result = await run_in_threadpool(create_task, token, room_id, fields)
    return _respond(result)


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
    html = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Chatwork Task Memo</title>
  <style>
    :root {
      --bg: #f3f4f6;
      --panel: #ffffff;
      --ink: #1f2937;
      --accent: #059669;
      --accent-2: #10b981;
      --line: #d1d5db;
      --ok-bg: #dcfce7;
      --ok-ink: #15803d;
      --err-bg: #fee2e2;
      --err-ink: #b91c1c;
    }

    * { box-sizing: border-box; }
    body {
      margin: 0;
      min-height: 100vh;
      display: flex;
      align-items: center;
      justify-content: center;
      background: var(--bg);
      color: var(--ink);
      font-family: system-ui, sans-serif;
      padding: 16px;
    }
    .panel {
      width: 100%;
      max-width: 28rem;
      background: var(--panel);
      padding: 24px;
      border-radius: 8px;
      box-shadow: 0 1px 4px rgba(0, 0, 0, 0.12);
    }
    h1 { text-align: center; color: var(--accent); font-size: 1.5rem; margin: 0 0 24px; }
    label { display: block; font-size: 0.875rem; font-weight: 500; margin-bottom: 4px; }
    .field { margin-bottom: 16px; }
    input, select, textarea {
      width: 100%;
      border: 1px solid var(--line);
      border-radius: 4px;
      padding: 8px 12px;
      font: inherit;
    }
    .row { display: flex; gap: 8px; margin-bottom: 16px; }
    button {
      flex-grow: 1;
      border: 0;
      border-radius: 4px;
      padding: 8px 16px;
      color: #fff;
      background: var(--accent);
      cursor: pointer;
      font: inherit;
    }
    button.secondary { background: var(--accent-2); }
    button.primary { width: 100%; padding: 12px; font-weight: 700; font-size: 1.1rem; }
    #status { font-size: 0.875rem; margin-top: 16px; padding: 8px; border-radius: 4px; display: none; }
    #status.ok { display: block; background: var(--ok-bg); color: var(--ok-ink); }
    #status.success { display: block; background: var(--ok-bg); color: var(--ok-ink); font-weight: 600; }
    #status.error { display: block; background: var(--err-bg); color: var(--err-ink); }
  </style>
</head>
<body>
  <div class="panel">
    <h1>Chatwork Task Memo</h1>
    <div class="field">
      <label for="apiTokenInput">Chatwork API token:</label>
      <input id="apiTokenInput" type="text" placeholder="Enter API token">
    </div>
    <div class="row">
      <button id="saveTokenButton">Save token and load rooms</button>
      <button id="refreshRoomsButton" class="secondary">Refresh rooms</button>
    </div>
    <div class="field">
      <label for="roomSelect">Room to send the task to:</label>
      <select id="roomSelect"></select>
    </div>
    <div class="field">
      <label for="memoText">Task text:</label>
      <textarea id="memoText" rows="4" placeholder="Enter task text"></textarea>
    </div>
    <button id="sendTaskButton" class="primary">Send to Chatwork as a task</button>
    <p id="status"></p>
  </div>

  <script>
    const CACHE_KEY_API_TOKEN = 'chatwork_api_token';
    const CACHE_KEY_ROOMS = 'chatwork_rooms_cache';
    const CACHE_KEY_ROOMS_TIMESTAMP = 'chatwork_rooms_cache_timestamp';
    const CACHE_DURATION_MS = 1000 * 60 * 60 * 24;
    const TASK_DUE_OFFSET_SEC = 60 * 60 * 24 * 7;
    const TOKEN_HEADER = 'X-ChatWorkToken';
    const STATUS_MAX_CHARS = 100;
    const STATUS_MARKERS = { success: '\\u2705 ', error: '\\u274c ', neutral: '\\u2139\\ufe0f ' };
    const STATUS_CLASSES = { success: 'success', error: 'error', neutral: 'ok' };

    const tokenInput = document.getElementById('apiTokenInput');
    const roomSelect = document.getElementById('roomSelect');
    const memoText = document.getElementById('memoText');
    const statusEl = document.getElementById('status');

    let rooms = [];
    let roomsState = 'uninitialized';
    const inFlight = { rooms: false, task: false };

    function setStatus(text, kind = 'neutral') {
      let line = text ? (STATUS_MARKERS[kind] || STATUS_MARKERS.neutral) + text : '';
      if (line.length > STATUS_MAX_CHARS) line = line.substring(0, STATUS_MAX_CHARS - 3) + '...';
      statusEl.textContent = line;
      statusEl.classList.remove('ok', 'success', 'error');
      if (text) statusEl.classList.add(STATUS_CLASSES[kind] || 'ok');
    }

    function renderRooms() {
      const previous = roomSelect.value;
      roomSelect.innerHTML = '';
      const placeholder = document.createElement('option');
      placeholder.value = '';
      placeholder.textContent = roomsState === 'loading' ? 'Loading rooms...' : '-- Select a room --';
      roomSelect.appendChild(placeholder);
      rooms.forEach((room) => {
        const opt = document.createElement('option');
        opt.value = String(room.room_id);
        opt.textContent = room.name;
        roomSelect.appendChild(opt);
      });
      roomSelect.value = rooms.some((room) => String(room.room_id) === previous) ? previous : '';
      roomSelect.disabled = rooms.length === 0 && roomsState !== 'loading';
    }

    function parseRooms(payload) {
      if (!Array.isArray(payload)) throw new Error('Room list must be a JSON array.');
      payload.forEach((room) => {
        if (!room || !Number.isInteger(room.room_id) || typeof room.name !== 'string') {
          throw new Error('Malformed room entry.');
        }
      });
      return payload.map((room) => ({ room_id: room.room_id, name: room.name }));
    }

    function setRooms(next, state) {
      rooms = next;
      roomsState = state;
      renderRooms();
    }

    async function readJson(response) {
      const text = await response.text();
      return JSON.parse(text);
    }

    async function loadRooms(token, forceFetch = false) {
      if (inFlight.rooms) {
        setStatus('Room list request already in progress.', 'error');
        return;
      }
      inFlight.rooms = true;
      try {
        if (!token) {
          setStatus('API token is not set.', 'error');
          roomSelect.value = '';
          setRooms([], 'token_missing');
          return;
        }
        if (!forceFetch) {
          const cached = localStorage.getItem(CACHE_KEY_ROOMS);
          const cachedTs = localStorage.getItem(CACHE_KEY_ROOMS_TIMESTAMP);
          if (cached && cachedTs) {
            const ts = Number.parseInt(cachedTs, 10);
            if (Number.isNaN(ts)) {
              console.error('Room cache timestamp is corrupted, fetching new data.');
            } else if (Date.now() - ts < CACHE_DURATION_MS) {
              try {
                setRooms(parseRooms(JSON.parse(cached)), 'ready');
                setStatus('Loaded room list from cache.', 'success');
                return;
              } catch (err) {
                console.error('Cached rooms data is corrupted, fetching new data.', err);
              }
            } else {
              setStatus('Room list cache expired. Refreshing...', 'neutral');
            }
          }
        }
        setStatus('Fetching room list from Chatwork API...', 'neutral');
        setRooms([], 'loading');
        try {
          const response = await fetch('/rooms', {
            method: 'GET',
            headers: { [TOKEN_HEADER]: token, 'Accept': 'application/json' },
          });
          const payload = await readJson(response);
          if (!response.ok) {
            throw new Error(`Chatwork API error (room list): ${response.status} - ${JSON.stringify(payload)}`);
          }
          const fetched = parseRooms(payload);
          setRooms(fetched, 'ready');
          setStatus('Room list loaded.', 'success');
          localStorage.setItem(CACHE_KEY_ROOMS, JSON.stringify(fetched));
          localStorage.setItem(CACHE_KEY_ROOMS_TIMESTAMP, Date.now().toString());
        } catch (err) {
          console.error('Room list fetch failed', err);
          setStatus(`Failed to load room list: ${err.message}`, 'error');
          setRooms([], 'error');
        }
      } finally {
        inFlight.rooms = false;
      }
    }

    async function saveToken() {
      const token = tokenInput.value.trim();
      if (!token) {
        setStatus('Enter an API token.', 'error');
        return;
      }
      localStorage.setItem(CACHE_KEY_API_TOKEN, token);
      tokenInput.value = token;
      await loadRooms(token, true);
    }

    async function refreshRooms() {
      const token = localStorage.getItem(CACHE_KEY_API_TOKEN);
      if (!token) {
        setStatus('API token is not set. Save a token first.', 'error');
        return;
      }
      await loadRooms(token, true);
    }

    async function sendTask() {
      if (inFlight.task) {
        setStatus('Task submission already in progress.', 'error');
        return;
      }
      const token = tokenInput.value.trim();
      const roomId = roomSelect.value;
      const message = memoText.value.trim();
      if (!token) { setStatus('API token is not set.', 'error'); return; }
      if (!roomId) { setStatus('Select a room to send the task to.', 'error'); return; }
      if (!message) { setStatus('Memo is empty. Enter some text.', 'error'); return; }

      inFlight.task = true;
      setStatus('Sending task...', 'neutral');
      try {
        const meResponse = await fetch('/identity', {
          method: 'GET',
          headers: { [TOKEN_HEADER]: token, 'Accept': 'application/json' },
        });
        const me = await readJson(meResponse);
        if (!meResponse.ok) {
          throw new Error(`Chatwork API error (identity): ${meResponse.status} - ${JSON.stringify(me)}`);
        }
        if (!Number.isInteger(me.account_id)) throw new Error('Identity response has no account_id.');
        const limit = Math.floor(Date.now() / 1000) + TASK_DUE_OFFSET_SEC;
        const response = await fetch(`/rooms/${encodeURIComponent(roomId)}/tasks`, {
          method: 'POST',
          headers: {
            [TOKEN_HEADER]: token,
            'Content-Type': 'application/x-www-form-urlencoded',
            'Accept': 'application/json',
          },
          body: new URLSearchParams({
            body: message,
            to_ids: String(me.account_id),
            limit: String(limit),
          }).toString(),
        });
        const payload = await readJson(response);
        if (!response.ok) {
          throw new Error(`Chatwork API error (task): ${response.status} - ${JSON.stringify(payload)}`);
        }
        setStatus('Task sent.', 'success');
        memoText.value = '';
      } catch (err) {
        console.error('Task submission failed', err);
        setStatus(`Failed to send task: ${err.message}`, 'error');
      } finally {
        inFlight.task = false;
      }
    }

    document.getElementById('saveTokenButton').addEventListener('click', saveToken);
    document.getElementById('refreshRoomsButton').addEventListener('click', refreshRooms);
    document.getElementById('sendTaskButton').addEventListener('click', sendTask);

    (function startup() {
      const stored = localStorage.getItem(CACHE_KEY_API_TOKEN);
      if (stored) {
        tokenInput.value = stored;
        loadRooms(stored);
      } else {
        setStatus('Enter your Chatwork API token.', 'neutral');
        setRooms([], 'token_missing');
      }
    })();
  </script>
</body>
</html>
"""
    return HTMLResponse(content=html, headers={"Cache-Control": "no-store, max-age=0"})
