"""FastAPI-powered web UI for playing ClassicXO in the browser."""

from __future__ import annotations

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .ai import Difficulty, HeuristicOpponent, NoLegalMove
from .config import load_config
from .game import (
    EMPTY,
    Draw,
    GameSession,
    Mark,
    MoveError,
    Win,
    apply_move,
    empty_cells,
)
from .profile import GameMode, Settings, Theme
from .storage import SnapshotStore

logger = logging.getLogger(__name__)

CONFIG = load_config()

# In "ai" mode the human always plays X
AI_MARK = Mark.O
AI_THINK_DELAY: Tuple[float, float] = CONFIG.ai_think_delay
STORE = SnapshotStore(CONFIG.data_path)
PROFILE_LOCK = threading.Lock()
GAME_TTL_SECONDS = 60 * 60  # idle games are dropped after an hour


@dataclass
class ActiveGame:
    """Container for a running session and, in "ai" mode, its opponent."""

    session: GameSession
    mode: GameMode
    difficulty: Difficulty
    opponent: Optional[HeuristicOpponent]
    move_log: List[Dict[str, int | str]] = field(default_factory=list)
    ai_pending: bool = False
    scored: bool = False
    touched_at: float = field(default_factory=time.time)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


GAMES: Dict[str, ActiveGame] = {}
GAMES_LOCK = threading.Lock()
app = FastAPI(title="ClassicXO", description="Tic-tac-toe played in the browser")


class NewGameRequest(BaseModel):
    """Request payload for starting a new game.

    Omitted fields fall back to the stored preferences.
    """

    mode: Optional[GameMode] = None
    difficulty: Optional[Difficulty] = None


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    model_config = ConfigDict(populate_by_name=True)

    # Range is checked by the engine so the client gets a proper error code
    cell_index: int = Field(alias="cellIndex")


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sound_enabled: Optional[bool] = Field(default=None, alias="soundEnabled")
    music_enabled: Optional[bool] = Field(default=None, alias="musicEnabled")
    volume: Optional[int] = Field(default=None, ge=0, le=100)
    theme: Optional[Theme] = None


@app.exception_handler(MoveError)
async def move_error_handler(request: Request, exc: MoveError) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"detail": str(exc), "code": exc.code}
    )


# ---- profile helpers ----


def _record_result(game_id: str, entry: ActiveGame) -> None:
    """Add a finished game to the score tally, once. Caller holds ``entry.lock``."""

    if entry.scored or not entry.session.is_over:
        return
    entry.scored = True
    outcome = entry.session.outcome
    with PROFILE_LOCK:
        snapshot = STORE.load()
        snapshot = snapshot.model_copy(update={"stats": snapshot.stats.record(outcome)})
        STORE.save(snapshot)
    logger.info("Game %s finished: %s", game_id, outcome)


# ---- game helpers ----


def _cleanup_games() -> None:
    """Drop games idle for ``GAME_TTL_SECONDS``. Caller holds ``GAMES_LOCK``."""

    now = time.time()
    expired = [
        game_id
        for game_id, entry in list(GAMES.items())
        if not entry.ai_pending and now - entry.touched_at >= GAME_TTL_SECONDS
    ]
    for game_id in expired:
        GAMES.pop(game_id, None)
    if expired:
        logger.info("Dropped %d idle game(s)", len(expired))


def _create_game(mode: GameMode, difficulty: Difficulty) -> Tuple[str, ActiveGame]:
    """Create a fresh session and register it for later access."""

    opponent = HeuristicOpponent() if mode is GameMode.AI else None
    entry = ActiveGame(
        session=GameSession.new(),
        mode=mode,
        difficulty=difficulty,
        opponent=opponent,
    )
    game_id = uuid.uuid4().hex
    with GAMES_LOCK:
        _cleanup_games()
        GAMES[game_id] = entry
    logger.info(
        "Created %s game %s (difficulty=%s)", mode.value, game_id, difficulty.value
    )
    return game_id, entry


def _get_game(game_id: str) -> ActiveGame:
    with GAMES_LOCK:
        entry = GAMES.get(game_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Game not found")
    entry.touched_at = time.time()
    return entry


def _run_ai_turn(game_id: str) -> None:
    with GAMES_LOCK:
        entry = GAMES.get(game_id)
    if not entry:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with entry.lock:
        try:
            if not entry.opponent:
                return
            session = entry.session
            if session.is_over or session.turn is not AI_MARK:
                return
            cell_index = entry.opponent.select_move(
                session.board, AI_MARK, entry.difficulty
            )
            entry.session = apply_move(session, cell_index)
            entry.move_log.append({"player": AI_MARK.value, "cellIndex": cell_index})
            _record_result(game_id, entry)
        except (NoLegalMove, MoveError):
            logger.exception("AI failed to move in game %s", game_id)
        finally:
            entry.ai_pending = False


def _serialize_game(game_id: str, entry: ActiveGame) -> Dict[str, object]:
    with entry.lock:
        session = entry.session
        outcome = session.outcome
        if isinstance(outcome, Win):
            status = "win"
        elif isinstance(outcome, Draw):
            status = "draw"
        else:
            status = "in_progress"

        state: Dict[str, object] = {
            "id": game_id,
            "mode": entry.mode.value,
            "difficulty": entry.difficulty.value,
            "board": ["" if c == EMPTY else Mark(c).value for c in session.board],
            "currentPlayer": session.turn.value,
            "status": status,
            "winner": outcome.mark.value if isinstance(outcome, Win) else None,
            "winningLine": list(outcome.line) if isinstance(outcome, Win) else None,
            "availableMoves": [] if session.is_over else empty_cells(session.board),
            "moveLog": list(entry.move_log),
            "aiPending": entry.ai_pending,
        }
        if entry.move_log:
            state["lastMove"] = entry.move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    entry: ActiveGame,
    cell_index: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    should_schedule_ai = False
    with entry.lock:
        if entry.ai_pending:
            raise HTTPException(status_code=400, detail="AI is completing its move")
        session = entry.session
        if entry.opponent and not session.is_over and session.turn is AI_MARK:
            raise HTTPException(status_code=400, detail="Waiting for the AI to move")

        player = session.turn
        # MoveError propagates to move_error_handler; the session is untouched
        entry.session = apply_move(session, cell_index)
        entry.move_log.append({"player": player.value, "cellIndex": cell_index})
        _record_result(game_id, entry)

        should_schedule_ai = bool(
            entry.opponent
            and not entry.session.is_over
            and entry.session.turn is AI_MARK
        )
        if should_schedule_ai:
            entry.ai_pending = True

    if should_schedule_ai and background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id)


# ---- routes ----


@app.post("/api/game")
def create_game(request: NewGameRequest) -> Dict[str, object]:
    with PROFILE_LOCK:
        snapshot = STORE.load()
        mode = request.mode or snapshot.game_mode
        difficulty = request.difficulty or snapshot.ai_difficulty
        if (mode, difficulty) != (snapshot.game_mode, snapshot.ai_difficulty):
            STORE.save(
                snapshot.model_copy(
                    update={"game_mode": mode, "ai_difficulty": difficulty}
                )
            )
    game_id, entry = _create_game(mode, difficulty)
    return _serialize_game(game_id, entry)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    entry = _get_game(game_id)
    return _serialize_game(game_id, entry)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    entry = _get_game(game_id)
    _apply_player_move(game_id, entry, request.cell_index, background_tasks)
    return _serialize_game(game_id, entry)


@app.get("/api/profile")
def get_profile() -> Dict[str, object]:
    with PROFILE_LOCK:
        return STORE.load().to_payload()


@app.put("/api/settings")
def update_settings(request: SettingsUpdate) -> Dict[str, object]:
    with PROFILE_LOCK:
        snapshot = STORE.load()
        merged = {
            **snapshot.settings.model_dump(),
            **request.model_dump(exclude_none=True),
        }
        settings = Settings.model_validate(merged)
        snapshot = snapshot.model_copy(update={"settings": settings})
        STORE.save(snapshot)
    return snapshot.to_payload()


@app.post("/api/scores/reset")
def reset_scores() -> Dict[str, object]:
    with PROFILE_LOCK:
        snapshot = STORE.load()
        snapshot = snapshot.model_copy(update={"stats": snapshot.stats.reset()})
        STORE.save(snapshot)
    logger.info("Score tally reset")
    return snapshot.to_payload()


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1, user-scalable=no" />
    <title>ClassicXO</title>
    <link rel="preconnect" href="https://fonts.googleapis.com" />
    <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin />
    <link
      href="https://fonts.googleapis.com/css2?family=Poppins:wght@400;500;600;700&display=swap"
      rel="stylesheet"
    />
    <style>
      :root {
        font-family: 'Poppins', system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        --bg: radial-gradient(circle at top, #f2f5ff, #dbe0ff 40%, #cfd8ff 70%);
        --panel: rgba(255, 255, 255, 0.92);
        --text: #13203a;
        --muted: rgba(19, 32, 58, 0.7);
        --cell: #f5f7ff;
        --cell-hover: #e6ebff;
        --x: #3a66ff;
        --o: #ff5a7a;
        --win: #ffe27a;
      }
      body[data-theme='dark'] {
        --bg: radial-gradient(circle at top, #252a3a, #151925 60%, #0d1018);
        --panel: rgba(30, 35, 50, 0.95);
        --text: #e8ecf8;
        --muted: rgba(232, 236, 248, 0.65);
        --cell: #2b3146;
        --cell-hover: #363d57;
        --x: #7fa2ff;
        --o: #ff8aa2;
        --win: #6b5a1a;
      }
      body[data-theme='neon'] {
        --bg: radial-gradient(circle at top, #1a0033, #0a0018 70%);
        --panel: rgba(20, 0, 40, 0.92);
        --text: #f4e9ff;
        --muted: rgba(244, 233, 255, 0.65);
        --cell: #22003f;
        --cell-hover: #33005c;
        --x: #00f0ff;
        --o: #ff2bd6;
        --win: #4d3d00;
      }
      body[data-theme='ocean'] {
        --bg: linear-gradient(160deg, #d8f3ff, #8fd3f4 60%, #5bb3e0);
        --panel: rgba(240, 251, 255, 0.92);
        --text: #0b3954;
        --muted: rgba(11, 57, 84, 0.7);
        --cell: #e3f6ff;
        --cell-hover: #cdeeff;
        --x: #087e8b;
        --o: #ff6f59;
        --win: #fff3b0;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        background: var(--bg);
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem 3rem;
        color: var(--text);
        transition: background 0.4s ease;
      }
      main {
        position: relative;
        background: var(--panel);
        border-radius: 18px;
        box-shadow: 0 20px 40px rgba(34, 47, 79, 0.16);
        padding: clamp(1.5rem, 4vw, 2.5rem);
        width: min(520px, 100%);
      }
      h1 {
        margin: 0 0 0.5rem;
        font-size: clamp(1.8rem, 2.4vw + 1.2rem, 2.6rem);
        text-align: center;
        letter-spacing: 0.06em;
      }
      button {
        font-size: 1rem;
        padding: 0.55rem 0.95rem;
        border-radius: 999px;
        border: 1px solid rgba(60, 70, 120, 0.25);
        background: var(--cell);
        color: var(--text);
        cursor: pointer;
        font-family: inherit;
        transition: transform 0.1s ease, box-shadow 0.1s ease;
      }
      button:hover {
        transform: translateY(-1px);
        box-shadow: 0 8px 18px rgba(0, 64, 128, 0.12);
      }
      button.active {
        background: var(--x);
        color: white;
      }
      .scoreboard {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 0.75rem;
        margin: 1rem 0;
        text-align: center;
      }
      .score {
        padding: 0.6rem;
        border-radius: 14px;
        background: var(--cell);
      }
      .score.current {
        outline: 2px solid var(--x);
      }
      .score .value {
        font-size: 1.6rem;
        font-weight: 700;
      }
      #status {
        text-align: center;
        font-weight: 600;
        min-height: 1.6rem;
      }
      #message {
        text-align: center;
        color: var(--o);
        min-height: 1.4rem;
      }
      #board {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 0.6rem;
        margin: 1rem auto;
        width: min(360px, 100%);
      }
      #board.thinking {
        opacity: 0.7;
      }
      .square {
        aspect-ratio: 1;
        border-radius: 14px;
        background: var(--cell);
        border: none;
        font-size: clamp(2rem, 8vw, 3.2rem);
        font-weight: 700;
        padding: 0;
      }
      .square:hover:not(.disabled) {
        background: var(--cell-hover);
      }
      .square.x {
        color: var(--x);
      }
      .square.o {
        color: var(--o);
      }
      .square.winning {
        background: var(--win);
      }
      .square.disabled {
        cursor: default;
      }
      .controls {
        display: flex;
        flex-wrap: wrap;
        gap: 0.75rem;
        justify-content: center;
      }
      #settings-panel {
        position: absolute;
        top: 0;
        right: 0;
        width: min(320px, 100%);
        height: 100%;
        padding: 1.5rem;
        background: var(--panel);
        border-radius: 18px;
        box-shadow: -10px 0 30px rgba(0, 0, 0, 0.15);
        display: none;
        overflow-y: auto;
      }
      #settings-panel.open {
        display: block;
      }
      .setting {
        margin-bottom: 1.1rem;
      }
      .setting h3 {
        margin: 0 0 0.4rem;
        font-size: 0.95rem;
        color: var(--muted);
      }
      .setting .options {
        display: flex;
        flex-wrap: wrap;
        gap: 0.4rem;
      }
      .hidden {
        display: none !important;
      }
      .hint {
        text-align: center;
        font-size: 0.8rem;
        color: var(--muted);
        margin-top: 1.25rem;
      }
    </style>
  </head>
  <body data-theme="default">
    <main>
      <h1>ClassicXO</h1>
      <div class="scoreboard">
        <div class="score" id="score-x-box">
          <div>Player X</div>
          <div class="value" id="score-x">0</div>
        </div>
        <div class="score">
          <div>Draws</div>
          <div class="value" id="score-draw">0</div>
        </div>
        <div class="score" id="score-o-box">
          <div id="player-o-label">Player O</div>
          <div class="value" id="score-o">0</div>
        </div>
      </div>
      <div id="status">Loading…</div>
      <div id="board"></div>
      <div id="message"></div>
      <div class="controls">
        <button id="new-game">New game</button>
        <button id="reset-score">Reset score</button>
        <button id="settings-button">Settings</button>
      </div>
      <p class="hint">Keys: 1–9 play a cell · R new game · S settings · Esc close</p>

      <aside id="settings-panel">
        <div class="controls" style="justify-content: space-between">
          <strong>Settings</strong>
          <button id="close-settings">Close</button>
        </div>
        <div class="setting">
          <h3>Game mode</h3>
          <div class="options">
            <button class="mode-btn" data-mode="pvp">Two players</button>
            <button class="mode-btn" data-mode="ai">Vs AI</button>
          </div>
        </div>
        <div class="setting ai-only">
          <h3>AI difficulty</h3>
          <div class="options">
            <button class="difficulty-btn" data-difficulty="easy">Easy</button>
            <button class="difficulty-btn" data-difficulty="medium">Medium</button>
            <button class="difficulty-btn" data-difficulty="hard">Hard</button>
          </div>
        </div>
        <div class="setting">
          <h3>Theme</h3>
          <div class="options">
            <button class="theme-btn" data-theme="default">Default</button>
            <button class="theme-btn" data-theme="dark">Dark</button>
            <button class="theme-btn" data-theme="neon">Neon</button>
            <button class="theme-btn" data-theme="ocean">Ocean</button>
          </div>
        </div>
        <div class="setting">
          <h3>Sound</h3>
          <div class="options">
            <button id="sound-toggle">Effects: ON</button>
            <button id="music-toggle">Music: OFF</button>
          </div>
        </div>
        <div class="setting">
          <h3>Volume <span id="volume-value">50%</span></h3>
          <input type="range" id="volume" min="0" max="100" value="50" />
        </div>
      </aside>
    </main>

    <script>
      const boardContainer = document.getElementById('board');
      const statusEl = document.getElementById('status');
      const messageEl = document.getElementById('message');
      const newGameButton = document.getElementById('new-game');
      const resetScoreButton = document.getElementById('reset-score');
      const settingsButton = document.getElementById('settings-button');
      const settingsPanel = document.getElementById('settings-panel');
      const closeSettingsButton = document.getElementById('close-settings');
      const soundToggle = document.getElementById('sound-toggle');
      const musicToggle = document.getElementById('music-toggle');
      const volumeSlider = document.getElementById('volume');
      const volumeValue = document.getElementById('volume-value');

      let profile = null;
      let gameState = null;
      let isRequestPending = false;
      let aiPollHandle = null;
      let newGameRequest = 0;
      let musicHandle = null;

      // ---- sound ----

      const audioContext = new (window.AudioContext || window.webkitAudioContext)();

      function beep(frequency, duration, type = 'sine', force = false) {
        if (!profile || (!profile.settings.soundEnabled && !force)) return;
        const oscillator = audioContext.createOscillator();
        const gain = audioContext.createGain();
        oscillator.connect(gain);
        gain.connect(audioContext.destination);
        oscillator.frequency.value = frequency;
        oscillator.type = type;
        const now = audioContext.currentTime;
        gain.gain.setValueAtTime(0, now);
        gain.gain.linearRampToValueAtTime((profile.settings.volume / 100) * 0.1, now + 0.01);
        gain.gain.exponentialRampToValueAtTime(0.01, now + duration);
        oscillator.start(now);
        oscillator.stop(now + duration);
      }

      const sounds = {
        move: () => beep(800, 0.1, 'square'),
        aiMove: () => beep(600, 0.15, 'triangle'),
        win: () => {
          beep(523, 0.2);
          setTimeout(() => beep(659, 0.2), 100);
          setTimeout(() => beep(784, 0.3), 200);
        },
        draw: () => beep(400, 0.5, 'sawtooth'),
        click: () => beep(1000, 0.05, 'square'),
      };

      function updateMusic() {
        if (musicHandle) {
          clearInterval(musicHandle);
          musicHandle = null;
        }
        if (!profile || !profile.settings.musicEnabled) return;
        const notes = [262, 330, 392, 330];
        let step = 0;
        musicHandle = setInterval(() => {
          beep(notes[step % notes.length], 0.6, 'sine', true);
          step += 1;
        }, 700);
      }

      // ---- API ----

      async function api(path, options = {}) {
        const response = await fetch(path, {
          headers: { 'Content-Type': 'application/json' },
          ...options,
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload?.detail || 'Request failed');
        }
        return payload;
      }

      async function saveSettings(changes) {
        try {
          setProfile(await api('/api/settings', { method: 'PUT', body: JSON.stringify(changes) }));
        } catch (error) {
          messageEl.textContent = error.message;
        }
      }

      // ---- rendering ----

      function setProfile(data) {
        profile = data;
        const { settings, gameStats } = data;
        document.body.setAttribute('data-theme', settings.theme);
        document.getElementById('score-x').textContent = gameStats.playerX;
        document.getElementById('score-o').textContent = gameStats.playerO;
        document.getElementById('score-draw').textContent = gameStats.draws;
        soundToggle.textContent = `Effects: ${settings.soundEnabled ? 'ON' : 'OFF'}`;
        soundToggle.classList.toggle('active', settings.soundEnabled);
        musicToggle.textContent = `Music: ${settings.musicEnabled ? 'ON' : 'OFF'}`;
        musicToggle.classList.toggle('active', settings.musicEnabled);
        volumeSlider.value = settings.volume;
        volumeValue.textContent = `${settings.volume}%`;
        document.querySelectorAll('.theme-btn').forEach((btn) => {
          btn.classList.toggle('active', btn.dataset.theme === settings.theme);
        });
        document.querySelectorAll('.mode-btn').forEach((btn) => {
          btn.classList.toggle('active', btn.dataset.mode === data.gameMode);
        });
        document.querySelectorAll('.difficulty-btn').forEach((btn) => {
          btn.classList.toggle('active', btn.dataset.difficulty === data.aiDifficulty);
        });
        document.querySelectorAll('.ai-only').forEach((el) => {
          el.classList.toggle('hidden', data.gameMode !== 'ai');
        });
        document.getElementById('player-o-label').textContent =
          data.gameMode === 'ai' ? 'AI' : 'Player O';
        updateMusic();
      }

      function playerName(mark) {
        if (gameState && gameState.mode === 'ai') {
          return mark === 'O' ? 'AI' : 'You';
        }
        return `Player ${mark}`;
      }

      function renderBoard() {
        boardContainer.innerHTML = '';
        const cells = gameState ? gameState.board : Array(9).fill('');
        const winning = new Set(gameState?.winningLine || []);
        const available = new Set(gameState?.availableMoves || []);
        cells.forEach((mark, index) => {
          const square = document.createElement('button');
          square.className = 'square';
          square.textContent = mark;
          if (mark) square.classList.add(mark.toLowerCase());
          if (winning.has(index)) square.classList.add('winning');
          if (!available.has(index) || gameState?.aiPending) square.classList.add('disabled');
          square.addEventListener('click', () => sendMove(index));
          boardContainer.appendChild(square);
        });
        boardContainer.classList.toggle('thinking', Boolean(gameState?.aiPending));
      }

      function renderStatus() {
        document.getElementById('score-x-box').classList.remove('current');
        document.getElementById('score-o-box').classList.remove('current');
        if (!gameState) return;
        if (gameState.status === 'win') {
          const name = playerName(gameState.winner);
          statusEl.textContent = name === 'You' ? 'You win! 🏆' : `${name} wins! 🏆`;
        } else if (gameState.status === 'draw') {
          statusEl.textContent = "It's a draw!";
        } else if (gameState.aiPending) {
          statusEl.textContent = 'AI is thinking…';
        } else {
          const current = gameState.currentPlayer;
          statusEl.textContent = `${playerName(current)} to move (${current})`;
          const box = current === 'X' ? 'score-x-box' : 'score-o-box';
          document.getElementById(box).classList.add('current');
        }
      }

      async function setState(data) {
        const previous = gameState;
        gameState = data;
        const before = previous && previous.id === data.id ? previous.moveLog.length : 0;
        const fresh = data.moveLog.slice(before);
        fresh.forEach((move) => {
          if (data.mode === 'ai' && move.player === 'O') sounds.aiMove();
          else sounds.move();
        });
        renderBoard();
        renderStatus();
        if (fresh.length && data.status !== 'in_progress') {
          if (data.status === 'win') sounds.win();
          else sounds.draw();
          setProfile(await api('/api/profile'));
        }
        if (data.aiPending) ensureAiPolling();
      }

      // ---- game flow ----

      function stopAiPolling() {
        if (aiPollHandle) {
          clearTimeout(aiPollHandle);
          aiPollHandle = null;
        }
      }

      function ensureAiPolling() {
        if (!aiPollHandle) aiPollHandle = setTimeout(pollAiState, 250);
      }

      async function pollAiState() {
        aiPollHandle = null;
        if (!gameState) return;
        const id = gameState.id;
        try {
          const data = await api(`/api/game/${id}`);
          // A new game may have started while the request was in flight
          if (gameState?.id !== id) return;
          await setState(data);
        } catch (error) {
          if (gameState?.id !== id) return;
          console.error('Polling failed', error);
          ensureAiPolling();
        }
      }

      async function newGame(options = {}) {
        stopAiPolling();
        messageEl.textContent = '';
        const request = ++newGameRequest;
        try {
          const data = await api('/api/game', { method: 'POST', body: JSON.stringify(options) });
          // Only the most recent "new game" click wins
          if (request !== newGameRequest) return;
          stopAiPolling();
          gameState = null;
          await setState(data);
          setProfile(await api('/api/profile'));
        } catch (error) {
          messageEl.textContent = error.message || 'Network error. Please try again.';
        }
      }

      async function sendMove(index) {
        if (!gameState || gameState.status !== 'in_progress' || gameState.aiPending) return;
        if (isRequestPending || !gameState.availableMoves.includes(index)) return;
        isRequestPending = true;
        messageEl.textContent = '';
        const id = gameState.id;
        try {
          const data = await api(`/api/game/${id}/move`, {
            method: 'POST',
            body: JSON.stringify({ cellIndex: index }),
          });
          if (gameState?.id !== id) return;
          await setState(data);
        } catch (error) {
          if (gameState?.id !== id) return;
          messageEl.textContent = error.message || 'Invalid move';
        } finally {
          isRequestPending = false;
        }
      }

      // ---- settings ----

      function toggleSettings(open) {
        sounds.click();
        settingsPanel.classList.toggle('open', open);
      }

      newGameButton.addEventListener('click', () => {
        sounds.click();
        newGame();
      });
      resetScoreButton.addEventListener('click', async () => {
        sounds.click();
        setProfile(await api('/api/scores/reset', { method: 'POST' }));
      });
      settingsButton.addEventListener('click', (event) => {
        event.stopPropagation();
        toggleSettings(!settingsPanel.classList.contains('open'));
      });
      closeSettingsButton.addEventListener('click', () => toggleSettings(false));
      document.querySelectorAll('.mode-btn').forEach((btn) => {
        btn.addEventListener('click', () => {
          sounds.click();
          newGame({ mode: btn.dataset.mode });
        });
      });
      document.querySelectorAll('.difficulty-btn').forEach((btn) => {
        btn.addEventListener('click', () => {
          sounds.click();
          newGame({ mode: 'ai', difficulty: btn.dataset.difficulty });
        });
      });
      document.querySelectorAll('.theme-btn').forEach((btn) => {
        btn.addEventListener('click', () => {
          sounds.click();
          saveSettings({ theme: btn.dataset.theme });
        });
      });
      soundToggle.addEventListener('click', () => {
        saveSettings({ soundEnabled: !profile.settings.soundEnabled });
      });
      musicToggle.addEventListener('click', () => {
        sounds.click();
        saveSettings({ musicEnabled: !profile.settings.musicEnabled });
      });
      volumeSlider.addEventListener('input', () => {
        volumeValue.textContent = `${volumeSlider.value}%`;
      });
      volumeSlider.addEventListener('change', () => {
        saveSettings({ volume: Number.parseInt(volumeSlider.value, 10) });
      });
      document.addEventListener('click', (event) => {
        if (!settingsPanel.contains(event.target)) {
          settingsPanel.classList.remove('open');
        }
        if (audioContext.state === 'suspended') audioContext.resume();
      });

      document.addEventListener('keydown', (event) => {
        const key = event.key.toLowerCase();
        if (key === 'r') newGame();
        else if (key === 's') toggleSettings(!settingsPanel.classList.contains('open'));
        else if (key === 'escape') toggleSettings(false);
        else {
          const num = Number.parseInt(event.key, 10);
          if (num >= 1 && num <= 9) sendMove(num - 1);
        }
      });

      let lastTouchEnd = 0;
      document.addEventListener(
        'touchend',
        (event) => {
          const now = Date.now();
          if (now - lastTouchEnd <= 300) event.preventDefault();
          lastTouchEnd = now;
        },
        false,
      );

      document.addEventListener('DOMContentLoaded', async () => {
        renderBoard();
        try {
          setProfile(await api('/api/profile'));
        } catch (error) {
          messageEl.textContent = 'Unable to load your profile.';
        }
        newGame();
      });
    </script>
  </body>
</html>
"""
