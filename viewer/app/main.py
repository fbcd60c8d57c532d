"""Empire Simulator - FastAPI run service.

Runs are stored one JSON file per run. Every mutating request takes the run's
lock, loads it, checks the optimistic ``version``, applies one engine call and
writes the run back.
"""

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Optional

import aiofiles
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from empire_sim.actions import TurnRequest
from empire_sim.config import get_config
from empire_sim.engine import RunEngine
from empire_sim.state import RunState

logger = logging.getLogger("empire_sim.viewer")

RUN_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


# ── Storage ───────────────────────────────────────────────────────────

class RunStore:
    """JSON file per run, with one asyncio lock per run id.

    A lock lives only while some request holds or waits on it.
    """

    def __init__(self, root: Path):
        self.root = root
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def path_for(self, run_id: str) -> Path:
        if not RUN_ID_PATTERN.match(run_id):
            raise HTTPException(404, "Run not found")
        return self.root / f"{run_id}.json"

    @asynccontextmanager
    async def locked(self, run_id: str):
        lock = self._locks.get(run_id)
        if lock is None:
            lock = self._locks[run_id] = asyncio.Lock()
        self._holders[run_id] = self._holders.get(run_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[run_id] -= 1
            if not self._holders[run_id]:
                del self._holders[run_id]
                del self._locks[run_id]

    async def load(self, run_id: str) -> RunState:
        path = self.path_for(run_id)
        if not path.exists():
            raise HTTPException(404, "Run not found")
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            return RunState.from_dict(json.loads(raw))
        except ValueError as e:
            logger.error("Run %s could not be loaded: %s", run_id, e)
            raise HTTPException(422, f"Stored run is malformed: {e}")

    async def save(self, state: RunState) -> None:
        path = self.path_for(state.id)
        tmp = path.with_suffix(".tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(json.dumps(state.to_dict()))
        tmp.replace(path)


store: Optional[RunStore] = None
engine: Optional[RunEngine] = None


def get_store() -> RunStore:
    global store
    if store is None:
        root = Path(get_config().run_store_dir)
        root.mkdir(parents=True, exist_ok=True)
        store = RunStore(root)
    return store


def get_engine() -> RunEngine:
    global engine
    if engine is None:
        engine = RunEngine(get_config())
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    global store, engine
    config = get_config()
    logging.basicConfig(level=config.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store, engine = None, None
    get_store()
    get_engine()
    logger.info("Run store at %s", config.run_store_dir)
    yield


app = FastAPI(title="Empire Simulator", lifespan=lifespan)


# ── Request bodies ────────────────────────────────────────────────────

class Versioned(BaseModel):
    version: Optional[int] = None


class CreateRunBody(BaseModel):
    seed: Optional[int] = None
    player_name: str = Field("Player", min_length=1, max_length=40)
    race: str = "human"


class TurnBody(Versioned):
    action: str
    turns: int = 1
    target_id: Optional[str] = None
    spell: Optional[str] = None
    attack_type: Optional[str] = None
    allocation: Optional[dict[str, int]] = None


class DraftBody(Versioned):
    option_index: int


class DismissBody(Versioned):
    advisor_id: str


class MarketBody(Versioned):
    side: str
    resource: str
    amount: int
    troop_type: Optional[str] = None


class BankBody(Versioned):
    operation: str
    amount: int


class SettingsBody(Versioned):
    tax_rate: Optional[int] = None
    industry: Optional[dict[str, int]] = None


# ── Helpers ───────────────────────────────────────────────────────────

def _snapshot(state: RunState) -> dict:
    return {"run": state.to_dict(), "summary": get_engine().get_summary(state)}


async def _mutate(run_id: str, version: Optional[int], op: Callable[[RunState], Any]) -> dict:
    """Apply one engine call under the run lock and persist any change.

    A failure that left the run untouched is a 400; one that still changed it
    (an attack aborted by an emergency, say) is saved and returned as-is.
    """
    runs = get_store()
    async with runs.locked(run_id):
        state = await runs.load(run_id)
        if version is not None and version != state.version:
            raise HTTPException(409, f"Stale version {version}; run is at {state.version}")
        before = state.to_dict()
        try:
            # Off the event loop; the run lock keeps calls on one run serial
            result = await asyncio.to_thread(op, state)
        except ValueError as e:
            raise HTTPException(400, str(e))
        changed = state.to_dict() != before
        success = getattr(result, "success", True)
        if not success and not changed:
            raise HTTPException(400, getattr(result, "error", None) or "Request rejected")
        if changed:
            state.version += 1
            await runs.save(state)
    payload = result.to_dict() if hasattr(result, "to_dict") else result
    return {"result": payload, **_snapshot(state)}


# ── Runs ──────────────────────────────────────────────────────────────

@app.post("/api/runs")
async def create_run(body: CreateRunBody):
    """Start a new run."""
    try:
        state = get_engine().create_run(body.seed, body.player_name, body.race)
    except ValueError as e:
        raise HTTPException(400, str(e))
    await get_store().save(state)
    return _snapshot(state)


@app.get("/api/runs/{run_id}")
async def get_run(run_id: str):
    state = await get_store().load(run_id)
    return _snapshot(state)


@app.get("/api/runs/{run_id}/summary")
async def get_summary(run_id: str):
    state = await get_store().load(run_id)
    return get_engine().get_summary(state)


# ── Player phase ──────────────────────────────────────────────────────

@app.post("/api/runs/{run_id}/turn")
async def turn_action(run_id: str, body: TurnBody):
    """Execute one player action."""
    request = body.model_dump(exclude={"version"})

    def op(state: RunState):
        return get_engine().execute_turn(state, TurnRequest.from_dict(request))

    return await _mutate(run_id, body.version, op)


@app.post("/api/runs/{run_id}/end-player-phase")
async def end_player_phase(run_id: str, body: Versioned = Versioned()):
    return await _mutate(run_id, body.version, get_engine().end_player_phase)


@app.get("/api/runs/{run_id}/attack-preview/{target_id}")
async def attack_preview(run_id: str, target_id: str):
    state = await get_store().load(run_id)
    preview = get_engine().preview_attack(state, target_id)
    if preview is None:
        raise HTTPException(404, "Target not found")
    return preview.to_dict()


@app.post("/api/runs/{run_id}/settings")
async def update_settings(run_id: str, body: SettingsBody):
    return await _mutate(run_id, body.version,
                         lambda state: get_engine().update_settings(state, body.tax_rate, body.industry))


# ── Shop phase ────────────────────────────────────────────────────────

@app.post("/api/runs/{run_id}/draft/select")
async def select_draft(run_id: str, body: DraftBody):
    return await _mutate(run_id, body.version,
                         lambda state: get_engine().select_draft(state, body.option_index))


@app.get("/api/runs/{run_id}/draft/reroll")
async def reroll_info(run_id: str):
    state = await get_store().load(run_id)
    return get_engine().get_reroll_info(state)


@app.post("/api/runs/{run_id}/draft/reroll")
async def reroll_draft(run_id: str, body: Versioned = Versioned()):
    return await _mutate(run_id, body.version, get_engine().reroll_draft)


@app.get("/api/runs/{run_id}/advisors")
async def advisor_capacity(run_id: str):
    state = await get_store().load(run_id)
    return {**get_engine().get_advisor_capacity(state), "advisors": list(state.player.advisors)}


@app.post("/api/runs/{run_id}/advisors/dismiss")
async def dismiss_advisor(run_id: str, body: DismissBody):
    return await _mutate(run_id, body.version,
                         lambda state: get_engine().dismiss_advisor(state, body.advisor_id))


@app.post("/api/runs/{run_id}/market")
async def market(run_id: str, body: MarketBody):
    return await _mutate(run_id, body.version, lambda state: get_engine().market_transaction(
        state, body.side, body.resource, body.amount, body.troop_type))


@app.post("/api/runs/{run_id}/bank")
async def bank(run_id: str, body: BankBody):
    return await _mutate(run_id, body.version,
                         lambda state: get_engine().bank_transaction(state, body.operation, body.amount))


@app.get("/api/runs/{run_id}/bank")
async def bank_info(run_id: str):
    state = await get_store().load(run_id)
    return get_engine().get_bank_info(state)


@app.post("/api/runs/{run_id}/end-shop-phase")
async def end_shop_phase(run_id: str, body: Versioned = Versioned()):
    return await _mutate(run_id, body.version, get_engine().end_shop_phase)


# ── Bot phase ─────────────────────────────────────────────────────────

@app.post("/api/runs/{run_id}/bot-phase")
async def bot_phase(run_id: str, body: Versioned = Versioned()):
    """Play every bot and advance to the next round (or finish the run)."""
    return await _mutate(run_id, body.version, get_engine().execute_bot_phase)


# ── Health ────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    """Health check."""
    try:
        root = get_store().root
        marker = root / ".health"
        async with aiofiles.open(marker, "w") as f:
            await f.write("ok")
        marker.unlink()
        return {"status": "ok", "store": str(root)}
    except OSError as e:
        return JSONResponse({"status": "error", "store": str(e)}, status_code=503)
