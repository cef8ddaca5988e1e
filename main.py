from __future__ import annotations

import secrets
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from lbc import db
from lbc.api_models import ConvergeRequest, ConvergeResponse
from lbc.control import read_status
from lbc.errors import ConvergeBusy, ConvergeError, InvalidConfigError, ReloadLaunchError
from lbc.health import check_marker
from lbc.reconciler import Reconciler
from lbc.runtime import RuntimeState
from lbc.settings import settings

app = FastAPI(title="Load-Balancer Convergence Controller")
security = HTTPBasic()

runtime = RuntimeState()
reconciler = Reconciler(runtime)


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    ok_user = secrets.compare_digest(credentials.username, settings.api_user)
    ok_pass = bool(settings.api_password) and secrets.compare_digest(credentials.password, settings.api_password)
    if not (ok_user and ok_pass):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Basic"})
    return credentials.username


@app.on_event("startup")
def startup() -> None:
    db.init_db()
    if settings.source:
        reconciler.start()
    else:
        db.log_event("WARN", "LBC_SOURCE not set, convergence only runs through POST /converge")


@app.on_event("shutdown")
def shutdown() -> None:
    reconciler.stop()


@app.get("/health")
def health() -> dict:
    fresh, message, age_s = check_marker(settings.proxy, settings.marker_max_age_s)
    return {"status": "healthy", "marker_fresh": fresh, "marker": message, "marker_age_s": age_s}


@app.get("/status")
def get_status() -> dict:
    last_run, runs, failures = runtime.snapshot()
    live = read_status(settings.proxy, log=False)
    return {
        "first_converge_done": reconciler.state.first_converge_done,
        "loop_running": reconciler.running,
        "runs": runs,
        "failures": failures,
        "last_run": asdict(last_run) if last_run else None,
        "live": {"available": live.available, "reason": live.reason, "sockets": list(live.sockets), "backends": live.backends},
    }


@app.post("/converge", response_model=ConvergeResponse)
def post_converge(req: ConvergeRequest, username: str = Depends(get_current_username)) -> ConvergeResponse:
    db.log_event("INFO", f"Convergence requested by {username}")
    try:
        result = reconciler.run(req)
    except ConvergeBusy as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except InvalidConfigError as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "diagnostics": e.diagnostics})
    except ReloadLaunchError as e:
        reconciler.stop()
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}")
    except ConvergeError as e:
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}")

    drift = result.drift
    return ConvergeResponse(
        outcome=result.outcome,
        restart_required=drift.restart_required if drift else None,
        commands=drift.commands if drift else "",
        reason=drift.reason if drift else "",
        backup_path=result.change.backup_path if result.change else None,
        first_converge_done=reconciler.state.first_converge_done,
    )


@app.get("/events")
def get_events(limit: int = 50, level: str | None = None) -> list[dict]:
    return [asdict(e) for e in db.latest_events(limit=limit, level=level)]


@app.get("/changes")
def get_changes(limit: int = 10) -> list[dict]:
    return [asdict(c) for c in db.latest_changes(limit=limit)]


@app.get("/config-errors")
def get_config_errors(limit: int = 10) -> list[dict]:
    return [asdict(c) for c in db.latest_config_errors(limit=limit)]
