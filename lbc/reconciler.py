from __future__ import annotations

import time
from threading import Thread

from . import db
from .alerts import alert_failure
from .api_models import ConvergeRequest
from .converge import ConvergeResult, ConvergeState, converge
from .errors import ConvergeBusy, ConvergeError, InvalidConfigError, ReloadExitError, ReloadLaunchError
from .runtime import RunRecord, RuntimeState
from .settings import Settings, settings as default_settings
from .source import load_desired


class Reconciler:
    """Periodically converges the managed HAProxy towards the desired state.

    Owns the single ConvergeState of the proxy; API-triggered runs go through
    the same object so they can never overlap with the loop.
    """

    def __init__(self, runtime: RuntimeState, cfg: Settings | None = None):
        self.runtime = runtime
        self.cfg = cfg or default_settings
        self.state = ConvergeState()
        self._stop = False
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop = False
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop = True

    @property
    def running(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def _loop(self) -> None:
        db.log_event("INFO", f"Reconciler started, polling {self.cfg.source} every {self.cfg.poll_interval_s}s")
        while not self._stop:
            try:
                self._tick()
            except ReloadLaunchError as e:
                db.log_event("CRITICAL", f"Reconciler stopped: {e}")
                self._stop = True
                break
            except ConvergeBusy:
                db.log_event("INFO", "Convergence already in progress, skipping tick")
            except ConvergeError:
                # already recorded by run()
                pass
            except Exception as e:
                db.log_event("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            time.sleep(max(1, self.cfg.poll_interval_s))

    def _tick(self) -> None:
        try:
            request = load_desired(self.cfg.source, self.cfg.source_timeout_s)
        except ConvergeError as e:
            db.log_event("ERROR", str(e))
            self.runtime.record(RunRecord(outcome="failed", message=str(e)))
            raise
        self.run(request)

    def run(self, request: ConvergeRequest) -> ConvergeResult:
        """Converge once with the given desired state and record the outcome."""
        az = request.availability_zone if request.availability_zone is not None else self.cfg.availability_zone
        try:
            result = converge(self.cfg.proxy, self.state, request.configuration(), request.desired_state(), az)
        except ConvergeBusy:
            raise
        except ConvergeError as e:
            self._failed(e)
            raise

        commands = result.drift.commands if result.drift else ""
        message = result.outcome
        if result.change is not None and result.change.backup_path:
            message = f"{result.outcome} (previous config saved as {result.change.backup_path})"
        self.runtime.record(RunRecord(outcome=result.outcome, message=message, commands=commands))
        return result

    def _failed(self, e: ConvergeError) -> None:
        kind = type(e).__name__
        db.log_event("ERROR", f"Convergence failed: {kind}: {e}")
        self.runtime.record(RunRecord(outcome="failed", message=f"{kind}: {e}"))
        if isinstance(e, InvalidConfigError):
            alert_failure(kind, f"{e.diagnostics}\n\n--- candidate configuration ---\n{e.config}")
        elif isinstance(e, (ReloadExitError, ReloadLaunchError)):
            alert_failure(kind, str(e))
