from __future__ import annotations

import os
import subprocess
import tempfile

from .db import log_event, record_config_error
from .errors import InvalidConfigError, MaterializeError
from .runtime import ProxyConfiguration
from .settings import ProxySettings


def _write_file(path: str, contents: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)
    except OSError as e:
        log_event("ERROR", f"Could not write HAProxy file {path}: {e}")
        raise MaterializeError(f"Could not write {path}: {e}", path=path) from e


def write_aux_files(proxy: ProxySettings, configuration: ProxyConfiguration) -> None:
    """Write certificates into certs.d/ and static files into the config dir.

    Files are overwritten unconditionally and are not rolled back if the
    candidate configuration is later rejected.
    """
    if not os.path.isdir(proxy.certs_dir):
        try:
            os.makedirs(proxy.certs_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            log_event("ERROR", f"Could not create directory for HAProxy certs {proxy.certs_dir}: {e}")
            raise MaterializeError(f"Could not create {proxy.certs_dir}: {e}", path=proxy.certs_dir) from e
        log_event("INFO", f"Created certificate directory {proxy.certs_dir}")

    for name, contents in configuration.certs.items():
        _write_file(os.path.join(proxy.certs_dir, name), contents)

    for name, contents in configuration.files.items():
        _write_file(os.path.join(proxy.config_dir, name), contents)


def check_config_file(proxy: ProxySettings, path: str) -> tuple[bool, str]:
    """Run ``haproxy -c -f <path>``.

    Returns (is_valid, diagnostics). Diagnostics are the captured stderr, or a
    description of why the check could not run.
    """
    cmd = [proxy.binary, "-c", "-f", path]
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            timeout=proxy.check_timeout_s,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return False, f"{proxy.binary} -c did not finish within {proxy.check_timeout_s}s"
    except OSError as e:
        return False, f"Could not run {proxy.binary}: {e}"
    return proc.returncode == 0, proc.stderr or ""


def verify_config(proxy: ProxySettings, config: str) -> None:
    """Syntax-check a candidate configuration without touching the active file."""
    fd, scratch = tempfile.mkstemp(prefix="haproxy_new_config_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(config)
        ok, diagnostics = check_config_file(proxy, scratch)
    finally:
        os.remove(scratch)

    if not ok:
        log_event("ERROR", f"HAProxy rejected the new configuration: {diagnostics.strip()}")
        record_config_error(config, diagnostics)
        raise InvalidConfigError("Invalid HAProxy configuration", config=config, diagnostics=diagnostics)


def build_and_verify(proxy: ProxySettings, configuration: ProxyConfiguration, config: str) -> str:
    """Materialize auxiliary files, then verify the rendered candidate."""
    write_aux_files(proxy, configuration)
    verify_config(proxy, config)
    return config
