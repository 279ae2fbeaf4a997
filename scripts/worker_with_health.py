"""
RQ worker wrapper with HTTP health check server.

Registers the periodic jobs, then starts the RQ worker and the rq-scheduler
process as subprocesses and exposes a minimal HTTP server on PORT that the
platform uses as a healthcheck.

GET /health -> 200 while both processes are running, 503 if either exits
"""
import http.server
import os
import signal
import subprocess
import sys
import threading
import time
from typing import List, Optional


HEALTH_PORT = int(os.environ.get("PORT", os.environ.get("HEALTH_PORT", "8001")))
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
QUEUES = os.environ.get("RQ_QUEUES", "notifications,maintenance")
STARTUP_GRACE_SECONDS = 30

_procs: List[subprocess.Popen] = []
_startup_time: float = 0.0


def check_processes_alive() -> bool:
    """Return True during grace period or while every child process is running."""
    if not _procs or (time.time() - _startup_time) < STARTUP_GRACE_SECONDS:
        return True
    return all(proc.poll() is None for proc in _procs)


class HealthHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path in ("/health", "/"):
            alive = check_processes_alive()
            code = 200 if alive else 503
            body = b'{"status":"ok"}' if alive else b'{"status":"unhealthy"}'
            self.send_response(code)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(body)
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        pass


def start_health_server():
    server = http.server.HTTPServer(("0.0.0.0", HEALTH_PORT), HealthHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    print(f"Health server listening on :{HEALTH_PORT}", flush=True)


def worker_command(queues: Optional[str] = None) -> List[str]:
    names = [q.strip() for q in (queues or QUEUES).split(",") if q.strip()]
    return ["rq", "worker", "--url", REDIS_URL, *names]


def scheduler_command() -> List[str]:
    return ["rqscheduler", "--url", REDIS_URL]


def main():
    global _startup_time
    from onboarding_os.core.logging_config import configure_logging
    from onboarding_os.core.rq_scheduler_config import register_periodic_jobs

    configure_logging()
    register_periodic_jobs()
    start_health_server()

    _procs.append(subprocess.Popen(worker_command()))
    _procs.append(subprocess.Popen(scheduler_command()))
    _startup_time = time.time()

    def shutdown(signum, frame):
        for proc in _procs:
            proc.terminate()
        for proc in _procs:
            try:
                proc.wait(timeout=10)
            except subprocess.TimeoutExpired:
                proc.kill()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    # Exit as soon as either child dies so the platform restarts the service
    while all(proc.poll() is None for proc in _procs):
        time.sleep(1)
    shutdown(None, None)


if __name__ == "__main__":
    main()
