from contextlib import asynccontextmanager
import asyncio
from fastapi import FastAPI

from .routers.normalize import router as normalize_router
from app.normalizers import get_default_normalizer
from app.settings import LOG_LEVEL, PROBE_BLOCKING, RXNORM_STARTUP_PROBE
from app.setup_logging import setup_logging

# --------------------------------------------------------------------
# App bootstrap
# --------------------------------------------------------------------
setup_logging(LOG_LEVEL) # Init Logging

# --------------------------------------------------------------------
# FastAPI application with lifespan hook
# --------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context runs once at startup and once at shutdown.
    Builds the shared RxNorm client and, if RXNORM_STARTUP_PROBE is set,
    checks that the RxNorm API is reachable so /healthz can report it.
    """
    app.state.normalizer = get_default_normalizer()
    app.state.rxnorm_ready = None  # unknown until probed
    app.state.rxnorm_error = None
    app.state.probe_task = None

    async def _probe():
        try:
            ok = await asyncio.to_thread(app.state.normalizer.check_connectivity)
            app.state.rxnorm_ready = ok
            if not ok:
                app.state.rxnorm_error = "RxNorm API did not resolve a known drug"
        except Exception as e:
            # Store the probe error so /healthz can report it
            app.state.rxnorm_error = str(e)
            app.state.rxnorm_ready = False

    if RXNORM_STARTUP_PROBE:
        # Either wait for the probe or run it in the background
        if PROBE_BLOCKING:
            await _probe()
        else:
            app.state.probe_task = asyncio.create_task(_probe())

    # Hand control back to FastAPI to serve requests
    yield

    task = app.state.probe_task
    if task is not None and not task.done():
        task.cancel()
    close = getattr(app.state.normalizer, "close", None)
    if close:
        close()

# Create the FastAPI app instance
app = FastAPI(title="Drug Name Normalizer", lifespan=lifespan)

# --------------------------------------------------------------------
# Routes
# --------------------------------------------------------------------
@app.get("/healthz")
def health(deep: bool = False):
    """
    Simple health probe for monitoring.
    Returns:
      - ok: static True if the app is alive
      - rxnorm_ready: result of the last RxNorm connectivity check (None if never run)
      - rxnorm_error: any probe error message (None if healthy)
    Pass ?deep=true to run the connectivity check now.
    """
    if deep:
        ok = app.state.normalizer.check_connectivity()
        app.state.rxnorm_ready = ok
        app.state.rxnorm_error = None if ok else "RxNorm API did not resolve a known drug"
    return {
        "ok": True,
        "service": "drug-normalizer",
        "version": 1,
        "rxnorm_ready": getattr(app.state, "rxnorm_ready", None),
        "rxnorm_error": getattr(app.state, "rxnorm_error", None),
    }

# Register API routers:
app.include_router(normalize_router)
