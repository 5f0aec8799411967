"""
FastAPI application serving RuneTrack lookups and local history.
"""
import os
import json
import queue
import time

from fastapi import FastAPI, HTTPException, Request, Query, Path as PathParam
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from runetrack import __version__
from runetrack.analytics import (gain_for_skill, gains_frame, history_series, history_summary,
                                 profile_progress, top_gains)
from runetrack.errors import (ConnectionFailed, InvalidSubject, LookupFailed, NotFound, ParseError,
                              PersistenceError, PrivateProfile, ProxyError)
from runetrack.skills import OVERALL_ID
from runetrack.tracker import Tracker
from runetrack.utils import console_queue, log_console

app = FastAPI(title="RuneTrack API", version=__version__)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# HTTP status per primary-lookup error
LOOKUP_STATUS = [
    (InvalidSubject, 400),
    (NotFound, 404),
    (PrivateProfile, 403),
    (ParseError, 502),
    (ConnectionFailed, 503),
    (ProxyError, 502),
]

tracker = Tracker()


def get_tracker():
    return tracker


def _status_for(exc):
    for error_class, status in LOOKUP_STATUS:
        if isinstance(exc, error_class):
            return status
    return 500


# Exception handlers
@app.exception_handler(LookupFailed)
async def lookup_failed_handler(request: Request, exc: LookupFailed):
    status = _status_for(exc)
    return JSONResponse(
        status_code=status,
        content={
            'error': exc.kind,
            'message': exc.message,
            'status': status
        }
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content={
            'error': 'Not Found',
            'message': str(exc.detail),
            'status': 404
        }
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    log_console(f"Internal server error: {str(exc)}", "ERROR")
    return JSONResponse(
        status_code=500,
        content={
            'error': 'Internal Server Error',
            'message': str(exc),
            'status': 500
        }
    )


# API Endpoints

@app.get("/api/lookup/{player_name}")
async def lookup(player_name: str = PathParam(...), window: str = Query('7d')):
    """Fetch a player's stats and gains and record a snapshot"""
    if window not in ('1d', '7d', '30d', '365d'):
        raise HTTPException(status_code=400, detail=f"Unknown gains window: {window}")

    result = await get_tracker().lookup(player_name)
    gains = result.gains
    return {
        'profile': result.profile.model_dump(mode='json'),
        'progress': profile_progress(result.profile),
        'gains': gains.model_dump(mode='json', by_alias=True),
        'skill_gains': {s.id: gain_for_skill(gains, s.id, window) for s in result.profile.skills},
        'top_gains': top_gains(gains, window),
        'from_cache': result.from_cache,
        'history': result.history.model_dump(mode='json', by_alias=True) if result.history else None,
        'save_error': result.save_error,
        'save_error_kind': result.save_error_kind,
        'storage_full': result.storage_full,
    }


@app.get("/api/gains/{player_name}")
def get_cached_gains(player_name: str = PathParam(...)):
    """Last cached gains for a player, without scraping"""
    entry = get_tracker().cache.get(player_name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No cached gains for {player_name}")
    return {
        'timestamp': entry.timestamp.isoformat(),
        'gains': entry.data.model_dump(mode='json', by_alias=True),
        'table': json.loads(gains_frame(entry.data).reset_index().to_json(orient='records')),
    }


@app.get("/api/history")
def get_histories():
    """Names and snapshot counts of every tracked player"""
    histories = get_tracker().get_all_histories()
    return [
        {
            'key': key,
            'rsn': history.rsn,
            'snapshots': len(history.snapshots),
            'last_update': history.latest.timestamp.isoformat() if history.latest else None,
        }
        for key, history in sorted(histories.items())
    ]


@app.get("/api/history/{player_name}")
def get_history(player_name: str = PathParam(...)):
    """Full stored history of a player"""
    history = get_tracker().get_history(player_name)
    if history is None:
        raise HTTPException(status_code=404, detail=f"No history for {player_name}")
    return history.model_dump(mode='json', by_alias=True)


@app.get("/api/history/{player_name}/series")
def get_history_series(player_name: str = PathParam(...), skill: int = Query(OVERALL_ID)):
    """Chart points for one skill, or overall xp with skill=-1"""
    history = get_tracker().get_history(player_name)
    if history is None:
        raise HTTPException(status_code=404, detail=f"No history for {player_name}")
    return {
        'player': history.rsn,
        'skill': skill,
        'points': history_series(history, skill),
        'summary': history_summary(history, skill),
    }


@app.post("/api/clear")
def clear_all_data():
    """Delete all local history and cached gains"""
    try:
        reload_required = get_tracker().clear_all()
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return {'cleared': True, 'reload': reload_required}


@app.get("/api/console-stream")
def console_stream():
    """Server-Sent Events stream for console logs"""

    def generate():
        yield f"data: [CONNECTED] Console stream started\n\n"

        while True:
            try:
                log = console_queue.get(timeout=1)
                yield f"data: {log}\n\n"
            except queue.Empty:
                yield f": keepalive\n\n"
                time.sleep(1)

    return StreamingResponse(generate(), media_type='text/event-stream')


@app.get("/healthz")
def healthz():
    """Health check endpoint"""
    histories = get_tracker().get_all_histories()
    return {
        'status': 'ok',
        'version': __version__,
        'tracked_players': len(histories),
        'state': get_tracker().state.value,
    }


if __name__ == '__main__':
    import uvicorn

    port = int(os.environ.get('PORT', '5000'))
    log_console(f"Starting FastAPI server with Uvicorn on 0.0.0.0:{port}", "INFO")
    uvicorn.run(app, host='0.0.0.0', port=port, log_level="info")
