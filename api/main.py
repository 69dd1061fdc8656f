#!/usr/bin/env python3
import functools
import json
import logging
import os
from typing import Optional

import anyio
import requests
from fastapi import APIRouter, Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from config.settings import NO_LYRIC_PLACEHOLDER, UA_COMMON
from engine.core import Services, build_services, read_config
from engine.credentials import CredentialStore
from engine.errors import BadRequestError, ChorusError, UpstreamError
from engine.json_utils import log_event, safe_json
from engine.models import Track
from engine.paths import COOKIE_FILE, LOG_DIR, ensure_dir, resolve_config_path
from engine.relay import content_disposition
from engine.runtime import get_runtime_info
from engine.source_switch import SwitchOutcome, SwitchRequest
from input.intent_router import IntentType, detect_intent

APP_NAME = "Chorus API"
_TRUST_PROXY = os.environ.get("CHORUS_TRUST_PROXY", "").strip().lower() in {"1", "true", "yes", "on"}
_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS, PUT, DELETE, UPDATE",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, Authorization, Range",
    "Access-Control-Expose-Headers": (
        "Content-Length, Content-Range, Accept-Ranges, Content-Disposition, "
        "Access-Control-Allow-Origin, Access-Control-Allow-Headers, Cache-Control, "
        "Content-Language, Content-Type"
    ),
    "Access-Control-Allow-Credentials": "true",
}
COVER_TIMEOUT_SECONDS = 10


def _setup_logging(log_dir):
    ensure_dir(log_dir)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, "chorus.log")
    root.setLevel(logging.INFO)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                return
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    root.addHandler(file_handler)


class SafeJSONResponse(JSONResponse):
    def render(self, content):
        return json.dumps(
            safe_json(content),
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode("utf-8")


def envelope(data=None, *, code=200, message="success"):
    body = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return SafeJSONResponse(body, status_code=code)


app = FastAPI(
    title=APP_NAME,
    description="Unified search, fallback matching and audio relay across music platforms.",
    default_response_class=SafeJSONResponse,
)

if _TRUST_PROXY:
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=_CORS_HEADERS)
    response = await call_next(request)
    for key, value in _CORS_HEADERS.items():
        response.headers[key] = value
    return response


@app.exception_handler(ChorusError)
async def chorus_error_handler(request: Request, exc: ChorusError):
    return envelope(code=exc.status_code, message=exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return envelope(code=400, message=f"Invalid request: {message}")


@app.on_event("startup")
async def startup():
    _setup_logging(LOG_DIR)
    credentials = CredentialStore(COOKIE_FILE)
    credentials.load()
    config = read_config(resolve_config_path(None))
    app.state.services = build_services(config, credentials)
    logging.info("Chorus API ready sources=%s", app.state.services.registry.sources())


def _services() -> Services:
    services = getattr(app.state, "services", None)
    if services is None:
        credentials = CredentialStore(COOKIE_FILE)
        credentials.load()
        services = build_services(read_config(resolve_config_path(None)), credentials)
        app.state.services = services
    return services


async def _run_blocking(fn, *args, **kwargs):
    return await anyio.to_thread.run_sync(functools.partial(fn, *args, **kwargs))


def _split_sources(values):
    out = []
    for value in values or []:
        out.extend(part.strip() for part in str(value).split(",") if part.strip())
    return out


def _parse_int(value, default=0):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _plain_error(exc: ChorusError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def _relay_response(relayed):
    if isinstance(relayed.body, (bytes, bytearray)):
        return Response(content=bytes(relayed.body), status_code=relayed.status_code, headers=relayed.headers)
    return StreamingResponse(relayed.body, status_code=relayed.status_code, headers=relayed.headers)


# System

async def get_cookies():
    return envelope(dict(_services().credentials.snapshot()))


async def set_cookies(payload: dict[str, str] = Body(...)):
    try:
        await _run_blocking(_services().credentials.replace, payload)
    except OSError as exc:
        logging.exception("Failed to persist cookies")
        return envelope(code=500, message=f"Failed to save cookies: {exc}")
    log_event(logging.INFO, "cookies_replaced", sources=sorted(payload))
    return envelope({"status": "ok"})


async def api_version():
    return envelope(get_runtime_info())


# Music

async def unified_search(
    q: str = "",
    keyword: str = "",
    type: str = "song",
    sources: Optional[list[str]] = Query(None),
):
    """Search many sources at once, or parse a pasted share link."""
    raw = (q or "").strip() or (keyword or "").strip()
    if not raw:
        raise BadRequestError("Missing keyword")
    search_type = "playlist" if type == "playlist" else "song"
    aggregator = _services().aggregator

    intent = detect_intent(raw)
    if intent.type == IntentType.LINK:
        result = await _run_blocking(aggregator.parse_link, intent.identifier, search_type)
        return envelope(result)

    selected = _split_sources(sources)
    if search_type == "playlist":
        playlists = await _run_blocking(aggregator.search_playlists, raw, selected)
        return envelope({"type": search_type, "songs": [], "playlists": playlists})
    songs = await _run_blocking(aggregator.search_tracks, raw, selected)
    return envelope({"type": search_type, "songs": songs, "playlists": []})


async def get_music_url(id: str = "", source: str = ""):
    track = Track(id=id, source=source)
    url = await _run_blocking(_services().aggregator.download_url, track)
    return envelope({"url": url})


async def stream_music(
    request: Request,
    id: str = "",
    source: str = "",
    name: str = "Unknown",
    artist: str = "Unknown",
):
    """Relay audio bytes; decrypts encrypted sources before serving."""
    try:
        relayed = await _run_blocking(
            _services().relay.open,
            id,
            source,
            name=name or "Unknown",
            artist=artist or "Unknown",
            range_header=request.headers.get("range"),
            if_range=request.headers.get("if-range"),
        )
    except ChorusError as exc:
        log_event(logging.INFO, "stream_failed", source=source, id=id, status=exc.status_code, error=exc.message)
        return _plain_error(exc)
    return _relay_response(relayed)


async def inspect_music(id: str = "", source: str = "", duration: str = ""):
    result = await _run_blocking(_services().relay.inspect, id, source, _parse_int(duration))
    return envelope(result.to_dict())


async def switch_source(
    name: str = "",
    artist: str = "",
    source: str = "",
    target: str = "",
    duration: str = "",
):
    """Find the closest playable equivalent of a track on another source."""
    switch_request = SwitchRequest(
        name=name,
        artist=artist,
        source=source,
        target=target,
        duration=_parse_int(duration),
    )
    result = await _run_blocking(_services().switcher.switch, switch_request)
    if result.outcome == SwitchOutcome.BAD_REQUEST:
        return envelope(code=400, message="missing name")
    if result.outcome == SwitchOutcome.NO_MATCH:
        return envelope(code=404, message="no match")
    if result.outcome == SwitchOutcome.NO_PLAYABLE_MATCH:
        return envelope(code=404, message="no playable match")
    return envelope(result.to_dict())


async def get_lyric(id: str = "", source: str = ""):
    lyric = await _run_blocking(_services().aggregator.lyrics, Track(id=id, source=source))
    return envelope({"lyric": lyric})


async def get_lyric_text(id: str = "", source: str = ""):
    try:
        lyric = await _run_blocking(_services().aggregator.lyrics, Track(id=id, source=source))
    except ChorusError:
        lyric = ""
    return PlainTextResponse(lyric or NO_LYRIC_PLACEHOLDER)


async def download_lyric_file(id: str = "", source: str = "", name: str = "Unknown", artist: str = "Unknown"):
    try:
        lyric = await _run_blocking(_services().aggregator.lyrics, Track(id=id, source=source))
    except ChorusError:
        return PlainTextResponse("No support", status_code=404)
    if not lyric:
        return PlainTextResponse("Lyric not found", status_code=404)
    headers = {"Content-Disposition": content_disposition(f"{name or 'Unknown'} - {artist or 'Unknown'}.lrc")}
    return PlainTextResponse(lyric, headers=headers)


def _fetch_cover(url):
    session = _services().relay.session
    try:
        resp = session.get(url, headers={"User-Agent": UA_COMMON}, timeout=COVER_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise UpstreamError("Cover fetch failed") from exc
    if resp.status_code >= 400:
        raise UpstreamError(f"Cover fetch failed: upstream status {resp.status_code}")
    return resp.content


async def proxy_cover(url: str = "", name: str = "", artist: str = ""):
    """Fetch a cover image server-side to get around hotlink protection."""
    if not url:
        return PlainTextResponse("Missing url", status_code=400)
    try:
        content = await _run_blocking(_fetch_cover, url)
    except ChorusError as exc:
        return _plain_error(exc)
    headers = {"Content-Disposition": content_disposition(f"{name} - {artist}.jpg")}
    return Response(content=content, media_type="image/jpeg", headers=headers)


# Playlists

async def get_playlist_detail(id: str = "", source: str = ""):
    tracks = await _run_blocking(_services().aggregator.playlist_detail, id, source)
    return envelope(tracks)


async def get_recommend_playlists(sources: Optional[list[str]] = Query(None)):
    playlists = await _run_blocking(_services().aggregator.recommend_playlists, _split_sources(sources))
    return envelope(playlists)


api = APIRouter(prefix="/api/v1")
api.add_api_route("/system/cookies", get_cookies, methods=["GET"])
api.add_api_route("/system/cookies", set_cookies, methods=["POST"])
api.add_api_route("/system/version", api_version, methods=["GET"])
api.add_api_route("/music/search", unified_search, methods=["GET"])
api.add_api_route("/music/url", get_music_url, methods=["GET"])
api.add_api_route("/music/stream", stream_music, methods=["GET"])
api.add_api_route("/music/inspect", inspect_music, methods=["GET"])
api.add_api_route("/music/switch", switch_source, methods=["GET"])
api.add_api_route("/music/lyric", get_lyric, methods=["GET"])
api.add_api_route("/music/lyric/file", download_lyric_file, methods=["GET"])
api.add_api_route("/music/cover", proxy_cover, methods=["GET"])
api.add_api_route("/playlist/detail", get_playlist_detail, methods=["GET"])
api.add_api_route("/playlist/recommend", get_recommend_playlists, methods=["GET"])

# Paths kept for existing web front-ends.
compat = APIRouter(prefix="/music")
compat.add_api_route("/cookies", get_cookies, methods=["GET"])
compat.add_api_route("/cookies", set_cookies, methods=["POST"])
compat.add_api_route("/search", unified_search, methods=["GET"])
compat.add_api_route("/playlist", get_playlist_detail, methods=["GET"])
compat.add_api_route("/recommend", get_recommend_playlists, methods=["GET"])
compat.add_api_route("/inspect", inspect_music, methods=["GET"])
compat.add_api_route("/switch_source", switch_source, methods=["GET"])
compat.add_api_route("/download", stream_music, methods=["GET"])
compat.add_api_route("/download_lrc", download_lyric_file, methods=["GET"])
compat.add_api_route("/download_cover", proxy_cover, methods=["GET"])
compat.add_api_route("/lyric", get_lyric_text, methods=["GET"])

app.include_router(api)
app.include_router(compat)


def main():
    import uvicorn

    host = os.environ.get("CHORUS_HOST", "0.0.0.0")
    port = int(os.environ.get("CHORUS_PORT", "8080"))
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
