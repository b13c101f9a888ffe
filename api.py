"""
FastAPI server exposing the CineCritic catalog.
Endpoints:
- GET /health: basic health check
- GET /movies?q=...&genres=...&languages=...&min_rating=...&max_rating=...&censor=...: filtered listing
- GET /movies/{id}: one review
- POST /auth/login, POST /auth/logout, GET /auth/session: admin session handling
- GET/POST /admin/movies, PUT/DELETE /admin/movies/{id}: admin area (session required)
- WS /ws/movies: pushes the filtered listing every time the catalog changes

Startup opens the JSONL catalog store and keeps one live subscription for the
public listing until shutdown.
"""

# Import standard libraries for timing and concurrency
import asyncio  # websocket receive/send tasks
import json  # websocket filter messages
import time  # measure startup and request latencies
from datetime import datetime  # response timestamps
from typing import Dict, List, Optional, Union  # precise typing for clarity

# Import FastAPI for building the web API and Pydantic for request/response models
from fastapi import Cookie, Depends, FastAPI, Header, Query, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse  # error payloads
from pydantic import BaseModel  # schema definitions

# Import our internal modules
from cinecritic.admin import AdminService  # admin write path
from cinecritic.bridge import BridgeStatus, CatalogBridge, SubscriptionHandle  # live catalog
from cinecritic.config import Settings, load_settings  # environment settings
from cinecritic.errors import AuthError, NotFoundError, StoreError, ValidationError  # error taxonomy
from cinecritic.filter_state import FilterState  # per-connection filters
from cinecritic.filters import describe_empty_result  # empty-state message
from cinecritic.identity import LOGIN_ROUTE, LocalIdentityProvider, create_token, decode_token  # auth
from cinecritic.models import CatalogEntry, FilterCriteria, MovieForm, Principal  # data classes
from cinecritic.store import CatalogStore, JsonlCatalogStore  # persistence

# Import loguru for simple, structured console logging
from loguru import logger  # convenient console logger

# Instantiate the FastAPI application with metadata
app = FastAPI(title="CineCritic API", version="1.0.0")  # web app

# Globals wired up at startup
SETTINGS: Optional[Settings] = None  # environment settings
STORE: Optional[CatalogStore] = None  # catalog store
BRIDGE: Optional[CatalogBridge] = None  # live subscription backing GET /movies
HANDLE: Optional[SubscriptionHandle] = None  # released on shutdown
ADMIN: Optional[AdminService] = None  # admin write path
IDENTITY: Optional[LocalIdentityProvider] = None  # credential checks
STARTUP_TIME_S: float = 0.0  # measures how long startup took


# Pydantic model that describes a single movie in responses
class MovieOut(BaseModel):
	id: str  # store-assigned id
	title: str  # display title
	genres: List[str]  # sorted genre tags
	languages: List[str]  # sorted language tags
	censor_rating: str  # U, U/A or A
	rating: float  # score in [1, 5]
	poster_image: str  # URL or data URI
	review_text: str  # the review
	created_at: Optional[datetime] = None  # creation time


# Admin form payload; validated by cinecritic.validation, not by pydantic, to get per-field messages
class MovieIn(BaseModel):
	title: str = ''
	genres: List[str] = []
	languages: List[str] = []
	censor_rating: str = 'U'
	rating: Union[float, str, None] = 0.0  # loose so a bad value becomes a "rating" field error
	poster_image: str = ''
	review_text: str = ''


# Listing payload shared by GET /movies and the websocket
class MovieListResponse(BaseModel):
	status: str  # loading, ready or error
	total: int  # size of the unfiltered catalog
	count: int  # number of movies returned
	message: str = ''  # empty-state text, if any
	elapsed_ms: float = 0.0  # server-side filter time
	results: List[MovieOut]  # newest first


class LoginRequest(BaseModel):
	email: str
	password: str


class SessionResponse(BaseModel):
	authenticated: bool
	email: Optional[str] = None
	token: Optional[str] = None
	redirect: Optional[str] = None


def configure(store: CatalogStore, settings: Settings):
	"""Wire the globals to a store; used by startup and by tests with an in-memory store."""
	global SETTINGS, STORE, BRIDGE, HANDLE, ADMIN, IDENTITY
	SETTINGS = settings
	STORE = store
	ADMIN = AdminService(store)
	IDENTITY = LocalIdentityProvider(settings.admin_accounts())
	BRIDGE = CatalogBridge(store)
	HANDLE = BRIDGE.open()


# FastAPI startup hook to open the store and the listing subscription once
@app.on_event("startup")
async def startup_event():
	"""Open the catalog store and subscribe to it for the public listing."""
	global STARTUP_TIME_S
	start = time.time()  # start timer for startup latency

	if STORE is None:  # tests may have configured an in-memory store already
		settings = load_settings()  # read environment
		logger.info(f"[API] Startup: opening catalog at {settings.DATA_PATH}...")
		configure(JsonlCatalogStore(settings.DATA_PATH), settings)
	elif HANDLE is None or HANDLE.closed:
		configure(STORE, SETTINGS or load_settings())

	STARTUP_TIME_S = time.time() - start  # elapsed seconds
	logger.info(f"[API] Startup complete in {STARTUP_TIME_S:.2f}s. Catalog status: {BRIDGE.status.value}")


@app.on_event("shutdown")
async def shutdown_event():
	"""Release the listing subscription."""
	if HANDLE is not None:
		HANDLE.close()  # idempotent
	logger.info("[API] Shutdown: catalog subscription released")


# Map the error taxonomy to HTTP responses
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
	return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
	return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
	logger.warning(f"[API] Store error on {request.url.path}: {exc}")
	return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
	return JSONResponse(status_code=401, content={"detail": str(exc), "redirect": LOGIN_ROUTE})


def to_movie_out(entry: CatalogEntry) -> MovieOut:
	"""Convert a catalog entry to the response schema."""
	return MovieOut(
		id=entry.id,
		title=entry.title,
		genres=sorted(entry.genres),
		languages=sorted(entry.languages),
		censor_rating=entry.censor_rating,
		rating=round(entry.rating, 1),
		poster_image=entry.poster_image,
		review_text=entry.review_text,
		created_at=entry.created_at,
	)


def to_form(payload: MovieIn) -> MovieForm:
	return MovieForm(
		title=payload.title,
		genres=frozenset(payload.genres),
		languages=frozenset(payload.languages),
		censor_rating=payload.censor_rating,
		rating=payload.rating,
		poster_image=payload.poster_image,
		review_text=payload.review_text,
	)


def build_listing(bridge: CatalogBridge, filter_state: FilterState) -> MovieListResponse:
	"""Run the filter engine over the bridge's current catalog."""
	start = time.time()  # start timer
	snapshot = bridge.catalog  # one read: the whole listing comes from a single snapshot
	results = filter_state.apply(snapshot)  # pure filtering
	elapsed_ms = (time.time() - start) * 1000  # compute ms

	message = ''
	if bridge.status is BridgeStatus.READY:
		message = describe_empty_result(snapshot, results)
	elif bridge.status is BridgeStatus.LOADING:
		message = "Loading movies..."
	elif bridge.status is BridgeStatus.ERROR:
		message = str(bridge.error)

	return MovieListResponse(
		status=bridge.status.value,
		total=len(snapshot),
		count=len(results),
		message=message,
		elapsed_ms=round(elapsed_ms, 2),
		results=[to_movie_out(e) for e in results],
	)


def apply_filter_params(filter_state: FilterState, params: Dict):
	"""
	Update a FilterState from query parameters or a websocket message.
	Raises TypeError or ValueError for malformed values, leaving the state unchanged.
	"""
	if not isinstance(params, dict):
		raise TypeError("filter message must be a JSON object")
	search_text = params.get('q')
	if search_text is not None and not isinstance(search_text, str):
		raise TypeError("q must be a string")
	criteria_fields = {
		'genres': params.get('genres'),
		'languages': params.get('languages'),
		'censor_ratings': params.get('censor'),
		'min_rating': params.get('min_rating'),
		'max_rating': params.get('max_rating'),
	}
	changes = {k: v for k, v in criteria_fields.items() if v is not None}
	for key in ('genres', 'languages', 'censor_ratings'):
		if isinstance(changes.get(key), str):
			changes[key] = [changes[key]]  # a single tag instead of a list
		if key in changes and (
			not isinstance(changes[key], list) or not all(isinstance(tag, str) for tag in changes[key])
		):
			raise TypeError(f"{key} must be a list of strings")
	for key in ('min_rating', 'max_rating'):
		if key in changes:
			if isinstance(changes[key], bool):
				raise TypeError(f"{key} must be a number")
			changes[key] = float(changes[key])
	if changes:
		filter_state.update_criteria(**changes)
	if 'q' in params:
		filter_state.set_search_text(search_text or '')


def current_principal(
	authorization: Optional[str] = Header(default=None),
	session: Optional[str] = Cookie(default=None),
) -> Optional[Principal]:
	"""Resolve the session from a bearer token or the session cookie (None if anonymous)."""
	token = None
	if authorization and authorization.lower().startswith('bearer '):
		token = authorization[7:].strip()
	elif session:
		token = session
	if not token:
		return None
	return decode_token(token, SETTINGS.jwt_secret(), SETTINGS.JWT_ALGORITHM)


def optional_principal(
	authorization: Optional[str] = Header(default=None),
	session: Optional[str] = Cookie(default=None),
) -> Optional[Principal]:
	"""Like current_principal, but a stale or malformed token counts as anonymous."""
	try:
		return current_principal(authorization, session)
	except AuthError:
		return None


def require_admin(principal: Optional[Principal] = Depends(current_principal)) -> Principal:
	"""Gate for admin routes: anonymous callers get 401 with a redirect to the login view."""
	if principal is None:
		raise AuthError("Sign in required")
	return principal


# Simple health endpoint for readiness checks
@app.get("/health")
async def health():
	"""Return minimal health info for liveness/readiness probes."""
	return {
		"status": "ok",  # constant indicator
		"catalog": BRIDGE.status.value if BRIDGE else "closed",  # subscription state
		"movies": len(BRIDGE.catalog) if BRIDGE else 0,  # catalog size
		"startup_seconds": round(STARTUP_TIME_S, 2),  # startup latency
	}


# Public listing with search and filters
@app.get("/movies", response_model=MovieListResponse)
async def list_movies(
	q: str = Query('', description="Case-insensitive title search"),
	genres: List[str] = Query([], description="Match any of these genres"),
	languages: List[str] = Query([], description="Match any of these languages"),
	min_rating: float = Query(0.0, description="Lowest rating, inclusive"),
	max_rating: float = Query(5.0, description="Highest rating, inclusive"),
	censor: List[str] = Query([], description="Match any of these censor ratings"),
):
	"""Filter the live catalog and return the matching movies, newest first."""
	criteria = FilterCriteria.build(genres, languages, min_rating, max_rating, censor)
	listing = build_listing(BRIDGE, FilterState(criteria=criteria, search_text=q))
	logger.info(f"[API] /movies q='{q}' served {listing.count}/{listing.total} in {listing.elapsed_ms:.2f} ms")
	return listing


@app.get("/movies/{entry_id}", response_model=MovieOut)
async def get_movie(entry_id: str):
	"""Return one review; 404 when the id is unknown."""
	return to_movie_out(STORE.get(entry_id))


# Session endpoints
@app.post("/auth/login", response_model=SessionResponse)
async def login(payload: LoginRequest, response: Response):
	"""Check admin credentials and issue a session token (also set as an HTTP-only cookie)."""
	principal = IDENTITY.authenticate(payload.email, payload.password)  # raises AuthError
	token = create_token(principal, SETTINGS.jwt_secret(), SETTINGS.JWT_ALGORITHM, SETTINGS.JWT_EXPIRY_HOURS)
	response.set_cookie(SETTINGS.SESSION_COOKIE, token, httponly=True, samesite='lax', max_age=SETTINGS.JWT_EXPIRY_HOURS * 3600)
	return SessionResponse(authenticated=True, email=principal.email, token=token)


@app.post("/auth/logout", response_model=SessionResponse)
async def logout(response: Response):
	"""End the session by clearing the cookie."""
	response.delete_cookie(SETTINGS.SESSION_COOKIE)
	return SessionResponse(authenticated=False, redirect=LOGIN_ROUTE)


@app.get("/auth/session", response_model=SessionResponse)
async def get_session(principal: Optional[Principal] = Depends(optional_principal)):
	"""Report the current session; anonymous callers get the login redirect."""
	if principal is None:
		return SessionResponse(authenticated=False, redirect=LOGIN_ROUTE)
	return SessionResponse(authenticated=True, email=principal.email)


# Admin area
@app.get("/admin/movies", response_model=MovieListResponse)
async def admin_list_movies(principal: Principal = Depends(require_admin)):
	"""Dashboard listing: the whole catalog, newest first."""
	return build_listing(BRIDGE, FilterState())


@app.get("/admin/movies/{entry_id}", response_model=MovieOut)
async def admin_get_movie(entry_id: str, principal: Principal = Depends(require_admin)):
	"""Load one entry for the edit view."""
	return to_movie_out(ADMIN.get(entry_id))


@app.post("/admin/movies", response_model=MovieOut, status_code=201)
async def admin_create_movie(payload: MovieIn, principal: Principal = Depends(require_admin)):
	"""Validate and create a movie."""
	entry_id = ADMIN.create(to_form(payload))
	logger.info(f"[API] {principal.email} created {entry_id}")
	return to_movie_out(STORE.get(entry_id))


@app.put("/admin/movies/{entry_id}", response_model=MovieOut)
async def admin_update_movie(entry_id: str, payload: MovieIn, principal: Principal = Depends(require_admin)):
	"""Validate and replace every editable field of a movie."""
	ADMIN.update(entry_id, to_form(payload))
	logger.info(f"[API] {principal.email} updated {entry_id}")
	return to_movie_out(STORE.get(entry_id))


@app.delete("/admin/movies/{entry_id}")
async def admin_delete_movie(
	entry_id: str,
	confirm: bool = Query(False, description="Must be true; deletes cannot be undone"),
	principal: Principal = Depends(require_admin),
):
	"""Delete a movie once the admin has confirmed."""
	if not ADMIN.delete(entry_id, confirmed=confirm):
		raise ValidationError({"confirm": "Confirm the delete to continue"})
	logger.info(f"[API] {principal.email} deleted {entry_id}")
	return {"deleted": entry_id}


# Live listing over a websocket
@app.websocket("/ws/movies")
async def movies_stream(websocket: WebSocket):
	"""
	Push the filtered listing on every catalog change.
	Clients may send JSON messages with q/genres/languages/censor/min_rating/max_rating
	to change their filters; the current listing is re-sent after each change.
	"""
	await websocket.accept()
	filter_state = FilterState()
	params = dict(websocket.query_params)
	for key in ('genres', 'languages', 'censor'):
		values = websocket.query_params.getlist(key)
		if values:
			params[key] = values
	try:
		apply_filter_params(filter_state, params)
	except (TypeError, ValueError) as e:
		await websocket.send_json({"status": "error", "message": f"Bad filter parameters: {e}"})
		await websocket.close(code=1008)
		return

	bridge = CatalogBridge(STORE)  # one subscription per connection
	send_lock = asyncio.Lock()  # the receiver and the snapshot loop both send

	async def send_listing():
		async with send_lock:
			payload = build_listing(bridge, filter_state)
			await websocket.send_text(payload.model_dump_json())

	with bridge.open() as handle:
		async def receive_filters():
			try:
				while True:
					text = await websocket.receive_text()
					try:
						apply_filter_params(filter_state, json.loads(text))
					except (TypeError, ValueError, AttributeError) as e:
						async with send_lock:
							await websocket.send_json({"status": "error", "message": f"Bad filter message: {e}"})
						continue
					if bridge.status is BridgeStatus.READY:
						await send_listing()
			except WebSocketDisconnect:
				logger.info("[API] /ws/movies client disconnected")
			finally:
				handle.close()  # ends the snapshot loop below

		receiver = asyncio.create_task(receive_filters())
		try:
			async for _snapshot in handle:
				await send_listing()
		except StoreError as e:
			logger.warning(f"[API] /ws/movies subscription failed: {e}")
			await websocket.send_json({"status": "error", "message": str(e)})
		finally:
			receiver.cancel()
			try:
				await receiver
			except asyncio.CancelledError:
				pass
