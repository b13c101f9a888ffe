"""
Streamlit UI for CineCritic.
Calls the FastAPI server (default http://localhost:8000) for listings and admin actions,
or runs locally against the JSONL catalog with its own live subscription.

Run API (optional):   uvicorn api:app --reload
Run UI:                streamlit run streamlit_app.py
"""

# Encode uploaded posters as data URIs
import base64  # inline poster encoding
# HTTP client to call the API when running in API mode
import requests  # make web requests to the FastAPI server
# Streamlit framework to build the interactive UI
import streamlit as st  # UI primitives
# Typing to make function signatures clearer
from typing import Dict, List, Optional  # type hints

# Local imports for the filter panel and for local mode
from cinecritic.admin import AdminService  # admin write path
from cinecritic.bridge import BridgeStatus, read_catalog  # per-run catalog snapshot
from cinecritic.config import load_settings  # environment settings
from cinecritic.errors import CatalogError, NotFoundError, ValidationError  # error taxonomy
from cinecritic.filter_state import FilterState  # per-session filters
from cinecritic.filters import describe_empty_result  # empty-state text
from cinecritic.identity import LocalIdentityProvider, SessionProvider, require_session  # admin session
from cinecritic.models import CENSOR_RATINGS, GENRES, LANGUAGES, MovieForm  # vocabularies
from cinecritic.store import JsonlCatalogStore  # local catalog

SETTINGS = load_settings()  # environment settings

# Configure Streamlit page (title and layout width)
st.set_page_config(page_title="CineCritic", layout="wide")  # wide layout

# Main page title
st.title("🎬 CineCritic – Movie Reviews")  # friendly header


# Cache the local store so every session shares one catalog file handle
@st.cache_resource(show_spinner=True)
def init_local_store() -> Optional[JsonlCatalogStore]:
	"""Open the JSONL catalog for local mode."""
	try:
		return JsonlCatalogStore(SETTINGS.DATA_PATH)
	except CatalogError as e:
		st.error(f"Failed to open local catalog: {e}")
		return None


def session_filters() -> FilterState:
	"""The filter state for this browser session, created on first use."""
	if 'filters' not in st.session_state:
		st.session_state['filters'] = FilterState()
	return st.session_state['filters']


def poster_from_upload(upload) -> str:
	"""Turn an uploaded image into an inline data URI."""
	data = base64.b64encode(upload.getvalue()).decode('ascii')
	return f"data:{upload.type or 'image/png'};base64,{data}"


# Sidebar contains configuration controls and the filter panel
with st.sidebar:
	st.header("Settings")  # section label
	api_url = st.text_input("API URL", SETTINGS.API_URL)  # where the API lives
	use_local = st.toggle("Use local catalog", value=False, help="If enabled or the API is unreachable, the app reads the catalog file directly.")
	page = st.radio("View", ["Browse", "Admin"], horizontal=True)  # public or admin area

# If not forcing local, check quickly whether the API is reachable
api_available = False  # default assumption
if not use_local:
	try:
		h = requests.get(f"{api_url}/health", timeout=3)  # ping API health endpoint
		api_available = h.ok  # True if server responded 200 OK
	except requests.RequestException:
		api_available = False  # probe failed
		st.sidebar.info("API not reachable; using local catalog.")  # inform user

local_store = None  # placeholder
if use_local or not api_available:
	local_store = init_local_store()

filters = session_filters()


def render_filter_panel(state: FilterState):
	"""Search box and filter widgets; every change is written into the shared FilterState."""
	with st.sidebar:
		st.header("Filters")
		state.set_search_text(st.text_input("Search titles", state.search_text))
		criteria = state.criteria
		genres = st.multiselect("Genres", GENRES, default=sorted(criteria.genres))
		languages = st.multiselect("Languages", LANGUAGES, default=sorted(criteria.languages))
		min_rating, max_rating = st.slider(
			"Rating range", min_value=0.0, max_value=5.0, step=0.5,
			value=(criteria.min_rating, criteria.max_rating),
		)
		censor = st.multiselect("Censor rating", CENSOR_RATINGS, default=sorted(criteria.censor_ratings))
		state.update_criteria(
			genres=genres, languages=languages,
			min_rating=min_rating, max_rating=max_rating, censor_ratings=censor,
		)
		if st.button("Clear All Filters"):
			state.reset()
			st.rerun()


def render_movie_card(movie: Dict, key_prefix: str):
	"""Poster + headline details for a listing grid cell."""
	if movie.get('poster_image'):
		st.image(movie['poster_image'], width='stretch')  # poster
	st.subheader(movie['title'])  # title
	st.caption(f"⭐ {movie['rating']:.1f} | {movie['censor_rating']} | {', '.join(movie['genres'][:2])}")
	if st.button("Read review", key=f"{key_prefix}-{movie['id']}"):
		st.session_state['selected_id'] = movie['id']
		st.rerun()


def render_detail(movie: Dict):
	"""Full review page."""
	if st.button("← Back to all movies"):
		st.session_state.pop('selected_id', None)
		st.rerun()
	c1, c2 = st.columns([1, 2])  # poster column + details column
	with c1:
		if movie.get('poster_image'):
			st.image(movie['poster_image'], width='stretch')
	with c2:
		st.header(movie['title'])
		st.write(f"⭐ {movie['rating']:.1f}/5 | Censor: {movie['censor_rating']}")
		st.write(f"Genres: {', '.join(movie['genres'])}")
		st.write(f"Languages: {', '.join(movie['languages'])}")
		st.divider()
		st.write(movie['review_text'])


def movie_dict(entry) -> Dict:
	"""Local-mode entries rendered with the same keys the API returns."""
	return {
		'id': entry.id,
		'title': entry.title,
		'genres': sorted(entry.genres),
		'languages': sorted(entry.languages),
		'censor_rating': entry.censor_rating,
		'rating': entry.rating,
		'poster_image': entry.poster_image,
		'review_text': entry.review_text,
	}


def fetch_listing(state: FilterState) -> Dict:
	"""Return {'status', 'results', 'message'} from the API or the local catalog."""
	if local_store is not None:
		status, snapshot, error = read_catalog(local_store)  # subscription lasts for this run only
		results = state.apply(snapshot)
		message = describe_empty_result(snapshot, results) if status is BridgeStatus.READY else ''
		if status is BridgeStatus.ERROR:
			message = str(error)
		return {'status': status.value, 'results': [movie_dict(e) for e in results], 'message': message}
	criteria = state.criteria
	params = {
		'q': state.search_text,
		'genres': sorted(criteria.genres),
		'languages': sorted(criteria.languages),
		'censor': sorted(criteria.censor_ratings),
		'min_rating': criteria.min_rating,
		'max_rating': criteria.max_rating,
	}
	resp = requests.get(f"{api_url}/movies", params=params, timeout=30)
	resp.raise_for_status()  # raise error if server responded with an error code
	return resp.json()


def fetch_movie(entry_id: str) -> Optional[Dict]:
	"""One movie for the detail view, or None when it no longer exists."""
	if local_store is not None:
		try:
			return movie_dict(local_store.get(entry_id))
		except NotFoundError:
			return None
	resp = requests.get(f"{api_url}/movies/{entry_id}", timeout=30)
	if resp.status_code == 404:
		return None
	resp.raise_for_status()
	return resp.json()


def render_browse():
	render_filter_panel(filters)
	selected = st.session_state.get('selected_id')
	try:
		if selected:
			movie = fetch_movie(selected)
			if movie is None:
				st.error("404 - Movie Not Found. The movie you're looking for doesn't exist or has been removed.")
				if st.button("Back to Home"):
					st.session_state.pop('selected_id', None)
					st.rerun()
			else:
				render_detail(movie)
			return

		with st.spinner("Loading movies..."):
			listing = fetch_listing(filters)
		if listing['status'] == 'loading':
			st.info("Loading movies...")
			return
		if listing['status'] == 'error':
			st.error(listing.get('message') or "Could not load movies")
			return
		if not listing['results']:
			st.info(listing.get('message') or "No movies found")
			return
		columns = st.columns(4)  # grid
		for i, movie in enumerate(listing['results']):
			with columns[i % 4]:
				render_movie_card(movie, key_prefix='browse')
	except requests.RequestException as e:  # network/API errors
		st.error(f"API request failed: {e}")


# Admin area ---------------------------------------------------------------


def local_session() -> SessionProvider:
	if 'auth' not in st.session_state:
		st.session_state['auth'] = SessionProvider(LocalIdentityProvider(SETTINGS.admin_accounts()))
	return st.session_state['auth']


def signed_in_email() -> Optional[str]:
	if local_store is not None:
		principal = local_session().current_session()
		return principal.email if principal else None
	return st.session_state.get('api_email')


def auth_headers() -> Dict[str, str]:
	token = st.session_state.get('api_token')
	return {'Authorization': f"Bearer {token}"} if token else {}


def render_login():
	st.subheader("Admin Login")
	with st.form("login"):
		email = st.text_input("Email")
		password = st.text_input("Password", type="password")
		submitted = st.form_submit_button("Sign in")
	if not submitted:
		return
	if local_store is not None:
		ok = local_session().sign_in(email, password)
	else:
		resp = requests.post(f"{api_url}/auth/login", json={'email': email, 'password': password}, timeout=30)
		ok = resp.ok
		if ok:
			st.session_state['api_token'] = resp.json()['token']
			st.session_state['api_email'] = resp.json()['email']
	if ok:
		st.rerun()
	else:
		st.error("Invalid email or password")


def sign_out():
	if local_store is not None:
		local_session().sign_out()
	else:
		requests.post(f"{api_url}/auth/logout", headers=auth_headers(), timeout=30)
		st.session_state.pop('api_token', None)
		st.session_state.pop('api_email', None)


def render_movie_form(initial: Optional[MovieForm], entry_id: Optional[str]):
	"""Create/edit form; shows field-level errors and leaves the catalog alone on failure."""
	initial = initial or MovieForm()
	with st.form(f"movie-{entry_id or 'new'}"):
		title = st.text_input("Title", initial.title)
		genres = st.multiselect("Genres", GENRES, default=sorted(initial.genres))
		languages = st.multiselect("Languages", LANGUAGES, default=sorted(initial.languages))
		rating = st.number_input("Rating", min_value=0.0, max_value=5.0, step=0.1, value=float(initial.rating))
		censor = st.selectbox("Censor Rating", CENSOR_RATINGS, index=CENSOR_RATINGS.index(initial.censor_rating) if initial.censor_rating in CENSOR_RATINGS else 0)
		poster_url = st.text_input("Poster URL", initial.poster_image if not initial.poster_image.startswith('data:') else '')
		upload = st.file_uploader("…or upload a poster (max 5MB)", type=['png', 'jpg', 'jpeg', 'webp'])
		review = st.text_area("Review", initial.review_text, height=200)
		submitted = st.form_submit_button("Save Movie")
	if not submitted:
		return

	poster = poster_from_upload(upload) if upload is not None else (poster_url or initial.poster_image)
	form = MovieForm(
		title=title, genres=frozenset(genres), languages=frozenset(languages),
		censor_rating=censor, rating=rating, poster_image=poster, review_text=review,
	)
	errors: Dict[str, str] = {}
	try:
		if local_store is not None:
			admin = AdminService(local_store)
			if entry_id:
				admin.update(entry_id, form)
			else:
				admin.create(form)
		else:
			payload = {
				'title': form.title, 'genres': sorted(form.genres), 'languages': sorted(form.languages),
				'censor_rating': form.censor_rating, 'rating': form.rating,
				'poster_image': form.poster_image, 'review_text': form.review_text,
			}
			if entry_id:
				resp = requests.put(f"{api_url}/admin/movies/{entry_id}", json=payload, headers=auth_headers(), timeout=30)
			else:
				resp = requests.post(f"{api_url}/admin/movies", json=payload, headers=auth_headers(), timeout=30)
			if resp.status_code == 422:
				body = resp.json()
				errors = body.get('errors') or {'form': str(body.get('detail') or "Invalid submission")}
			else:
				resp.raise_for_status()
	except ValidationError as e:
		errors = e.errors
	except (CatalogError, requests.RequestException) as e:
		st.error(f"Error saving movie: {e}")
		return

	if errors:
		for field_name, reason in errors.items():
			st.error(f"{field_name}: {reason}")
		return
	st.session_state.pop('editing', None)
	st.success("Saved")
	st.rerun()


def delete_movie(entry_id: str) -> bool:
	"""Issue the confirmed delete; returns True on success."""
	try:
		if local_store is not None:
			return AdminService(local_store).delete(entry_id, confirmed=True)
		resp = requests.delete(f"{api_url}/admin/movies/{entry_id}", params={'confirm': 'true'}, headers=auth_headers(), timeout=30)
		resp.raise_for_status()
		return True
	except (CatalogError, requests.RequestException) as e:
		st.error(f"Failed to delete movie: {e}")
		return False


def render_dashboard(movies: List[Dict]):
	c1, c2 = st.columns([3, 1])
	with c1:
		st.subheader("Movie Dashboard")
	with c2:
		if st.button("➕ Add Movie"):
			st.session_state['editing'] = 'new'
			st.rerun()
	if not movies:
		st.info("No Movies Yet. Start by adding your first movie review.")
		return
	for movie in movies:
		c1, c2, c3 = st.columns([4, 1, 2])
		with c1:
			st.write(f"**{movie['title']}** ⭐ {movie['rating']:.1f} | {movie['censor_rating']}")
		with c2:
			if st.button("Edit", key=f"edit-{movie['id']}"):
				st.session_state['editing'] = movie['id']
				st.rerun()
		with c3:
			confirmed = st.checkbox("Confirm delete", key=f"confirm-{movie['id']}")
			if st.button("Delete", key=f"delete-{movie['id']}", disabled=not confirmed):
				if delete_movie(movie['id']):
					st.rerun()


def render_admin():
	email = signed_in_email()
	if require_session(email) is not None:  # anonymous: show the login view
		render_login()
		return
	st.sidebar.caption(f"Signed in as {email}")
	if st.sidebar.button("Sign out"):
		sign_out()
		st.rerun()

	editing = st.session_state.get('editing')
	try:
		if editing == 'new':
			st.subheader("Add Movie")
			render_movie_form(None, None)
			return
		if editing:
			if local_store is not None:
				initial = MovieForm.from_entry(AdminService(local_store).get(editing))
			else:
				resp = requests.get(f"{api_url}/admin/movies/{editing}", headers=auth_headers(), timeout=30)
				resp.raise_for_status()
				data = resp.json()
				initial = MovieForm(
					title=data['title'], genres=frozenset(data['genres']), languages=frozenset(data['languages']),
					censor_rating=data['censor_rating'], rating=data['rating'],
					poster_image=data['poster_image'], review_text=data['review_text'],
				)
			st.subheader(f"Edit Movie: {initial.title}")
			render_movie_form(initial, editing)
			return

		if local_store is not None:
			status, snapshot, error = read_catalog(local_store)
			if status is BridgeStatus.ERROR:
				raise error
			movies = [movie_dict(e) for e in snapshot]
		else:
			resp = requests.get(f"{api_url}/admin/movies", headers=auth_headers(), timeout=30)
			resp.raise_for_status()
			movies = resp.json()['results']
		render_dashboard(movies)
	except NotFoundError:
		st.session_state.pop('editing', None)  # back to the dashboard
		st.warning("That movie no longer exists.")
	except (CatalogError, requests.RequestException) as e:
		st.error(f"Failed to load movies: {e}")


if page == "Browse":
	render_browse()
else:
	render_admin()

# Show a footer indicator of current mode
st.sidebar.markdown("---")  # separator
if local_store is not None:
	st.sidebar.caption(f"Mode: Local catalog ({SETTINGS.DATA_PATH})")  # mode label
else:
	st.sidebar.caption("Mode: API client (ensure uvicorn api:app --reload is running)")  # mode label
