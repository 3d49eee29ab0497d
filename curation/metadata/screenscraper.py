"""ScreenScraper API client for ROMs missing from gamelist.xml.

ScreenScraper API Authentication Requirements:
- Developer credentials (devId, devPassword): REQUIRED
  - Set in the screenScraper section of the configuration file, or via
    SCREENSCRAPER_DEVID / SCREENSCRAPER_DEVPASSWORD
- User credentials (userId, userPassword): optional
  - Your ScreenScraper.fr account; raises the daily quota and thread count

Quota and pacing live in a QuotaState owned by the run, updated from the
"ssuser" block ScreenScraper returns with every answer.
"""

import hashlib
import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlencode

import requests

from ..config import ScreenScraperConfig
from ..parser import BRACKET_PATTERN, PAREN_PATTERN, get_stem_and_extension
from ..records import GameMetadata

logger = logging.getLogger(__name__)

# ScreenScraper API base URL
SCREENSCRAPER_API_BASE = "https://api.screenscraper.fr/api2/"

SOFTNAME = "romcurator"
METADATA_SOURCE = "ScreenScraper.fr"

# Timeout configuration (connect_timeout, read_timeout)
DEFAULT_TIMEOUT = (10, 60)

# Pacing, in seconds between requests
GUEST_DELAY = 1.2
MEMBER_DELAY = 0.5
DONOR_DELAY = 0.3  # 2-3 threads
VIP_DELAY = 0.1  # 4+ threads
MAX_DELAY = 5.0  # Cap when backing off after a rate limit

USER_LEVEL_NAMES = [
    "Guest",
    "Member",
    "Contributor",
    "Active Contributor",
    "Super Contributor",
    "VIP",
]

# Our media types -> ScreenScraper media types, best first
MEDIA_TYPE_MAP = {
    "screenshot": ["ss", "sstitle"],
    "box2d": ["box-2D", "box-2D-front"],
    "box3d": ["box-3D"],
    "wheel": ["wheel", "wheel-hd"],
    "video": ["video", "video-normalized"],
}

# System folder name -> ScreenScraper system ID
SYSTEM_ID_MAP = {
    # Nintendo
    "nes": 3,
    "famicom": 3,
    "fds": 106,
    "snes": 4,
    "n64": 14,
    "gb": 9,
    "gbc": 10,
    "gba": 12,
    "nds": 15,
    "3ds": 17,
    "virtualboy": 11,
    "gamecube": 13,
    "wii": 16,
    "wiiu": 18,
    "switch": 225,
    # Sega
    "mastersystem": 2,
    "genesis": 1,
    "megadrive": 1,
    "gamegear": 21,
    "sega32x": 19,
    "segacd": 20,
    "saturn": 22,
    "dreamcast": 23,
    # Sony
    "psx": 57,
    "ps2": 58,
    "ps3": 59,
    "psp": 61,
    "psvita": 62,
    # Atari
    "atari2600": 26,
    "atari5200": 40,
    "atari7800": 41,
    "atarilynx": 28,
    "atarijaguar": 27,
    # Other
    "arcade": 75,
    "mame": 75,
    "fba": 75,
    "neogeo": 142,
    "pcengine": 31,
    "tg16": 31,
    "turbografx16": 31,
    "supergrafx": 105,
    "ngpc": 82,
    "ngp": 25,
    "wonderswan": 45,
    "wonderswancolor": 46,
    "colecovision": 48,
    "intellivision": 115,
    "msx": 113,
    "msx2": 116,
    "zxspectrum": 76,
    "amstradcpc": 65,
    "c64": 66,
    "amiga": 64,
    "scummvm": 123,
    "dos": 135,
}


class ScreenScraperRateLimited(Exception):
    """Raised when ScreenScraper returns 429/430 rate limit error."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"ScreenScraper rate limited, retry after {retry_after:.1f}s")


class ScreenScraperError(Exception):
    """Raised when ScreenScraper answers with an API-level error."""


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


@dataclass
class QuotaState:
    """Daily quota and request pacing for one run.

    Defaults are conservative (guest account) until the first answer
    reports the real limits.
    """

    max_requests_per_day: int = 50
    requests_today: int = 0
    max_threads: int = 1
    min_delay: float = GUEST_DELAY
    last_api_call: float = 0.0
    user_level: int = 0
    initialized: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def remaining(self) -> int:
        return max(0, self.max_requests_per_day - self.requests_today)

    @property
    def user_level_name(self) -> str:
        if 0 <= self.user_level < len(USER_LEVEL_NAMES):
            return USER_LEVEL_NAMES[self.user_level]
        return f"Level {self.user_level}"

    def near_limit(self, buffer: int = 10) -> bool:
        return self.requests_today >= self.max_requests_per_day - buffer

    def status_line(self) -> str:
        return (
            f"ScreenScraper: {self.user_level_name} | "
            f"{self.remaining}/{self.max_requests_per_day} requests remaining | "
            f"{self.max_threads} thread(s) | {int(self.min_delay * 1000)}ms delay"
        )

    def update_from_response(self, data: dict) -> None:
        """Update limits from the "ssuser" block of an API answer."""
        ssuser = (data.get("response") or {}).get("ssuser")
        if not ssuser:
            return

        with self._lock:
            if ssuser.get("maxrequestsperday") is not None:
                self.max_requests_per_day = _to_int(
                    ssuser["maxrequestsperday"], self.max_requests_per_day
                )
            if ssuser.get("requeststoday") is not None:
                self.requests_today = _to_int(ssuser["requeststoday"], 0)
            if ssuser.get("maxthreads") is not None:
                self.max_threads = _to_int(ssuser["maxthreads"], 1)
            if ssuser.get("niveau") is not None:
                self.user_level = _to_int(ssuser["niveau"], 0)

            if self.max_threads >= 4:
                self.min_delay = VIP_DELAY
            elif self.max_threads >= 2:
                self.min_delay = DONOR_DELAY
            elif self.user_level >= 1:
                self.min_delay = MEMBER_DELAY
            else:
                self.min_delay = GUEST_DELAY

            self.initialized = True

    def record_request(self) -> None:
        with self._lock:
            self.requests_today += 1

    def back_off(self) -> float:
        """Double the delay between requests (capped). Returns the new delay."""
        with self._lock:
            self.min_delay = min(self.min_delay * 2, MAX_DELAY)
            return self.min_delay

    def wait_turn(self) -> None:
        """Sleep until min_delay has passed since the previous request."""
        with self._lock:
            elapsed = time.monotonic() - self.last_api_call
            if elapsed < self.min_delay:
                time.sleep(self.min_delay - elapsed)
            self.last_api_call = time.monotonic()


def get_system_id(system_name: str) -> int | None:
    """Get the ScreenScraper system ID for a system folder name."""
    normalized = re.sub(r"[-_\s]", "", system_name.lower())
    return SYSTEM_ID_MAP.get(normalized)


def calculate_hashes(path: str | Path) -> tuple[str, str, int]:
    """Calculate MD5 and SHA1 of a file.

    Returns:
        (md5 hex, sha1 hex, size in bytes)
    """
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            md5.update(chunk)
            sha1.update(chunk)
            size += len(chunk)
    return md5.hexdigest(), sha1.hexdigest(), size


def _pick_text(
    items: list[dict], key: str, preferred: tuple[str, ...], fallback: bool = True
) -> str | None:
    """First text whose key (region/langue) is preferred, else the first text."""
    for item in items:
        if (item.get(key) or "").lower() in preferred and item.get("text"):
            return item["text"]
    if fallback and items:
        return items[0].get("text")
    return None


def parse_game_response(game: dict) -> GameMetadata:
    """Convert a ScreenScraper "jeu" object into GameMetadata."""
    names = game.get("noms") or []
    name = (
        _pick_text(names, "region", ("us", "wor"), fallback=False)
        or _pick_text(names, "region", ("eu",), fallback=False)
        or _pick_text(names, "region", ())
    )

    desc = _pick_text(game.get("synopsis") or [], "langue", ("en",))

    rating = None
    note = (game.get("note") or {}).get("text")
    if note:
        try:
            rating = f"{float(note) / 20:.2f}"
        except ValueError:
            logger.debug(f"Ignoring unparseable rating {note!r}")

    releasedate = None
    date_text = _pick_text(game.get("dates") or [], "region", ("us", "wor"))
    if date_text:
        releasedate = date_text.replace("-", "") + "T000000"

    genre = None
    genres = game.get("genres") or []
    if genres and genres[0].get("noms"):
        genre = _pick_text(genres[0]["noms"], "langue", ("en",))

    return GameMetadata(
        id=str(game["id"]) if game.get("id") else None,
        source=METADATA_SOURCE,
        path="",
        name=name,
        desc=desc,
        rating=rating,
        releasedate=releasedate,
        developer=(game.get("developpeur") or {}).get("text"),
        publisher=(game.get("editeur") or {}).get("text"),
        genre=genre,
        players=(game.get("joueurs") or {}).get("text"),
    )


def find_media(game: dict, media_type: str, preferred_region: str = "us") -> dict | None:
    """Find a media entry with a URL, preferring the given region (or world)."""
    medias = game.get("medias") or []
    ss_types = MEDIA_TYPE_MAP.get(media_type, [])

    for ss_type in ss_types:
        for media in medias:
            region = (media.get("region") or "").lower()
            if media.get("type") == ss_type and region in (preferred_region, "wor"):
                if media.get("url"):
                    return media

    for ss_type in ss_types:
        for media in medias:
            if media.get("type") == ss_type and media.get("url"):
                return media

    return None


def find_media_url(game: dict, media_type: str, preferred_region: str = "us") -> str | None:
    media = find_media(game, media_type, preferred_region)
    return media["url"] if media else None


def _media_extension(url: str, media_format: str | None = None) -> str:
    if media_format:
        return f".{media_format.lower()}"
    match = re.search(r"\.([a-zA-Z0-9]+)(?:\?|$)", url)
    return f".{match.group(1).lower()}" if match else ".png"


def download_media(url: str, save_path: str | Path) -> bool:
    """Download a media file to a local path. Returns True on success."""
    save_path = Path(save_path)
    try:
        response = requests.get(url, timeout=DEFAULT_TIMEOUT, stream=True)
        response.raise_for_status()

        save_path.parent.mkdir(parents=True, exist_ok=True)
        with open(save_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                f.write(chunk)

        logger.info(f"Downloaded media to {save_path}")
        return True

    except (requests.exceptions.RequestException, OSError) as e:
        logger.error(f"Failed to download media from {url}: {e}")
        return False


def clean_search_name(name: str) -> str:
    """Strip (...) and [...] tags for a name search."""
    name = BRACKET_PATTERN.sub("", PAREN_PATTERN.sub("", name))
    return re.sub(r"\s+", " ", name).strip()


class ScreenScraperClient:
    """Client for ScreenScraper API."""

    def __init__(self, config: ScreenScraperConfig, quota: QuotaState | None = None):
        self.config = config
        self.quota = quota if quota is not None else QuotaState()

    def _build_url(self, endpoint: str, params: dict[str, Any]) -> str:
        """Build full API URL with authentication params."""
        auth_params = {
            "devid": self.config.dev_id,
            "devpassword": self.config.dev_password,
            "softname": SOFTNAME,
        }
        if self.config.user_id and self.config.user_password:
            auth_params["ssid"] = self.config.user_id
            auth_params["sspassword"] = self.config.user_password
        auth_params["output"] = "json"

        all_params = {**auth_params, **params}
        return f"{SCREENSCRAPER_API_BASE}{endpoint}.php?{urlencode(all_params)}"

    def _make_request(self, endpoint: str, params: dict[str, Any]) -> dict | None:
        """Make API request with pacing and error handling.

        Returns:
            Decoded JSON, or None when ScreenScraper has no such game (404)

        Raises:
            ScreenScraperRateLimited: HTTP 429/430 (the delay is doubled first)
            ScreenScraperError: API-level error in the answer
            requests.exceptions.RequestException: Network or HTTP failure
        """
        if self.quota.near_limit(5):
            logger.warning(
                f"ScreenScraper: Near daily quota limit "
                f"({self.quota.requests_today}/{self.quota.max_requests_per_day})"
            )

        self.quota.wait_turn()

        url = self._build_url(endpoint, params)
        logger.debug(f"ScreenScraper request: {endpoint} with params {params}")

        response = requests.get(url, timeout=DEFAULT_TIMEOUT)
        self.quota.record_request()

        # Check for rate limiting BEFORE raise_for_status
        if response.status_code in (429, 430):
            delay = self.quota.back_off()
            logger.warning(f"ScreenScraper: Rate limited, increasing delay to {delay:.1f}s")
            raise ScreenScraperRateLimited(delay)

        if response.status_code == 404:
            return None

        response.raise_for_status()

        data = response.json()
        self.quota.update_from_response(data)

        # Check for API-level errors
        error_msg = data.get("error") or (data.get("response") or {}).get("erreur")
        if error_msg:
            logger.error(f"ScreenScraper API error: {error_msg}")
            raise ScreenScraperError(f"ScreenScraper error: {error_msg}")

        return data

    def _quota_exhausted(self) -> bool:
        if self.quota.remaining <= 0:
            logger.warning("ScreenScraper: Daily quota exhausted, skipping lookup")
            return True
        return False

    def _get_game(self, params: dict[str, Any]) -> tuple[GameMetadata, dict] | None:
        if self._quota_exhausted():
            return None
        try:
            data = self._make_request("jeuInfos", params)
        except requests.exceptions.RequestException as e:
            logger.error(f"ScreenScraper request failed: {e}")
            return None

        game = ((data or {}).get("response") or {}).get("jeu")
        if not game:
            return None
        return parse_game_response(game), game

    def lookup_by_hash(
        self, system_id: int, md5: str, sha1: str, size: int, filename: str
    ) -> tuple[GameMetadata, dict] | None:
        """Identify a ROM dump by its hashes, size and filename."""
        return self._get_game(
            {
                "systemeid": system_id,
                "md5": md5,
                "sha1": sha1,
                "romtaille": size,
                "romnom": filename,
            }
        )

    def lookup_by_id(self, game_id: str) -> tuple[GameMetadata, dict] | None:
        return self._get_game({"gameid": game_id})

    def lookup_by_name(self, system_id: int, name: str) -> tuple[GameMetadata, dict] | None:
        """Search by name and return details of the first match."""
        if self._quota_exhausted():
            return None

        params = {"systemeid": system_id, "recherche": clean_search_name(name)}
        try:
            data = self._make_request("jeuRecherche", params)
        except requests.exceptions.RequestException as e:
            logger.error(f"ScreenScraper search failed: {e}")
            return None

        games = ((data or {}).get("response") or {}).get("jeux") or []
        if isinstance(games, dict):
            games = [games]
        game_ids = [g.get("id") for g in games if g.get("id")]
        if not game_ids:
            logger.debug(f"No ScreenScraper match for '{name}' on system {system_id}")
            return None

        return self.lookup_by_id(str(game_ids[0]))


@dataclass
class FetchResult:
    metadata: GameMetadata | None = None
    downloaded_media: list[tuple[str, str]] = field(default_factory=list)  # (type, path)


def _download_game_media(
    client: ScreenScraperClient,
    game: dict,
    metadata: GameMetadata,
    rom_filename: str,
    media_output_dir: Path,
    result: FetchResult,
) -> GameMetadata:
    """Download configured media types and point metadata at the files."""
    stem, _ = get_stem_and_extension(rom_filename)
    changes = {}

    for media_type in client.config.media_types:
        media = find_media(game, media_type)
        if media is None:
            continue
        url = media["url"]

        if media_type == "video":
            sub_dir, extension = "videos", ".mp4"
        else:
            sub_dir, extension = "images", _media_extension(url, media.get("format"))

        save_path = media_output_dir / sub_dir / f"{stem}{extension}"
        if download_media(url, save_path):
            result.downloaded_media.append((media_type, str(save_path)))
            relative = f"./media/{sub_dir}/{stem}{extension}"
            changes["video" if media_type == "video" else "image"] = relative

    if not changes:
        return metadata
    return replace(metadata, **changes)


def fetch_game_data(
    client: ScreenScraperClient,
    system_name: str,
    rom_path: str | Path,
    rom_filename: str,
    media_output_dir: str | Path,
) -> FetchResult:
    """Look a ROM up by hash, then by name, and optionally download its media.

    Failures (unknown system, unreadable file, API or rate-limit errors)
    are logged and give an empty result.
    """
    result = FetchResult()

    system_id = get_system_id(system_name)
    if system_id is None:
        return result

    try:
        md5, sha1, size = calculate_hashes(rom_path)
    except OSError as e:
        logger.error(f"Failed to calculate hash for {rom_filename}: {e}")
        return result

    try:
        found = client.lookup_by_hash(system_id, md5, sha1, size, rom_filename)
        if client.quota.initialized and client.quota.requests_today == 1:
            logger.info(client.quota.status_line())

        if found is None:
            stem, _ = get_stem_and_extension(rom_filename)
            found = client.lookup_by_name(system_id, stem)
    except (ScreenScraperRateLimited, ScreenScraperError) as e:
        logger.warning(f"ScreenScraper lookup for {rom_filename} failed: {e}")
        return result

    if found is None:
        return result

    metadata, game = found
    if client.config.download_media and client.config.media_types:
        metadata = _download_game_media(
            client, game, metadata, rom_filename, Path(media_output_dir), result
        )
    result.metadata = metadata
    return result


def fetch_game_data_batch(
    client: ScreenScraperClient,
    system_name: str,
    roms: list[tuple[str, str]],
    media_output_dir: str | Path,
    progress_callback: Callable[[int, int, int], None] | None = None,
) -> dict[str, FetchResult]:
    """Fetch data for many ROMs, running up to quota.max_threads lookups at once.

    Args:
        roms: (rom_path, rom_filename) pairs
        progress_callback: Called with (completed, total, found)

    Returns:
        Results keyed by ROM path. ROMs skipped because the daily
        quota ran out are missing from the result.
    """
    results: dict[str, FetchResult] = {}
    completed = 0
    found = 0

    index = 0
    while index < len(roms):
        if client.quota.remaining <= 0:
            logger.warning(
                f"ScreenScraper: Stopping batch - daily quota exhausted "
                f"({completed}/{len(roms)} processed)"
            )
            break

        # Thread count may change after the first answer
        batch_size = max(1, client.quota.max_threads)
        batch = roms[index : index + batch_size]
        index += batch_size

        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            batch_results = list(
                executor.map(
                    lambda rom: fetch_game_data(
                        client, system_name, rom[0], rom[1], media_output_dir
                    ),
                    batch,
                )
            )

        for (rom_path, _), result in zip(batch, batch_results):
            results[str(rom_path)] = result
            completed += 1
            if result.metadata is not None:
                found += 1
            if progress_callback:
                progress_callback(completed, len(roms), found)

    return results
