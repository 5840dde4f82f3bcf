import logging

import httpx

from movietier import config


class TMDBError(Exception):
    pass


def _format_movie(movie: dict) -> dict:
    return {
        "movie_id": movie["id"],
        "title": movie.get("title") or movie.get("name") or "",
        "overview": movie.get("overview") or None,
        "poster_path": movie.get("poster_path"),
        "release_date": movie.get("release_date") or None,
        "vote_average": movie.get("vote_average"),
    }


async def _get(path: str, params: dict = None, transport=None):
    if not config.TMDB_API_KEY:
        raise TMDBError("TMDB API key not configured")

    query = {"api_key": config.TMDB_API_KEY, "language": "en-US"}
    query.update(params or {})
    async with httpx.AsyncClient(base_url=config.TMDB_BASE_URL, timeout=10, transport=transport) as client:
        try:
            response = await client.get(path, params=query)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logging.error(f"TMDB request {path} failed: {e}")
            raise TMDBError(str(e)) from e
        return response.json()


async def search_movies(query: str, transport=None):
    data = await _get("/search/movie", {"query": query, "include_adult": False, "page": 1}, transport)
    return [_format_movie(m) for m in data.get("results", []) if m.get("id") and m.get("title")]


async def get_movie_details(movie_id: int, transport=None):
    # Fetch credits in one go
    details = await _get(f"/movie/{movie_id}", {"append_to_response": "credits"}, transport)

    result = _format_movie(details)
    result["runtime"] = details.get("runtime")
    result["genres"] = [g["name"] for g in details.get("genres", [])]
    result["cast"] = [c["name"] for c in details.get("credits", {}).get("cast", [])[:5]]  # Top 5 actors
    return result
