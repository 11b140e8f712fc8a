import logging

import requests

DEFAULT_HEADERS: dict[str, str] = {
    # Ohne Browser-User-Agent liefert IMDb eine 403-Seite
    "User-Agent": ("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
                   "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"),
    # Titel sonst lokalisiert (z.B. "Vom Winde verweht")
    "Accept-Language": "en-US,en;q=0.9",
}


def create_session(headers: dict[str, str] | None = None) -> requests.Session:
    """Erzeugt eine requests-Session mit Standard-Headern (überschreibbar)."""
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    if headers:
        session.headers.update(headers)
    return session


def fetch_html(session: requests.Session, url: str, timeout: float | None = None) -> str:
    """
    Lädt eine Seite synchron und gibt den HTML-Text zurück.

    Kein Retry: HTTP-Fehler werden über raise_for_status() als
    requests.HTTPError an den Aufrufer weitergereicht.
    """
    logging.debug(f"GET {url}")
    response = session.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text
