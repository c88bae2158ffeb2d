import json
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

USER_AGENT = "Grumming/1.0"


class HttpFailure(Exception):
    """Transport-level failure: DNS, connect, timeout or an unreadable body."""


def request_json(method, url, headers=None, params=None, json_body=None, form=None, timeout=10):
    """Send one request and return ``(status, payload)``.

    Non-2xx responses are returned, not raised, so callers can inspect the
    provider's error body. ``payload`` is ``None`` when the body is not JSON.
    """
    if params:
        url = f"{url}?{urlencode(params)}"

    data = None
    all_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    if json_body is not None:
        data = json.dumps(json_body).encode("utf-8")
        all_headers["Content-Type"] = "application/json"
    elif form is not None:
        data = urlencode(form).encode("utf-8")
        all_headers["Content-Type"] = "application/x-www-form-urlencoded"
    all_headers.update(headers or {})

    req = Request(url, data=data, headers=all_headers, method=method)
    try:
        with urlopen(req, timeout=timeout) as response:
            status = response.status
            raw = response.read()
    except HTTPError as exc:
        status = exc.code
        raw = exc.read()
    except (URLError, TimeoutError, OSError) as exc:
        raise HttpFailure(str(exc)) from exc

    try:
        payload = json.loads(raw.decode("utf-8")) if raw else None
    except (UnicodeDecodeError, ValueError):
        payload = None
    return status, payload
