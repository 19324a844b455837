import httpx

from epc.core.config import Settings
from epc.core.http import build_client
from epc.output.http import HttpTransport

URL = "https://intake.example.org/v1/events"


def _transport(handler):
    client = build_client(Settings(user_agent="epc-test/1.0"), transport=httpx.MockTransport(handler))
    return HttpTransport(client)


def test_posts_payload_verbatim():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201)

    with _transport(handler) as transport:
        outcome = transport.send(URL, '{"name":"click"}')

    assert outcome.ok
    assert outcome.status_code == 201
    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == URL
    assert request.content == b'{"name":"click"}'
    assert request.headers["User-Agent"] == "epc-test/1.0"


def test_error_status_is_a_failure():
    with _transport(lambda request: httpx.Response(503)) as transport:
        outcome = transport.send(URL, "{}")

    assert not outcome.ok
    assert outcome.status_code == 503
    assert outcome.error == "HTTP 503"


def test_network_error_is_a_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _transport(handler) as transport:
        outcome = transport.send(URL, "{}")

    assert not outcome.ok
    assert outcome.status_code is None
    assert "connection refused" in outcome.error


def test_payload_is_unlabelled_by_default():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202)

    with _transport(handler) as transport:
        transport.send(URL, "plain text body")

    assert "content-type" not in seen[0].headers


def test_content_type_from_settings():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202)

    settings = Settings(content_type="application/json")
    with HttpTransport(build_client(settings, transport=httpx.MockTransport(handler))) as transport:
        transport.send(URL, "{}")

    assert seen[0].headers["Content-Type"] == "application/json"
