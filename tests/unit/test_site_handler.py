"""Unit tests for the request handler built from an effective configuration."""

import pytest

from static_server.domain.effective_config import EffectiveConfig
from static_server.domain.http_types import HttpRequest
from static_server.handlers.site_handler import build_handler
from static_server.pipeline.composer import REDIRECT_ERROR_BODY, header_map_headers


def _body(response) -> bytes:
    if response.body_iter is not None:
        return b"".join(response.body_iter)
    return response.body


def _get(handler, path, method="GET", query=""):
    return handler.serve_http(HttpRequest(method, path, {}, query=query))


@pytest.fixture
def site(tmp_path):
    (tmp_path / "index.html").write_text(
        "<title>{{ .Title }}</title>", encoding="utf-8"
    )
    (tmp_path / "app.js").write_text("console.log('app')", encoding="utf-8")
    (tmp_path / ".ghs.yaml").write_text("historyMode: true\n", encoding="utf-8")
    return tmp_path


def test_standard_mode_serves_files_and_404(site):
    handler = build_handler(EffectiveConfig(serve_root=site))

    assert _body(_get(handler, "/app.js")) == b"console.log('app')"
    missing = _get(handler, "/users/42")
    assert missing.status_code == 404
    assert _body(missing) == b"404 page not found\n"


def test_standard_mode_custom_not_found_page(site):
    (site / "oops.html").write_text("custom", encoding="utf-8")
    handler = build_handler(EffectiveConfig(serve_root=site, not_found_file="oops.html"))

    response = _get(handler, "/missing")

    assert response.status_code == 404
    assert _body(response) == b"custom"


def test_dotfile_is_never_served(site):
    handler = build_handler(EffectiveConfig(serve_root=site))

    assert _get(handler, "/.ghs.yaml").status_code == 404


def test_history_mode_renders_shell_for_routes(site):
    handler = build_handler(
        EffectiveConfig(serve_root=site, history_mode=True, template_map={"Title": "Hello!"})
    )

    for path in ("/", "/users/42", "/.ghs.yaml"):
        response = _get(handler, path)
        assert response.status_code == 200
        assert _body(response) == b"<title>Hello!</title>"
        assert response.headers["Content-Type"].startswith("text/html")


def test_history_mode_serves_assets_and_missing_assets_404(site):
    handler = build_handler(EffectiveConfig(serve_root=site, history_mode=True))

    assert _get(handler, "/app.js").status_code == 200
    assert _get(handler, "/missing.css").status_code == 404


def test_history_mode_broken_template_is_internal_error(site):
    (site / "index.html").write_text("<title>{{ .Title </title>", encoding="utf-8")
    handler = build_handler(EffectiveConfig(serve_root=site, history_mode=True))

    response = _get(handler, "/anything")

    assert response.status_code == 500
    assert _body(response) == b"500 internal error\n"


def test_history_mode_keeps_script_braces_literal(site):
    script = "<script>class A{#p=1;get(){return this.#p}}</script><i>{% raw %}</i>"
    (site / "index.html").write_text(
        f"<title>{{{{ .Title }}}}</title>{script}", encoding="utf-8"
    )
    handler = build_handler(
        EffectiveConfig(serve_root=site, history_mode=True, template_map={"Title": "Shop"})
    )

    response = _get(handler, "/route")

    assert response.status_code == 200
    assert _body(response) == f"<title>Shop</title>{script}".encode("utf-8")


def test_repeated_requests_are_byte_identical(site):
    (site / "docs").mkdir()
    (site / "docs" / "guide.txt").write_text("guide\n", encoding="utf-8")
    handler = build_handler(EffectiveConfig(serve_root=site))

    for path in ("/app.js", "/docs/guide.txt", "/docs/", "/missing"):
        first = _get(handler, path)
        second = _get(handler, path)
        assert first.status_line == second.status_line
        assert first.headers == second.headers
        assert _body(first) == _body(second)


def test_directory_index_and_trailing_slash_redirect(tmp_path):
    (tmp_path / "index.html").write_text("hello", encoding="utf-8")
    (tmp_path / "about").mkdir()
    (tmp_path / "about" / "index.html").write_text("this is a page", encoding="utf-8")
    handler = build_handler(EffectiveConfig(serve_root=tmp_path))

    root = _get(handler, "/")
    assert root.status_code == 200
    assert _body(root) == b"hello"

    about = _get(handler, "/about/")
    assert about.status_code == 200
    assert _body(about) == b"this is a page"

    bare = _get(handler, "/about")
    assert bare.status_code == 301
    assert bare.headers["Location"] == "/about/"


def test_header_map_applies_only_when_enabled(site):
    header_map = {"x-frame-options": ["DENY"], "Cache-Control": ["no-cache", "private"]}
    enabled = build_handler(
        EffectiveConfig(serve_root=site, header_map=header_map, header_map_enabled=True)
    )
    disabled = build_handler(EffectiveConfig(serve_root=site, header_map=header_map))

    response = _get(enabled, "/app.js")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Cache-Control"] == "no-cache, private"
    assert _get(enabled, "/missing").headers["X-Frame-Options"] == "DENY"
    assert "X-Frame-Options" not in _get(disabled, "/app.js").headers


def test_header_map_content_type_wins(site):
    handler = build_handler(
        EffectiveConfig(
            serve_root=site,
            header_map={"Content-Type": ["text/x-test"]},
            header_map_enabled=True,
        )
    )

    assert _get(handler, "/app.js").headers["Content-Type"] == "text/x-test"


def test_redirect_with_query(site):
    handler = build_handler(
        EffectiveConfig(serve_root=site, redirect_routes={"/old/{page}": "/new"})
    )

    response = _get(handler, "/old/intro", query="a=1")

    assert response.status_code == 307
    assert response.headers["Location"] == "/new?a=1"


def test_redirect_precedes_existing_file(site):
    handler = build_handler(
        EffectiveConfig(serve_root=site, redirect_routes={"/app.js": "https://cdn.example/app.js"})
    )

    response = _get(handler, "/app.js")

    assert response.status_code == 307
    assert response.headers["Location"] == "https://cdn.example/app.js"


def test_redirect_capture_does_not_partially_match(site):
    handler = build_handler(
        EffectiveConfig(serve_root=site, redirect_routes={"/{thing:[0-9]+}": "/numbers"})
    )

    assert _get(handler, "/54309").status_code == 307
    assert _get(handler, "/54309y90429").status_code == 404


def test_invalid_redirect_destination_is_internal_error(site):
    handler = build_handler(
        EffectiveConfig(serve_root=site, redirect_routes={"/broken": ":90%?88**"})
    )

    response = _get(handler, "/broken")

    assert response.status_code == 500
    assert response.body == REDIRECT_ERROR_BODY


def test_redirects_disabled(site):
    handler = build_handler(
        EffectiveConfig(
            serve_root=site,
            redirect_routes={"/app.js": "/elsewhere"},
            redirect_routes_enabled=False,
        )
    )

    assert len(handler.redirects) == 0
    assert _get(handler, "/app.js").status_code == 200


def test_serve_redirect_handler(site):
    handler = build_handler(EffectiveConfig(serve_root=site))

    response = handler.serve_redirect("/a", "/b")(HttpRequest("GET", "/a", {}))

    assert response.status_code == 307
    assert response.headers["Location"] == "/b"


def test_header_map_headers_canonicalizes_names(site):
    config = EffectiveConfig(
        serve_root=site, header_map={"x-custom-thing": ["1"]}, header_map_enabled=True
    )

    assert header_map_headers(config) == {"X-Custom-Thing": "1"}
