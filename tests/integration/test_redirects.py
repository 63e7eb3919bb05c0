"""Integration tests for redirect routes."""

import pytest
import requests

pytestmark = pytest.mark.integration


@pytest.fixture(name="redirect_server")
def _redirect_server(server_factory, site_directory):
    (site_directory / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (site_directory / "old.html").write_text("stale", encoding="utf-8")
    routes = site_directory.parent / "redirects.yaml"
    routes.write_text(
        "/old.html: /new.html\n"
        "'/blog/{slug}': /posts\n"
        "'/item/{id:[0-9]+}': https://shop.example/items\n"
        "/broken: ':90%?88**'\n",
        encoding="utf-8",
    )
    return server_factory(site_directory, env={"APP_REDIRECT_ROUTES_PATH": str(routes)})


def _get(server, path):
    return requests.get(f"{server['base_url']}{path}", allow_redirects=False, timeout=5)


def test_literal_redirect_wins_over_existing_file(redirect_server):
    response = _get(redirect_server, "/old.html")

    assert response.status_code == 307
    assert response.headers["Location"] == "/new.html"


def test_capture_redirect_keeps_query(redirect_server):
    response = _get(redirect_server, "/blog/hello-world?ref=feed")

    assert response.status_code == 307
    assert response.headers["Location"] == "/posts?ref=feed"


def test_absolute_destination(redirect_server):
    response = _get(redirect_server, "/item/17")

    assert response.status_code == 307
    assert response.headers["Location"] == "https://shop.example/items"


def test_capture_must_match_entire_segment(redirect_server):
    assert _get(redirect_server, "/item/17abc").status_code == 404


def test_invalid_destination_is_internal_error(redirect_server):
    response = _get(redirect_server, "/broken")

    assert response.status_code == 500
    assert response.text == "fatal: unable to redirect to destination URL\n"


def test_redirects_can_be_disabled(server_factory, site_directory):
    (site_directory / "old.html").write_text("stale", encoding="utf-8")
    (site_directory / ".ghs.yaml").write_text(
        "redirectRoutes:\n  /old.html: /new.html\n", encoding="utf-8"
    )
    server = server_factory(site_directory, env={"APP_REDIRECT_ROUTES_ENABLED": "false"})

    response = _get(server, "/old.html")

    assert response.status_code == 200
    assert response.text == "stale"
