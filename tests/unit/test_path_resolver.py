"""Unit tests for request path classification."""

import pytest

from static_server.domain.effective_config import EffectiveConfig
from static_server.pipeline.path_resolver import (
    Redirect,
    ServeAsset,
    ServeIndexTemplate,
    ServeStandardNotFound,
    classify,
    looks_like_file,
)
from static_server.pipeline.redirects import RedirectTable


@pytest.fixture
def site(tmp_path):
    (tmp_path / "index.html").write_text("<p>index</p>", encoding="utf-8")
    (tmp_path / "app.js").write_text("console.log(1)", encoding="utf-8")
    (tmp_path / "docs").mkdir()
    (tmp_path / ".ghs.yaml").write_text("historyMode: false\n", encoding="utf-8")
    return tmp_path


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/app.js", True),
        ("/dir.v2/page", False),
        ("/users/42", False),
        ("/", False),
        ("/archive.tar.gz/", True),
    ],
)
def test_looks_like_file(path, expected):
    assert looks_like_file(path) is expected


def test_standard_mode_existing_asset(site):
    config = EffectiveConfig(serve_root=site)

    assert classify("/app.js", config) == ServeAsset("/app.js")
    assert classify("/docs", config) == ServeAsset("/docs")
    assert classify("/", config) == ServeAsset("/")


def test_standard_mode_missing_asset(site):
    config = EffectiveConfig(serve_root=site)

    assert classify("/missing.css", config) == ServeStandardNotFound()
    assert classify("/users/42", config) == ServeStandardNotFound()


def test_disallowed_path_is_not_found_in_standard_mode(site):
    config = EffectiveConfig(serve_root=site)

    assert classify("/.ghs.yaml", config) == ServeStandardNotFound()


def test_history_mode_routes(site):
    config = EffectiveConfig(serve_root=site, history_mode=True)

    assert classify("/users/42", config) == ServeIndexTemplate()
    assert classify("/", config) == ServeIndexTemplate()
    assert classify("/app.js", config) == ServeAsset("/app.js")
    assert classify("/missing.css", config) == ServeAsset("/missing.css")
    assert classify("/.ghs.yaml", config) == ServeIndexTemplate()


def test_redirect_takes_precedence(site):
    config = EffectiveConfig(serve_root=site, redirect_routes={"/app.js": "/new.js"})
    table, _ = RedirectTable.from_routes(config.redirect_routes)

    result = classify("/app.js", config, table)

    assert isinstance(result, Redirect)
    assert result.rule.destination == "/new.js"


def test_redirects_ignored_when_disabled_or_not_get(site):
    config = EffectiveConfig(
        serve_root=site,
        redirect_routes={"/app.js": "/new.js"},
        redirect_routes_enabled=False,
    )
    table, _ = RedirectTable.from_routes(config.redirect_routes)

    assert classify("/app.js", config, table) == ServeAsset("/app.js")

    enabled = EffectiveConfig(serve_root=site, redirect_routes={"/app.js": "/new.js"})
    assert classify("/app.js", enabled, table, method="OPTIONS") == ServeAsset(
        "/app.js"
    )
