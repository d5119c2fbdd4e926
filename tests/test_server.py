"""End-to-end tests for the server app over in-process HTTP.

Gated requests are started as tasks so the test can change the static
root while the request is still waiting.
"""

from __future__ import annotations

import asyncio
import gzip
import json

import pytest
from helpers import GZIP, IDENTITY, asgi_client, make_app, make_request

from wsb.app import WsbServer, create_app
from wsb.config import ServerConfig
from wsb.errors import NotFoundError
from wsb.pipeline import ErrorHandler, NormalHandler, Pipeline

# ================================================================== #
# Static files
# ================================================================== #


class TestStaticFiles:
    @pytest.mark.asyncio
    async def test_serves_existing_file(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/foo.html", headers=IDENTITY)
        assert response.status_code == 200
        assert response.content == b"foo-contents"
        assert response.headers["content-type"] == "text/html"

    @pytest.mark.asyncio
    async def test_serves_nested_binary_file(self, tmp_path):
        data = bytes(range(256)) * 300
        (tmp_path / "img").mkdir()
        (tmp_path / "img" / "logo.png").write_bytes(data)
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/img/logo.png", headers=IDENTITY)
        assert response.status_code == 200
        assert response.content == data
        assert response.headers["content-type"] == "image/png"

    @pytest.mark.asyncio
    async def test_root_serves_index(self, tmp_path):
        (tmp_path / "index.html").write_text("<h1>home</h1>")
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/", headers=IDENTITY)
        assert response.text == "<h1>home</h1>"

    @pytest.mark.asyncio
    async def test_missing_file_is_404(self, tmp_path):
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/does-not-exist.html", headers=IDENTITY)
        assert response.status_code == 404
        assert "No such file or directory" in response.text
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_directory_is_500(self, tmp_path):
        (tmp_path / "sub").mkdir()
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/sub", headers=IDENTITY)
        assert response.status_code == 500
        assert "File could not be read" in response.text

    @pytest.mark.asyncio
    async def test_escaping_root_is_404(self, tmp_path):
        root = tmp_path / "public"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("secret")
        server = WsbServer(ServerConfig(static_root=root))
        _, response = await server.dispatch(make_request("/../secret.txt"))
        assert response.status_code == 404
        assert response.body.startswith(b"Not found")

    @pytest.mark.asyncio
    async def test_null_byte_in_path_is_404(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/foo%00.html", headers=IDENTITY)
        assert response.status_code == 404
        assert response.text.startswith("Not found")
        assert "Traceback" not in response.text


# ================================================================== #
# Compression
# ================================================================== #


class TestCompression:
    @pytest.mark.asyncio
    async def test_plain_without_accept_encoding(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        async with asgi_client(make_app(static_root=tmp_path, compress=True)) as client:
            response = await client.get("/foo.html", headers=IDENTITY)
        assert response.content == b"foo-contents"
        assert "content-encoding" not in response.headers

    @pytest.mark.asyncio
    async def test_gzip_for_compressible_extension(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        app = make_app(static_root=tmp_path, compress=True)
        async with asgi_client(app) as client:
            async with client.stream("GET", "/foo.html", headers=GZIP) as response:
                raw = b"".join([chunk async for chunk in response.aiter_raw()])
        assert response.status_code == 200
        assert response.headers["content-encoding"] == "gzip"
        assert gzip.decompress(raw) == b"foo-contents"

    @pytest.mark.asyncio
    async def test_no_gzip_for_other_extensions(self, tmp_path):
        (tmp_path / "foo.blah").write_text("foo-contents")
        async with asgi_client(make_app(static_root=tmp_path, compress=True)) as client:
            response = await client.get("/foo.blah", headers=GZIP)
        assert response.content == b"foo-contents"
        assert "content-encoding" not in response.headers

    @pytest.mark.asyncio
    async def test_no_gzip_when_compression_disabled(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/foo.html", headers=GZIP)
        assert response.content == b"foo-contents"
        assert "content-encoding" not in response.headers

    @pytest.mark.asyncio
    async def test_missing_file_not_encoded(self, tmp_path):
        async with asgi_client(make_app(static_root=tmp_path, compress=True)) as client:
            response = await client.get("/does-not-exist.html", headers=GZIP)
        assert response.status_code == 404
        assert "content-encoding" not in response.headers


# ================================================================== #
# Readiness gates
# ================================================================== #


class TestWaitForLockfile:
    @pytest.mark.asyncio
    async def test_waits_for_lock_removal(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        lock = tmp_path / "foo.html.lock"
        lock.write_text("")

        app = make_app(static_root=tmp_path, wait_for_lockfile_ms=1000)
        async with asgi_client(app) as client:
            task = asyncio.create_task(client.get("/foo.html", headers=IDENTITY))
            await asyncio.sleep(0.2)
            assert not task.done()

            (tmp_path / "foo.html").write_text("updated-foo-contents")
            await asyncio.sleep(0.1)
            lock.unlink()

            response = await task
        assert response.status_code == 200
        assert response.text == "updated-foo-contents"

    @pytest.mark.asyncio
    async def test_unrelated_lock_blocks_too(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo")
        lock = tmp_path / "other.css.lock"
        lock.write_text("")

        app = make_app(static_root=tmp_path, wait_for_lockfile_ms=1000)
        async with asgi_client(app) as client:
            task = asyncio.create_task(client.get("/foo.html", headers=IDENTITY))
            await asyncio.sleep(0.2)
            assert not task.done()
            lock.unlink()
            response = await task
        assert response.text == "foo"

    @pytest.mark.asyncio
    async def test_times_out_with_200(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo-contents")
        (tmp_path / "foo.html.lock").write_text("")

        async with asgi_client(make_app(static_root=tmp_path, wait_for_lockfile_ms=300)) as client:
            response = await client.get("/foo.html", headers=IDENTITY)
        assert response.status_code == 200
        assert "timed out waiting for lock files to be removed" in response.text

    @pytest.mark.asyncio
    async def test_other_requests_keep_flowing(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo")
        lock = tmp_path / "foo.html.lock"
        lock.write_text("")

        app = make_app(static_root=tmp_path, wait_for_lockfile_ms=2000)
        async with asgi_client(app) as client:
            gated = asyncio.create_task(client.get("/foo.html", headers=IDENTITY))
            await asyncio.sleep(0.1)
            broadcast = await client.get("/b", params={"x": "1"})
            assert broadcast.status_code == 200
            assert not gated.done()
            lock.unlink()
            await gated


class TestWaitForStatic:
    @pytest.mark.asyncio
    async def test_waits_for_file(self, tmp_path):
        app = make_app(static_root=tmp_path, wait_for_static_ms=1000)
        async with asgi_client(app) as client:
            task = asyncio.create_task(client.get("/bar.html", headers=IDENTITY))
            await asyncio.sleep(0.2)
            assert not task.done()

            (tmp_path / "bar.html").write_text("bar-contents")
            response = await task
        assert response.status_code == 200
        assert response.text == "bar-contents"

    @pytest.mark.asyncio
    async def test_times_out_with_200(self, tmp_path):
        async with asgi_client(make_app(static_root=tmp_path, wait_for_static_ms=300)) as client:
            response = await client.get("/some-random-file.html", headers=IDENTITY)
        assert response.status_code == 200
        assert "timed out waiting for file to exist" in response.text


# ================================================================== #
# Pause / unpause
# ================================================================== #


class TestPause:
    @pytest.mark.asyncio
    async def test_pause_holds_static_requests(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo")
        app = make_app(static_root=tmp_path, pausable_static=True)
        async with asgi_client(app) as client:
            paused = await client.get("/pause")
            assert paused.text == "pausing static server"

            task = asyncio.create_task(client.get("/foo.html", headers=IDENTITY))
            await asyncio.sleep(0.2)
            assert not task.done()

            unpaused = await client.get("/unpause")
            assert unpaused.text == "unpausing static server"
            response = await asyncio.wait_for(task, timeout=2.0)
        assert response.text == "foo"

    @pytest.mark.asyncio
    async def test_repeated_pause_is_safe(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo")
        app = make_app(static_root=tmp_path, pausable_static=True)
        async with asgi_client(app) as client:
            await client.get("/pause")
            await client.get("/pause")
            task = asyncio.create_task(client.get("/foo.html", headers=IDENTITY))
            await asyncio.sleep(0.2)
            assert not task.done()
            await client.get("/unpause")
            await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_unpause_without_pause(self, tmp_path):
        app = make_app(static_root=tmp_path, pausable_static=True)
        async with asgi_client(app) as client:
            response = await client.get("/unpause")
        assert response.status_code == 200
        assert response.text == "unpausing static server"

    @pytest.mark.asyncio
    async def test_pause_endpoint_absent_when_disabled(self, tmp_path):
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/pause", headers=IDENTITY)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_servers_pause_independently(self, tmp_path):
        (tmp_path / "foo.html").write_text("foo")
        paused_app = make_app(static_root=tmp_path, pausable_static=True)
        other_app = make_app(static_root=tmp_path, pausable_static=True)
        async with asgi_client(paused_app) as paused, asgi_client(other_app) as other:
            await paused.get("/pause")
            response = await asyncio.wait_for(
                other.get("/foo.html", headers=IDENTITY), timeout=2.0
            )
            await paused.get("/unpause")
        assert response.text == "foo"


# ================================================================== #
# Broadcast endpoint and default page
# ================================================================== #


class TestBroadcastEndpoint:
    @pytest.mark.asyncio
    async def test_echoes_pretty_json(self):
        async with asgi_client(make_app()) as client:
            response = await client.get("/b?x=1&y=2")
        assert response.status_code == 200
        assert response.text == json.dumps({"x": "1", "y": "2"}, indent=2)

    @pytest.mark.asyncio
    async def test_last_repeated_key_wins(self):
        async with asgi_client(make_app()) as client:
            response = await client.get("/b?x=1&x=2")
        assert response.json() == {"x": "2"}

    @pytest.mark.asyncio
    async def test_broadcast_wins_over_static_file_named_b(self, tmp_path):
        (tmp_path / "b").write_text("shadowed")
        async with asgi_client(make_app(static_root=tmp_path)) as client:
            response = await client.get("/b?k=v", headers=IDENTITY)
        assert response.json() == {"k": "v"}


class TestDefaultPage:
    @pytest.mark.asyncio
    async def test_any_path_gets_console_page(self):
        async with asgi_client(make_app(port=9123)) as client:
            response = await client.get("/anything")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "new WebSocket(" in response.text
        assert ":9123" in response.text

    @pytest.mark.asyncio
    async def test_errors_render_inside_page(self):
        server = WsbServer(ServerConfig(port=9123))
        app = create_app(server=server)

        async def explode(request, response, next):
            raise RuntimeError("kaboom")

        # Swap in a pipeline with a failing handler but the same fallback.
        pipeline = Pipeline(fallback=server.pipeline.fallback)
        pipeline.use(NormalHandler(explode), ErrorHandler(_pass_on))
        server.pipeline = pipeline

        async with asgi_client(app) as client:
            response = await client.get("/")
        assert response.status_code == 500
        assert "kaboom" in response.text
        assert "new WebSocket(" in response.text


async def _pass_on(request, response, next, error):
    await next(error)


class TestUnendedResponse:
    @pytest.mark.asyncio
    async def test_warning_names_trail_and_error(self, caplog):
        server = WsbServer(ServerConfig())

        async def explode(request, response, next):
            raise NotFoundError("gone")

        async def swallow(request, response, next, error):
            return None

        pipeline = Pipeline(fallback=server.pipeline.fallback)
        pipeline.use(NormalHandler(explode), ErrorHandler(swallow))
        server.pipeline = pipeline

        with caplog.at_level("WARNING", logger="wsb.server"):
            exchange, response = await server.dispatch(make_request("/x"))

        assert response.ended
        assert response.body == b""
        assert isinstance(exchange.error, NotFoundError)
        assert exchange.trail == ["explode", "swallow"]
        assert "explode, swallow" in caplog.text
        assert "gone" in caplog.text


# ================================================================== #
# Registration order
# ================================================================== #


class TestRegistrationOrder:
    def test_full_order(self, tmp_path):
        server = WsbServer(ServerConfig(static_root=tmp_path, pausable_static=True))
        assert [h.label for h in server.pipeline.normal_handlers] == [
            "broadcast",
            "pause",
            "static",
        ]
        assert [h.label for h in server.pipeline.error_handlers] == ["static-errors"]
        assert server.pipeline.frozen

    def test_without_static_root(self):
        server = WsbServer(ServerConfig())
        assert [h.label for h in server.pipeline.normal_handlers] == ["broadcast"]
        assert server.pipeline.error_handlers == ()
