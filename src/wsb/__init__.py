"""wsb -- WebSocket broadcaster and gated static server for build tooling.

Serves a build's output directory while the build writes it, and
pushes JSON messages to connected browsers. Endpoints (one port):

- GET /b?k=v&... -- broadcast {"k": "v", ...} to every WebSocket peer
- GET /pause -- hold static requests (with --pausable-static)
- GET /unpause -- release them
- GET /<path> -- static file from --static, or the WebSocket console page
- WebSocket on any path -- join the broadcast channel
"""

__version__ = "0.1.0"
