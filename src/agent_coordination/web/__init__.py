"""HTTP surface for the coordination API."""

from __future__ import annotations


def create_app(db_path: str = "") -> object:
	"""Create the Starlette ASGI application."""
	from .app import build_app

	return build_app(db_path=db_path)


def run_web_server(host: str = "127.0.0.1", port: int = 8430, db_path: str = "") -> None:
	"""Run the coordination HTTP server."""
	import uvicorn

	app = create_app(db_path=db_path)

	print(f"Coordination API running at http://{host}:{port}/coordination")
	print("Press Ctrl+C to stop.")
	uvicorn.run(app, host=host, port=port, log_level="warning")
