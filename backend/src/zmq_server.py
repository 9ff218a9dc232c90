import base64
import json
import logging
import time
import uuid

import sentry_sdk
import zmq

from engine.cache import PREVIEW_FORMATS, encode_preview
from engine.canvas import Canvas
from engine.scheduler import SortScheduler
from project import schema
from security import validate_dimensions, validate_image_path, validate_output_path

logger = logging.getLogger(__name__)


class ZMQServer:
    def __init__(self, max_workers: int | None = None):
        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.REP)
        self.socket.setsockopt(zmq.MAXMSGSIZE, 1_048_576)  # 1 MB limit
        self.port = self.socket.bind_to_random_port("tcp://127.0.0.1")
        # Dedicated ping socket, polled ahead of the command socket each cycle
        self.ping_socket = self.context.socket(zmq.REP)
        self.ping_socket.setsockopt(zmq.MAXMSGSIZE, 4096)  # 4 KB limit (pings only)
        self.ping_port = self.ping_socket.bind_to_random_port("tcp://127.0.0.1")
        # Auth token — prevents unauthorized ZMQ access from other local processes
        self.token = str(uuid.uuid4())
        self.start_time = time.time()
        self.running = False
        self.canvas: Canvas | None = None
        self.scheduler = SortScheduler(max_workers=max_workers)

    def reset_state(self):
        """Drop the loaded image and the last applied settings.

        Used by session-scoped test fixtures to reset between tests
        while keeping the server running.
        """
        self.canvas = None
        self.scheduler.invalidate()

    def _validate_token(self, message: dict) -> str | None:
        """Validate auth token. Returns error message or None if valid."""
        if message.get("_token") != self.token:
            return "invalid or missing auth token"
        return None

    def _make_ping_response(self, msg_id: str | None) -> dict:
        return {
            "id": msg_id,
            "status": "alive",
            "uptime_s": round(time.time() - self.start_time, 1),
            "last_sort_ms": self.scheduler.last_sort_ms,
        }

    def handle_message(self, message: dict) -> dict:
        cmd = message.get("cmd")
        msg_id = message.get("id")

        token_err = self._validate_token(message)
        if token_err:
            return {"id": msg_id, "ok": False, "error": token_err}

        if cmd == "ping":
            return self._make_ping_response(msg_id)
        elif cmd == "shutdown":
            self.running = False
            return {"id": msg_id, "ok": True}
        elif cmd == "load_image":
            return self._handle_load_image(message, msg_id)
        elif cmd == "apply_sort":
            return self._handle_apply_sort(message, msg_id)
        elif cmd == "render":
            return self._handle_render(message, msg_id)
        elif cmd == "rotate":
            return self._handle_rotate(msg_id)
        elif cmd == "export_image":
            return self._handle_export_image(message, msg_id)
        elif cmd == "presets":
            return {"id": msg_id, "ok": True, **schema.presets()}
        elif cmd == "sort_stats":
            return {"id": msg_id, "ok": True, "stats": self.scheduler.get_stats()}
        else:
            return {"id": msg_id, "ok": False, "error": f"unknown: {cmd}"}

    def _preview_response(self, message: dict, msg_id: str | None, **extra) -> dict:
        fmt = message.get("format", "jpeg")
        if fmt not in PREVIEW_FORMATS:
            return {
                "id": msg_id,
                "ok": False,
                "error": f"unsupported preview format: {fmt}",
            }
        data = encode_preview(self.canvas.destination, fmt=fmt)
        return {
            "id": msg_id,
            "ok": True,
            "frame_data": base64.b64encode(data).decode("ascii"),
            "format": fmt,
            "width": self.canvas.width,
            "height": self.canvas.height,
            **extra,
        }

    def _handle_load_image(self, message: dict, msg_id: str | None) -> dict:
        path = message.get("path")
        if not path:
            return {"id": msg_id, "ok": False, "error": "missing path"}

        errors = validate_image_path(path)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            canvas = Canvas.from_file(path)
        except OSError as e:
            logger.warning("Could not decode image: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Could not decode image"}
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Load image handler error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

        errors = validate_dimensions(canvas.width, canvas.height)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        self.canvas = canvas
        self.scheduler.invalidate()
        return {
            "id": msg_id,
            "ok": True,
            "width": canvas.width,
            "height": canvas.height,
        }

    def _handle_apply_sort(self, message: dict, msg_id: str | None) -> dict:
        if self.canvas is None:
            return {"id": msg_id, "ok": False, "error": "no image loaded"}

        try:
            settings = schema.from_dict(message.get("settings", schema.new_settings()))
        except ValueError as e:
            return {"id": msg_id, "ok": False, "error": str(e)}

        try:
            recomputed = self.scheduler.update(
                self.canvas.source, self.canvas.destination, settings
            )
            return self._preview_response(
                message,
                msg_id,
                recomputed=recomputed,
                sort_ms=self.scheduler.last_sort_ms,
            )
        except Exception as e:
            # Scheduler already reported sort failures; this covers encoding.
            sentry_sdk.capture_exception(e)
            logger.error("Apply sort handler error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

    def _handle_render(self, message: dict, msg_id: str | None) -> dict:
        if self.canvas is None:
            return {"id": msg_id, "ok": False, "error": "no image loaded"}
        try:
            return self._preview_response(message, msg_id)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Render handler error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

    def _handle_rotate(self, msg_id: str | None) -> dict:
        if self.canvas is None:
            return {"id": msg_id, "ok": False, "error": "no image loaded"}
        self.canvas.rotate()
        self.scheduler.invalidate()
        return {
            "id": msg_id,
            "ok": True,
            "width": self.canvas.width,
            "height": self.canvas.height,
        }

    def _handle_export_image(self, message: dict, msg_id: str | None) -> dict:
        if self.canvas is None:
            return {"id": msg_id, "ok": False, "error": "no image loaded"}
        output_path = message.get("output_path")
        if not output_path:
            return {"id": msg_id, "ok": False, "error": "missing output_path"}

        errors = validate_output_path(output_path)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            self.canvas.save(output_path)
            return {"id": msg_id, "ok": True, "output_path": output_path}
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Export image handler error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

    def run(self):
        self.running = True
        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self.ping_socket, zmq.POLLIN)
        while self.running:
            events = dict(poller.poll(timeout=500))

            # Pings are answered between commands, not during one
            if self.ping_socket in events:
                try:
                    message = json.loads(self.ping_socket.recv())
                    msg_id = message.get("id")
                    token_err = self._validate_token(message)
                    if token_err:
                        self.ping_socket.send_json(
                            {"id": msg_id, "ok": False, "error": token_err}
                        )
                    else:
                        self.ping_socket.send_json(self._make_ping_response(msg_id))
                except json.JSONDecodeError:
                    self.ping_socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                except zmq.ZMQError:
                    logger.error("ZMQ error on ping socket")
                    break  # socket state is unrecoverable

            if self.socket in events:
                try:
                    message = json.loads(self.socket.recv())
                except json.JSONDecodeError:
                    # REP protocol: reply before the next recv
                    self.socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                    continue
                except zmq.ZMQError:
                    logger.error("ZMQ error on main socket")
                    break

                try:
                    response = self.handle_message(message)
                except Exception as e:
                    sentry_sdk.capture_exception(e)
                    logger.error("Unhandled handler error: %s", type(e).__name__)
                    response = {"ok": False, "error": "Internal processing error"}

                self.socket.send_json(response)
        self.close()

    def close(self):
        self.scheduler.close()
        self.ping_socket.close()
        self.socket.close()
        self.context.term()
