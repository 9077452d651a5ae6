#!/usr/bin/env python3
# ============================================================
# run_server.py  —  SafePass launcher, optional pyngrok tunnel
# ============================================================
#
# Usage:
#   SAFEPASS_STORE=memory python run_server.py
#
# Public tunnel for phones on another network:
#   SAFEPASS_TUNNEL=1 NGROK_AUTHTOKEN=your_token python run_server.py
# ============================================================

import logging
import os

import uvicorn
from pyngrok import conf, ngrok

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("safepass.run_server")

NGROK_AUTHTOKEN = os.getenv("NGROK_AUTHTOKEN", "")
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")
TUNNEL = os.getenv("SAFEPASS_TUNNEL", "0") == "1"


def open_tunnel(port: int) -> str:
    if NGROK_AUTHTOKEN:
        conf.get_default().auth_token = NGROK_AUTHTOKEN
        logger.info("ngrok authtoken set from environment")
    else:
        logger.warning("No NGROK_AUTHTOKEN set — using anonymous tunnel (limited)")

    public_url = ngrok.connect(port, "http").public_url
    # ngrok always gives http:// — upgrade to https
    if public_url.startswith("http://"):
        public_url = public_url.replace("http://", "https://", 1)
    return public_url


def main() -> None:
    if TUNNEL:
        public_url = open_tunnel(PORT)
        logger.info("Public URL : %s", public_url)
    logger.info("Local URL  : http://localhost:%d", PORT)

    try:
        uvicorn.run(
            "safepass.app:create_app",
            factory=True,
            host=HOST,
            port=PORT,
            log_level="info",
        )
    finally:
        if TUNNEL:
            ngrok.kill()
            logger.info("Tunnel closed.")


if __name__ == "__main__":
    main()
