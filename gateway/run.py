import argparse

import uvicorn

from gateway.api import create_app
from gateway.api.settings import get_settings
from gateway.api.utils.logger import write_log


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Launch GraphQL gateway")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to run the server on")
    args = parser.parse_args()

    write_log({"event": "server_starting", "host": args.host, "port": args.port}, stream="system")
    # The lifespan hook connects the database before uvicorn binds the socket;
    # a failed connection exits here without ever listening.
    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        proxy_headers=True,
        forwarded_allow_ips=settings.trust_proxy,
        lifespan="on",
    )


if __name__ == "__main__":
    main()
