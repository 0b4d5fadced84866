#!/usr/bin/env python
"""Example script."""

# Parse Arguments
# Import project path
import argparse
import os
import sys

from flask import Flask, request

# Import pyroomlock
from pyroomlock import (
    FEEDBACK_EXPRESSIONS,
    FilePinStore,
    MacroPinStore,
    PinLockController,
    SubscriptionRegistry,
    XapiController,
)


def create_feedback_app(registry: SubscriptionRegistry) -> Flask:
    """Create a Flask app receiving the device's HTTP feedback."""
    app = Flask(__name__)

    @app.route("/feedback", methods=["POST"])
    def feedback() -> str:
        registry.push(request.get_json(force=True, silent=True))
        return "OK"

    return app


def main() -> None:
    """Run main code entrypoint."""
    sys.path.insert(0, os.path.join(os.path.dirname(os.path.realpath(__file__)), ".."))

    parser = argparse.ArgumentParser(description="pin-lock-listener")
    parser.add_argument(
        "-u", "--url", help="Device URL, e.g. https://10.0.0.20", required=True
    )
    parser.add_argument("--username", default="admin", help="Device user")
    parser.add_argument("--password", default="", help="Device password")
    parser.add_argument(
        "--feedback-url",
        help="URL the device posts events to, e.g. http://10.0.0.5:8080/feedback",
        required=True,
    )
    parser.add_argument("--port", type=int, default=8080, help="Listen port")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-p", "--pin", help='Fixed PIN eg: "1234"')
    group.add_argument("-f", "--store-file", help="Keep the PIN in a local file")
    args = parser.parse_args()

    xapi = XapiController(args.url, args.username, args.password, verify=False)
    registry = SubscriptionRegistry()

    if args.pin:
        lock = PinLockController(
            xapi, subscription_registry=registry, pin=args.pin, configurable=False
        )
    elif args.store_file:
        lock = PinLockController(
            xapi, FilePinStore(args.store_file), subscription_registry=registry
        )
    else:
        lock = PinLockController(
            xapi, MacroPinStore(xapi), subscription_registry=registry
        )

    # Start the lock and ask the device to send us its events
    lock.start()
    xapi.register_feedback(1, args.feedback_url, FEEDBACK_EXPRESSIONS)

    try:
        print("Listening for device feedback on port {}".format(args.port))
        create_feedback_app(registry).run(host="0.0.0.0", port=args.port)
    except KeyboardInterrupt:
        print("Got interrupted by user")
    finally:
        # Stop the event thread so we can quit
        lock.stop()


if __name__ == "__main__":
    main()
