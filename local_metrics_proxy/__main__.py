import argparse
import logging
import sys

from .config import load_config
from .errors import ConfigError, ProvisionError
from .handler import HandlerChain
from .models import MODULE_NAME
from .proxy import register
from .registry import ModuleRegistry
from .server import ProxyServer

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    p = argparse.ArgumentParser(prog="local_metrics_proxy",
                                description="Serve the output of a local unix-socket backend over HTTP.")
    p.add_argument("config", help="directive text file, or a .json file")
    p.add_argument("--host", default="localhost")
    p.add_argument("--port", type=int, default=8080)
    p.add_argument("--verbose", action="store_true", help="enable debug logging")
    a = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if a.verbose else logging.INFO)

    registry = ModuleRegistry()
    register(registry)
    info = registry.lookup_directive(MODULE_NAME)

    try:
        config = load_config(a.config)
        module = info.new(config)
        module.provision()
    except (ConfigError, ProvisionError) as e:
        print(f"{info.id}: {e}", file=sys.stderr)
        return 1

    server = ProxyServer(HandlerChain([module]), host=a.host, port=a.port)
    try:
        server.start()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
