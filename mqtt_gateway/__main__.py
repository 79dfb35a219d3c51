"""Allow running as ``python -m mqtt_gateway``."""

from . import main

main()
