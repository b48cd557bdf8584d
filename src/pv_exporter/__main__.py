"""Allow running as `python -m pv_exporter`."""

from pv_exporter.cli import main

main()
