"""Allow ``python -m complyx.cli`` execution."""

from complyx.cli.ingest import main

main()
