"""Allow ``python -m threadbot``."""

from threadbot.slack_bot import main

main()
