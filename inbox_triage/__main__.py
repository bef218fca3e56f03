"""Allow ``python -m inbox_triage`` to start the triage agent."""

from inbox_triage.agent.runner import main

main()
