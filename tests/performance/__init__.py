"""
Performance testing package (Locust-based).

Contains the import notification journey, the Locust user classes that
run it, and the tooling around a run: user pool provisioning, the run
wrapper, report rendering and a CI threshold checker.

Traffic goes through the trade frontend exactly as a browser would:
sign in through the identity-provider stub, then walk the server-rendered
notification form pages, carrying each page's ``crumb`` token into the
next request.

Key Concepts Demonstrated:
- Page drivers that validate every response and hand back the next token
- A journey orchestrator that classifies and counts failures per state
- Custom load shapes and journey metrics shipped from workers to master
- Threshold gates evaluated both live (abort) and in CI (exit code)
"""
