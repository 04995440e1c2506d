"""
Change-event dispatch and gatekeeper engine.

Notification channel -> ChangeListener -> decoder -> matcher (against a fresh
registry snapshot) -> Dispatcher -> independent HTTP deliveries. Protected
endpoints call GatekeeperGate before they run.
"""
