"""jumpstarter -- turn a fresh Rails skeleton into a fully wired starter app.

Adds authentication (Devise + OmniAuth), authorization (Pundit), background
jobs (Sidekiq), notifications, announcements, friendly slugs, sitemaps, admin
screens and a BDD test setup by running a fixed recipe of gem declarations,
generator invocations and file edits.

Quick usage::

    from jumpstarter import Config, Orchestrator

    result = asyncio.run(Orchestrator(Config(app_path=Path("myapp"))).run())
"""

from jumpstarter.config import Config
from jumpstarter.orchestrator import Orchestrator, RunResult, StepRecord

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Orchestrator",
    "RunResult",
    "StepRecord",
]
