"""jumpstarter configuration.

Typed configuration for a scaffolding run. Settings use a Pydantic v2 model so
they are validated at construction time and can be built from environment
variables or CLI flags without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

_TRUTHY = {"1", "true", "yes", "on"}


class Config(BaseModel):
    """Options for one run of the scaffolding recipe.

    Instances are created once by the CLI entry point (or by tests) and then
    carried on the :class:`~jumpstarter.scaffolder.context.ScaffoldContext`
    for the rest of the run.
    """

    app_path: Path = Field(default=Path("."), description="Root of the generated Rails skeleton")
    app_name: str = Field(default="", description="Application name; defaults to the directory name")
    template_source: str | None = Field(
        default=None,
        description="Local directory or git URL holding the template files; None uses the bundled set",
    )
    branch: str | None = Field(default=None, description="Branch to check out after cloning a remote source")
    skip_git: bool = Field(default=False, description="Skip git init/add/commit at the end of the run")
    skip_bundle: bool = Field(default=False, description="Skip `bundle install` after editing the Gemfile")
    verbose: bool = Field(default=False, description="Echo captured output of external commands")
    rails_bin: str = Field(default="bin/rails", min_length=1)
    report_path: Path | None = Field(default=None, description="Write the run record here as JSON")

    @field_validator("app_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _derive_app_name(self) -> "Config":
        if not self.app_name:
            self.app_name = self.app_path.resolve().name
        return self

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def project_root(self) -> Path:
        """Absolute path of the project being scaffolded."""
        return self.app_path.resolve()

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, **overrides: Any) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            JUMPSTARTER_APP_PATH, JUMPSTARTER_TEMPLATE_SOURCE,
            JUMPSTARTER_BRANCH, JUMPSTARTER_SKIP_BUNDLE, JUMPSTARTER_VERBOSE,
            JUMPSTARTER_RAILS_BIN and SKIP_GIT.

        ``SKIP_GIT`` keeps its historic meaning: any non-empty value skips
        version control.  Keyword *overrides* whose value is not ``None``
        take precedence over the environment.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("JUMPSTARTER_APP_PATH"):
            kwargs["app_path"] = Path(os.environ["JUMPSTARTER_APP_PATH"])
        if os.environ.get("JUMPSTARTER_TEMPLATE_SOURCE"):
            kwargs["template_source"] = os.environ["JUMPSTARTER_TEMPLATE_SOURCE"]
        if os.environ.get("JUMPSTARTER_BRANCH"):
            kwargs["branch"] = os.environ["JUMPSTARTER_BRANCH"]
        if os.environ.get("JUMPSTARTER_RAILS_BIN"):
            kwargs["rails_bin"] = os.environ["JUMPSTARTER_RAILS_BIN"]
        if os.environ.get("SKIP_GIT"):
            kwargs["skip_git"] = True
        kwargs["skip_bundle"] = _env_flag("JUMPSTARTER_SKIP_BUNDLE")
        kwargs["verbose"] = _env_flag("JUMPSTARTER_VERBOSE")

        kwargs.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**kwargs)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY
