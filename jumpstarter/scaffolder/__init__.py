"""Building blocks of the jumpstarter recipe.

The recipe (:mod:`.recipe`) is a fixed list of steps.  Each step receives a
:class:`ScaffoldContext` and uses its helpers to edit files and to run the
Rails generators through a :class:`CommandRunner`.
"""

from jumpstarter.scaffolder.context import ScaffoldContext
from jumpstarter.scaffolder.errors import (
    AnchorNotFound,
    CommitFailure,
    ExternalCommandFailure,
    MissingArtifact,
    ScaffoldError,
)
from jumpstarter.scaffolder.gemfile import GemDependency, Gemfile
from jumpstarter.scaffolder.recipe import Step, StepKind, build_recipe
from jumpstarter.scaffolder.runner import CommandResult, CommandRunner, SubprocessRunner
from jumpstarter.scaffolder.templates import TemplateRenderer

__all__ = [
    "AnchorNotFound",
    "CommandResult",
    "CommandRunner",
    "CommitFailure",
    "ExternalCommandFailure",
    "GemDependency",
    "Gemfile",
    "MissingArtifact",
    "ScaffoldContext",
    "ScaffoldError",
    "Step",
    "StepKind",
    "SubprocessRunner",
    "TemplateRenderer",
    "build_recipe",
]
