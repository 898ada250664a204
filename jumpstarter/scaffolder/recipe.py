"""The jumpstarter recipe: a fixed, ordered list of scaffolding steps.

Each step is a small async function taking the
:class:`~jumpstarter.scaffolder.context.ScaffoldContext`.  Steps are declared
statically in :func:`build_recipe`; nothing is added or reordered at runtime.

The setup phase edits the Gemfile and installs the bundle.  The post-install
phase then drives the Rails generators and edits the files they produce, in
an order where every step can rely on the effects of the steps before it
(e.g. ``add_multiple_authentication`` edits the ``devise_for`` route that
``add_users`` generated).

Generator argument lists are part of the contract with the gems involved and
are reproduced exactly.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from jumpstarter.config import Config
from jumpstarter.utils import console

from .actions import ROUTES_ANCHOR, ROUTES_DRAW, ROUTES_FILE, optimize_indentation, read_text
from .context import ScaffoldContext
from .errors import CommitFailure, ExternalCommandFailure
from .gemfile import GemDependency
from .source import materialize, parse_template_source
from .templates import BUNDLED_TEMPLATE_DIR


class StepKind(str, Enum):
    """What a step does to the project."""

    MANIFEST_APPEND = "manifest-append"
    FILE_COPY = "file-copy"
    FILE_RENDER = "file-render"
    TEXT_INSERT = "text-insert"
    TEXT_SUBSTITUTE = "text-substitute"
    SHELL_EXEC = "shell-exec"


@dataclass(frozen=True)
class Step:
    """One named unit of the recipe."""

    name: str
    action: Callable[[ScaffoldContext], Awaitable[None]]
    kinds: tuple[StepKind, ...]
    phase: str = "post_install"
    fatal: bool = True
    skip_if: Callable[[Config], bool] | None = None

    def is_skipped(self, config: Config) -> bool:
        return self.skip_if is not None and self.skip_if(config)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

RUNTIME_GEMS: list[GemDependency] = [
    GemDependency(name="devise", versions=["~> 4.7", ">= 4.7.3"]),
    GemDependency(name="devise-bootstrapped", github="excid3/devise-bootstrapped", branch="bootstrap4"),
    GemDependency(name="devise_masquerade", versions=["~> 1.2"]),
    GemDependency(name="font-awesome-sass", versions=["~> 5.15.1"]),
    GemDependency(name="friendly_id", versions=["~> 5.3"]),
    GemDependency(name="image_processing"),
    GemDependency(name="madmin"),
    GemDependency(name="mini_magick", versions=["~> 4.10", ">= 4.10.1"]),
    GemDependency(name="name_of_person", versions=["~> 1.1"]),
    GemDependency(name="noticed", versions=["~> 1.2"]),
    GemDependency(name="omniauth-facebook", versions=["~> 6.0"]),
    GemDependency(name="omniauth-github", versions=["~> 1.4"]),
    GemDependency(name="omniauth-twitter", versions=["~> 1.4"]),
    GemDependency(name="pundit", versions=["~> 2.1"]),
    GemDependency(name="redis", versions=["~> 4.2", ">= 4.2.2"]),
    GemDependency(name="sidekiq", versions=["~> 6.1"]),
    GemDependency(name="sitemap_generator", versions=["~> 6.1", ">= 6.1.2"]),
    GemDependency(name="whenever", require=False),
]

TEST_GEMS: list[GemDependency] = [
    GemDependency(name="capybara-screenshot"),
    GemDependency(name="cucumber-rails", require=False),
    GemDependency(name="database_cleaner"),
    GemDependency(name="rails-controller-testing"),
]

DEVELOPMENT_TEST_GEMS: list[GemDependency] = [
    GemDependency(name="rspec-rails"),
    GemDependency(name="factory_bot_rails"),
    GemDependency(name="shoulda-matchers"),
    GemDependency(name="faker"),
]

JAVASCRIPT_PACKAGES: list[str] = ["bootstrap@next", "@popperjs/core", "@fortawesome/fontawesome-free"]


# ---------------------------------------------------------------------------
# Inserted snippets
# ---------------------------------------------------------------------------

DEVISE_INITIALIZER = "config/initializers/devise.rb"
USER_MODEL = "app/models/user.rb"

SECRET_KEY_LINE = re.compile(r"  # config\.secret_key = .+")

OMNIAUTH_PROVIDERS = """\
env_creds = Rails.application.credentials[Rails.env.to_sym] || {}
%i{ facebook twitter github }.each do |provider|
  if options = env_creds[provider]
    config.omniauth provider, options[:app_id], options[:app_secret], options.fetch(:options, {})
  end
end
"""

SIDEKIQ_ADMIN_ROUTES = """\
authenticate :user, lambda { |u| u.admin? } do
  mount Sidekiq::Web => '/sidekiq'

  namespace :madmin do
  end
end
"""


# ---------------------------------------------------------------------------
# Setup phase
# ---------------------------------------------------------------------------


async def resolve_template_source(ctx: ScaffoldContext) -> None:
    """Register where template files are read from.

    The bundled templates are always available as a fallback; a local or
    remote source is searched first.
    """
    ctx.add_source_path(BUNDLED_TEMPLATE_DIR)
    source = parse_template_source(ctx.config.template_source, ctx.config.branch)
    if source.kind != "bundled":
        ctx.add_source_path(await materialize(source, ctx))


async def add_gems(ctx: ScaffoldContext) -> None:
    for dependency in RUNTIME_GEMS:
        ctx.gem(dependency)


async def add_test_gems(ctx: ScaffoldContext) -> None:
    ctx.gem_group(["test"], TEST_GEMS)
    ctx.gem_group(["development", "test"], DEVELOPMENT_TEST_GEMS)


async def bundle_install(ctx: ScaffoldContext) -> None:
    await ctx.run("bundle", "install")


# ---------------------------------------------------------------------------
# Post-install phase
# ---------------------------------------------------------------------------


async def set_application_name(ctx: ScaffoldContext) -> None:
    ctx.environment("config.application_name = Rails.application.class.module_parent_name")
    console.print("You can change application name inside: ./config/application.rb")


async def stop_spring(ctx: ScaffoldContext) -> None:
    await ctx.run("spring", "stop")


async def add_users(ctx: ScaffoldContext) -> None:
    """Install Devise, generate the User model and wire its options."""
    await ctx.generate("devise:install")
    ctx.environment(
        "config.action_mailer.default_url_options = { host: 'localhost', port: 3000 }",
        env="development",
    )
    ctx.route("root to: 'home#index'")

    # Flash notices come from the bootstrapped views.
    await ctx.generate("devise:views:bootstrapped")
    await ctx.generate(
        "devise",
        "User",
        "first_name",
        "last_name",
        "announcements_last_read_at:datetime",
        "admin:boolean",
    )

    # The migration the devise generator just wrote is the newest one.
    migration = ctx.newest_file("db/migrate/*")
    ctx.gsub_file(migration, ":admin", ":admin, default: false")

    if ctx.rails_version_satisfies("5.2"):
        ctx.gsub_file(
            DEVISE_INITIALIZER,
            SECRET_KEY_LINE,
            "  config.secret_key = Rails.application.credentials.secret_key_base",
        )

    ctx.insert_into_file(USER_MODEL, "omniauthable, :masqueradable, :", after="devise :")


async def add_authorization(ctx: ScaffoldContext) -> None:
    await ctx.generate("pundit:install")


async def add_javascript(ctx: ScaffoldContext) -> None:
    for package in JAVASCRIPT_PACKAGES:
        await ctx.yarn_add(package)


async def add_announcements(ctx: ScaffoldContext) -> None:
    await ctx.generate("model Announcement published_at:datetime announcement_type name description:text")
    ctx.route("resources :announcements, only: [:index]")


async def add_notifications(ctx: ScaffoldContext) -> None:
    await ctx.generate("noticed:model")
    ctx.route("resources :notifications, only: [:index]")


async def add_multiple_authentication(ctx: ScaffoldContext) -> None:
    """Route OmniAuth callbacks and configure providers from credentials."""
    ctx.insert_into_file(
        ROUTES_FILE,
        ', controllers: { omniauth_callbacks: "users/omniauth_callbacks" }',
        after="  devise_for :users",
    )

    await ctx.generate(
        "model Service user:references provider uid access_token access_token_secret "
        "refresh_token expires_at:datetime auth:text"
    )

    ctx.insert_into_file(
        DEVISE_INITIALIZER,
        optimize_indentation(OMNIAUTH_PROVIDERS, 2) + "\n",
        before="  # ==> Warden configuration",
    )


async def add_sidekiq(ctx: ScaffoldContext) -> None:
    ctx.environment("config.active_job.queue_adapter = :sidekiq")
    ctx.insert_into_file(ROUTES_FILE, "require 'sidekiq/web'\n\n", before=ROUTES_DRAW)
    ctx.insert_into_file(ROUTES_FILE, optimize_indentation(SIDEKIQ_ADMIN_ROUTES, 2) + "\n", after=ROUTES_ANCHOR)


async def add_friendly_id(ctx: ScaffoldContext) -> None:
    await ctx.generate("friendly_id")

    migration = ctx.first_file("db/migrate/**/*friendly_id_slugs.rb")
    # Newer friendly_id releases already emit a versioned superclass.
    if "ActiveRecord::Migration[" not in read_text(migration):
        ctx.insert_into_file(migration, "[5.2]", after="ActiveRecord::Migration")


async def copy_templates(ctx: ScaffoldContext) -> None:
    await ctx.copy_file("Procfile")
    await ctx.copy_file("Procfile.dev")
    await ctx.copy_file(".foreman")

    await ctx.directory("app", force=True)
    await ctx.directory("config", force=True)
    await ctx.directory("lib", force=True)

    ctx.route("get '/terms', to: 'home#terms'")
    ctx.route("get '/privacy', to: 'home#privacy'")


async def use_postgresql(ctx: ScaffoldContext) -> None:
    ctx.remove_file("config/database.yml")
    await ctx.template("database.yml.j2", "config/database.yml")


async def add_whenever(ctx: ScaffoldContext) -> None:
    await ctx.run("wheneverize", ".")


async def add_sitemap(ctx: ScaffoldContext) -> None:
    await ctx.rails_command("sitemap:install")


async def update_readme(ctx: ScaffoldContext) -> None:
    section = ctx.renderer.render("README_getting_started.md.j2", ctx.template_context())
    ctx.insert_into_file("README.md", "\n" + section.strip(), after="# README")


async def install_active_storage(ctx: ScaffoldContext) -> None:
    await ctx.rails_command("active_storage:install")


async def install_rspec(ctx: ScaffoldContext) -> None:
    await ctx.rails_command("generate rspec:install")


async def install_cucumber(ctx: ScaffoldContext) -> None:
    await ctx.rails_command("generate cucumber:install")


async def copy_features(ctx: ScaffoldContext) -> None:
    await ctx.directory("features", force=True)


# ---------------------------------------------------------------------------
# Finalize phase
# ---------------------------------------------------------------------------


async def init_repository(ctx: ScaffoldContext) -> None:
    await ctx.git("init")
    await ctx.git("add", ".")


async def commit(ctx: ScaffoldContext) -> None:
    """Create the initial commit.

    ``git commit`` fails when ``user.email``/``user.name`` are not
    configured; that is reported as :class:`CommitFailure`, which the
    orchestrator downgrades to a warning.
    """
    try:
        await ctx.git("commit", "-m", "Initial commit")
    except ExternalCommandFailure as exc:
        raise CommitFailure(str(exc)) from exc


# ---------------------------------------------------------------------------
# Recipe
# ---------------------------------------------------------------------------


def _skip_git(config: Config) -> bool:
    return config.skip_git


def _skip_bundle(config: Config) -> bool:
    return config.skip_bundle


def build_recipe() -> list[Step]:
    """Return the full step sequence in execution order."""
    K = StepKind
    return [
        Step("resolve_template_source", resolve_template_source, (K.SHELL_EXEC,), phase="setup"),
        Step("add_gems", add_gems, (K.MANIFEST_APPEND,), phase="setup"),
        Step("add_test_gems", add_test_gems, (K.MANIFEST_APPEND,), phase="setup"),
        Step("bundle_install", bundle_install, (K.SHELL_EXEC,), phase="setup", skip_if=_skip_bundle),
        Step("set_application_name", set_application_name, (K.TEXT_INSERT,)),
        Step("stop_spring", stop_spring, (K.SHELL_EXEC,)),
        Step("add_users", add_users, (K.SHELL_EXEC, K.TEXT_INSERT, K.TEXT_SUBSTITUTE)),
        Step("add_authorization", add_authorization, (K.SHELL_EXEC,)),
        Step("add_javascript", add_javascript, (K.SHELL_EXEC,)),
        Step("add_announcements", add_announcements, (K.SHELL_EXEC, K.TEXT_INSERT)),
        Step("add_notifications", add_notifications, (K.SHELL_EXEC, K.TEXT_INSERT)),
        Step("add_multiple_authentication", add_multiple_authentication, (K.SHELL_EXEC, K.TEXT_INSERT)),
        Step("add_sidekiq", add_sidekiq, (K.TEXT_INSERT,)),
        Step("add_friendly_id", add_friendly_id, (K.SHELL_EXEC, K.TEXT_INSERT)),
        Step("copy_templates", copy_templates, (K.FILE_COPY, K.FILE_RENDER, K.TEXT_INSERT)),
        Step("use_postgresql", use_postgresql, (K.FILE_RENDER,)),
        Step("add_whenever", add_whenever, (K.SHELL_EXEC,)),
        Step("add_sitemap", add_sitemap, (K.SHELL_EXEC,)),
        Step("update_readme", update_readme, (K.TEXT_INSERT,)),
        Step("install_active_storage", install_active_storage, (K.SHELL_EXEC,)),
        Step("install_rspec", install_rspec, (K.SHELL_EXEC,)),
        Step("install_cucumber", install_cucumber, (K.SHELL_EXEC,)),
        Step("copy_features", copy_features, (K.FILE_COPY,)),
        Step("init_repository", init_repository, (K.SHELL_EXEC,), phase="finalize", skip_if=_skip_git),
        Step("commit", commit, (K.SHELL_EXEC,), phase="finalize", fatal=False, skip_if=_skip_git),
    ]
